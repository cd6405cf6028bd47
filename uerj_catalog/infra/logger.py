from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[2]
LOG_DIR = Path(os.getenv("UERJ_LOG_DIR") or ROOT_DIR / "logs")
NO_CONTEXT = "-"

_crawl_id: ContextVar[str] = ContextVar("uerj_crawl_id", default=NO_CONTEXT)
_discipline_id: ContextVar[str] = ContextVar("uerj_discipline_id", default=NO_CONTEXT)


class CrawlContextFilter(logging.Filter):
    """Anexa `crawl` e `discipline` (raspagem e disciplina em curso) a cada registro."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.crawl = _crawl_id.get()
        record.discipline = _discipline_id.get()
        return True


@contextmanager
def crawl_context(crawl_id: str | None = None) -> Iterator[str]:
    """Marca os logs e artefatos de debug de uma raspagem com o mesmo id."""
    crawl_id = crawl_id or datetime.now().strftime("%Y%m%d-%H%M%S")
    token = _crawl_id.set(crawl_id)
    try:
        yield crawl_id
    finally:
        _crawl_id.reset(token)


@contextmanager
def discipline_context(discipline_id: str) -> Iterator[None]:
    token = _discipline_id.set(discipline_id)
    try:
        yield
    finally:
        _discipline_id.reset(token)


def current_crawl_id() -> str:
    return _crawl_id.get()


def _safe(text: str, limit: int = 48) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in text)[:limit]


def setup_logging(debug: bool = False) -> None:
    """Configura logging com rotação em arquivo + console (idempotente).

    Toda linha leva o id da raspagem e a disciplina em processamento, ou `-`
    fora de uma raspagem.
    """
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger()
    if getattr(root, "_uerj_catalog_logger_ready", False):
        if debug:
            root.setLevel(logging.DEBUG)
        return

    root.setLevel(logging.DEBUG if debug else logging.INFO)
    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(crawl)s | %(discipline)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    context = CrawlContextFilter()
    file_handler = RotatingFileHandler(
        LOG_DIR / "app.log",
        maxBytes=1_500_000,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if debug else logging.INFO)
    for handler in (file_handler, console):
        handler.setFormatter(fmt)
        handler.addFilter(context)

    root.handlers.clear()
    root.addHandler(file_handler)
    root.addHandler(console)
    root._uerj_catalog_logger_ready = True  # type: ignore[attr-defined]


def make_debug_artifact_paths(stage: str, discipline_id: str | None = None) -> tuple[Path, Path]:
    """Caminhos de screenshot/HTML de uma falha, agrupados por raspagem.

    `logs/screenshots/<crawl>/<hora>_<disciplina>_<etapa>.png` e o `.html`
    correspondente em `logs/html/<crawl>/`. Sem disciplina explicita, usa a do
    contexto atual.
    """
    crawl = _safe(_crawl_id.get())
    discipline = discipline_id or _discipline_id.get()
    parts = [datetime.now().strftime("%H%M%S")]
    if discipline != NO_CONTEXT:
        parts.append(_safe(discipline, 16))
    parts.append(_safe(stage))
    base_name = "_".join(parts)

    screenshot_dir = LOG_DIR / "screenshots" / crawl
    html_dir = LOG_DIR / "html" / crawl
    screenshot_dir.mkdir(parents=True, exist_ok=True)
    html_dir.mkdir(parents=True, exist_ok=True)
    return (screenshot_dir / f"{base_name}.png", html_dir / f"{base_name}.html")
