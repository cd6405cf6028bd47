from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from uerj_catalog.infra import selectors

ROOT_DIR = Path(__file__).resolve().parents[2]


def bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


@dataclass(slots=True)
class Credentials:
    """Matrícula + senha do Aluno Online (senha fora do repr)."""

    matricula: str
    password: str = field(repr=False)

    @property
    def student_id(self) -> str:
        return "".join(ch for ch in self.matricula if ch.isalnum())

    @classmethod
    def from_env(cls) -> "Credentials":
        return cls(
            matricula=(os.getenv("UERJ_MATRICULA") or "").strip(),
            password=(os.getenv("UERJ_SENHA") or "").strip(),
        )

    def is_complete(self) -> bool:
        return bool(self.student_id and self.password)


@dataclass(slots=True)
class Settings:
    headless: bool = True
    timeout_ms: int = selectors.DEFAULT_TIMEOUT_MS
    detail_timeout_ms: int = selectors.DETAIL_TIMEOUT_MS
    retries: int = selectors.STEP_RETRIES
    data_dir: Path = ROOT_DIR / "data"
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        data_dir = Path(os.getenv("UERJ_DATA_DIR", "data"))
        if not data_dir.is_absolute():
            data_dir = ROOT_DIR / data_dir
        return cls(
            headless=bool_env("UERJ_HEADLESS", True),
            timeout_ms=int_env("UERJ_TIMEOUT_MS", selectors.DEFAULT_TIMEOUT_MS),
            detail_timeout_ms=int_env("UERJ_DETAIL_TIMEOUT_MS", selectors.DETAIL_TIMEOUT_MS),
            retries=int_env("UERJ_SCRAPER_RETRIES", selectors.STEP_RETRIES),
            data_dir=data_dir,
            debug=bool_env("UERJ_DEBUG", False),
        )
