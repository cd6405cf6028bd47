from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, TypeVar

from playwright.async_api import (
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from uerj_catalog.infra import selectors
from uerj_catalog.infra.logger import make_debug_artifact_paths

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PageLike(Protocol):
    url: str

    async def goto(self, url: str, *, wait_until: str | None = None, timeout: float | None = None) -> Any: ...

    async def fill(self, selector: str, value: str) -> None: ...

    async def click(self, selector: str) -> None: ...

    async def evaluate(self, expression: str, arg: Any | None = None) -> Any: ...

    async def wait_for_selector(self, selector: str, *, timeout: float | None = None) -> Any: ...

    async def content(self) -> str: ...

    async def go_back(self, *, wait_until: str | None = None, timeout: float | None = None) -> Any: ...

    async def close(self) -> None: ...


class ScraperError(RuntimeError):
    """Erro geral de login/navegação/scraping."""


class SelectorChangedError(ScraperError):
    """Portal mudou / seletor não encontrado."""


class FatalCrawlError(ScraperError):
    """Transição obrigatória falhou (login, listagem); a raspagem inteira aborta."""


class EntryExtractionError(ScraperError):
    """Detalhe de uma disciplina não carregou; afeta só aquela entrada."""

    def __init__(self, discipline_id: str, message: str) -> None:
        super().__init__(message)
        self.discipline_id = discipline_id


class NavState(str, Enum):
    INIT = "INIT"
    LOGGED_OUT = "LOGGED_OUT"
    AWAITING_NAV = "AWAITING_NAV"
    CATALOG_LIST = "CATALOG_LIST"
    ENTRY_DETAIL = "ENTRY_DETAIL"
    CLOSED = "CLOSED"


class AlunoOnlineDriver:
    """Sessão de navegação no Aluno Online (UERJ) sobre async_playwright.

    Cada operação é uma transição da máquina de estados `NavState`:

        INIT -open-> LOGGED_OUT -submit_login-> AWAITING_NAV
        -open_catalog-> CATALOG_LIST -select_entry-> ENTRY_DETAIL
        -go_back-> CATALOG_LIST ... -close-> CLOSED

    Uma sessão tem uma única página ativa; quem chama deve aguardar cada
    operação antes da próxima. `page` pode ser injetada (testes).
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        timeout_ms: int = selectors.DEFAULT_TIMEOUT_MS,
        detail_timeout_ms: int = selectors.DETAIL_TIMEOUT_MS,
        retries: int = selectors.STEP_RETRIES,
        page: PageLike | None = None,
        debug_artifacts: bool = True,
    ) -> None:
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.detail_timeout_ms = detail_timeout_ms
        self.retries = max(0, retries)
        self.debug_artifacts = debug_artifacts

        self._pw = None
        self._browser = None
        self._context = None
        self.page: PageLike | None = page
        self.state = NavState.INIT
        self.current_entry: str | None = None

    # ---------- Ciclo de vida ----------
    async def start(self) -> None:
        if self.page is not None:
            return
        self._pw = await async_playwright().start()
        try:
            self._browser = await self._pw.chromium.launch(headless=self.headless)
        except PlaywrightError as exc:
            await self.close()
            raise FatalCrawlError(
                f"Chromium nao iniciou. Rode `playwright install chromium`. ({exc})"
            ) from exc
        self._context = await self._browser.new_context()
        await self._context.route("**/*", self._route_handler)
        self._context.set_default_timeout(self.timeout_ms)
        self.page = await self._context.new_page()
        logger.info("Playwright async iniciado (headless=%s)", self.headless)

    async def close(self) -> None:
        for attr in ("page", "_context", "_browser", "_pw"):
            obj = getattr(self, attr, None)
            if obj is None:
                continue
            try:
                if attr == "_pw":
                    await obj.stop()
                else:
                    await asyncio.wait_for(obj.close(), timeout=1.5)
            except Exception:
                logger.debug("Falha ao fechar %s", attr, exc_info=True)
            setattr(self, attr, None)
        self.state = NavState.CLOSED

    async def _route_handler(self, route, request) -> None:
        # Acelera carregamento sem quebrar JS/layout (mantém scripts e CSS).
        if request.resource_type in selectors.BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    def _ensure_page(self) -> PageLike:
        if self.page is None:
            raise ScraperError("Pagina Playwright nao iniciada.")
        return self.page

    def _require(self, op_name: str, *allowed: NavState) -> PageLike:
        if self.state not in allowed:
            raise ScraperError(
                f"Transicao invalida: {op_name} no estado {self.state.value} "
                f"(esperado {', '.join(s.value for s in allowed)})"
            )
        return self._ensure_page()

    async def _save_debug_artifacts(self, stage: str, discipline_id: str | None = None) -> tuple[Path, Path] | None:
        page = self.page
        if not self.debug_artifacts or page is None:
            return None
        png_path, html_path = make_debug_artifact_paths(stage, discipline_id)
        with contextlib.suppress(Exception):
            await page.screenshot(path=str(png_path), full_page=True)  # type: ignore[attr-defined]
        with contextlib.suppress(Exception):
            html_path.write_text(await page.content(), encoding="utf-8")
        logger.warning("Artefatos de debug salvos: %s | %s", png_path, html_path)
        return png_path, html_path

    # ---------- Helpers de retry ----------
    async def _retry(self, op_name: str, coro_factory):
        last_exc: Exception | None = None
        for attempt in range(self.retries + 1):
            try:
                return await coro_factory()
            except (PlaywrightTimeoutError, PlaywrightError) as exc:
                last_exc = exc
                if attempt >= self.retries:
                    break
                backoff_ms = selectors.RETRY_BACKOFF_MS * (attempt + 1)
                logger.warning("%s falhou (tentativa %d). Retry em %d ms: %s", op_name, attempt + 1, backoff_ms, exc)
                await asyncio.sleep(backoff_ms / 1000)
        assert last_exc is not None
        raise last_exc

    # ---------- Capacidades basicas ----------
    async def open(self, url: str = selectors.PORTAL_URL) -> None:
        page = self._require("open", NavState.INIT, NavState.LOGGED_OUT)

        async def _goto() -> None:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)

        try:
            await self._retry("open", _goto)
        except (PlaywrightTimeoutError, PlaywrightError) as exc:
            await self._save_debug_artifacts("open_error")
            raise FatalCrawlError(f"Nao foi possivel abrir {url}: {exc}") from exc
        self.state = NavState.LOGGED_OUT
        logger.info("Portal aberto: %s", url)

    async def wait_for_element(self, selector: str, timeout_ms: int | None = None) -> None:
        """Espera `selector`; propaga o `TimeoutError` do Playwright."""
        page = self._ensure_page()
        await page.wait_for_selector(selector, timeout=timeout_ms or self.timeout_ms)

    async def click_link_by_text(self, text: str, *, selector: str = selectors.MENU_LINK_SELECTOR) -> None:
        page = self._ensure_page()
        clicked = await page.evaluate(selectors.CLICK_LINK_BY_TEXT_SCRIPT, {"selector": selector, "text": text})
        if not clicked:
            raise SelectorChangedError(f"Link '{text}' nao encontrado em {selector}")

    async def extract_from_dom(self, extractor: Callable[[str], T]) -> T:
        """Tira um snapshot HTML da página e aplica o extrator puro.

        No detalhe de uma disciplina a falha vira `EntryExtractionError` (local
        à entrada); em qualquer outro estado a raspagem não tem como seguir.
        """
        page = self._ensure_page()
        try:
            html = await page.content()
        except (PlaywrightTimeoutError, PlaywrightError) as exc:
            if self.state == NavState.ENTRY_DETAIL and self.current_entry is not None:
                await self._save_debug_artifacts("snapshot_error", self.current_entry)
                raise EntryExtractionError(
                    self.current_entry,
                    f"Snapshot do detalhe da disciplina {self.current_entry} falhou: {exc}",
                ) from exc
            await self._save_debug_artifacts("snapshot_error")
            raise FatalCrawlError(f"Snapshot da pagina falhou no estado {self.state.value}: {exc}") from exc
        return extractor(html)

    async def go_back(self) -> None:
        page = self._require("go_back", NavState.ENTRY_DETAIL)
        try:
            await page.go_back(wait_until="domcontentloaded", timeout=self.timeout_ms)
            await self.wait_for_element(selectors.CATALOG_TABLE_SELECTOR)
        except (PlaywrightTimeoutError, PlaywrightError) as exc:
            await self._save_debug_artifacts("go_back_error")
            raise FatalCrawlError(f"Listagem de disciplinas nao voltou apos go_back: {exc}") from exc
        self.state = NavState.CATALOG_LIST
        self.current_entry = None

    # ---------- Transicoes compostas ----------
    async def submit_login(self, matricula: str, password: str) -> None:
        page = self._require("submit_login", NavState.LOGGED_OUT)
        try:
            await page.fill(selectors.SELECTOR_MATRICULA, matricula)
            await page.fill(selectors.SELECTOR_SENHA, password)
            await page.click(selectors.SELECTOR_CONFIRMAR)
        except (PlaywrightTimeoutError, PlaywrightError) as exc:
            await self._save_debug_artifacts("login_form_error")
            raise FatalCrawlError(f"Formulario de login indisponivel: {exc}") from exc
        self.state = NavState.AWAITING_NAV

        try:
            await self.wait_for_element(selectors.MENU_LINK_SELECTOR)
        except (PlaywrightTimeoutError, PlaywrightError) as exc:
            await self._save_debug_artifacts("login_error")
            raise FatalCrawlError(
                "Menu do Aluno Online nao apareceu apos o login (credenciais invalidas ou portal fora do ar)."
            ) from exc
        logger.info("Login realizado para matricula %s", matricula)

    async def open_catalog(self) -> None:
        self._require("open_catalog", NavState.AWAITING_NAV)
        try:
            await self.click_link_by_text(selectors.CATALOG_MENU_TEXT)
            await self.wait_for_element(selectors.CATALOG_TABLE_SELECTOR)
        except (PlaywrightTimeoutError, PlaywrightError, SelectorChangedError) as exc:
            await self._save_debug_artifacts("catalog_error")
            raise FatalCrawlError(f"Listagem '{selectors.CATALOG_MENU_TEXT}' nao carregou: {exc}") from exc
        self.state = NavState.CATALOG_LIST
        logger.info("Navegando em %s...", selectors.CATALOG_MENU_TEXT)

    async def select_entry(self, discipline_id: str) -> None:
        """Abre o detalhe da disciplina; falha aqui é local à entrada."""
        page = self._require("select_entry", NavState.CATALOG_LIST)
        # A partir daqui go_back e sempre necessario para voltar a listagem.
        self.state = NavState.ENTRY_DETAIL
        self.current_entry = discipline_id
        try:
            await page.evaluate(selectors.OPEN_DISCIPLINE_SCRIPT, discipline_id)
            await self.wait_for_element(selectors.DETAIL_READY_SELECTOR, self.detail_timeout_ms)
        except (PlaywrightTimeoutError, PlaywrightError) as exc:
            await self._save_debug_artifacts("select_entry_error", discipline_id)
            raise EntryExtractionError(
                discipline_id,
                f"Detalhe da disciplina {discipline_id} nao carregou em {self.detail_timeout_ms} ms: {exc}",
            ) from exc
