from __future__ import annotations

import copy
from typing import Any

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from uerj_catalog.core.errors import PersistenceError
from uerj_catalog.core.storage import DEFAULT_KEYS
from uerj_catalog.infra import selectors
from uerj_catalog.infra.driver import AlunoOnlineDriver

CLASS_TEXT = (
    "TURMA: {number:02d} Preferencial: NÃO Tempos: 2M12 Local das Aulas: Sala {number} "
    "Docente: Prof {number} Vagas Atualizadas da Turma Ofertadas Ocupadas "
    "UERJ 40 35 Vestibular 10 8 "
    "Vagas para Solicitação de Inscrição Ofertadas Total Preferencial "
    "UERJ 5 12 3 Vestibular 2 4 1"
)


def catalog_row(discipline_id: str | None, name: str, *, credits: int = 4) -> str:
    if discipline_id is None:
        first = f"<td>{name}</td>"
    else:
        first = (
            f'<td><a class="LINKNAOSUB" href="#" '
            f'onclick="consultarDisciplina(output, {discipline_id})">{name}</a></td>'
        )
    return (
        f"<tr>{first}<td>1</td><td>Não</td><td>Obrigatória</td><td>-</td>"
        f"<td>{credits}</td><td>{credits * 15}</td><td>Não</td><td>Sim</td></tr>"
    )


def catalog_html(rows: list[str]) -> str:
    header = "<tr><th>Disciplina</th><th>Período</th><th>Cursou</th></tr>"
    return f"<html><body><table><tbody>{header}{''.join(rows)}</tbody></table></body></html>"


def detail_html(*, requirements: str | None = None, classes: list[str] | None = None) -> str:
    if requirements is None:
        requirements = "Esta Disciplina não possui requisito para inscrição."
    class_rows = "".join(
        f"<tr><td><div>{text}<table><tr><td>UERJ</td></tr></table></div></td></tr>" for text in classes or []
    )
    return (
        "<html><body>"
        '<div class="divContentBlock">'
        '<div class="divContentBlockHeader">Requisitos da Disciplina</div>'
        f'<div class="divContentBlockBody">{requirements}</div>'
        "</div>"
        '<div class="divContentBlock">'
        '<div class="divContentBlockHeader">Turmas da Disciplina</div>'
        f"<table>{class_rows}</table>"
        "</div>"
        "</body></html>"
    )


class FakePage:
    """Página falsa com o subconjunto da API do Playwright usado pelo driver."""

    def __init__(
        self,
        *,
        catalog: str,
        details: dict[str, str] | None = None,
        login_ok: bool = True,
        has_catalog_link: bool = True,
        back_ok: bool = True,
        broken_details: set[str] | None = None,
    ) -> None:
        self.url = ""
        self.catalog = catalog
        self.details = details or {}
        self.login_ok = login_ok
        self.has_catalog_link = has_catalog_link
        self.back_ok = back_ok
        self.broken_details = broken_details or set()
        self.current = "blank"
        self.calls: list[tuple[Any, ...]] = []
        self.closed = False

    def _visible(self) -> set[str]:
        if self.current == "menu":
            return {selectors.MENU_LINK_SELECTOR}
        if self.current == "catalog":
            return {selectors.MENU_LINK_SELECTOR, selectors.CATALOG_TABLE_SELECTOR}
        if self.current.startswith("detail:"):
            discipline_id = self.current.split(":", 1)[1]
            if discipline_id in self.details:
                return {selectors.DETAIL_READY_SELECTOR}
        return set()

    async def goto(self, url: str, *, wait_until: str | None = None, timeout: float | None = None) -> None:
        self.calls.append(("goto", url))
        self.url = url
        self.current = "login"

    async def fill(self, selector: str, value: str) -> None:
        self.calls.append(("fill", selector))

    async def click(self, selector: str) -> None:
        self.calls.append(("click", selector))
        if selector == selectors.SELECTOR_CONFIRMAR and self.login_ok:
            self.current = "menu"

    async def evaluate(self, expression: str, arg: Any | None = None) -> Any:
        if expression == selectors.CLICK_LINK_BY_TEXT_SCRIPT:
            self.calls.append(("click_text", arg["text"]))
            if self.has_catalog_link and self.current == "menu":
                self.current = "catalog"
                return True
            return False
        if expression == selectors.OPEN_DISCIPLINE_SCRIPT:
            self.calls.append(("open_discipline", arg))
            self.current = f"detail:{arg}"
            return None
        raise AssertionError(f"script inesperado: {expression[:40]}")

    async def wait_for_selector(self, selector: str, *, timeout: float | None = None) -> None:
        self.calls.append(("wait", selector, timeout))
        if selector not in self._visible():
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def content(self) -> str:
        if self.current == "catalog":
            return self.catalog
        if self.current.startswith("detail:"):
            discipline_id = self.current.split(":", 1)[1]
            if discipline_id in self.broken_details:
                raise PlaywrightError("Execution context was destroyed, most likely because of a navigation")
            return self.details.get(discipline_id, "<html></html>")
        return "<html></html>"

    async def go_back(self, *, wait_until: str | None = None, timeout: float | None = None) -> None:
        self.calls.append(("go_back",))
        if self.back_ok:
            self.current = "catalog"

    async def close(self) -> None:
        self.closed = True


class MemoryStore:
    """Document store em memória que registra cada chamada."""

    def __init__(self, *, fail_writes: bool = False) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.fail_writes = fail_writes

    def _key(self, collection: str) -> str:
        return DEFAULT_KEYS[collection]

    def writes(self) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] in {"insert_one", "update_one", "delete_one"}]

    def find_by_key(self, collection: str, key: str) -> dict[str, Any] | None:
        self.calls.append(("find_by_key", collection, key))
        for doc in self.collections.get(collection, []):
            if doc.get(self._key(collection)) == key:
                return copy.deepcopy(doc)
        return None

    def find_all(self, collection: str) -> list[dict[str, Any]]:
        self.calls.append(("find_all", collection))
        return [copy.deepcopy(doc) for doc in self.collections.get(collection, [])]

    def insert_one(self, collection: str, doc: dict[str, Any]) -> None:
        self.calls.append(("insert_one", collection, doc))
        if self.fail_writes:
            raise PersistenceError("disco cheio")
        self.collections.setdefault(collection, []).append(copy.deepcopy(doc))

    def update_one(self, collection: str, key: str, fields: dict[str, Any]) -> bool:
        self.calls.append(("update_one", collection, key, fields))
        if self.fail_writes:
            raise PersistenceError("disco cheio")
        for doc in self.collections.get(collection, []):
            if doc.get(self._key(collection)) == key:
                doc.update(copy.deepcopy(fields))
                return True
        return False

    def delete_one(self, collection: str, key: str) -> bool:
        self.calls.append(("delete_one", collection, key))
        docs = self.collections.get(collection, [])
        remaining = [d for d in docs if d.get(self._key(collection)) != key]
        self.collections[collection] = remaining
        return len(remaining) != len(docs)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


def make_driver(page: FakePage, **kwargs: Any) -> AlunoOnlineDriver:
    return AlunoOnlineDriver(page=page, debug_artifacts=False, retries=0, **kwargs)
