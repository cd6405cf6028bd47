"""Extratores puros sobre snapshots HTML do Aluno Online.

Recebem o HTML (``page.content()``) e devolvem registros tipados; não
dependem de navegador, então são testados com fixtures de texto.
"""
from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup, Tag

from uerj_catalog.core.class_parser import normalize_text
from uerj_catalog.core.models import Discipline, Requirement
from uerj_catalog.infra import selectors

logger = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"\d+")


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _text(node: Tag | None) -> str:
    if node is None:
        return ""
    return normalize_text(node.get_text(" "))


def _to_int(value: str) -> int:
    match = _DIGITS_RE.search(value or "")
    return int(match.group(0)) if match else 0


def _discipline_id(cell: Tag) -> str | None:
    link = cell.select_one(selectors.DISCIPLINE_LINK_SELECTOR)
    if link is None:
        return None
    match = selectors.DISCIPLINE_ONCLICK_RE.search(str(link.get("onclick") or ""))
    return match.group(1) if match else None


def parse_catalog_rows(html: str) -> list[Discipline]:
    """Linhas da tabela "Disciplinas do Currículo", na ordem da página.

    Ignora cabeçalhos (linhas com ``th``) e linhas com menos de nove células.
    Linhas sem link de detalhe ficam com ``discipline_id=None``.
    """
    disciplines: list[Discipline] = []
    for row in _soup(html).select(selectors.CATALOG_ROW_SELECTOR):
        if row.find("th") is not None:
            continue
        cells = row.find_all("td")
        if len(cells) < selectors.CATALOG_MIN_CELLS:
            continue
        texts = [_text(td) for td in cells]
        disciplines.append(
            Discipline(
                discipline_id=_discipline_id(cells[0]),
                name=texts[0],
                period=texts[1],
                attended=texts[2],
                type=texts[3],
                ramification=texts[4],
                credits=_to_int(texts[5]),
                total_hours=_to_int(texts[6]),
                credit_lock=texts[7],
                class_in_period=texts[8],
            )
        )
    logger.debug("Listagem: %d linhas de disciplina", len(disciplines))
    return disciplines


def _find_block(soup: BeautifulSoup, header_text: str) -> Tag | None:
    for block in soup.select(selectors.BLOCK_SELECTOR):
        header = block.select_one(selectors.BLOCK_HEADER_SELECTOR)
        if header is not None and header_text in _text(header):
            return block
    return None


def _requirement_from(node: Tag, *, fallback_description: str = "") -> Requirement:
    label = node.find("b")
    req_type = _text(label).replace(":", "").strip() if label is not None else ""
    description = ""
    if label is not None and label.parent is not None:
        description = _text(label.parent.find_next_sibling(True))
    return Requirement(
        type=req_type or selectors.DEFAULT_REQUIREMENT_TYPE,
        description=description or fallback_description,
    )


def parse_requirements(html: str) -> list[Requirement]:
    """Bloco "Requisitos da Disciplina".

    Vazio quando a página declara que não há requisitos; sem linhas rotuladas,
    lê um único par do corpo do bloco.
    """
    block = _find_block(_soup(html), selectors.REQUIREMENTS_HEADER_TEXT)
    if block is None:
        return []
    body = block.select_one(selectors.BLOCK_BODY_SELECTOR)
    if body is None:
        return []
    body_text = _text(body)
    if normalize_text(selectors.NO_REQUIREMENTS_TEXT) in body_text:
        return []

    lines = body.select(selectors.REQUIREMENT_LINE_SELECTOR)
    if lines:
        return [_requirement_from(line) for line in lines]
    return [_requirement_from(body, fallback_description=body_text)]


def parse_class_blocks(html: str) -> list[str]:
    """Textos normalizados de cada turma da tabela "Turmas da Disciplina"."""
    soup = _soup(html)
    header = None
    for candidate in soup.select(selectors.BLOCK_HEADER_SELECTOR):
        text = _text(candidate)
        if any(label in text for label in selectors.CLASSES_HEADER_TEXTS):
            header = candidate
            break
    if header is None or header.parent is None:
        return []

    table = header.parent.find("table")
    if table is None:
        return []

    blocks: list[str] = []
    for row in table.find_all("tr"):
        # tabelas internas de vagas fazem parte do bloco da turma
        if row.find_parent("table") is not table:
            continue
        cell = row.find("td")
        if cell is None:
            continue
        div = cell.find("div")
        if div is None:
            continue
        text = _text(div)
        if text:
            blocks.append(text)
    return blocks
