from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Iterable

from .models import ClassSection

logger = logging.getLogger(__name__)

_SPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"TURMA:?\s*(\d+)")
_PREFERENTIAL_RE = re.compile(r"Preferencial:?\s*(SIM|NÃO)")
_TIMES_RE = re.compile(r"Tempos:?\s*(.*?)\s*(?=Local das Aulas|Docente)", re.DOTALL)
_TEACHER_RE = re.compile(r"Docente:?\s*(.*)", re.DOTALL)
_TEACHER_TAIL_RE = re.compile(r"\s*Vagas.*$", re.DOTALL)

# Blocos de vagas: ordem fixa UERJ depois Vestibular.
_CAPACITY_RE = re.compile(
    r"""
    Vagas\ Atualizadas\ da\ Turma.*?
    UERJ\s*(\d+)\s*(\d+).*?
    Vestibular\s*(\d+)\s*(\d+)
    """,
    re.VERBOSE | re.DOTALL,
)
_REQUEST_RE = re.compile(
    r"""
    Vagas\ para\ Solicitação\ de\ Inscrição.*?
    UERJ\s*(\d+)\s*(\d+)\s*(\d+).*?
    Vestibular\s*(\d+)\s*(\d+)\s*(\d+)
    """,
    re.VERBOSE | re.DOTALL,
)


def normalize_text(raw: str) -> str:
    """NFC + espaços colapsados (o portal mistura quebras de linha e nbsp)."""
    text = unicodedata.normalize("NFC", raw)
    return _SPACE_RE.sub(" ", text).strip()


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_class(raw: str) -> ClassSection:
    """Converte o texto de um bloco de turma em `ClassSection`.

    Cada campo é extraído de forma independente; padrão ausente resulta no
    default (0 para contadores e número, `None` para textos). Nunca levanta.

    Exemplo: ``"TURMA: 01 Preferencial: NÃO Tempos: 2M12 Local das Aulas: X
    Docente: J. Silva Vagas Atualizadas da Turma ... UERJ 40 35 Vestibular 10 8"``.
    """
    section = ClassSection()
    if not isinstance(raw, str):
        logger.debug("Bloco de turma nao textual ignorado: %r", raw)
        return section

    text = normalize_text(raw)
    if not text:
        return section

    match = _NUMBER_RE.search(text)
    if match:
        section.number = int(match.group(1))

    match = _PREFERENTIAL_RE.search(text)
    if match:
        section.preferential = match.group(1)

    match = _TIMES_RE.search(text)
    if match:
        section.times = _clean(match.group(1))

    match = _TEACHER_RE.search(text)
    if match:
        section.teacher = _clean(_TEACHER_TAIL_RE.sub("", match.group(1)))

    match = _CAPACITY_RE.search(text)
    if match:
        (
            section.offered_uerj,
            section.occupied_uerj,
            section.offered_vestibular,
            section.occupied_vestibular,
        ) = (int(g) for g in match.groups())

    match = _REQUEST_RE.search(text)
    if match:
        (
            section.request_uerj_offered,
            section.request_uerj_total,
            section.request_uerj_preferential,
            section.request_vestibular_offered,
            section.request_vestibular_total,
            section.request_vestibular_preferential,
        ) = (int(g) for g in match.groups())

    logger.debug("Turma parseada: %s", section)
    return section


def parse_classes(blocks: Iterable[str]) -> list[ClassSection]:
    return [parse_class(block) for block in blocks]
