from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import PersistenceError
from .models import Discipline
from .storage import DISCIPLINES, DocumentStore

logger = logging.getLogger(__name__)

KEY_FIELD = "disciplineId"
# _id: chave interna de stores estilo Mongo
IGNORED_FIELDS = frozenset({KEY_FIELD, "_id"})
ANNOTATION_FIELDS = ("whatsappGroup",)

INSERTED = "inserted"
UPDATED = "updated"
UNCHANGED = "unchanged"
FAILED = "failed"
SKIPPED = "skipped"


def canonical_json(obj: Any) -> str:
    # sort_keys: ordem de chaves nao e mudanca; ordem de listas e.
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


@dataclass(slots=True)
class UpsertResult:
    discipline_id: str | None
    action: str
    fields: list[str] = field(default_factory=list)


def merge_annotations(fresh: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
    """Copia anotações das turmas salvas para as turmas novas de mesmo `number`.

    Só preenche o que falta no lado novo; um valor já presente nunca é
    sobrescrito. Devolve um novo dicionário.
    """
    merged = copy.deepcopy(fresh)
    fresh_classes = merged.get("classes")
    existing_classes = existing.get("classes")
    if not isinstance(fresh_classes, list) or not isinstance(existing_classes, list):
        return merged

    by_number: dict[Any, dict[str, Any]] = {}
    for old in existing_classes:
        if isinstance(old, dict) and "number" in old:
            by_number.setdefault(old["number"], old)

    for new in fresh_classes:
        if not isinstance(new, dict):
            continue
        old = by_number.get(new.get("number"))
        if old is None:
            continue
        for name in ANNOTATION_FIELDS:
            if old.get(name) and not new.get(name):
                new[name] = old[name]
    return merged


def diff_fields(fresh: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
    """Campos de topo de `fresh` cujo valor serializado difere de `existing`."""
    updates: dict[str, Any] = {}
    for name, value in fresh.items():
        if name in IGNORED_FIELDS:
            continue
        if name not in existing or canonical_json(value) != canonical_json(existing[name]):
            updates[name] = value
    return updates


class DisciplineReconciler:
    """Upsert de disciplinas preservando anotações e gravando só o que mudou."""

    def __init__(self, store: DocumentStore, *, collection: str = DISCIPLINES) -> None:
        self.store = store
        self.collection = collection

    def upsert(self, fresh: Discipline) -> UpsertResult:
        discipline_id = fresh.discipline_id
        if not discipline_id:
            logger.debug("Disciplina sem id ignorada na reconciliacao: %s", fresh.name)
            return UpsertResult(None, SKIPPED)

        doc = fresh.to_dict()
        try:
            existing = self.store.find_by_key(self.collection, discipline_id)
            if existing is None:
                self.store.insert_one(self.collection, doc)
                logger.info("%s inserida.", fresh.name)
                return UpsertResult(discipline_id, INSERTED, sorted(k for k in doc if k not in IGNORED_FIELDS))

            merged = merge_annotations(doc, existing)
            updates = diff_fields(merged, existing)
            if not updates:
                logger.info("%s nao teve alteracoes.", fresh.name)
                return UpsertResult(discipline_id, UNCHANGED)

            self.store.update_one(self.collection, discipline_id, updates)
            logger.info("%s atualizada com campos modificados: %s", fresh.name, sorted(updates))
            return UpsertResult(discipline_id, UPDATED, sorted(updates))
        except PersistenceError as exc:
            # Uma escrita com falha nao aborta a raspagem inteira.
            logger.error("Erro ao inserir/atualizar disciplina %s: %s", discipline_id, exc)
            return UpsertResult(discipline_id, FAILED)
