from __future__ import annotations

import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Protocol

from .errors import DuplicateKeyError, PersistenceError

logger = logging.getLogger(__name__)

DISCIPLINES = "disciplines"
STUDENTS = "students"

DEFAULT_KEYS: dict[str, str] = {
    DISCIPLINES: "disciplineId",
    STUDENTS: "studentId",
}


class DocumentStore(Protocol):
    """Primitivas CRUD consumidas pelo reconciliador e pelos serviços."""

    def find_by_key(self, collection: str, key: str) -> dict[str, Any] | None: ...

    def find_all(self, collection: str) -> list[dict[str, Any]]: ...

    def insert_one(self, collection: str, doc: dict[str, Any]) -> None: ...

    def update_one(self, collection: str, key: str, fields: dict[str, Any]) -> bool: ...

    def delete_one(self, collection: str, key: str) -> bool: ...


def save_json(path: str | Path, data: object) -> Path:
    """Escreve em arquivo temporário e troca atomicamente."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(target.suffix + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp, target)
    return target


def load_json(path: str | Path) -> object:
    return json.loads(Path(path).read_text(encoding="utf-8"))


class JsonDocumentStore:
    """Document store em arquivos JSON (um arquivo por coleção).

    Cada coleção é uma lista de documentos; a chave de cada coleção vem de
    `keys`. Leituras devolvem cópias, então alterar o retorno não altera o
    arquivo.
    """

    def __init__(self, data_dir: str | Path, *, keys: dict[str, str] | None = None) -> None:
        self.data_dir = Path(data_dir)
        self.keys = dict(DEFAULT_KEYS if keys is None else keys)
        self._lock = threading.RLock()

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def _key_field(self, collection: str) -> str:
        try:
            return self.keys[collection]
        except KeyError:
            raise PersistenceError(f"Colecao desconhecida: {collection}") from None

    def _load(self, collection: str) -> list[dict[str, Any]]:
        path = self._path(collection)
        if not path.exists():
            return []
        try:
            raw = load_json(path)
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Falha ao ler {path}: {exc}") from exc
        if not isinstance(raw, list):
            raise PersistenceError(f"JSON invalido em {path}: esperado lista de documentos")
        return [item for item in raw if isinstance(item, dict)]

    def _save(self, collection: str, docs: list[dict[str, Any]]) -> None:
        try:
            save_json(self._path(collection), docs)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Falha ao gravar colecao {collection}: {exc}") from exc

    def find_by_key(self, collection: str, key: str) -> dict[str, Any] | None:
        field = self._key_field(collection)
        with self._lock:
            for doc in self._load(collection):
                if doc.get(field) == key:
                    return copy.deepcopy(doc)
        return None

    def find_all(self, collection: str) -> list[dict[str, Any]]:
        self._key_field(collection)
        with self._lock:
            return copy.deepcopy(self._load(collection))

    def insert_one(self, collection: str, doc: dict[str, Any]) -> None:
        field = self._key_field(collection)
        key = doc.get(field)
        if key in (None, ""):
            raise PersistenceError(f"Documento sem chave '{field}' em {collection}")
        with self._lock:
            docs = self._load(collection)
            if any(d.get(field) == key for d in docs):
                raise DuplicateKeyError(f"{collection}: chave duplicada {key}")
            docs.append(copy.deepcopy(doc))
            self._save(collection, docs)
        logger.debug("%s: inserido %s", collection, key)

    def update_one(self, collection: str, key: str, fields: dict[str, Any]) -> bool:
        """Aplica `fields` ($set parcial). Retorna False se a chave não existe."""
        field = self._key_field(collection)
        with self._lock:
            docs = self._load(collection)
            for doc in docs:
                if doc.get(field) == key:
                    doc.update(copy.deepcopy(fields))
                    doc[field] = key
                    self._save(collection, docs)
                    logger.debug("%s: %s atualizado (%s)", collection, key, sorted(fields))
                    return True
        return False

    def delete_one(self, collection: str, key: str) -> bool:
        field = self._key_field(collection)
        with self._lock:
            docs = self._load(collection)
            remaining = [d for d in docs if d.get(field) != key]
            if len(remaining) == len(docs):
                return False
            self._save(collection, remaining)
        logger.debug("%s: removido %s", collection, key)
        return True
