from __future__ import annotations

import logging
import threading

from .config import Credentials
from .crawler import CatalogCrawler
from .errors import CrawlInProgressError, NotFoundError, PersistenceError, ValidationError
from .models import Discipline, validate_identifier
from .storage import DISCIPLINES, DocumentStore

logger = logging.getLogger(__name__)


class CatalogService:
    """Operações de disciplinas expostas para a API.

    Só uma raspagem por vez: o portal aceita um login ativo por credencial,
    então um segundo disparo com outro em andamento é rejeitado.
    """

    def __init__(self, store: DocumentStore, crawler: CatalogCrawler) -> None:
        self.store = store
        self.crawler = crawler
        self._crawl_lock = threading.Lock()

    @property
    def crawl_in_progress(self) -> bool:
        return self._crawl_lock.locked()

    async def scrape_all(self, credentials: Credentials) -> list[Discipline]:
        if not self._crawl_lock.acquire(blocking=False):
            raise CrawlInProgressError("Ja existe uma raspagem em andamento.")
        try:
            return await self.crawler.scrape_all(credentials)
        finally:
            self._crawl_lock.release()

    def get_all_disciplines(self) -> list[Discipline]:
        return [Discipline.from_dict(doc) for doc in self.store.find_all(DISCIPLINES)]

    def get_discipline_by_id(self, discipline_id: str) -> Discipline:
        doc = self.store.find_by_key(DISCIPLINES, discipline_id)
        if doc is None:
            raise NotFoundError(f"Disciplina nao encontrada: {discipline_id}")
        return Discipline.from_dict(doc)

    def set_class_annotation(self, discipline_id: str, number: int, whatsapp_group: str) -> Discipline:
        """Ação do operador: grava o grupo de WhatsApp de uma turma."""
        validate_identifier(discipline_id, kind="disciplineId")
        link = (whatsapp_group or "").strip()
        if not link:
            raise ValidationError("whatsappGroup vazio")

        doc = self.store.find_by_key(DISCIPLINES, discipline_id)
        if doc is None:
            raise NotFoundError(f"Disciplina nao encontrada: {discipline_id}")
        classes = doc.get("classes")
        if not isinstance(classes, list):
            raise NotFoundError(f"Disciplina {discipline_id} sem turmas extraidas")
        target = next((c for c in classes if isinstance(c, dict) and c.get("number") == number), None)
        if target is None:
            raise NotFoundError(f"Turma {number} nao encontrada na disciplina {discipline_id}")

        target["whatsappGroup"] = link
        if not self.store.update_one(DISCIPLINES, discipline_id, {"classes": classes}):
            raise PersistenceError(f"Disciplina {discipline_id} sumiu durante a atualizacao")
        logger.info("Grupo de WhatsApp definido para %s turma %s", discipline_id, number)
        return Discipline.from_dict(doc)
