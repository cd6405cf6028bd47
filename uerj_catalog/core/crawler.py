from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from uerj_catalog.infra import page_parser, selectors
from uerj_catalog.infra.driver import AlunoOnlineDriver, EntryExtractionError
from uerj_catalog.infra.logger import crawl_context, discipline_context

from .class_parser import parse_classes
from .config import Credentials
from .models import Discipline
from .reconcile import DisciplineReconciler, UpsertResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CrawlReport:
    """Resumo de uma raspagem (para log e para quem disparou)."""

    crawl_id: str = ""
    total: int = 0
    enriched: int = 0
    without_id: int = 0
    entry_failures: list[str] = field(default_factory=list)
    upserts: dict[str, int] = field(default_factory=dict)

    def record_upsert(self, result: UpsertResult) -> None:
        self.upserts[result.action] = self.upserts.get(result.action, 0) + 1

    def summary(self) -> str:
        acoes = ", ".join(f"{k}={v}" for k, v in sorted(self.upserts.items())) or "-"
        return (
            f"[{self.crawl_id}] {self.total} disciplinas | {self.enriched} com detalhe | "
            f"{len(self.entry_failures)} falhas de detalhe | {self.without_id} sem id | upserts: {acoes}"
        )


class CatalogCrawler:
    """Orquestra login, listagem e detalhe de cada disciplina, em série.

    A sessão do navegador tem uma página só: as entradas são processadas uma
    por vez, na ordem da listagem. Falha no detalhe de uma disciplina não
    derruba a raspagem; falha no login ou na listagem (`FatalCrawlError`)
    propaga sem nenhuma escrita no banco.
    """

    def __init__(
        self,
        driver_factory: Callable[[], AlunoOnlineDriver],
        reconciler: DisciplineReconciler,
        *,
        portal_url: str = selectors.PORTAL_URL,
    ) -> None:
        self.driver_factory = driver_factory
        self.reconciler = reconciler
        self.portal_url = portal_url
        self.last_report: CrawlReport | None = None

    async def scrape_all(self, credentials: Credentials) -> list[Discipline]:
        with crawl_context() as crawl_id:
            report = CrawlReport(crawl_id=crawl_id)
            driver = self.driver_factory()
            try:
                await driver.start()
                await driver.open(self.portal_url)
                await driver.submit_login(credentials.student_id, credentials.password)
                logger.info("Logado, navegando para %s...", selectors.CATALOG_MENU_TEXT)
                await driver.open_catalog()

                disciplines = await driver.extract_from_dom(page_parser.parse_catalog_rows)
                report.total = len(disciplines)
                logger.info("Encontradas %d disciplinas.", len(disciplines))

                for index, discipline in enumerate(disciplines, start=1):
                    if not discipline.discipline_id:
                        report.without_id += 1
                        logger.debug("Linha %d sem link de detalhe: %s", index, discipline.name)
                        continue
                    with discipline_context(discipline.discipline_id):
                        await self._process_entry(driver, discipline, report)
            finally:
                await driver.close()

            self.last_report = report
            logger.info("Raspagem concluida: %s", report.summary())
        return disciplines

    async def _process_entry(self, driver: AlunoOnlineDriver, discipline: Discipline, report: CrawlReport) -> None:
        discipline_id = discipline.discipline_id
        assert discipline_id is not None
        try:
            await driver.select_entry(discipline_id)
            requirements = await driver.extract_from_dom(page_parser.parse_requirements)
            blocks = await driver.extract_from_dom(page_parser.parse_class_blocks)
        except EntryExtractionError as exc:
            report.entry_failures.append(discipline_id)
            logger.warning("Detalhe ignorado para %s (%s): %s", discipline.name, discipline_id, exc)
        else:
            discipline.requirements = requirements
            discipline.classes = parse_classes(blocks)
            logger.info("Extraidas %d turmas da disciplina %s", len(discipline.classes), discipline.name)

        if discipline.enriched:
            report.enriched += 1
        report.record_upsert(self.reconciler.upsert(discipline))
        # Ressincroniza a navegacao mesmo quando o detalhe falhou.
        await driver.go_back()
