from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass

from dotenv import load_dotenv

from uerj_catalog.core.catalog import CatalogService
from uerj_catalog.core.config import Credentials, Settings
from uerj_catalog.core.crawler import CatalogCrawler
from uerj_catalog.core.errors import CatalogError
from uerj_catalog.core.reconcile import DisciplineReconciler
from uerj_catalog.core.storage import JsonDocumentStore
from uerj_catalog.core.students import COMPLETED, CURRENT, StudentService
from uerj_catalog.infra.driver import AlunoOnlineDriver, ScraperError
from uerj_catalog.infra.logger import setup_logging

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    catalog: CatalogService
    students: StudentService


def build_services(settings: Settings) -> Services:
    store = JsonDocumentStore(settings.data_dir)

    def _driver() -> AlunoOnlineDriver:
        return AlunoOnlineDriver(
            headless=settings.headless,
            timeout_ms=settings.timeout_ms,
            detail_timeout_ms=settings.detail_timeout_ms,
            retries=settings.retries,
        )

    crawler = CatalogCrawler(_driver, DisciplineReconciler(store))
    return Services(catalog=CatalogService(store, crawler), students=StudentService(store))


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Catalogo de disciplinas do Aluno Online (UERJ)")
    parser.add_argument("--debug", action="store_true", help="Log em nivel DEBUG.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("scrape", help="Raspa o portal e reconcilia as disciplinas no banco.")
    sub.add_parser("list", help="Lista todas as disciplinas salvas.")

    show = sub.add_parser("show", help="Mostra uma disciplina pelo id.")
    show.add_argument("discipline_id")

    annotate = sub.add_parser("annotate", help="Define o grupo de WhatsApp de uma turma.")
    annotate.add_argument("discipline_id")
    annotate.add_argument("number", type=int, help="Numero da turma.")
    annotate.add_argument("whatsapp_group", help="Link do grupo.")

    create = sub.add_parser("student-create", help="Cria um estudante.")
    create.add_argument("student_id")
    create.add_argument("--completed", nargs="*", default=[])
    create.add_argument("--current", nargs="*", default=[])

    show_student = sub.add_parser("student-show", help="Mostra um estudante.")
    show_student.add_argument("student_id")

    update = sub.add_parser("student-update", help="Adiciona/remove disciplinas de um estudante.")
    update.add_argument("student_id")
    update.add_argument("--add", nargs="*", default=[])
    update.add_argument("--remove", nargs="*", default=[])
    update.add_argument("--set", dest="replace", nargs="*", default=None)
    update.add_argument("--field", choices=(CURRENT, COMPLETED), default=CURRENT)

    delete = sub.add_parser("student-delete", help="Remove um estudante.")
    delete.add_argument("student_id")
    return parser


def _print(data: object) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def run(args: argparse.Namespace, services: Services) -> int:
    catalog, students = services.catalog, services.students

    if args.cmd == "scrape":
        credentials = Credentials.from_env()
        if not credentials.is_complete():
            logger.error("Defina UERJ_MATRICULA e UERJ_SENHA para raspar o portal.")
            return 1
        disciplines = asyncio.run(catalog.scrape_all(credentials))
        _print({"Disciplinas atualizadas": [d.to_dict() for d in disciplines]})
    elif args.cmd == "list":
        _print([d.to_dict() for d in catalog.get_all_disciplines()])
    elif args.cmd == "show":
        _print(catalog.get_discipline_by_id(args.discipline_id).to_dict())
    elif args.cmd == "annotate":
        _print(catalog.set_class_annotation(args.discipline_id, args.number, args.whatsapp_group).to_dict())
    elif args.cmd == "student-create":
        _print(students.create_student(args.student_id, completed=args.completed, current=args.current).to_dict())
    elif args.cmd == "student-show":
        _print(students.get_student(args.student_id).to_dict())
    elif args.cmd == "student-update":
        student = students.update_student(
            args.student_id,
            add=args.add,
            remove=args.remove,
            replace=args.replace,
            field=args.field,
        )
        _print(student.to_dict())
    elif args.cmd == "student-delete":
        students.delete_student(args.student_id)
        _print({"message": f"Estudante {args.student_id} removido"})
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_arg_parser().parse_args(argv)
    settings = Settings.from_env()
    setup_logging(debug=args.debug or settings.debug)

    try:
        return run(args, build_services(settings))
    except (CatalogError, ScraperError) as exc:
        logger.error("%s", exc)
        print(json.dumps({"error": str(exc)}, ensure_ascii=False), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
