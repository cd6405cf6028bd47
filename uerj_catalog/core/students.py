from __future__ import annotations

import logging
from collections.abc import Iterable

from .errors import NotFoundError, PersistenceError, ValidationError
from .models import Student, validate_identifier
from .storage import STUDENTS, DocumentStore

logger = logging.getLogger(__name__)

CURRENT = "currentDisciplines"
COMPLETED = "completedDisciplines"
DISCIPLINE_SETS = (CURRENT, COMPLETED)


def _validated_ids(values: Iterable[str] | None, *, field: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise ValidationError(f"{field} deve ser uma lista de ids, nao string")
    return [validate_identifier(v, kind=f"disciplineId em {field}") for v in values]


def _dedupe(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


class StudentService:
    """Tracker de inscrições por aluno.

    Toda validação acontece antes de qualquer acesso ao store. Conjuntos são
    atualizados por leitura-modificação-escrita. Falhas de persistência
    sobem para quem chamou.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def create_student(
        self,
        student_id: str,
        *,
        completed: Iterable[str] | None = None,
        current: Iterable[str] | None = None,
    ) -> Student:
        validate_identifier(student_id, kind="studentId")
        student = Student(
            student_id=student_id,
            completed_disciplines=_dedupe(_validated_ids(completed, field=COMPLETED)),
            current_disciplines=_dedupe(_validated_ids(current, field=CURRENT)),
        )
        self.store.insert_one(STUDENTS, student.to_dict())
        logger.info("Estudante %s inserido.", student_id)
        return student

    def get_student(self, student_id: str) -> Student:
        validate_identifier(student_id, kind="studentId")
        doc = self.store.find_by_key(STUDENTS, student_id)
        if doc is None:
            raise NotFoundError(f"Estudante nao encontrado: {student_id}")
        return Student.from_dict(doc)

    def update_student(
        self,
        student_id: str,
        *,
        add: Iterable[str] | None = None,
        remove: Iterable[str] | None = None,
        replace: Iterable[str] | None = None,
        field: str = CURRENT,
    ) -> Student:
        """Aplica união (`add`), diferença (`remove`) ou substituição (`replace`).

        `replace` é aplicado primeiro, depois `add` e por fim `remove`.
        """
        validate_identifier(student_id, kind="studentId")
        if field not in DISCIPLINE_SETS:
            raise ValidationError(f"Campo invalido: {field!r} (use {' ou '.join(DISCIPLINE_SETS)})")
        to_add = _validated_ids(add, field=field)
        to_remove = set(_validated_ids(remove, field=field))
        replacement = None if replace is None else _validated_ids(replace, field=field)

        doc = self.store.find_by_key(STUDENTS, student_id)
        if doc is None:
            raise NotFoundError(f"Estudante nao encontrado: {student_id}")
        student = Student.from_dict(doc)
        before = list(doc.get(field) or [])

        values = list(before) if replacement is None else list(replacement)
        values = [v for v in _dedupe([*values, *to_add]) if v not in to_remove]
        if values == before:
            logger.info("Nenhuma alteracao para o estudante %s", student_id)
            return student

        if not self.store.update_one(STUDENTS, student_id, {field: values}):
            raise PersistenceError(f"Estudante {student_id} sumiu durante a atualizacao")
        if field == CURRENT:
            student.current_disciplines = values
        else:
            student.completed_disciplines = values
        logger.info("Estudante %s atualizado (%s).", student_id, field)
        return student

    def delete_student(self, student_id: str) -> None:
        validate_identifier(student_id, kind="studentId")
        if not self.store.delete_one(STUDENTS, student_id):
            raise NotFoundError(f"Estudante nao encontrado: {student_id}")
        logger.info("Estudante %s removido.", student_id)
