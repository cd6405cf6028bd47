from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError

IDENTIFIER_RE = re.compile(r"^[\w-]+$")


def validate_identifier(value: object, *, kind: str = "identificador") -> str:
    """Aceita apenas um ou mais caracteres de palavra ou hífen."""
    if not isinstance(value, str) or not IDENTIFIER_RE.fullmatch(value):
        raise ValidationError(f"{kind} invalido: {value!r}")
    return value


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(slots=True)
class Requirement:
    """Requisito de inscrição (pré-requisito, co-requisito...)."""

    type: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Requirement":
        return cls(
            type=str(data.get("type") or "Requirement"),
            description=str(data.get("description") or ""),
        )


@dataclass(slots=True)
class ClassSection:
    """Turma de uma disciplina, com vagas e solicitações por cota."""

    number: int = 0
    preferential: str | None = None
    times: str | None = None
    teacher: str | None = None
    offered_uerj: int = 0
    occupied_uerj: int = 0
    offered_vestibular: int = 0
    occupied_vestibular: int = 0
    request_uerj_offered: int = 0
    request_uerj_total: int = 0
    request_uerj_preferential: int = 0
    request_vestibular_offered: int = 0
    request_vestibular_total: int = 0
    request_vestibular_preferential: int = 0
    # Anotacao do operador; o scraper nunca preenche.
    whatsapp_group: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "number": self.number,
            "preferential": self.preferential,
            "times": self.times,
            "teacher": self.teacher,
            "offeredUerj": self.offered_uerj,
            "occupiedUerj": self.occupied_uerj,
            "offeredVestibular": self.offered_vestibular,
            "occupiedVestibular": self.occupied_vestibular,
            "requestUerjOffered": self.request_uerj_offered,
            "requestUerjTotal": self.request_uerj_total,
            "requestUerjPreferential": self.request_uerj_preferential,
            "requestVestibularOffered": self.request_vestibular_offered,
            "requestVestibularTotal": self.request_vestibular_total,
            "requestVestibularPreferential": self.request_vestibular_preferential,
        }
        if self.whatsapp_group:
            data["whatsappGroup"] = self.whatsapp_group
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClassSection":
        return cls(
            number=_to_int(data.get("number")),
            preferential=_opt_str(data.get("preferential")),
            times=_opt_str(data.get("times")),
            teacher=_opt_str(data.get("teacher")),
            offered_uerj=_to_int(data.get("offeredUerj")),
            occupied_uerj=_to_int(data.get("occupiedUerj")),
            offered_vestibular=_to_int(data.get("offeredVestibular")),
            occupied_vestibular=_to_int(data.get("occupiedVestibular")),
            request_uerj_offered=_to_int(data.get("requestUerjOffered")),
            request_uerj_total=_to_int(data.get("requestUerjTotal")),
            request_uerj_preferential=_to_int(data.get("requestUerjPreferential")),
            request_vestibular_offered=_to_int(data.get("requestVestibularOffered")),
            request_vestibular_total=_to_int(data.get("requestVestibularTotal")),
            request_vestibular_preferential=_to_int(data.get("requestVestibularPreferential")),
            whatsapp_group=_opt_str(data.get("whatsappGroup")),
        )


@dataclass(slots=True)
class Discipline:
    """Disciplina do currículo.

    `requirements` e `classes` ficam `None` enquanto o detalhe não foi
    extraído; nesse caso `to_dict()` omite as duas chaves, de modo que uma
    reconciliação só com campos da listagem nunca apaga o detalhe salvo.
    """

    discipline_id: str | None
    name: str
    period: str = ""
    attended: str = ""
    type: str = ""
    ramification: str = ""
    credits: int = 0
    total_hours: int = 0
    credit_lock: str = ""
    class_in_period: str = ""
    requirements: list[Requirement] | None = None
    classes: list[ClassSection] | None = None

    @property
    def enriched(self) -> bool:
        return self.requirements is not None and self.classes is not None

    def class_by_number(self, number: int) -> ClassSection | None:
        for section in self.classes or []:
            if section.number == number:
                return section
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "disciplineId": self.discipline_id,
            "name": self.name,
            "period": self.period,
            "attended": self.attended,
            "type": self.type,
            "ramification": self.ramification,
            "credits": self.credits,
            "totalHours": self.total_hours,
            "creditLock": self.credit_lock,
            "classInPeriod": self.class_in_period,
        }
        if self.requirements is not None:
            data["requirements"] = [r.to_dict() for r in self.requirements]
        if self.classes is not None:
            data["classes"] = [c.to_dict() for c in self.classes]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Discipline":
        requirements = data.get("requirements")
        classes = data.get("classes")
        return cls(
            discipline_id=_opt_str(data.get("disciplineId")),
            name=str(data.get("name") or ""),
            period=str(data.get("period") or ""),
            attended=str(data.get("attended") or ""),
            type=str(data.get("type") or ""),
            ramification=str(data.get("ramification") or ""),
            credits=_to_int(data.get("credits")),
            total_hours=_to_int(data.get("totalHours")),
            credit_lock=str(data.get("creditLock") or ""),
            class_in_period=str(data.get("classInPeriod") or ""),
            requirements=(
                [Requirement.from_dict(item) for item in requirements if isinstance(item, dict)]
                if isinstance(requirements, list)
                else None
            ),
            classes=(
                [ClassSection.from_dict(item) for item in classes if isinstance(item, dict)]
                if isinstance(classes, list)
                else None
            ),
        )


@dataclass(slots=True)
class Student:
    """Aluno acompanhado pelo tracker de inscrições.

    Os conjuntos de disciplinas são listas sem duplicatas (ordem de inserção).
    """

    student_id: str
    completed_disciplines: list[str] = field(default_factory=list)
    current_disciplines: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "studentId": self.student_id,
            "completedDisciplines": list(self.completed_disciplines),
            "currentDisciplines": list(self.current_disciplines),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Student":
        return cls(
            student_id=str(data.get("studentId", "")),
            completed_disciplines=[str(v) for v in data.get("completedDisciplines") or []],
            current_disciplines=[str(v) for v in data.get("currentDisciplines") or []],
        )
