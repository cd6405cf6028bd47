from conftest import MemoryStore

from uerj_catalog.core.models import ClassSection, Discipline, Requirement
from uerj_catalog.core.reconcile import (
    FAILED,
    INSERTED,
    SKIPPED,
    UNCHANGED,
    UPDATED,
    DisciplineReconciler,
    diff_fields,
    merge_annotations,
)
from uerj_catalog.core.storage import DISCIPLINES


def _discipline(name: str = "Cálculo I", classes: list[ClassSection] | None = None) -> Discipline:
    return Discipline(
        discipline_id="101",
        name=name,
        period="1",
        credits=6,
        total_hours=90,
        requirements=[Requirement(type="Pré-Requisito", description="Pré-Cálculo")],
        classes=classes if classes is not None else [ClassSection(number=1, teacher="Ana", offered_uerj=40)],
    )


def test_upsert_insere_quando_nao_existe(store: MemoryStore) -> None:
    result = DisciplineReconciler(store).upsert(_discipline())
    assert result.action == INSERTED
    assert store.collections[DISCIPLINES][0]["disciplineId"] == "101"
    assert "disciplineId" not in result.fields


def test_upsert_repetido_nao_grava_na_segunda_vez(store: MemoryStore) -> None:
    reconciler = DisciplineReconciler(store)
    reconciler.upsert(_discipline())
    writes_before = len(store.writes())

    result = reconciler.upsert(_discipline())

    assert result.action == UNCHANGED
    assert result.fields == []
    assert len(store.writes()) == writes_before


def test_upsert_preserva_grupo_whatsapp_existente(store: MemoryStore) -> None:
    reconciler = DisciplineReconciler(store)
    reconciler.upsert(_discipline())
    store.collections[DISCIPLINES][0]["classes"][0]["whatsappGroup"] = "G1"

    fresh = _discipline(classes=[ClassSection(number=1, teacher="Ana", offered_uerj=40)])
    result = reconciler.upsert(fresh)

    assert result.action == UNCHANGED
    assert store.collections[DISCIPLINES][0]["classes"][0]["whatsappGroup"] == "G1"


def test_upsert_mantem_anotacao_quando_turma_muda(store: MemoryStore) -> None:
    reconciler = DisciplineReconciler(store)
    reconciler.upsert(_discipline())
    store.collections[DISCIPLINES][0]["classes"][0]["whatsappGroup"] = "G1"

    result = reconciler.upsert(_discipline(classes=[ClassSection(number=1, teacher="Bruno", offered_uerj=40)]))

    assert result.action == UPDATED
    assert result.fields == ["classes"]
    stored = store.collections[DISCIPLINES][0]["classes"][0]
    assert stored["teacher"] == "Bruno"
    assert stored["whatsappGroup"] == "G1"


def test_upsert_atualiza_apenas_o_campo_alterado(store: MemoryStore) -> None:
    reconciler = DisciplineReconciler(store)
    reconciler.upsert(_discipline())

    result = reconciler.upsert(_discipline(name="Cálculo Diferencial I"))

    assert result.action == UPDATED
    update = store.writes()[-1]
    assert update[0] == "update_one"
    assert set(update[3]) == {"name"}


def test_reordenar_turmas_conta_como_mudanca(store: MemoryStore) -> None:
    reconciler = DisciplineReconciler(store)
    turmas = [ClassSection(number=1), ClassSection(number=2)]
    reconciler.upsert(_discipline(classes=turmas))

    result = reconciler.upsert(_discipline(classes=list(reversed(turmas))))

    assert result.action == UPDATED
    assert result.fields == ["classes"]


def test_registro_so_da_listagem_nao_apaga_turmas(store: MemoryStore) -> None:
    reconciler = DisciplineReconciler(store)
    reconciler.upsert(_discipline())
    store.collections[DISCIPLINES][0]["classes"][0]["whatsappGroup"] = "G1"

    list_only = Discipline(discipline_id="101", name="Cálculo I", period="1", credits=6, total_hours=90)
    result = reconciler.upsert(list_only)

    assert result.action == UNCHANGED
    stored = store.collections[DISCIPLINES][0]
    assert stored["classes"][0]["whatsappGroup"] == "G1"
    assert stored["requirements"][0]["description"] == "Pré-Cálculo"


def test_merge_nao_sobrescreve_anotacao_nova() -> None:
    fresh = {"classes": [{"number": 1, "whatsappGroup": "NOVO"}]}
    existing = {"classes": [{"number": 1, "whatsappGroup": "ANTIGO"}]}
    assert merge_annotations(fresh, existing)["classes"][0]["whatsappGroup"] == "NOVO"
    assert fresh["classes"][0]["whatsappGroup"] == "NOVO"


def test_merge_nao_altera_o_registro_original() -> None:
    fresh = {"classes": [{"number": 1}]}
    merged = merge_annotations(fresh, {"classes": [{"number": 1, "whatsappGroup": "G1"}]})
    assert merged["classes"][0]["whatsappGroup"] == "G1"
    assert "whatsappGroup" not in fresh["classes"][0]


def test_diff_ignora_chave_de_identidade_e_ordem_de_chaves() -> None:
    fresh = {"disciplineId": "1", "name": "A", "requirements": [{"type": "x", "description": "y"}]}
    existing = {"_id": "abc", "disciplineId": "2", "name": "A", "requirements": [{"description": "y", "type": "x"}]}
    assert diff_fields(fresh, existing) == {}


def test_upsert_sem_id_e_ignorado(store: MemoryStore) -> None:
    result = DisciplineReconciler(store).upsert(Discipline(discipline_id=None, name="Sem link"))
    assert result.action == SKIPPED
    assert store.calls == []


def test_falha_de_escrita_e_registrada_e_engolida() -> None:
    failing = MemoryStore(fail_writes=True)
    result = DisciplineReconciler(failing).upsert(_discipline())
    assert result.action == FAILED
