import json
from pathlib import Path

import pytest

from uerj_catalog import app
from uerj_catalog.core.storage import DISCIPLINES, JsonDocumentStore


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("UERJ_DATA_DIR", str(tmp_path))
    monkeypatch.setattr(app, "setup_logging", lambda debug=False: None)
    monkeypatch.setattr(app, "load_dotenv", lambda *a, **k: False)
    return tmp_path


def test_cli_fluxo_de_aluno(data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["student-create", "201910", "--current", "A1"]) == 0
    assert app.main(["student-update", "201910", "--add", "B2", "--remove", "A1"]) == 0
    capsys.readouterr()

    assert app.main(["student-show", "201910"]) == 0
    shown = json.loads(capsys.readouterr().out)
    assert shown["currentDisciplines"] == ["B2"]


def test_cli_id_invalido_retorna_erro(data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["student-update", "201910", "--add", "bad id"]) == 1
    assert "invalido" in capsys.readouterr().err


def test_cli_disciplina_inexistente(data_dir: Path) -> None:
    assert app.main(["show", "404"]) == 1


def test_cli_mostra_e_anota_disciplina(data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    JsonDocumentStore(data_dir).insert_one(
        DISCIPLINES,
        {"disciplineId": "101", "name": "Cálculo I", "classes": [{"number": 1}], "requirements": []},
    )
    assert app.main(["annotate", "101", "1", "https://chat.whatsapp.com/g"]) == 0
    capsys.readouterr()

    assert app.main(["show", "101"]) == 0
    shown = json.loads(capsys.readouterr().out)
    assert shown["classes"][0]["whatsappGroup"] == "https://chat.whatsapp.com/g"


def test_cli_scrape_sem_credenciais(data_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("UERJ_MATRICULA", raising=False)
    monkeypatch.delenv("UERJ_SENHA", raising=False)
    assert app.main(["scrape"]) == 1
