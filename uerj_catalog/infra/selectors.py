from __future__ import annotations

import re

PORTAL_URL = "https://www.alunoonline.uerj.br"

# Login
SELECTOR_MATRICULA = "#matricula"
SELECTOR_SENHA = "#senha"
SELECTOR_CONFIRMAR = "#confirmar"

# Menu lateral (aparece apos o login)
MENU_LINK_SELECTOR = "a.LINKNAOSUB"
CATALOG_MENU_TEXT = "Disciplinas do Currículo"

# Listagem de disciplinas do curriculo
CATALOG_TABLE_SELECTOR = "tbody"
CATALOG_ROW_SELECTOR = "tbody tr"
CATALOG_MIN_CELLS = 9
DISCIPLINE_LINK_SELECTOR = "a.LINKNAOSUB"
DISCIPLINE_ONCLICK_RE = re.compile(r"consultarDisciplina\(output,\s*(\d+)\)")
OPEN_DISCIPLINE_SCRIPT = "(id) => { consultarDisciplina(output, id); }"

# Detalhe da disciplina
DETAIL_READY_SELECTOR = ".divContentBlockHeader"
BLOCK_SELECTOR = ".divContentBlock"
BLOCK_HEADER_SELECTOR = ".divContentBlockHeader"
BLOCK_BODY_SELECTOR = ".divContentBlockBody"
REQUIREMENTS_HEADER_TEXT = "Requisitos da Disciplina"
NO_REQUIREMENTS_TEXT = "Esta Disciplina não possui requisito para inscrição."
REQUIREMENT_LINE_SELECTOR = 'div[style*="margin-bottom"]'
DEFAULT_REQUIREMENT_TYPE = "Requirement"
CLASSES_HEADER_TEXTS = ("Turmas da Disciplina", "Turma da Disciplina")

CLICK_LINK_BY_TEXT_SCRIPT = """
(args) => {
  const norm = (s) => (s || '').replace(/\\s+/g, ' ').trim();
  const links = Array.from(document.querySelectorAll(args.selector));
  const link = links.find((a) => norm(a.textContent).includes(args.text));
  if (!link) return false;
  link.click();
  return true;
}
"""

# Timeouts / retry
DEFAULT_TIMEOUT_MS = 60000
DETAIL_TIMEOUT_MS = 8000
STEP_RETRIES = 2
RETRY_BACKOFF_MS = 400
BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "font"})
