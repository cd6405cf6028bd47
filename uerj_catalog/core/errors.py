from __future__ import annotations


class CatalogError(RuntimeError):
    """Erro de domínio do catálogo/tracker."""


class ValidationError(CatalogError, ValueError):
    """Identificador ou payload inválido; rejeitado antes de tocar o banco."""


class NotFoundError(CatalogError, LookupError):
    """Aluno ou disciplina inexistente."""


class PersistenceError(CatalogError):
    """Falha de escrita/leitura no document store."""


class DuplicateKeyError(PersistenceError):
    """Documento com a mesma chave já existe."""


class CrawlInProgressError(CatalogError):
    """Já existe uma raspagem em andamento para este serviço."""
