# pagamentos_app/errors.py
# -*- coding: utf-8 -*-
"""
Exceções do fluxo de solicitações.

Toda exceção carrega uma mensagem pronta para o usuário (em português);
os blueprints fazem ``flash(e.message, e.category)`` e redirecionam.
"""
from __future__ import annotations


class WorkflowError(Exception):
    """Base de todos os erros de negócio."""

    category = "danger"
    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


class ValidationError(WorkflowError):
    """Campo obrigatório ausente ou inválido."""

    category = "warning"


class NotFound(WorkflowError):
    status_code = 404


class InvalidTransition(WorkflowError):
    """Ação não prevista na tabela de transições para o status atual."""

    status_code = 409


class PermissionDenied(WorkflowError):
    status_code = 403


class ConcurrentUpdate(WorkflowError):
    """A solicitação mudou desde que o usuário a carregou."""

    category = "warning"
    status_code = 409
