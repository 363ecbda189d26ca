# pagamentos_app/lifecycle.py
# -*- coding: utf-8 -*-
"""
Máquina de estados das solicitações de pagamento.

Funções puras: não tocam no banco nem no Flask. Recebem (status atual,
papel do ator, ação) e devolvem a regra aplicável, o próximo status e
quem deve ser notificado. O serviço ``services.workflow`` aplica o
resultado sobre os registros persistidos.

    WAITING_SUPPLIER -> WAITING_REQUESTER_APPROVAL -> AWAITING_APPROVAL -> PENDING -> PAID
                                   |                          |              |
                                   +------------> REJECTED <--+--------------+
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional

from .errors import InvalidTransition, PermissionDenied, ValidationError


class Role(str, Enum):
    REQUESTER = "REQUESTER"
    MANAGER = "MANAGER"
    FINANCE = "FINANCE"

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]


class Status(str, Enum):
    WAITING_SUPPLIER = "WAITING_SUPPLIER"
    WAITING_REQUESTER_APPROVAL = "WAITING_REQUESTER_APPROVAL"
    AWAITING_APPROVAL = "AWAITING_APPROVAL"
    PENDING = "PENDING"
    PAID = "PAID"
    REJECTED = "REJECTED"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (Status.PAID, Status.REJECTED)


class Action(str, Enum):
    CREATE = "CREATE"
    CREATE_EXTERNAL = "CREATE_EXTERNAL"
    SUPPLIER_SUBMIT = "SUPPLIER_SUBMIT"
    CONFIRM_DATA = "CONFIRM_DATA"
    REJECT_DATA = "REJECT_DATA"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    MARK_PAID = "MARK_PAID"


class Audience(str, Enum):
    REQUESTER = "requester"
    MANAGERS = "managers"
    FINANCE = "finance"


class Capability(str, Enum):
    DASHBOARD = "dashboard"
    CREATE_REQUEST = "create_request"
    MANAGE_EVENTS = "manage_events"
    MANAGE_USERS = "manage_users"
    VIEW_REPORTS = "view_reports"


ROLE_LABELS = {
    Role.REQUESTER: "Solicitante",
    Role.MANAGER: "Gestor",
    Role.FINANCE: "Financeiro",
}

STATUS_LABELS = {
    Status.WAITING_SUPPLIER: "Aguardando Fornecedor",
    Status.WAITING_REQUESTER_APPROVAL: "Conferência do Solicitante",
    Status.AWAITING_APPROVAL: "Aguardando Aprovação",
    Status.PENDING: "Pendente",
    Status.PAID: "Pago",
    Status.REJECTED: "Rejeitado",
}

ALL_ROLES = frozenset(Role)
CREATORS = frozenset({Role.REQUESTER, Role.MANAGER})

CAPABILITIES = {
    Role.REQUESTER: frozenset({Capability.DASHBOARD, Capability.CREATE_REQUEST}),
    Role.MANAGER: frozenset({Capability.DASHBOARD, Capability.CREATE_REQUEST, Capability.MANAGE_EVENTS}),
    Role.FINANCE: frozenset({
        Capability.DASHBOARD, Capability.MANAGE_EVENTS,
        Capability.MANAGE_USERS, Capability.VIEW_REPORTS,
    }),
}


@dataclass(frozen=True)
class Rule:
    source: Optional[Status]          # None = criação
    action: Action
    actors: Optional[frozenset]       # None = fornecedor anônimo (link público)
    target: Status
    notify: tuple = ()
    owner_only: bool = False
    needs_reason: bool = False
    needs_proof: bool = False


RULES: tuple[Rule, ...] = (
    Rule(None, Action.CREATE, CREATORS, Status.AWAITING_APPROVAL, (Audience.MANAGERS,)),
    Rule(None, Action.CREATE_EXTERNAL, CREATORS, Status.WAITING_SUPPLIER),
    Rule(Status.WAITING_SUPPLIER, Action.SUPPLIER_SUBMIT, None, Status.WAITING_REQUESTER_APPROVAL),
    Rule(Status.WAITING_REQUESTER_APPROVAL, Action.CONFIRM_DATA, ALL_ROLES,
         Status.AWAITING_APPROVAL, owner_only=True),
    Rule(Status.WAITING_REQUESTER_APPROVAL, Action.REJECT_DATA, ALL_ROLES,
         Status.REJECTED, (Audience.REQUESTER,), owner_only=True, needs_reason=True),
    Rule(Status.AWAITING_APPROVAL, Action.APPROVE, frozenset({Role.MANAGER}),
         Status.PENDING, (Audience.REQUESTER, Audience.FINANCE)),
    Rule(Status.AWAITING_APPROVAL, Action.REJECT, frozenset({Role.MANAGER}),
         Status.REJECTED, (Audience.REQUESTER,), needs_reason=True),
    Rule(Status.PENDING, Action.MARK_PAID, frozenset({Role.FINANCE}),
         Status.PAID, (Audience.REQUESTER,), needs_proof=True),
    Rule(Status.PENDING, Action.REJECT, frozenset({Role.FINANCE}),
         Status.REJECTED, (Audience.REQUESTER,), needs_reason=True),
)


def _without_manager(rule: Rule) -> Rule:
    # variante de dois papéis: o que iria para o gestor vai direto ao financeiro
    if rule.target is not Status.AWAITING_APPROVAL:
        return rule
    notify = tuple(Audience.FINANCE if a is Audience.MANAGERS else a for a in rule.notify)
    return replace(rule, target=Status.PENDING, notify=notify)


def find_rule(source: Optional[Status], action: Action, *, manager_approval: bool = True) -> Optional[Rule]:
    for rule in RULES:
        if rule.source is source and rule.action is action:
            return rule if manager_approval else _without_manager(rule)
    return None


def resolve(source: Optional[Status], action: Action, role: Optional[Role], *,
            is_owner: bool = False, manager_approval: bool = True) -> Rule:
    """Valida a ação e devolve a regra. ``role=None`` representa o fornecedor anônimo."""
    rule = find_rule(source, action, manager_approval=manager_approval)
    if rule is None:
        origem = source.label if source else "nova solicitação"
        raise InvalidTransition(
            f"Ação não permitida para solicitações com status '{origem}'.",
            source=source, action=action,
        )
    if rule.actors is None:
        if role is not None:
            raise PermissionDenied("Esta ação é exclusiva do link do fornecedor.")
    elif role not in rule.actors:
        raise PermissionDenied("Seu perfil não pode executar esta ação.", role=role, action=action)
    if rule.owner_only and not is_owner:
        raise PermissionDenied("Apenas o solicitante pode conferir estes dados.")
    return rule


def next_status(source: Optional[Status], role: Optional[Role], action: Action, *,
                is_owner: bool = False, manager_approval: bool = True) -> Status:
    return resolve(source, action, role, is_owner=is_owner, manager_approval=manager_approval).target


def allowed_actions(source: Status, role: Optional[Role], *, is_owner: bool = False,
                    manager_approval: bool = True) -> set[Action]:
    actions = set()
    for rule in RULES:
        if rule.source is not source:
            continue
        try:
            resolve(source, rule.action, role, is_owner=is_owner, manager_approval=manager_approval)
        except (InvalidTransition, PermissionDenied):
            continue
        actions.add(rule.action)
    return actions


def recipients_for(rule: Rule, *, requester_id: int, manager_ids: Iterable[int],
                   finance_ids: Iterable[int]) -> list[int]:
    """Lista de destinatários na ordem da regra (sem deduplicar: cada público recebe a sua mensagem)."""
    out: list[int] = []
    for audience in rule.notify:
        if audience is Audience.REQUESTER:
            out.append(requester_id)
        elif audience is Audience.MANAGERS:
            out.extend(manager_ids)
        elif audience is Audience.FINANCE:
            out.extend(finance_ids)
    return out


def require_reason(reason: Optional[str]) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Por favor, forneça um motivo para a rejeição.")
    return reason


def require_proof(proof: Optional[str]) -> str:
    proof = (proof or "").strip()
    if not proof:
        raise ValidationError("Por favor, carregue o comprovante de pagamento.")
    return proof


def can(role: Optional[Role], capability: Capability) -> bool:
    if role is None:
        return False
    return capability in CAPABILITIES.get(role, frozenset())
