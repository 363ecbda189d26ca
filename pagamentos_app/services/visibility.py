# pagamentos_app/services/visibility.py
# -*- coding: utf-8 -*-
"""Quem vê o quê: solicitações por papel, filtros do painel e centros de custo."""
from __future__ import annotations
from typing import Iterable, Optional

from sqlalchemy import or_

from ..lifecycle import Role, Status
from ..models import Event, EventStatus, PaymentRequest

ALL = "ALL"
STATUS_TABS = (ALL,) + tuple(s.value for s in Status)


def can_view(user, req) -> bool:
    if user is None or req is None:
        return False
    role = user.role_enum
    if req.requester_id == user.id:
        return True
    if role is Role.MANAGER:
        return req.status == Status.AWAITING_APPROVAL.value
    if role is Role.FINANCE:
        return req.status != Status.AWAITING_APPROVAL.value
    return False


def visible_query(user):
    """Mesma regra de ``can_view`` como cláusula SQL."""
    q = PaymentRequest.query
    role = user.role_enum
    if role is Role.MANAGER:
        return q.filter(or_(PaymentRequest.requester_id == user.id,
                            PaymentRequest.status == Status.AWAITING_APPROVAL.value))
    if role is Role.FINANCE:
        return q.filter(or_(PaymentRequest.requester_id == user.id,
                            PaymentRequest.status != Status.AWAITING_APPROVAL.value))
    return q.filter(PaymentRequest.requester_id == user.id)


def visible_requests(user) -> list:
    return visible_query(user).all()


def newest_first(requests: Iterable) -> list:
    return sorted(requests, key=lambda r: (r.created_at is not None, r.created_at), reverse=True)


def available_months(requests: Iterable) -> list[str]:
    """'YYYY-MM' distintos, do mais recente ao mais antigo."""
    return sorted({r.created_month for r in requests if r.created_at}, reverse=True)


def by_month(requests: Iterable, month: Optional[str]) -> list:
    if not month or month == ALL:
        return list(requests)
    return [r for r in requests if r.created_month == month]


def by_status(requests: Iterable, status: Optional[str]) -> list:
    if not status or status == ALL:
        return list(requests)
    return [r for r in requests if r.status == status]


def dashboard_view(user, *, status: Optional[str] = None, month: Optional[str] = None) -> dict:
    """Base do painel: visíveis -> mês -> status -> mais recentes primeiro."""
    visible = visible_requests(user)
    base = by_month(visible, month)
    return {
        "months": available_months(visible),
        "base": base,
        "requests": newest_first(by_status(base, status)),
        "status": status or ALL,
        "month": month or ALL,
    }


def events_for(user) -> list:
    """Centros de custo ativos liberados para o usuário (formulário de criação)."""
    if user is None:
        return []
    events = Event.query.filter_by(status=EventStatus.ACTIVE.value).order_by(Event.name).all()
    return [e for e in events if user.id in e.allowed_user_ids]
