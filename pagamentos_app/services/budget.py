# pagamentos_app/services/budget.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func

from ..extensions import db
from ..lifecycle import Status
from ..models import PaymentRequest

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class BudgetUsage:
    spent: Decimal
    budget: Optional[Decimal]

    @property
    def percent(self) -> Optional[float]:
        if not self.budget:
            return None
        return float(self.spent / self.budget * 100)

    @property
    def over_budget(self) -> bool:
        # apenas informativo: nunca bloqueia
        return self.budget is not None and self.spent > self.budget


def spent_by_event(event_ids: Optional[Iterable[int]] = None) -> dict[int, Decimal]:
    """Soma dos valores PAGOS por centro de custo."""
    q = (db.session.query(PaymentRequest.event_id, func.coalesce(func.sum(PaymentRequest.amount), 0))
         .filter(PaymentRequest.status == Status.PAID.value)
         .group_by(PaymentRequest.event_id))
    if event_ids is not None:
        q = q.filter(PaymentRequest.event_id.in_(list(event_ids)))
    return {event_id: Decimal(str(total)).quantize(ZERO) for event_id, total in q.all()}


def usage_for(event, spent: Optional[dict] = None) -> BudgetUsage:
    spent = spent if spent is not None else spent_by_event([event.id])
    budget = Decimal(event.budget) if event.budget is not None else None
    return BudgetUsage(spent.get(event.id, ZERO), budget)


def summarize(requests: Iterable) -> dict:
    """Cartões do painel: total pago, total em aberto e quantos pendentes."""
    total_paid = ZERO
    total_pending = ZERO
    pending_count = 0
    for r in requests:
        amount = Decimal(r.amount or 0)
        if r.status == Status.PAID.value:
            total_paid += amount
        elif r.status in (Status.PENDING.value, Status.AWAITING_APPROVAL.value):
            total_pending += amount
            if r.status == Status.PENDING.value:
                pending_count += 1
    return {"total_paid": total_paid, "total_pending": total_pending, "pending_count": pending_count}
