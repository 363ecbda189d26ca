# pagamentos_app/models/event.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from enum import Enum
from ..extensions import db


class EventStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"

    @property
    def label(self) -> str:
        return "Ativo" if self is EventStatus.ACTIVE else "Inativo"


class EventType(str, Enum):
    EVENT = "EVENT"
    COMPANY = "COMPANY"

    @property
    def label(self) -> str:
        return "Evento" if self is EventType.EVENT else "Empresa"


event_allowed_users = db.Table(
    "event_allowed_users",
    db.Column("event_id", db.Integer, db.ForeignKey("events.id"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
)


class Event(db.Model):
    """Centro de custo (evento ou empresa) ao qual as solicitações são atribuídas."""
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=EventStatus.ACTIVE.value, index=True)
    budget = db.Column(db.Numeric(14, 2), nullable=True)
    event_type = db.Column(db.String(20), nullable=True)                   # EVENT | COMPANY
    subcategories = db.Column(db.JSON, nullable=False, default=list)       # ["Passagens", "Hospedagem"]
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    allowed_users = db.relationship("User", secondary=event_allowed_users, lazy="subquery",
                                    backref="allowed_events")

    @property
    def allowed_user_ids(self) -> set[int]:
        return {u.id for u in self.allowed_users}

    @property
    def is_active(self) -> bool:
        return self.status == EventStatus.ACTIVE.value

    @property
    def status_label(self) -> str:
        return EventStatus(self.status).label

    @property
    def type_label(self) -> str:
        return EventType(self.event_type).label if self.event_type else "—"

    def accepts_requests_from(self, user_id: int) -> bool:
        return self.is_active and user_id in self.allowed_user_ids
