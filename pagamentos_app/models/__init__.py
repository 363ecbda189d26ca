# pagamentos_app/models/__init__.py
# -*- coding: utf-8 -*-
from ..lifecycle import Role, Status
from .user import User
from .event import Event, EventStatus, EventType, event_allowed_users
from .payment_request import PaymentRequest, CURRENCIES
from .notification import Notification


__all__ = [
    "Role",
    "Status",
    "User",
    "Event",
    "EventStatus",
    "EventType",
    "event_allowed_users",
    "PaymentRequest",
    "CURRENCIES",
    "Notification",
]
