# pagamentos_app/services/store.py
# -*- coding: utf-8 -*-
"""
Acesso às coleções persistidas.

Os serviços recebem um ``Store`` em vez de falar com ``db.session``
diretamente; em produção ele fica em ``app.extensions["store"]``.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterable, Optional

from flask import current_app
from sqlalchemy import update as sa_update
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrentUpdate, NotFound
from ..extensions import db
from ..models import Event, Notification, PaymentRequest, User
from . import feed

MODELS = {
    "users": User,
    "events": Event,
    "payment_requests": PaymentRequest,
    "notifications": Notification,
}

STALE_MESSAGE = "Esta solicitação foi alterada por outra pessoa. Recarregue a página e tente novamente."


class Store:
    def __init__(self, session):
        self.session = session

    def model(self, collection: str):
        try:
            return MODELS[collection]
        except KeyError:
            raise ValueError(f"coleção desconhecida: {collection}") from None

    # ---- leitura ----
    def get(self, collection: str, obj_id):
        if obj_id in (None, ""):
            return None
        return self.session.get(self.model(collection), obj_id)

    def get_or_404(self, collection: str, obj_id, message: str = "Registro não encontrado."):
        obj = self.get(collection, obj_id)
        if obj is None:
            raise NotFound(message, collection=collection, id=obj_id)
        return obj

    def query(self, collection: str, *criteria, order_by=None) -> list:
        q = self.model(collection).query
        if criteria:
            q = q.filter(*criteria)
        if order_by is not None:
            q = q.order_by(*order_by) if isinstance(order_by, (list, tuple)) else q.order_by(order_by)
        return q.all()

    def where(self, collection: str, predicate: Callable[[object], bool], *criteria) -> list:
        """Filtra em Python (predicados que não cabem numa cláusula SQL)."""
        return [obj for obj in self.query(collection, *criteria) if predicate(obj)]

    # ---- escrita (sem commit: quem chama decide a transação) ----
    def create(self, collection: str, **fields):
        obj = self.model(collection)(**fields)
        self.session.add(obj)
        self.session.flush()
        return obj

    def update(self, obj, **fields):
        for key, value in fields.items():
            setattr(obj, key, value)
        return obj

    def delete(self, obj) -> None:
        self.session.delete(obj)

    def batch_update(self, collection: str, criteria: Iterable, values: dict) -> int:
        """UPDATE único; publica um evento ``updated`` por linha afetada."""
        model = self.model(collection)
        rows = self.session.query(model).filter(*criteria).all()
        if not rows:
            return 0
        changes = [dict(feed.snapshot(row), **values) for row in rows]
        self.session.execute(
            sa_update(model).where(model.id.in_([row.id for row in rows])).values(**values)
            .execution_options(synchronize_session="fetch")
        )
        self.commit()
        for data in changes:
            feed.publish(feed.ChangeEvent(collection, feed.UPDATED, data["id"], data))
        return len(changes)

    def commit(self) -> None:
        try:
            self.session.commit()
        except StaleDataError as e:
            self.session.rollback()
            raise ConcurrentUpdate(STALE_MESSAGE) from e

    def rollback(self) -> None:
        self.session.rollback()

    @contextmanager
    def transaction(self):
        """Tudo dentro do bloco vai num único commit; qualquer erro desfaz."""
        try:
            yield self
            self.session.commit()
        except StaleDataError as e:
            self.session.rollback()
            raise ConcurrentUpdate(STALE_MESSAGE) from e
        except Exception:
            self.session.rollback()
            raise

    # ---- alterações ao vivo ----
    def subscribe(self, collection: str, callback, predicate: Optional[Callable] = None) -> feed.Subscription:
        self.model(collection)
        return feed.subscribe(collection, callback, predicate)


def init_store(app):
    feed.install()
    app.extensions["store"] = Store(db.session)


def get_store() -> Store:
    store = current_app.extensions.get("store")
    if store is None:
        store = Store(db.session)
        current_app.extensions["store"] = store
    return store
