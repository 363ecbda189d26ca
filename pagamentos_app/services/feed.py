# pagamentos_app/services/feed.py
# -*- coding: utf-8 -*-
"""
Eventos de alteração por coleção.

Cada INSERT/UPDATE/DELETE das coleções abaixo vira um ``ChangeEvent``
publicado num sinal blinker *depois* do commit (descartado em rollback).
Quem precisa reagir (stream SSE, contadores) assina por coleção, com um
predicado opcional.
"""
from __future__ import annotations

import json
import queue
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from blinker import Namespace
from sqlalchemy import event as sa_event, inspect
from sqlalchemy.orm import Session

COLLECTIONS = ("users", "events", "payment_requests", "notifications")
CREATED, UPDATED, DELETED = "created", "updated", "deleted"

_signals = Namespace()
changed = _signals.signal("collection-changed")

_PENDING_KEY = "pending_changes"
_installed = False


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    kind: str
    id: Any
    data: dict = field(default_factory=dict, compare=False)


class Subscription:
    def __init__(self, collection: str, callback: Callable[[ChangeEvent], None],
                 predicate: Optional[Callable[[ChangeEvent], bool]] = None):
        if collection not in COLLECTIONS:
            raise ValueError(f"coleção desconhecida: {collection}")
        self.collection = collection
        self.callback = callback
        self.predicate = predicate

    def __call__(self, sender, event: ChangeEvent = None, **_):
        if event is None or event.collection != self.collection:
            return
        if self.predicate is not None and not self.predicate(event):
            return
        self.callback(event)

    def close(self) -> None:
        changed.disconnect(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def subscribe(collection: str, callback, predicate=None) -> Subscription:
    sub = Subscription(collection, callback, predicate)
    changed.connect(sub, weak=False)
    return sub


def publish(event: ChangeEvent) -> None:
    changed.send(event.collection, event=event)


def snapshot(obj, *, loaded_only: bool = False) -> dict:
    state = inspect(obj)
    keys = [attr.key for attr in state.mapper.column_attrs]
    if loaded_only:
        # linha já apagada: não dá para recarregar atributos expirados
        return {k: state.dict[k] for k in keys if k in state.dict}
    return {k: getattr(obj, k) for k in keys}


def _collect(session, objects, kind):
    pending = session.info.setdefault(_PENDING_KEY, [])
    for obj in objects:
        table = getattr(obj, "__tablename__", None)
        if table not in COLLECTIONS:
            continue
        if kind == UPDATED and not session.is_modified(obj, include_collections=False):
            continue
        pk = inspect(obj).identity
        obj_id = pk[0] if pk else getattr(obj, "id", None)
        pending.append(ChangeEvent(table, kind, obj_id, snapshot(obj, loaded_only=kind == DELETED)))


def _after_flush(session, _flush_context):
    # new/dirty/deleted ainda refletem o estado anterior ao flush
    _collect(session, list(session.new), CREATED)
    _collect(session, list(session.dirty), UPDATED)
    _collect(session, list(session.deleted), DELETED)


def _after_commit(session):
    pending = session.info.pop(_PENDING_KEY, [])
    for ev in pending:
        publish(ev)


def _after_rollback(session, _previous_transaction):
    session.info.pop(_PENDING_KEY, None)


def to_sse(event: ChangeEvent) -> str:
    payload = json.dumps({"collection": event.collection, "kind": event.kind, "id": event.id})
    return f"event: change\ndata: {payload}\n\n"


def stream(specs, *, heartbeat: float = 15.0, limit: Optional[int] = None):
    """
    Gerador Server-Sent Events. ``specs`` é uma lista de (coleção, predicado).
    ``limit`` encerra após N eventos (usado em testes).
    """
    q: queue.Queue = queue.Queue()
    subs = [subscribe(collection, q.put, predicate) for collection, predicate in specs]
    sent = 0
    try:
        yield "retry: 5000\n\n"
        while limit is None or sent < limit:
            try:
                ev = q.get(timeout=heartbeat)
            except queue.Empty:
                yield ": ping\n\n"
                continue
            yield to_sse(ev)
            sent += 1
    finally:
        for sub in subs:
            sub.close()


def install() -> None:
    """Registra os listeners de sessão (idempotente)."""
    global _installed
    if _installed:
        return
    sa_event.listen(Session, "after_flush", _after_flush)
    sa_event.listen(Session, "after_commit", _after_commit)
    sa_event.listen(Session, "after_soft_rollback", _after_rollback)
    _installed = True
