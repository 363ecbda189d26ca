# tests/test_feed_store.py
# -*- coding: utf-8 -*-
import json

import pytest

from pagamentos_app.errors import ConcurrentUpdate, NotFound
from pagamentos_app.models import Notification, PaymentRequest, User
from pagamentos_app.services import feed
from pagamentos_app.services.store import Store


@pytest.fixture
def store(db_session):
    return Store(db_session)


@pytest.fixture
def received():
    events = []
    subs = []

    def _listen(collection, predicate=None):
        subs.append(feed.subscribe(collection, events.append, predicate))
        return events

    yield _listen
    for sub in subs:
        sub.close()


def test_events_only_after_commit(store, received, ana):
    events = received("notifications")
    with store.transaction():
        n = store.create("notifications", user_id=ana.id, message="olá")
        assert events == []
    assert [(e.collection, e.kind, e.id) for e in events] == [("notifications", feed.CREATED, n.id)]
    assert events[0].data["message"] == "olá"


def test_rollback_discards_events(store, received, ana):
    events = received("notifications")
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.create("notifications", user_id=ana.id, message="nunca")
            raise RuntimeError("falhou")
    assert events == []
    assert Notification.query.count() == 0


def test_predicate_and_collection_filter(store, received, ana, bruno):
    events = received("notifications", lambda e: e.data.get("user_id") == ana.id)
    users = []
    with feed.subscribe("users", users.append):
        with store.transaction():
            store.create("notifications", user_id=ana.id, message="para ana")
            store.create("notifications", user_id=bruno.id, message="para bruno")
    assert [e.data["message"] for e in events] == ["para ana"]
    assert users == []


def test_update_and_delete_events(store, received, ana):
    with store.transaction():
        n = store.create("notifications", user_id=ana.id, message="x")
    events = received("notifications")
    with store.transaction():
        store.update(n, read=True)
    with store.transaction():
        store.delete(n)
    assert [e.kind for e in events] == [feed.UPDATED, feed.DELETED]
    assert events[0].data["read"] is True


def test_batch_update_is_one_statement_with_one_event_per_row(store, received, db_session, ana, bruno):
    with store.transaction():
        for i in range(3):
            store.create("notifications", user_id=ana.id, message=f"n{i}")
        store.create("notifications", user_id=bruno.id, message="outro")
    events = received("notifications")

    count = store.batch_update("notifications", [Notification.user_id == ana.id, Notification.read.is_(False)],
                               {"read": True})
    assert count == 3
    assert len(events) == 3
    assert all(e.kind == feed.UPDATED and e.data["read"] is True and e.data["user_id"] == ana.id for e in events)
    assert Notification.query.filter_by(read=True).count() == 3
    assert store.batch_update("notifications", [Notification.user_id == ana.id, Notification.read.is_(False)],
                              {"read": True}) == 0


def test_get_or_404_and_query(store, ana, bruno):
    assert store.get("users", None) is None
    with pytest.raises(NotFound) as exc:
        store.get_or_404("payment_requests", "abc", "Solicitação não encontrada.")
    assert exc.value.message == "Solicitação não encontrada."
    assert [u.name for u in store.query("users", order_by=User.name.desc())] == ["Bruno Costa", "Ana Silva"]
    assert [u.id for u in store.where("users", lambda u: u.name.startswith("A"))] == [ana.id]
    with pytest.raises(ValueError):
        store.query("planilhas")


def test_stale_write_becomes_concurrent_update(db_session, make_request, ana, event1):
    from sqlalchemy.orm import Session
    from pagamentos_app.extensions import db
    req = make_request(ana, event1)
    assert req.version == 1

    # outra sessão grava primeiro
    other = Session(db.engine)
    theirs = other.get(PaymentRequest, req.id)
    theirs.category = "Hospedagem"
    other.commit()
    other.close()

    store = Store(db_session)
    with pytest.raises(ConcurrentUpdate):
        with store.transaction():
            store.update(req, category="Passagens aéreas")
    assert db_session.get(PaymentRequest, req.id).category == "Hospedagem"


def test_stream_yields_sse_frames(store, ana):
    before = len(feed.changed.receivers)
    gen = feed.stream([("notifications", None)], heartbeat=0.01, limit=1)
    assert next(gen) == "retry: 5000\n\n"
    assert next(gen) == ": ping\n\n"
    assert len(feed.changed.receivers) == before + 1

    with store.transaction():
        n = store.create("notifications", user_id=ana.id, message="ao vivo")
    frames = list(gen)
    assert len(frames) == 1
    assert frames[0].startswith("event: change\ndata: ")
    data = json.loads(frames[0].split("data: ", 1)[1])
    assert data == {"collection": "notifications", "kind": "created", "id": n.id}
    # gerador encerrado: assinatura removida
    assert len(feed.changed.receivers) == before
