# tests/conftest.py
# -*- coding: utf-8 -*-
import os
import sys
import pathlib
import tempfile
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import event

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("SECRET_KEY", "testing-secret")


# =====================================================================================
# Localização do projeto (garante que "pagamentos_app" esteja no sys.path)
# =====================================================================================
def _add_project_root():
    here = pathlib.Path(__file__).resolve()
    for candidate in [here.parent, *here.parents]:
        if (candidate / "pagamentos_app").is_dir():
            if str(candidate) not in sys.path:
                sys.path.insert(0, str(candidate))
            return candidate
    return None


PROJECT_ROOT = _add_project_root()


def _set_sqlite_pragmas(dbapi_conn, _conn_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


# =====================================================================================
# App Flask com SQLite temporário e schema criado uma vez por sessão
# =====================================================================================
@pytest.fixture(scope="session")
def app():
    from config import TestingConfig
    from pagamentos_app import create_app
    from pagamentos_app.extensions import db

    fd, db_path = tempfile.mkstemp(prefix="pagamentos_test_", suffix=".sqlite")
    os.close(fd)
    uploads = tempfile.mkdtemp(prefix="pagamentos_uploads_")

    cfg = type("PytestConfig", (TestingConfig,), {
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}?check_same_thread=0&timeout=30",
        "UPLOAD_FOLDER": uploads,
        "PUBLIC_BASE_URL": "http://pagamentos.test",
        "SECRET_KEY": "testing-secret",
    })
    app = create_app(cfg)

    with app.app_context():
        event.listen(db.engine, "connect", _set_sqlite_pragmas)
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    try:
        os.remove(db_path)
    except OSError:
        pass


# =====================================================================================
# Cada teste começa com as tabelas vazias
# =====================================================================================
@pytest.fixture(autouse=True)
def _clean_tables(app):
    yield
    from pagamentos_app.extensions import db
    with app.app_context():
        db.session.rollback()
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()


# =====================================================================================
# Client e sessão de DB por teste
# =====================================================================================
@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    from pagamentos_app.extensions import db
    with app.app_context():
        try:
            yield db.session
        finally:
            db.session.rollback()
            db.session.close()


@pytest.fixture
def stub_templates(monkeypatch):
    """
    Evita dependência de templates reais nos blueprints.
    Qualquer render_template(...) retornará "OK" (texto simples).
    """
    import pagamentos_app.blueprints.auth as auth_mod
    import pagamentos_app.blueprints.core as core_mod
    import pagamentos_app.blueprints.events as events_mod
    import pagamentos_app.blueprints.notifications as notifications_mod
    import pagamentos_app.blueprints.payments as payments_mod
    import pagamentos_app.blueprints.reports as reports_mod
    import pagamentos_app.blueprints.supplier as supplier_mod
    import pagamentos_app.blueprints.users as users_mod

    calls = []

    def fake(name, **ctx):
        calls.append(SimpleNamespace(name=name, ctx=ctx))
        return "OK"

    for mod in (auth_mod, core_mod, events_mod, notifications_mod, payments_mod,
                reports_mod, supplier_mod, users_mod):
        monkeypatch.setattr(mod, "render_template", fake, raising=True)
    return calls


# =====================================================================================
# Usuários (mesmos perfis da carga de demonstração) e centros de custo
# =====================================================================================
def make_user(db_session, name, email, role, password="123"):
    from pagamentos_app.models import User
    u = User(name=name, email=email, role=role.value)
    u.set_password(password)
    db_session.add(u)
    db_session.commit()
    return u


@pytest.fixture
def ana(db_session):
    from pagamentos_app.lifecycle import Role
    return make_user(db_session, "Ana Silva", "ana@email.com", Role.REQUESTER)


@pytest.fixture
def bruno(db_session):
    from pagamentos_app.lifecycle import Role
    return make_user(db_session, "Bruno Costa", "bruno@email.com", Role.REQUESTER)


@pytest.fixture
def marina(db_session):
    from pagamentos_app.lifecycle import Role
    return make_user(db_session, "Marina Souza", "marina@email.com", Role.MANAGER)


@pytest.fixture
def carlos(db_session):
    from pagamentos_app.lifecycle import Role
    return make_user(db_session, "Carlos Dias", "carlos@email.com", Role.FINANCE)


def make_event(db_session, name, allowed, *, status="ACTIVE", budget=None, subcategories=None):
    from pagamentos_app.models import Event
    ev = Event(name=name, status=status, budget=budget, event_type="EVENT",
               subcategories=subcategories or [], allowed_users=list(allowed))
    db_session.add(ev)
    db_session.commit()
    return ev


@pytest.fixture
def event1(db_session, ana):
    return make_event(db_session, "Viagem Conferência WebTech 2024", [ana], budget=Decimal("5000.00"),
                      subcategories=["Passagens", "Hospedagem"])


@pytest.fixture
def event2(db_session, ana, bruno):
    return make_event(db_session, "Compras de Material de Escritório - Q4", [ana, bruno])


@pytest.fixture
def event3(db_session, bruno):
    return make_event(db_session, "Pagamento Fornecedores TI", [bruno], status="INACTIVE")


# =====================================================================================
# Workflow + fábrica de solicitações
# =====================================================================================
@pytest.fixture
def workflow(app, db_session):
    from pagamentos_app.services.store import Store
    from pagamentos_app.services.workflow import RequestWorkflow
    return RequestWorkflow(Store(db_session), manager_approval=True, logger=app.logger)


def request_form(event, **overrides):
    data = {
        "event_id": str(event.id),
        "amount": "150.75",
        "currency": "BRL",
        "description": "Passagem aérea para a conferência",
        "category": "Passagens",
        "recipient_full_name": "Companhia Aérea S/A",
        "recipient_cpf": "12.345.678/0001-90",
        "recipient_email": "financeiro@aerea.com",
        "pix_key": "financeiro@aerea.com",
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_request(workflow):
    def _make(actor, event, *, external=False, **overrides):
        return workflow.create_request(actor, request_form(event, **overrides), external=external).request
    return _make


# =====================================================================================
# Clientes logados (um test client por perfil)
# =====================================================================================
def login_as(app, user):
    c = app.test_client()
    with c.session_transaction() as sess:
        sess["user"] = {"id": user.id, "name": user.name, "email": user.email, "role": user.role}
    return c


@pytest.fixture
def ana_client(app, ana):
    return login_as(app, ana)


@pytest.fixture
def bruno_client(app, bruno):
    return login_as(app, bruno)


@pytest.fixture
def marina_client(app, marina):
    return login_as(app, marina)


@pytest.fixture
def carlos_client(app, carlos):
    return login_as(app, carlos)


# =====================================================================================
# Cliente Anthropic falso (sem rede)
# =====================================================================================
class FakeAnthropic:
    def __init__(self, text="", exc=None):
        self.text = text
        self.exc = exc
        self.calls = []
        self.messages = self

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc is not None:
            raise self.exc
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


@pytest.fixture
def fake_ai():
    return FakeAnthropic
