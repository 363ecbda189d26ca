# pagamentos_app/extensions.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from decimal import Decimal

import click
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_migrate import Migrate
from sqlalchemy import text


db = SQLAlchemy()
bcrypt = Bcrypt()
migrate = Migrate()

def init_extensions(app):
    # DB/Bcrypt/Migrate
    db.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)

DEMO_PASSWORD = "123"

def seed_demo_data() -> int:
    """Popula usuários e centros de custo de demonstração. Retorna quantos registros criou."""
    from .models import User, Event, Role, EventStatus, EventType

    created = 0
    people = [
        ("Ana Silva", "ana@email.com", Role.REQUESTER),
        ("Bruno Costa", "bruno@email.com", Role.REQUESTER),
        ("Carlos Dias", "carlos@email.com", Role.FINANCE),
        ("Marina Souza", "marina@email.com", Role.MANAGER),
    ]
    by_email = {}
    for name, email, role in people:
        u = User.query.filter_by(email=email).first()
        if not u:
            u = User(name=name, email=email, role=role.value)
            u.set_password(DEMO_PASSWORD)
            db.session.add(u)
            created += 1
        by_email[email] = u
    db.session.flush()

    ana, bruno = by_email["ana@email.com"], by_email["bruno@email.com"]
    events = [
        ("Viagem Conferência WebTech 2024", [ana], EventStatus.ACTIVE, Decimal("5000.00")),
        ("Compras de Material de Escritório - Q4", [ana, bruno], EventStatus.ACTIVE, None),
        ("Pagamento Fornecedores TI", [bruno], EventStatus.INACTIVE, None),
    ]
    for name, allowed, status, budget in events:
        if Event.query.filter_by(name=name).first():
            continue
        db.session.add(Event(
            name=name, status=status.value, budget=budget,
            event_type=EventType.EVENT.value, allowed_users=list(allowed),
        ))
        created += 1

    db.session.commit()
    return created

def register_cli(app):
    @app.cli.command("init-db")
    def init_db_cmd():
        """Cria as tabelas iniciais (DEV/MVP). Para produção: use flask db upgrade."""
        with app.app_context():
            # sanity check
            db.session.execute(text("SELECT 1"))
            db.create_all()
            click.echo("Tabelas criadas.")

    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Cria usuários (senha 123) e centros de custo de demonstração."""
        with app.app_context():
            n = seed_demo_data()
            click.echo(f"{n} registros de demonstração criados.")
