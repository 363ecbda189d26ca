# pagamentos_app/__init__.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import os

from flask import Flask
from config import Config, TestingConfig, StagingConfig, ProductionConfig
from .extensions import db, bcrypt, migrate, init_extensions, register_cli
from .services.store import init_store
from .services.ai_service import init_ai
from .blueprints.core import bp as core_bp
from .blueprints.auth import bp as auth_bp
from .blueprints.payments import bp as payments_bp
from .blueprints.supplier import bp as supplier_bp
from .blueprints.events import bp as events_bp
from .blueprints.users import bp as users_bp
from .blueprints.notifications import bp as notifications_bp
from .blueprints.reports import bp as reports_bp
from .decorators import current_user
from .formatting import format_date, format_money, time_since
from .lifecycle import Capability, can

CONFIGS = {
    "testing": TestingConfig,
    "staging": StagingConfig,
    "production": ProductionConfig,
}


def create_app(config_object: type[Config] | None = None) -> Flask:
    app = Flask(__name__, template_folder="../templates", static_folder="../static")
    if config_object is None:
        config_object = CONFIGS.get(os.getenv("APP_ENV", "").lower(), Config)
    app.config.from_object(config_object)

    # Extensões (DB/Bcrypt/Migrate)
    init_extensions(app)

    # Serviços: store (+ feed de alterações) e IA, em app.extensions
    init_store(app)         # app.extensions["store"]
    init_ai(app)            # app.extensions["ai"] (None sem chave)

    # Blueprints
    app.register_blueprint(core_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(supplier_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(reports_bp)
    # CLI (flask init-db / flask seed-demo)
    register_cli(app)

    @app.template_filter("money")
    def money(value, currency="BRL"):
        return format_money(value, currency)

    @app.template_filter("datebr")
    def datebr(value, fmt="%d/%m/%Y"):
        return format_date(value, fmt)

    @app.template_filter("timesince")
    def timesince(value):
        return time_since(value)

    @app.context_processor
    def inject_user():
        user = current_user()
        unread = 0
        if user is not None:
            unread = user.notifications.filter_by(read=False).count()
        return {"me": user, "can": can, "Capability": Capability, "unread_count": unread}

    return app
