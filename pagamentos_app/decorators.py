# pagamentos_app/decorators.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from functools import wraps
from flask import session, flash, redirect, url_for, request, g

from .extensions import db
from .lifecycle import Capability, Role, can


def current_user():
    """Usuário logado (ou None). Cacheado em ``g`` pelo id da sessão."""
    uid = (session.get("user") or {}).get("id")
    cached = g.get("_current_user")
    if cached is not None and cached[0] == uid:
        return cached[1]
    user = None
    if uid:
        from .models import User
        user = db.session.get(User, uid)
        if user is not None and not user.active:
            user = None
    g._current_user = (uid, user)
    return user


def login_required(view_func):
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        if current_user() is None:
            session.pop("user", None)
            flash("Faça login para acessar.", "warning")
            return redirect(url_for("auth.login", next=request.path))
        return view_func(*args, **kwargs)
    return wrapper


def _deny():
    flash("Acesso restrito ao seu perfil.", "danger")
    return redirect(url_for("core.dashboard"))


def role_required(*roles: Role):
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None:
                flash("Faça login para acessar.", "warning")
                return redirect(url_for("auth.login", next=request.path))
            if user.role_enum not in roles:
                return _deny()
            return view_func(*args, **kwargs)
        return wrapper
    return decorator


def capability_required(capability: Capability):
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None:
                flash("Faça login para acessar.", "warning")
                return redirect(url_for("auth.login", next=request.path))
            if not can(user.role_enum, capability):
                return _deny()
            return view_func(*args, **kwargs)
        return wrapper
    return decorator
