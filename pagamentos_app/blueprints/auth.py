# pagamentos_app/blueprints/auth.py
# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import Blueprint, current_app, render_template, request, redirect, url_for, flash, session

from ..extensions import db
from ..decorators import current_user, login_required
from ..models import User

bp = Blueprint("auth", __name__)

MIN_PASSWORD = 3


def _safe_next(target: str | None) -> str:
    # só caminhos locais
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return url_for("core.dashboard")


@bp.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "POST":
        email = request.form.get("email")
        pwd = request.form.get("password")

        u = User.by_email(email)
        if not u or not u.active or not u.check_password(pwd):
            current_app.logger.info("login recusado para %r", (email or "").strip().lower())
            flash("E-mail ou senha inválidos.", "danger")
            return redirect(url_for("auth.login"))

        session.clear()
        session["user"] = {"id": u.id, "name": u.name, "email": u.email, "role": u.role}
        flash(f"Bem-vindo(a), {u.name}!", "success")
        return redirect(_safe_next(request.args.get("next")))
    return render_template("auth_login.html")


@bp.route("/logout")
def logout():
    session.clear()
    flash("Você saiu da sessão.", "info")
    return redirect(url_for("auth.login"))


@bp.route("/account")
@login_required
def account():
    return render_template("user_account.html", user=current_user())


@bp.route("/account/update", methods=["POST"])
@login_required
def account_update():
    u = current_user()
    name = (request.form.get("name") or "").strip()
    if not name:
        flash("Informe o nome.", "warning")
        return redirect(url_for("auth.account"))
    u.name = name
    db.session.commit()
    session["user"] = dict(session["user"], name=u.name)
    flash("Dados atualizados.", "success")
    return redirect(url_for("auth.account"))


@bp.route("/account/password", methods=["POST"])
@login_required
def password_change():
    u = current_user()
    if not u.check_password(request.form.get("current")):
        flash("Senha atual incorreta.", "warning")
        return redirect(url_for("auth.account"))
    pwd1 = request.form.get("pwd1") or ""
    pwd2 = request.form.get("pwd2") or ""
    if len(pwd1) < MIN_PASSWORD or pwd1 != pwd2:
        flash("Senhas não conferem.", "warning")
        return redirect(url_for("auth.account"))
    u.set_password(pwd1)
    db.session.commit()
    flash("Senha alterada.", "success")
    return redirect(url_for("auth.account"))
