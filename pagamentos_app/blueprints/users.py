# pagamentos_app/blueprints/users.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from ..decorators import capability_required, current_user
from ..extensions import db
from ..lifecycle import Capability, Role
from ..models import PaymentRequest, User

bp = Blueprint("users", __name__, url_prefix="/usuarios")


@bp.route("/")
@capability_required(Capability.MANAGE_USERS)
def index():
    rows = User.query.order_by(User.name.asc()).all()
    return render_template("users.html", rows=rows, roles=Role)


@bp.route("/novo", methods=["POST"])
@capability_required(Capability.MANAGE_USERS)
def create():
    name = (request.form.get("name") or "").strip()
    email = (request.form.get("email") or "").strip().lower()
    pwd = request.form.get("password") or ""
    role = request.form.get("role") or Role.REQUESTER.value

    if not name or not email or not pwd:
        flash("Informe nome, e-mail e senha.", "warning")
        return redirect(url_for("users.index"))
    if role not in {r.value for r in Role}:
        flash("Perfil inválido.", "warning")
        return redirect(url_for("users.index"))
    if User.by_email(email):
        flash("E-mail já cadastrado.", "warning")
        return redirect(url_for("users.index"))

    u = User(name=name, email=email, role=role)
    u.set_password(pwd)
    db.session.add(u)
    db.session.commit()
    current_app.logger.info("usuário %s (%s) criado por %s", u.email, u.role, current_user().email)
    flash("Usuário criado.", "success")
    return redirect(url_for("users.index"))


@bp.route("/<int:user_id>/excluir", methods=["POST"])
@capability_required(Capability.MANAGE_USERS)
def delete(user_id):
    u = db.get_or_404(User, user_id)
    if u.id == current_user().id:
        flash("Você não pode excluir a própria conta.", "warning")
        return redirect(url_for("users.index"))
    in_use = PaymentRequest.query.filter(
        (PaymentRequest.requester_id == u.id) | (PaymentRequest.approver_id == u.id)
    ).first()
    if in_use is not None:
        flash("Usuário possui solicitações no histórico e não pode ser excluído.", "warning")
        return redirect(url_for("users.index"))

    email = u.email
    db.session.delete(u)
    db.session.commit()
    current_app.logger.info("usuário %s excluído", email)
    flash("Usuário excluído.", "success")
    return redirect(url_for("users.index"))
