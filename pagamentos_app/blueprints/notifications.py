# pagamentos_app/blueprints/notifications.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from types import SimpleNamespace

from flask import Blueprint, Response, abort, flash, jsonify, redirect, render_template, request, url_for

from ..decorators import current_user, login_required
from ..extensions import db
from ..models import Notification
from ..services import feed, visibility
from ..services.store import get_store

bp = Blueprint("notifications", __name__)


@bp.route("/notificacoes")
@login_required
def index():
    rows = (current_user().notifications
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(200).all())
    return render_template("notifications.html", rows=rows)


@bp.route("/notificacoes/<int:notification_id>/lida", methods=["POST"])
@login_required
def mark_read(notification_id):
    n = db.session.get(Notification, notification_id)
    if n is None or n.user_id != current_user().id:
        abort(404)
    if not n.read:
        n.read = True
        get_store().commit()
    if n.request_id and request.form.get("abrir") == "1":
        return redirect(url_for("payments.detail", request_id=n.request_id))
    return redirect(url_for("notifications.index"))


@bp.route("/notificacoes/lidas", methods=["POST"])
@login_required
def mark_all_read():
    n = get_store().batch_update(
        "notifications",
        [Notification.user_id == current_user().id, Notification.read.is_(False)],
        {"read": True},
    )
    flash(f"{n} notificação(ões) marcada(s) como lida(s)." if n else "Nenhuma notificação nova.", "info")
    return redirect(url_for("notifications.index"))


@bp.route("/notificacoes/nao-lidas.json")
@login_required
def unread_json():
    count = current_user().notifications.filter_by(read=False).count()
    return jsonify({"unread": count})


@bp.route("/changes")
@login_required
def changes():
    user = current_user()
    # cópia leve: o gerador roda fora do contexto da requisição
    viewer = SimpleNamespace(id=user.id, role_enum=user.role_enum)

    def own_notification(ev):
        return ev.data.get("user_id") == viewer.id

    def visible_request(ev):
        return visibility.can_view(viewer, SimpleNamespace(**ev.data))

    limit = request.args.get("limit", type=int)
    body = feed.stream(
        [("notifications", own_notification), ("payment_requests", visible_request)],
        limit=limit,
    )
    return Response(body, mimetype="text/event-stream",
                    headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"})
