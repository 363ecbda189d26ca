# pagamentos_app/blueprints/events.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from ..decorators import capability_required
from ..errors import ValidationError
from ..extensions import db
from ..formatting import parse_amount
from ..lifecycle import Capability
from ..models import Event, EventStatus, EventType, User
from ..services import budget

bp = Blueprint("events", __name__, url_prefix="/centros-de-custo")


def _subcategories(raw: str) -> list[str]:
    seen, out = set(), []
    for part in (raw or "").replace("\n", ",").split(","):
        part = part.strip()
        if part and part.lower() not in seen:
            seen.add(part.lower())
            out.append(part)
    return out


def _apply_form(ev: Event, form) -> Event:
    name = (form.get("name") or "").strip()
    if not name:
        raise ValidationError("Informe o nome do centro de custo.")
    status = form.get("status") or EventStatus.ACTIVE.value
    if status not in {s.value for s in EventStatus}:
        raise ValidationError("Status inválido.")
    event_type = form.get("event_type") or None
    if event_type and event_type not in {t.value for t in EventType}:
        raise ValidationError("Tipo inválido.")
    raw_budget = (form.get("budget") or "").strip()
    ids = [int(i) for i in form.getlist("allowed_user_ids") if str(i).isdigit()]

    ev.name = name
    ev.status = status
    ev.event_type = event_type
    ev.budget = parse_amount(raw_budget) if raw_budget else None
    ev.subcategories = _subcategories(form.get("subcategories"))
    ev.allowed_users = User.query.filter(User.id.in_(ids)).all() if ids else []
    return ev


def _form_context(ev=None):
    return dict(
        ev=ev, statuses=EventStatus, types=EventType,
        people=User.query.filter_by(active=True).order_by(User.name).all(),
    )


@bp.route("/")
@capability_required(Capability.MANAGE_EVENTS)
def index():
    rows = Event.query.order_by(Event.status.asc(), Event.name.asc()).all()
    spent = budget.spent_by_event([e.id for e in rows])
    usage = {e.id: budget.usage_for(e, spent) for e in rows}
    return render_template("events.html", rows=rows, usage=usage)


@bp.route("/novo", methods=["GET", "POST"])
@capability_required(Capability.MANAGE_EVENTS)
def create():
    if request.method == "POST":
        ev = Event()
        try:
            _apply_form(ev, request.form)
        except ValidationError as e:
            flash(e.message, e.category)
            return redirect(url_for("events.create"))
        db.session.add(ev)
        db.session.commit()
        current_app.logger.info("centro de custo %s criado", ev.id)
        flash("Centro de custo criado.", "success")
        return redirect(url_for("events.index"))
    return render_template("event_form.html", **_form_context())


@bp.route("/<int:event_id>/editar", methods=["GET", "POST"])
@capability_required(Capability.MANAGE_EVENTS)
def edit(event_id):
    ev = db.get_or_404(Event, event_id)
    if request.method == "POST":
        try:
            _apply_form(ev, request.form)
        except ValidationError as e:
            db.session.rollback()
            flash(e.message, e.category)
            return redirect(url_for("events.edit", event_id=event_id))
        db.session.commit()
        flash("Centro de custo atualizado.", "success")
        return redirect(url_for("events.index"))
    return render_template("event_form.html", **_form_context(ev))


@bp.route("/<int:event_id>/status", methods=["POST"])
@capability_required(Capability.MANAGE_EVENTS)
def toggle(event_id):
    ev = db.get_or_404(Event, event_id)
    ev.status = EventStatus.INACTIVE.value if ev.is_active else EventStatus.ACTIVE.value
    db.session.commit()
    flash(f"Centro de custo {ev.status_label.lower()}.", "info")
    return redirect(url_for("events.index"))
