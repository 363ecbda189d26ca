# pagamentos_app/blueprints/core.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, render_template, redirect, request, url_for

from ..decorators import capability_required, current_user
from ..lifecycle import Capability, Status
from ..services import budget, visibility
from ..services.ai_service import is_available as ai_available
from ..models import Event
from .supplier import supplier_page

bp = Blueprint("core", __name__)


@bp.route("/")
def index():
    # link público do fornecedor: /?mode=supplier&id=<id>
    if request.args.get("mode") == "supplier":
        return supplier_page(request.args.get("id"))
    if current_user() is None:
        return redirect(url_for("auth.login"))
    return redirect(url_for("core.dashboard"))


@bp.route("/dashboard")
@capability_required(Capability.DASHBOARD)
def dashboard():
    user = current_user()
    view = visibility.dashboard_view(
        user, status=request.args.get("status"), month=request.args.get("mes"),
    )
    summary = budget.summarize(view["base"])

    events = Event.query.order_by(Event.name).all()
    spent = budget.spent_by_event([e.id for e in events])
    usage = {e.id: budget.usage_for(e, spent) for e in events}
    event_names = {e.id: e.name for e in events}

    return render_template(
        "dashboard.html",
        requests=view["requests"], months=view["months"],
        status=view["status"], month=view["month"],
        tabs=visibility.STATUS_TABS, statuses=Status,
        summary=summary, usage=usage, event_names=event_names,
        ai_enabled=ai_available(),
    )
