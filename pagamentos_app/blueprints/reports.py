# pagamentos_app/blueprints/reports.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, Response, flash, jsonify, redirect, render_template, request, url_for

from ..decorators import capability_required, current_user
from ..errors import ValidationError
from ..lifecycle import Capability
from ..services import ai_service, exports, visibility

bp = Blueprint("reports", __name__, url_prefix="/relatorios")


def _period():
    return exports.parse_day(request.args.get("inicio")), exports.parse_day(request.args.get("fim"))


def _download(body, mimetype: str, filename: str) -> Response:
    return Response(body, mimetype=mimetype,
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@bp.route("/")
@capability_required(Capability.VIEW_REPORTS)
def index():
    try:
        start, end = _period()
    except ValidationError as e:
        flash(e.message, e.category)
        start = end = None
    rows = exports.paid_in_period(start, end)
    return render_template("reports.html", rows=rows, start=start, end=end,
                           ai_enabled=ai_service.is_available())


@bp.route("/csv")
@capability_required(Capability.VIEW_REPORTS)
def csv():
    try:
        start, end = _period()
    except ValidationError as e:
        flash(e.message, e.category)
        return redirect(url_for("reports.index"))
    body = exports.to_csv(exports.paid_in_period(start, end))
    return _download(body, "text/csv; charset=utf-8", "relatorio_pagamentos.csv")


@bp.route("/ics")
@capability_required(Capability.VIEW_REPORTS)
def ics():
    try:
        start, end = _period()
        body = exports.to_ics(exports.paid_in_period(start, end))
    except ValidationError as e:
        flash(e.message, e.category)
        return redirect(url_for("reports.index", **request.args))
    return _download(body, "text/calendar; charset=utf-8", "pagamentos_calendario.ics")


@bp.route("/pdf")
@capability_required(Capability.VIEW_REPORTS)
def pdf():
    try:
        start, end = _period()
    except ValidationError as e:
        flash(e.message, e.category)
        return redirect(url_for("reports.index"))
    body = exports.to_pdf(exports.paid_in_period(start, end), start, end)
    return _download(body, "application/pdf", "relatorio_pagamentos.pdf")


@bp.route("/resumo", methods=["POST"])
@capability_required(Capability.VIEW_REPORTS)
def summary():
    return jsonify({"summary": ai_service.generate_summary(visibility.visible_requests(current_user()))})
