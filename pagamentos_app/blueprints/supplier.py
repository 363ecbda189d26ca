# pagamentos_app/blueprints/supplier.py
# -*- coding: utf-8 -*-
"""Formulário público do fornecedor (sem login; o id da solicitação é a credencial)."""
from __future__ import annotations
from flask import Blueprint, render_template, request, redirect, url_for, flash

from ..errors import InvalidTransition, NotFound, ValidationError
from ..lifecycle import Status
from ..services.workflow import REQUEST_NOT_FOUND, get_workflow

bp = Blueprint("supplier", __name__, url_prefix="/fornecedor")

ALREADY_SENT = "Dados já enviados"


def _error_page(title: str, message: str, status: int):
    return render_template("supplier_error.html", title=title, message=message), status


def supplier_page(request_id):
    wf = get_workflow()
    try:
        req = wf.get_request(request_id)
    except NotFound:
        return _error_page("Erro", REQUEST_NOT_FOUND, 404)
    if req.status != Status.WAITING_SUPPLIER.value:
        return _error_page(ALREADY_SENT,
                           "Os dados desta solicitação já foram enviados. Obrigado!", 409)
    return render_template("supplier_form.html", req=req)


@bp.route("/<request_id>", methods=["GET", "POST"])
def form(request_id):
    if request.method == "GET":
        return supplier_page(request_id)

    wf = get_workflow()
    try:
        outcome = wf.submit_supplier_data(request_id, request.form, invoice=request.files.get("invoice"))
    except NotFound:
        return _error_page("Erro", REQUEST_NOT_FOUND, 404)
    except InvalidTransition:
        return _error_page(ALREADY_SENT, "Os dados desta solicitação já foram enviados. Obrigado!", 409)
    except ValidationError as e:
        flash(e.message, e.category)
        return redirect(url_for("supplier.form", request_id=request_id))

    for w in outcome.warnings:
        flash(w, "warning")
    return render_template("supplier_done.html", req=outcome.request)
