# pagamentos_app/blueprints/payments.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import (Blueprint, abort, current_app, flash, jsonify, redirect, render_template,
                   request, send_file, url_for)

from ..decorators import capability_required, current_user, login_required, role_required
from ..errors import WorkflowError
from ..lifecycle import Action, Capability, Role, Status
from ..models import CURRENCIES
from ..services import ai_service, budget, visibility
from ..services.uploads import has_file, mime_for, resolve_upload
from ..services.workflow import get_workflow

bp = Blueprint("payments", __name__, url_prefix="/solicitacoes")


def _visible_or_404(request_id):
    wf = get_workflow()
    try:
        req = wf.get_request(request_id)
    except WorkflowError:
        abort(404)
    if not visibility.can_view(current_user(), req):
        abort(404)
    return wf, req


def _flash_outcome(outcome, message: str):
    for w in outcome.warnings:
        flash(w, "warning")
    flash(message, "success")


@bp.route("/nova", methods=["GET", "POST"])
@capability_required(Capability.CREATE_REQUEST)
def new():
    user = current_user()
    if request.method == "POST":
        external = request.form.get("external") == "1"
        try:
            outcome = get_workflow().create_request(
                user, request.form, external=external, invoice=request.files.get("invoice"),
            )
        except WorkflowError as e:
            flash(e.message, e.category)
            return redirect(url_for("payments.new", external=int(external)))
        req = outcome.request
        if external:
            _flash_outcome(outcome, "Solicitação criada. Envie o link ao fornecedor para que ele preencha os dados.")
        else:
            _flash_outcome(outcome, "Solicitação enviada para aprovação.")
        return redirect(url_for("payments.detail", request_id=req.id))

    return render_template(
        "request_form.html",
        events=visibility.events_for(user), currencies=CURRENCIES,
        external=request.args.get("external") == "1", ai_enabled=ai_service.is_available(),
    )


@bp.route("/<request_id>")
@login_required
def detail(request_id):
    wf, req = _visible_or_404(request_id)
    user = current_user()
    link = None
    if req.status == Status.WAITING_SUPPLIER.value and req.requester_id == user.id:
        link = wf.supplier_link(req, current_app.config.get("PUBLIC_BASE_URL") or request.host_url)
    return render_template(
        "request_detail.html", req=req, actions=wf.allowed_actions(req, user), Action=Action,
        usage=budget.usage_for(req.event) if req.event else None, supplier_link=link,
        ai_enabled=ai_service.is_available(),
    )


def _act(request_id, fn, success: str):
    wf, req = _visible_or_404(request_id)
    try:
        outcome = fn(wf, req)
    except WorkflowError as e:
        flash(e.message, e.category)
        return redirect(url_for("payments.detail", request_id=request_id))
    _flash_outcome(outcome, success)
    return redirect(url_for("payments.detail", request_id=request_id))


@bp.route("/<request_id>/aprovar", methods=["POST"])
@login_required
def approve(request_id):
    v = request.form.get("expected_version")
    return _act(request_id, lambda wf, req: wf.approve(current_user(), req.id, expected_version=v),
                "Solicitação aprovada e enviada ao Financeiro.")


@bp.route("/<request_id>/rejeitar", methods=["POST"])
@login_required
def reject(request_id):
    v = request.form.get("expected_version")
    reason = request.form.get("reason")
    return _act(request_id, lambda wf, req: wf.reject(current_user(), req.id, reason, expected_version=v),
                "Solicitação rejeitada.")


@bp.route("/<request_id>/pagar", methods=["POST"])
@login_required
def pay(request_id):
    v = request.form.get("expected_version")
    proof = request.files.get("proof")
    if not has_file(proof):
        proof = request.form.get("proof_reference")
    return _act(request_id, lambda wf, req: wf.mark_paid(current_user(), req.id, proof, expected_version=v),
                "Pagamento registrado.")


@bp.route("/<request_id>/confirmar-dados", methods=["POST"])
@login_required
def confirm_data(request_id):
    v = request.form.get("expected_version")
    return _act(request_id, lambda wf, req: wf.confirm_supplier_data(current_user(), req.id, expected_version=v),
                "Dados do fornecedor confirmados. Solicitação enviada para aprovação.")


@bp.route("/<request_id>/rejeitar-dados", methods=["POST"])
@login_required
def reject_data(request_id):
    v = request.form.get("expected_version")
    reason = request.form.get("reason")
    return _act(request_id,
                lambda wf, req: wf.reject_supplier_data(current_user(), req.id, reason, expected_version=v),
                "Dados do fornecedor rejeitados.")


@bp.route("/<request_id>/arquivo/<kind>")
@login_required
def download(request_id, kind):
    _, req = _visible_or_404(request_id)
    if kind == "nota":
        rel, name = req.invoice_path, req.invoice_filename
    elif kind == "comprovante":
        rel, name = req.proof_of_payment, req.proof_filename
    else:
        abort(404)
    p = resolve_upload(rel)
    if p is None:
        flash("Arquivo não encontrado.", "warning")
        return redirect(url_for("payments.detail", request_id=req.id))
    return send_file(str(p), mimetype=mime_for(p.name), as_attachment=False, download_name=name or p.name)


# ---------------------------------------------------------------- IA
@bp.route("/ia/extrair", methods=["POST"])
@capability_required(Capability.CREATE_REQUEST)
def ai_extract():
    if not ai_service.is_available():
        return jsonify({"ok": False, "error": ai_service.UNAVAILABLE}), 503
    f = request.files.get("invoice")
    if not has_file(f):
        return jsonify({"ok": False, "error": "Nenhum arquivo enviado."}), 400
    data = ai_service.extract_invoice_details(f.read(), f.mimetype or mime_for(f.filename))
    if data is None:
        return jsonify({"ok": False, "error": "Não foi possível extrair os dados da fatura."}), 422
    return jsonify({"ok": True, "data": data})


@bp.route("/ia/categoria", methods=["POST"])
@capability_required(Capability.CREATE_REQUEST)
def ai_category():
    description = (request.form.get("description") or (request.get_json(silent=True) or {}).get("description") or "")
    category = ai_service.suggest_category(description)
    return jsonify({"ok": category is not None, "category": category})


@bp.route("/<request_id>/risco")
@role_required(Role.MANAGER, Role.FINANCE)
def ai_risk(request_id):
    _, req = _visible_or_404(request_id)
    return jsonify({"analysis": ai_service.analyze_risk(req)})
