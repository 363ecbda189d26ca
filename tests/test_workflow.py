# tests/test_workflow.py
# -*- coding: utf-8 -*-
from decimal import Decimal
from io import BytesIO

import pytest
from werkzeug.datastructures import FileStorage

from conftest import request_form
from pagamentos_app.errors import ConcurrentUpdate, InvalidTransition, NotFound, PermissionDenied, ValidationError
from pagamentos_app.lifecycle import Status
from pagamentos_app.models import Notification, PaymentRequest
from pagamentos_app.services.store import Store
from pagamentos_app.services.workflow import DISCARDED_BANK, NO_PAYMENT_METHOD, RequestWorkflow


def _messages(user):
    return [n.message for n in Notification.query.filter_by(user_id=user.id).order_by(Notification.id)]


def test_create_notifies_every_manager(workflow, ana, marina, carlos, event1):
    outcome = workflow.create_request(ana, request_form(event1))
    req = outcome.request

    assert req.status == Status.AWAITING_APPROVAL.value
    assert req.amount == Decimal("150.75")
    assert req.requester_id == ana.id
    assert req.version == 1
    assert req.payment_method.describe() == "PIX: financeiro@aerea.com"
    assert outcome.notified == 1
    assert _messages(marina) == ["Nova solicitação de R$ 150,75 de Ana Silva aguardando sua aprovação."]
    assert _messages(carlos) == []


def test_manager_can_also_create(workflow, marina, db_session, event1):
    event1.allowed_users.append(marina)
    db_session.commit()
    req = workflow.create_request(marina, request_form(event1)).request
    assert req.status == Status.AWAITING_APPROVAL.value


def test_finance_cannot_create(workflow, carlos, event1):
    with pytest.raises(PermissionDenied):
        workflow.create_request(carlos, request_form(event1))


def test_inactive_or_foreign_event_is_refused(workflow, ana, event1, event3):
    with pytest.raises(ValidationError):
        workflow.create_request(ana, request_form(event3))
    assert PaymentRequest.query.count() == 0


def test_missing_fields_and_method(workflow, ana, event1):
    with pytest.raises(ValidationError):
        workflow.create_request(ana, request_form(event1, description=""))
    with pytest.raises(ValidationError):
        workflow.create_request(ana, request_form(event1, recipient_full_name=" "))
    with pytest.raises(ValidationError):
        workflow.create_request(ana, request_form(event1, pix_key=""))
    with pytest.raises(ValidationError):
        workflow.create_request(ana, request_form(event1, amount="0"))
    with pytest.raises(ValidationError):
        workflow.create_request(ana, request_form(event1, currency="JPY"))
    assert PaymentRequest.query.count() == 0


def test_both_methods_keeps_pix_with_warning(workflow, ana, event1):
    outcome = workflow.create_request(ana, request_form(
        event1, bank_name="Itaú", bank_agency="1", bank_account="2"))
    assert outcome.warnings == [DISCARDED_BANK]
    assert outcome.request.payment_method_kind == "pix"
    assert outcome.request.bank_name is None


def test_approve_notifies_requester_and_finance(workflow, ana, marina, carlos, event1):
    req = workflow.create_request(ana, request_form(event1)).request
    outcome = workflow.approve(marina, req.id)

    assert outcome.request.status == Status.PENDING.value
    assert outcome.request.approver_id == marina.id
    assert outcome.request.approved_at is not None
    assert outcome.notified == 2
    assert _messages(ana) == ["Sua solicitação de R$ 150,75 foi aprovada por Marina Souza e enviada ao Financeiro."]
    assert _messages(carlos) == ["Solicitação de R$ 150,75 de Ana Silva aprovada e aguardando pagamento."]


def test_finance_reject_names_the_role(workflow, ana, marina, carlos, event1):
    req = workflow.create_request(ana, request_form(event1)).request
    workflow.approve(marina, req.id)
    outcome = workflow.reject(carlos, req.id, "invoice mismatch")

    assert outcome.request.status == Status.REJECTED.value
    assert outcome.request.reason_for_rejection == "invoice mismatch"
    assert outcome.request.rejected_by_role == "FINANCE"
    assert _messages(ana)[-1] == "Sua solicitação de R$ 150,75 foi rejeitada pelo Financeiro. Motivo: invoice mismatch"


def test_reject_requires_reason(workflow, db_session, ana, marina, event1):
    req = workflow.create_request(ana, request_form(event1)).request
    with pytest.raises(ValidationError):
        workflow.reject(marina, req.id, "  ")
    assert db_session.get(PaymentRequest, req.id).status == Status.AWAITING_APPROVAL.value


def test_wrong_role_or_status(workflow, ana, marina, carlos, event1):
    req = workflow.create_request(ana, request_form(event1)).request
    with pytest.raises(PermissionDenied):
        workflow.approve(carlos, req.id)
    with pytest.raises(PermissionDenied):
        workflow.approve(ana, req.id)
    with pytest.raises(InvalidTransition):
        workflow.mark_paid(carlos, req.id, "comprovante.pdf")
    with pytest.raises(NotFound):
        workflow.approve(marina, "nao-existe")


def test_mark_paid_with_reference_and_upload(workflow, ana, marina, carlos, event1):
    req = workflow.create_request(ana, request_form(event1)).request
    workflow.approve(marina, req.id)
    with pytest.raises(ValidationError):
        workflow.mark_paid(carlos, req.id, "")

    proof = FileStorage(stream=BytesIO(b"%PDF-1.4 comprovante"), filename="comprovante.pdf",
                        content_type="application/pdf")
    outcome = workflow.mark_paid(carlos, req.id, proof)
    paid = outcome.request
    assert paid.status == Status.PAID.value
    assert paid.paid_at is not None
    assert paid.proof_filename == "comprovante.pdf"
    assert paid.proof_of_payment.endswith("comprovante.pdf")
    assert outcome.warnings == []
    assert _messages(ana)[-1] == "Sua solicitação de R$ 150,75 para Companhia Aérea S/A foi paga."

    # estado final: nada mais é aceito
    with pytest.raises(InvalidTransition):
        workflow.reject(carlos, req.id, "tarde demais")


def test_mark_paid_without_method_only_warns(workflow, db_session, ana, marina, carlos, event1):
    req = workflow.create_request(ana, request_form(event1)).request
    workflow.approve(marina, req.id)
    req.payment_method_kind = None
    req.pix_key = None
    db_session.commit()
    outcome = workflow.mark_paid(carlos, req.id, "transferencia-123")
    assert outcome.warnings == [NO_PAYMENT_METHOD]
    assert outcome.request.status == Status.PAID.value
    assert outcome.request.proof_of_payment == "transferencia-123"


def test_stale_version_is_refused(workflow, db_session, ana, marina, carlos, event1):
    req = workflow.create_request(ana, request_form(event1)).request
    seen = req.version
    workflow.approve(marina, req.id, expected_version=seen)
    with pytest.raises(ConcurrentUpdate):
        workflow.reject(carlos, req.id, "duplicado", expected_version=seen)
    assert db_session.get(PaymentRequest, req.id).status == Status.PENDING.value


def test_external_flow(workflow, ana, marina, event1):
    outcome = workflow.create_request(ana, {
        "event_id": str(event1.id), "amount": "980,00", "description": "Serviço de buffet",
    }, external=True)
    req = outcome.request
    assert req.status == Status.WAITING_SUPPLIER.value
    assert req.is_external and req.recipient_full_name is None
    assert outcome.notified == 0
    assert RequestWorkflow.supplier_link(req, "http://x.test/") == f"http://x.test/?mode=supplier&id={req.id}"

    with pytest.raises(ValidationError):
        workflow.submit_supplier_data(req.id, {"recipient_full_name": "Buffet Ltda", "pix_key": "1"})

    outcome = workflow.submit_supplier_data(req.id, {
        "recipient_full_name": "Buffet Ltda", "recipient_cpf": "11.222.333/0001-44",
        "recipient_email": "contato@buffet.com", "bank_name": "Caixa", "bank_agency": "10", "bank_account": "20",
    })
    assert outcome.request.status == Status.WAITING_REQUESTER_APPROVAL.value
    assert outcome.request.payment_method_kind == "bank"

    # segundo envio pelo mesmo link
    with pytest.raises(InvalidTransition):
        workflow.submit_supplier_data(req.id, {
            "recipient_full_name": "Outro", "recipient_cpf": "1", "recipient_email": "o@o.com", "pix_key": "x",
        })

    # só a dona confere os dados
    with pytest.raises(PermissionDenied):
        workflow.confirm_supplier_data(marina, req.id)
    confirmed = workflow.confirm_supplier_data(ana, req.id).request
    assert confirmed.status == Status.AWAITING_APPROVAL.value


def test_requester_rejects_supplier_data(workflow, ana, event1):
    req = workflow.create_request(ana, {
        "event_id": str(event1.id), "amount": "50", "description": "Serviço",
    }, external=True).request
    workflow.submit_supplier_data(req.id, {
        "recipient_full_name": "Fulano", "recipient_cpf": "123", "recipient_email": "f@f.com", "pix_key": "f@f.com",
    })
    with pytest.raises(ValidationError):
        workflow.reject_supplier_data(ana, req.id, "")
    outcome = workflow.reject_supplier_data(ana, req.id, "CPF divergente")
    assert outcome.request.status == Status.REJECTED.value
    assert _messages(ana) == ["Os dados do fornecedor da solicitação de R$ 50,00 foram rejeitados. Motivo: CPF divergente"]


def test_two_role_variant_goes_straight_to_finance(app, db_session, ana, marina, carlos, event1):
    wf = RequestWorkflow(Store(db_session), manager_approval=False, logger=app.logger)
    req = wf.create_request(ana, request_form(event1)).request
    assert req.status == Status.PENDING.value
    assert _messages(marina) == []
    assert _messages(carlos) == ["Nova solicitação de R$ 150,75 de Ana Silva aguardando pagamento."]


def test_no_manager_logs_warning(workflow, ana, event1, caplog):
    with caplog.at_level("WARNING"):
        outcome = workflow.create_request(ana, request_form(event1))
    assert outcome.notified == 0
    assert "nenhum usuário ativo" in caplog.text


def test_allowed_actions_for_actor(workflow, ana, marina, carlos, event1):
    req = workflow.create_request(ana, request_form(event1)).request
    assert {a.value for a in workflow.allowed_actions(req, marina)} == {"APPROVE", "REJECT"}
    assert workflow.allowed_actions(req, carlos) == set()
    assert workflow.allowed_actions(req, None) == set()


def test_created_request_reads_back_every_field(workflow, db_session, ana, marina, event1):
    from pagamentos_app.services import visibility

    form = request_form(event1, amount="2.480,90", currency="usd", category="Hospedagem",
                        description="Hotel para a equipe (3 noites)",
                        recipient_full_name="Hotel Central Ltda", recipient_cpf="98.765.432/0001-10",
                        recipient_rg="12.345.678-9", recipient_email="reservas@hotelcentral.com",
                        pix_key="", bank_name="Banco do Brasil", bank_agency="1234-5", bank_account="99887-6")
    req_id = workflow.create_request(ana, form).request.id
    db_session.expire_all()

    stored = Store(db_session).get("payment_requests", req_id)
    listed = [r for r in visibility.visible_requests(ana) if r.id == req_id]
    assert listed == [stored]

    assert stored.requester_id == ana.id
    assert stored.event_id == event1.id
    assert stored.amount == Decimal("2480.90")
    assert stored.currency == "USD"
    assert stored.category == "Hospedagem"
    assert stored.description == "Hotel para a equipe (3 noites)"
    assert stored.recipient_full_name == "Hotel Central Ltda"
    assert stored.recipient_cpf == "98.765.432/0001-10"
    assert stored.recipient_rg == "12.345.678-9"
    assert stored.recipient_email == "reservas@hotelcentral.com"
    assert stored.payment_method_kind == "bank"
    assert stored.pix_key is None
    assert (stored.bank_name, stored.bank_agency, stored.bank_account) == ("Banco do Brasil", "1234-5", "99887-6")
    assert stored.is_external is False
    assert stored.status == Status.AWAITING_APPROVAL.value
    assert stored.version == 1
