# pagamentos_app/models/payment_request.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import uuid
from datetime import datetime
from ..extensions import db
from ..lifecycle import Status
from ..payment_methods import method_from_columns

CURRENCIES = ("BRL", "USD", "EUR")


def _new_id() -> str:
    return uuid.uuid4().hex


class PaymentRequest(db.Model):
    __tablename__ = "payment_requests"

    # id opaco: aparece no link público do fornecedor
    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    requester_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), index=True, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="BRL")

    # beneficiário (vazio enquanto aguarda o fornecedor)
    recipient_full_name = db.Column(db.String(200))
    recipient_cpf = db.Column(db.String(30))     # CPF / CNPJ
    recipient_rg = db.Column(db.String(30))
    recipient_email = db.Column(db.String(180))

    description = db.Column(db.Text, nullable=False, default="")
    category = db.Column(db.String(120))
    status = db.Column(db.String(40), nullable=False, default=Status.AWAITING_APPROVAL.value, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    # aprovação do gestor
    approver_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)

    # pagamento
    paid_at = db.Column(db.DateTime, nullable=True, index=True)
    proof_of_payment = db.Column(db.String(512))   # caminho relativo a UPLOAD_FOLDER
    proof_filename = db.Column(db.String(255))

    # rejeição
    reason_for_rejection = db.Column(db.Text)
    rejected_by_role = db.Column(db.String(20))
    rejected_at = db.Column(db.DateTime, nullable=True)

    # meio de pagamento: pix | bank
    payment_method_kind = db.Column(db.String(10))
    pix_key = db.Column(db.String(140))
    bank_name = db.Column(db.String(120))
    bank_agency = db.Column(db.String(20))
    bank_account = db.Column(db.String(30))

    # fluxo com fornecedor externo
    is_external = db.Column(db.Boolean, nullable=False, default=False)
    invoice_path = db.Column(db.String(512))
    invoice_filename = db.Column(db.String(255))

    # compare-and-swap: incrementado pelo SQLAlchemy a cada UPDATE
    version = db.Column(db.Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    event = db.relationship("Event", backref=db.backref("requests", lazy="dynamic"))
    approver = db.relationship("User", foreign_keys=[approver_id])
    notifications = db.relationship("Notification", backref="request", lazy="dynamic",
                                    cascade="all,delete-orphan")

    @property
    def status_enum(self) -> Status:
        return Status(self.status)

    @property
    def status_label(self) -> str:
        return self.status_enum.label

    @property
    def payment_method(self):
        return method_from_columns(
            self.payment_method_kind, pix_key=self.pix_key, bank_name=self.bank_name,
            bank_agency=self.bank_agency, bank_account=self.bank_account,
        )

    @property
    def created_month(self) -> str:
        return self.created_at.strftime("%Y-%m") if self.created_at else ""

    def __repr__(self) -> str:
        return f"<PaymentRequest {self.id} {self.status} {self.amount}>"
