# pagamentos_app/services/workflow.py
# -*- coding: utf-8 -*-
"""
Aplica a máquina de estados (``lifecycle``) às solicitações persistidas.

Cada operação: carrega a solicitação, valida ação/papel/versão, grava as
alterações e as notificações no mesmo commit e registra no log.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Mapping, Optional

from flask import current_app

from .. import lifecycle
from ..errors import ConcurrentUpdate, ValidationError
from ..formatting import format_money, parse_amount
from ..lifecycle import Action, Audience, Role
from ..models import CURRENCIES, User
from ..payment_methods import method_columns, parse_payment_method
from .store import STALE_MESSAGE, Store, get_store
from .uploads import has_file, save_upload

REQUEST_NOT_FOUND = "Solicitação não encontrada."
MISSING_FIELDS = "Por favor, preencha todos os campos obrigatórios."
MISSING_SUPPLIER_FIELDS = "Preencha os dados pessoais obrigatórios."
DISCARDED_BANK = "Dados bancários descartados: o PIX informado será usado para o pagamento."
NO_PAYMENT_METHOD = "Atenção: esta solicitação não tem meio de pagamento cadastrado."


@dataclass
class Outcome:
    request: object
    warnings: list = field(default_factory=list)
    notified: int = 0


def _clean(data: Mapping, key: str) -> str:
    return (data.get(key) or "").strip()


class RequestWorkflow:
    def __init__(self, store: Store, *, manager_approval: bool = True,
                 logger: Optional[logging.Logger] = None):
        self.store = store
        self.manager_approval = manager_approval
        self.log = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------ util
    def get_request(self, request_id):
        return self.store.get_or_404("payment_requests", request_id, REQUEST_NOT_FOUND)

    def _check_version(self, req, expected_version) -> None:
        if expected_version in (None, ""):
            return
        try:
            expected = int(expected_version)
        except (TypeError, ValueError):
            raise ValidationError("Versão da solicitação inválida.") from None
        if expected != req.version:
            raise ConcurrentUpdate(STALE_MESSAGE, expected=expected, current=req.version)

    def _resolve(self, req, action: Action, actor: Optional[User]):
        role = actor.role_enum if actor is not None else None
        is_owner = actor is not None and actor.id == req.requester_id
        return lifecycle.resolve(req.status_enum, action, role, is_owner=is_owner,
                                 manager_approval=self.manager_approval)

    def _users_with_role(self, role: Role) -> list[int]:
        rows = self.store.query("users", User.role == role.value, User.active.is_(True), order_by=User.id)
        return [u.id for u in rows]

    def _message(self, rule, audience: Audience, req, actor, reason: str = "") -> str:
        valor = format_money(req.amount, req.currency)
        requester = req.requester.name if req.requester else "—"
        action = rule.action
        if action is Action.CREATE:
            if audience is Audience.FINANCE:
                return f"Nova solicitação de {valor} de {requester} aguardando pagamento."
            return f"Nova solicitação de {valor} de {requester} aguardando sua aprovação."
        if action is Action.APPROVE:
            if audience is Audience.FINANCE:
                return f"Solicitação de {valor} de {requester} aprovada e aguardando pagamento."
            return f"Sua solicitação de {valor} foi aprovada por {actor.name} e enviada ao Financeiro."
        if action is Action.REJECT:
            return f"Sua solicitação de {valor} foi rejeitada pelo {actor.role_label}. Motivo: {reason}"
        if action is Action.REJECT_DATA:
            return f"Os dados do fornecedor da solicitação de {valor} foram rejeitados. Motivo: {reason}"
        if action is Action.MARK_PAID:
            return f"Sua solicitação de {valor} para {req.recipient_full_name or '—'} foi paga."
        return f"Solicitação de {valor} atualizada: {req.status_label}."

    def _notify(self, rule, req, actor, reason: str = "") -> int:
        """Cria uma notificação por destinatário; cada público recebe a sua mensagem."""
        managers = finance = None
        total = 0
        for audience in rule.notify:
            if audience is Audience.MANAGERS and managers is None:
                managers = self._users_with_role(Role.MANAGER)
            if audience is Audience.FINANCE and finance is None:
                finance = self._users_with_role(Role.FINANCE)
            ids = lifecycle.recipients_for(
                replace(rule, notify=(audience,)), requester_id=req.requester_id,
                manager_ids=managers or [], finance_ids=finance or [],
            )
            if not ids and audience is not Audience.REQUESTER:
                self.log.warning("solicitação %s: nenhum usuário ativo em %s para notificar", req.id, audience.value)
            message = self._message(rule, audience, req, actor, reason)
            for user_id in ids:
                self.store.create("notifications", user_id=user_id, request_id=req.id, message=message)
            total += len(ids)
        return total

    def _event_for(self, actor: User, raw_id):
        try:
            event_id = int(raw_id)
        except (TypeError, ValueError):
            raise ValidationError(MISSING_FIELDS) from None
        event = self.store.get("events", event_id)
        if event is None or not event.accepts_requests_from(actor.id):
            raise ValidationError("Centro de custo indisponível para novas solicitações.")
        return event

    # --------------------------------------------------------------- criação
    def create_request(self, actor: User, data: Mapping, *, external: bool = False, invoice=None) -> Outcome:
        action = Action.CREATE_EXTERNAL if external else Action.CREATE
        rule = lifecycle.resolve(None, action, actor.role_enum, manager_approval=self.manager_approval)

        event = self._event_for(actor, data.get("event_id"))
        description = _clean(data, "description")
        if not description:
            raise ValidationError(MISSING_FIELDS)
        amount = parse_amount(data.get("amount"))
        currency = (_clean(data, "currency") or "BRL").upper()
        if currency not in CURRENCIES:
            raise ValidationError("Moeda inválida.")

        fields = dict(
            requester_id=actor.id, event_id=event.id, amount=amount, currency=currency,
            description=description, category=_clean(data, "category") or None,
            status=rule.target.value, is_external=external,
        )
        warnings: list[str] = []
        if not external:
            name = _clean(data, "recipient_full_name")
            if not name:
                raise ValidationError(MISSING_FIELDS)
            parsed = parse_payment_method(data)
            if parsed.discarded_bank:
                warnings.append(DISCARDED_BANK)
            fields.update(
                recipient_full_name=name,
                recipient_cpf=_clean(data, "recipient_cpf") or None,
                recipient_rg=_clean(data, "recipient_rg") or None,
                recipient_email=_clean(data, "recipient_email") or None,
                **method_columns(parsed.method),
            )

        with self.store.transaction():
            req = self.store.create("payment_requests", **fields)
            if has_file(invoice):
                path, original = save_upload(invoice, req.id, "invoice")
                self.store.update(req, invoice_path=path, invoice_filename=original)
            notified = self._notify(rule, req, actor)

        self.log.info("solicitação %s criada por %s (%s) -> %s", req.id, actor.email, action.value, req.status)
        return Outcome(req, warnings, notified)

    # ------------------------------------------------------------ fornecedor
    def submit_supplier_data(self, request_id, data: Mapping, *, invoice=None) -> Outcome:
        req = self.get_request(request_id)
        rule = self._resolve(req, Action.SUPPLIER_SUBMIT, None)

        name, cpf, email = (_clean(data, k) for k in ("recipient_full_name", "recipient_cpf", "recipient_email"))
        if not (name and cpf and email):
            raise ValidationError(MISSING_SUPPLIER_FIELDS)
        parsed = parse_payment_method(data)
        warnings = [DISCARDED_BANK] if parsed.discarded_bank else []

        with self.store.transaction():
            self.store.update(
                req, recipient_full_name=name, recipient_cpf=cpf, recipient_email=email,
                recipient_rg=_clean(data, "recipient_rg") or None,
                status=rule.target.value, **method_columns(parsed.method),
            )
            if has_file(invoice):
                path, original = save_upload(invoice, req.id, "invoice")
                self.store.update(req, invoice_path=path, invoice_filename=original)
            notified = self._notify(rule, req, None)

        self.log.info("fornecedor enviou dados da solicitação %s", req.id)
        return Outcome(req, warnings, notified)

    def confirm_supplier_data(self, actor: User, request_id, *, expected_version=None) -> Outcome:
        return self._simple(actor, request_id, Action.CONFIRM_DATA, expected_version)

    def reject_supplier_data(self, actor: User, request_id, reason: Optional[str], *, expected_version=None) -> Outcome:
        return self._rejection(actor, request_id, Action.REJECT_DATA, reason, expected_version)

    # ------------------------------------------------------ gestor/financeiro
    def approve(self, actor: User, request_id, *, expected_version=None) -> Outcome:
        return self._simple(actor, request_id, Action.APPROVE, expected_version,
                            approver_id=actor.id, approved_at=datetime.utcnow())

    def reject(self, actor: User, request_id, reason: Optional[str], *, expected_version=None) -> Outcome:
        return self._rejection(actor, request_id, Action.REJECT, reason, expected_version)

    def mark_paid(self, actor: User, request_id, proof, *, expected_version=None) -> Outcome:
        """``proof`` é um FileStorage (upload) ou uma referência já armazenada (str)."""
        req = self.get_request(request_id)
        rule = self._resolve(req, Action.MARK_PAID, actor)
        self._check_version(req, expected_version)
        uploaded = has_file(proof)
        lifecycle.require_proof(proof.filename if uploaded else proof)
        warnings = [] if req.payment_method is not None else [NO_PAYMENT_METHOD]

        with self.store.transaction():
            if uploaded:
                path, original = save_upload(proof, req.id, "proof")
            else:
                path, original = proof.strip(), None
            self.store.update(req, status=rule.target.value, paid_at=datetime.utcnow(),
                              proof_of_payment=path, proof_filename=original)
            notified = self._notify(rule, req, actor)

        self.log.info("solicitação %s paga por %s", req.id, actor.email)
        return Outcome(req, warnings, notified)

    # ------------------------------------------------------------- internos
    def _simple(self, actor, request_id, action: Action, expected_version, **changes) -> Outcome:
        req = self.get_request(request_id)
        rule = self._resolve(req, action, actor)
        self._check_version(req, expected_version)
        with self.store.transaction():
            self.store.update(req, status=rule.target.value, **changes)
            notified = self._notify(rule, req, actor)
        self.log.info("solicitação %s: %s por %s -> %s", req.id, action.value, actor.email, req.status)
        return Outcome(req, [], notified)

    def _rejection(self, actor, request_id, action: Action, reason, expected_version) -> Outcome:
        req = self.get_request(request_id)
        rule = self._resolve(req, action, actor)
        self._check_version(req, expected_version)
        reason = lifecycle.require_reason(reason)
        with self.store.transaction():
            self.store.update(req, status=rule.target.value, reason_for_rejection=reason,
                              rejected_by_role=actor.role, rejected_at=datetime.utcnow())
            notified = self._notify(rule, req, actor, reason)
        self.log.info("solicitação %s rejeitada por %s (%s)", req.id, actor.email, actor.role)
        return Outcome(req, [], notified)

    # ---------------------------------------------------------- link público
    @staticmethod
    def supplier_link(req, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/?mode=supplier&id={req.id}"

    def allowed_actions(self, req, actor: Optional[User]) -> set:
        if actor is None:
            return set()
        return lifecycle.allowed_actions(
            req.status_enum, actor.role_enum, is_owner=actor.id == req.requester_id,
            manager_approval=self.manager_approval,
        )


def get_workflow() -> RequestWorkflow:
    return RequestWorkflow(
        get_store(),
        manager_approval=bool(current_app.config.get("MANAGER_APPROVAL_ENABLED", True)),
        logger=current_app.logger,
    )
