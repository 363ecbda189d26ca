# pagamentos_app/payment_methods.py
# -*- coding: utf-8 -*-
"""Meios de pagamento: PIX ou conta bancária (um dos dois, nunca nenhum)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Union

from .errors import ValidationError

PIX = "pix"
BANK = "bank"


@dataclass(frozen=True)
class Pix:
    key: str
    kind = PIX

    def describe(self) -> str:
        return f"PIX: {self.key}"


@dataclass(frozen=True)
class BankTransfer:
    bank_name: str
    agency: str
    account: str
    kind = BANK

    def describe(self) -> str:
        return f"{self.bank_name} - Ag. {self.agency} - C/C {self.account}"


PaymentMethod = Union[Pix, BankTransfer]


@dataclass(frozen=True)
class ParsedMethod:
    method: PaymentMethod
    discarded_bank: bool = False   # usuário preencheu os dois; ficou o PIX


def _clean(data: Mapping, key: str) -> str:
    return (data.get(key) or "").strip()


def parse_payment_method(data: Mapping) -> ParsedMethod:
    """
    Lê ``pix_key`` / ``bank_name`` / ``bank_agency`` / ``bank_account`` de um
    formulário. PIX tem prioridade; conta bancária só vale completa.
    """
    pix = _clean(data, "pix_key")
    bank = (_clean(data, "bank_name"), _clean(data, "bank_agency"), _clean(data, "bank_account"))
    bank_complete = all(bank)

    if pix:
        return ParsedMethod(Pix(pix), discarded_bank=any(bank))
    if bank_complete:
        return ParsedMethod(BankTransfer(*bank))
    if any(bank):
        raise ValidationError("Dados bancários incompletos: informe banco, agência e conta.")
    raise ValidationError("Preencha ao menos um dos métodos de pagamento (PIX ou conta bancária).")


def method_from_columns(kind: Optional[str], *, pix_key=None, bank_name=None,
                        bank_agency=None, bank_account=None) -> Optional[PaymentMethod]:
    if kind == PIX and pix_key:
        return Pix(pix_key)
    if kind == BANK and bank_name and bank_agency and bank_account:
        return BankTransfer(bank_name, bank_agency, bank_account)
    return None


def method_columns(method: PaymentMethod) -> dict:
    """Colunas a gravar em ``PaymentRequest``; zera as do outro tipo."""
    if isinstance(method, Pix):
        return dict(payment_method_kind=PIX, pix_key=method.key,
                    bank_name=None, bank_agency=None, bank_account=None)
    return dict(payment_method_kind=BANK, pix_key=None, bank_name=method.bank_name,
                bank_agency=method.agency, bank_account=method.account)
