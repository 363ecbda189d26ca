# pagamentos_app/formatting.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

CURRENCY_SYMBOLS = {"BRL": "R$", "USD": "US$", "EUR": "€"}
CENT = Decimal("0.01")


def fmt_number(v) -> str:
    """1234.5 -> '1.234,50'"""
    try:
        return f"{Decimal(v or 0):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    except (InvalidOperation, TypeError, ValueError):
        return "0,00"


def format_money(v, currency: str = "BRL") -> str:
    symbol = CURRENCY_SYMBOLS.get((currency or "BRL").upper(), currency)
    return f"{symbol} {fmt_number(v)}"


def format_date(value, fmt: str = "%d/%m/%Y") -> str:
    if value is None or value == "":
        return ""
    if isinstance(value, (datetime, date)):
        return value.strftime(fmt)
    return str(value)


def parse_amount(raw) -> Decimal:
    """Aceita '1.234,56', '1234.56', 'R$ 150,75'. Sempre > 0, duas casas."""
    if isinstance(raw, (int, float, Decimal)):
        text = str(raw)
    else:
        text = (raw or "").replace("R$", "").replace(" ", "").strip()
        if "," in text and "." in text:
            if text.rfind(",") > text.rfind("."):
                text = text.replace(".", "").replace(",", ".")
            else:
                text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        raise ValidationError("Informe um valor válido.") from None
    if not value.is_finite():
        raise ValidationError("Informe um valor válido.")
    value = value.quantize(CENT, rounding=ROUND_HALF_UP)
    if value <= 0:
        raise ValidationError("O valor deve ser maior que zero.")
    return value


def time_since(value, now: datetime | None = None) -> str:
    """'3 dias', '5 minutos'... (o template acrescenta 'atrás')."""
    if value is None:
        return ""
    now = now or datetime.utcnow()
    seconds = int((now - value).total_seconds())
    for size, unit in ((31536000, "anos"), (2592000, "meses"), (86400, "dias"),
                       (3600, "horas"), (60, "minutos")):
        if seconds / size > 1:
            return f"{seconds // size} {unit}"
    return f"{max(seconds, 0)} segundos"
