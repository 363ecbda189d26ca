# pagamentos_app/services/exports.py
# -*- coding: utf-8 -*-
"""
Relatórios do Financeiro: CSV (Excel pt-BR), calendário ICS e PDF.

Todos partem da mesma seleção: solicitações PAGAS criadas dentro do
período (dia final inclusivo).
"""
from __future__ import annotations

import csv
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from io import BytesIO, StringIO
from typing import Iterable, Optional

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen.canvas import Canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..errors import ValidationError
from ..formatting import fmt_number, format_date, format_money
from ..lifecycle import Status
from ..models import PaymentRequest

NA = "N/A"
CSV_HEADERS = ["ID", "Data de Criação", "Data de Pagamento", "Solicitante", "Evento",
               "Categoria", "Valor", "Beneficiário", "Descrição"]
ICS_DOMAIN = "sistemadepagamentos.com"
ICS_LINE_OCTETS = 75


def parse_day(raw: Optional[str]) -> Optional[date]:
    raw = (raw or "").strip()
    if not raw:
        return None
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    raise ValidationError("Data inválida. Use o formato AAAA-MM-DD.")


def paid_in_period(start: Optional[date] = None, end: Optional[date] = None) -> list:
    q = PaymentRequest.query.filter(PaymentRequest.status == Status.PAID.value)
    if start:
        q = q.filter(PaymentRequest.created_at >= datetime.combine(start, time.min))
    if end:
        # até o fim do dia final
        q = q.filter(PaymentRequest.created_at < datetime.combine(end + timedelta(days=1), time.min))
    return q.order_by(PaymentRequest.created_at).all()


def _name(obj) -> str:
    return getattr(obj, "name", None) or NA


# ---------------------------------------------------------------- CSV
def _csv_amount(v) -> str:
    return f"{Decimal(v or 0):.2f}".replace(".", ",")


def _quoted(text: Optional[str]) -> str:
    return '"' + (text or "").replace('"', '""') + '"'


def _csv_row(fields) -> str:
    buf = StringIO()
    csv.writer(buf, delimiter=";", lineterminator="\n").writerow(fields)
    return buf.getvalue()[:-1]


def to_csv(requests: Iterable) -> str:
    lines = [_csv_row(CSV_HEADERS)]
    for r in requests:
        row = _csv_row([
            r.id,
            format_date(r.created_at) or NA,
            format_date(r.paid_at) or NA,
            _name(r.requester),
            _name(r.event),
            r.category or NA,
            _csv_amount(r.amount),
            r.recipient_full_name or NA,
        ])
        # descrição sempre entre aspas
        lines.append(row + ";" + _quoted(r.description))
    return "\n".join(lines)


# ---------------------------------------------------------------- ICS
def _ics_text(text: str) -> str:
    return (text or "").replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,").replace("\n", "\\n")


def _fold(line: str) -> str:
    """Dobra linhas acima de 75 octetos; a continuação começa com um espaço."""
    if len(line.encode("utf-8")) <= ICS_LINE_OCTETS:
        return line
    parts, chunk, size, limit = [], [], 0, ICS_LINE_OCTETS
    for ch in line:
        n = len(ch.encode("utf-8"))
        if size + n > limit:
            parts.append("".join(chunk))
            chunk, size, limit = [], 0, ICS_LINE_OCTETS - 1
        chunk.append(ch)
        size += n
    parts.append("".join(chunk))
    return "\r\n ".join(parts)


def to_ics(requests: Iterable, now: Optional[datetime] = None) -> str:
    """Um VEVENT de dia inteiro por pagamento. Sem pagamentos -> ValidationError."""
    paid = [r for r in requests if r.status == Status.PAID.value and r.paid_at]
    if not paid:
        raise ValidationError("Não há pagamentos efetuados no período selecionado para exportar para o calendário.")
    stamp = (now or datetime.utcnow()).strftime("%Y%m%dT%H%M%SZ")
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//SistemaDePagamentos//PT"]
    for r in paid:
        day = r.paid_at.strftime("%Y%m%d")
        description = "\\n".join(_ics_text(part) for part in (
            f"Valor: {format_money(r.amount, r.currency)}",
            f"Descrição: {r.description or ''}",
            f"Evento: {_name(r.event)}",
            f"Solicitante: {_name(r.requester)}",
        ))
        lines += [
            "BEGIN:VEVENT",
            f"UID:{r.id}@{ICS_DOMAIN}",
            f"DTSTAMP:{stamp}",
            f"DTSTART;VALUE=DATE:{day}",
            f"DTEND;VALUE=DATE:{day}",
            f"SUMMARY:Pagamento: {_ics_text(r.recipient_full_name or NA)}",
            f"DESCRIPTION:{description}",
            "END:VEVENT",
        ]
    lines.append("END:VCALENDAR")
    return "\r\n".join(_fold(line) for line in lines) + "\r\n"


# ---------------------------------------------------------------- PDF
def to_frame(requests: Iterable) -> pd.DataFrame:
    rows = [{
        "id": r.id,
        "criado": r.created_at,
        "pago": r.paid_at,
        "solicitante": _name(r.requester),
        "evento": _name(r.event),
        "categoria": r.category or NA,
        "beneficiario": r.recipient_full_name or NA,
        "valor": float(r.amount or 0),
    } for r in requests]
    return pd.DataFrame(rows, columns=["id", "criado", "pago", "solicitante", "evento",
                                       "categoria", "beneficiario", "valor"])


def totals_by_event(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=["evento", "quantidade", "total"])
    out = (df.groupby("evento", as_index=False)
             .agg(quantidade=("id", "count"), total=("valor", "sum"))
             .sort_values("total", ascending=False))
    return out.reset_index(drop=True)


def _styles():
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("title", parent=base["Heading1"], fontSize=16, leading=20, spaceAfter=6),
        "subtitle": ParagraphStyle("subtitle", parent=base["Normal"], fontSize=9, leading=12, textColor=colors.grey),
        "cell": ParagraphStyle("cell", parent=base["Normal"], fontSize=8, leading=10),
        "section": ParagraphStyle("section", parent=base["Heading3"], fontSize=12, leading=14, spaceBefore=8),
        "total": ParagraphStyle("total", parent=base["Heading3"], fontSize=12, leading=14, spaceBefore=6),
    }


def _footer(canvas: Canvas, doc):
    w, h = A4
    y = 12 * mm
    canvas.setStrokeColor(colors.lightgrey)
    canvas.setLineWidth(0.5)
    canvas.line(15 * mm, y + 6 * mm, w - 15 * mm, y + 6 * mm)
    canvas.setFont("Helvetica", 8)
    ts = datetime.now().strftime("%d/%m/%Y %H:%M:%S")
    canvas.drawRightString(w - 15 * mm, y + 2 * mm, f"Gerado em {ts}  •  Página {doc.page}")


def _grid(data, col_widths):
    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(TableStyle([
        ("FONT", (0, 0), (-1, -1), "Helvetica", 8),
        ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 8),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("BACKGROUND", (0, 0), (-1, 0), colors.whitesmoke),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ("ALIGN", (-1, 1), (-1, -1), "RIGHT"),
        ("LEFTPADDING", (0, 0), (-1, -1), 4),
        ("RIGHTPADDING", (0, 0), (-1, -1), 4),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    return table


def to_pdf(requests: Iterable, start: Optional[date] = None, end: Optional[date] = None) -> bytes:
    requests = list(requests)
    df = to_frame(requests)
    st = _styles()

    buff = BytesIO()
    doc = SimpleDocTemplate(buff, pagesize=A4, leftMargin=15 * mm, rightMargin=15 * mm,
                            topMargin=18 * mm, bottomMargin=18 * mm, title="Relatório de Pagamentos")

    periodo = f"{format_date(start) or 'início'} a {format_date(end) or 'hoje'}"
    story = [
        Paragraph("Relatório de Pagamentos", st["title"]),
        Paragraph(f"Período: {periodo}  •  {len(requests)} pagamento(s)", st["subtitle"]),
        Spacer(1, 4 * mm),
    ]

    rows = [["Criado", "Pago", "Solicitante", "Evento", "Beneficiário", "Valor"]]
    for r in requests:
        rows.append([
            format_date(r.created_at), format_date(r.paid_at) or NA,
            Paragraph(_name(r.requester), st["cell"]), Paragraph(_name(r.event), st["cell"]),
            Paragraph(r.recipient_full_name or NA, st["cell"]), format_money(r.amount, r.currency),
        ])
    story.append(_grid(rows, [20 * mm, 20 * mm, 32 * mm, 45 * mm, 38 * mm, 25 * mm]))

    totals = totals_by_event(df)
    story.append(Paragraph("Totais por centro de custo", st["section"]))
    trows = [["Centro de custo", "Qtde", "Total"]]
    for item in totals.itertuples(index=False):
        trows.append([Paragraph(str(item.evento), st["cell"]), str(item.quantidade), fmt_number(item.total)])
    story.append(_grid(trows, [120 * mm, 20 * mm, 40 * mm]))

    story.append(Paragraph(f"Total pago: <b>R$ {fmt_number(df['valor'].sum() if not df.empty else 0)}</b>",
                           st["total"]))

    doc.build(story, onFirstPage=_footer, onLaterPages=_footer)
    pdf = buff.getvalue()
    buff.close()
    return pdf
