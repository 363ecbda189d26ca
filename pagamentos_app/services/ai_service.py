# pagamentos_app/services/ai_service.py
# -*- coding: utf-8 -*-
"""
Assistente de IA (opcional) via Anthropic Messages API.

Sem ``ANTHROPIC_API_KEY`` o cliente não é criado e todas as funções
devolvem o texto/valor de fallback, sem chamar nada. Erros do provedor
são registrados no log e viram o mesmo fallback (sem retry).
"""
from __future__ import annotations

import base64
import json
from typing import Iterable, Optional

import anthropic
from flask import current_app

UNAVAILABLE = "Funcionalidade de IA indisponível. Chave de API não configurada."
RISK_FAILED = "Não foi possível realizar a análise de risco."
SUMMARY_FAILED = "Não foi possível gerar o resumo."
SUMMARY_EMPTY = "Nenhum dado disponível para gerar um resumo."

INVOICE_PROMPT = (
    "A partir da imagem da fatura, extraia as seguintes informações em formato JSON: "
    "o nome do beneficiário (recipientName), o valor total (amount como um número), "
    "e uma breve descrição do serviço/produto (description). Responda apenas com o JSON."
)
CATEGORY_PROMPT = (
    'Sugira uma categoria de despesa única e concisa para a seguinte descrição: "{description}". '
    "Responda apenas com o nome da categoria. Exemplos: 'Software', 'Viagens e Hospedagem', "
    "'Material de Escritório', 'Serviços de Terceiros'."
)
RISK_PROMPT = """Analise a seguinte solicitação de pagamento para potenciais riscos de fraude ou erros e forneça um breve resumo. Considere o valor, o beneficiário e a descrição.
- Valor: {amount} {currency}
- Beneficiário: {recipient}
- Descrição: {description}
- Categoria: {category}

Seja conciso na sua análise."""
SUMMARY_PROMPT = """Com base nos seguintes dados de transações (valores em BRL), gere um resumo executivo em 2-3 frases curtas sobre a saúde financeira do período. Destaque os principais pontos, como a categoria com mais gastos e a proporção de pagamentos pendentes.
Dados: {data}"""

IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")


def init_ai(app):
    key = app.config.get("ANTHROPIC_API_KEY") or ""
    if key:
        app.extensions["ai"] = anthropic.Anthropic(api_key=key)
    else:
        app.extensions["ai"] = None
        app.logger.warning("ANTHROPIC_API_KEY não configurada. As funcionalidades de IA estarão desativadas.")


def get_ai():
    return current_app.extensions.get("ai")


def is_available() -> bool:
    return get_ai() is not None


def _strip_fences(text: str) -> str:
    text = (text or "").strip()
    if text.startswith("```"):
        first_nl = text.index("\n") if "\n" in text else len(text)
        text = text[first_nl + 1:]
        if text.endswith("```"):
            text = text[:-3]
    return text.strip()


def _ask(client, content) -> str:
    msg = client.messages.create(
        model=current_app.config.get("AI_MODEL", "claude-sonnet-4-20250514"),
        max_tokens=int(current_app.config.get("AI_MAX_TOKENS", 1024)),
        messages=[{"role": "user", "content": content}],
    )
    return "".join(getattr(block, "text", "") for block in msg.content).strip()


def _attachment(data: bytes, mime_type: str) -> dict:
    b64 = base64.standard_b64encode(data).decode("utf-8")
    if mime_type == "application/pdf":
        return {"type": "document", "source": {"type": "base64", "media_type": "application/pdf", "data": b64}}
    media = mime_type if mime_type in IMAGE_TYPES else "image/png"
    return {"type": "image", "source": {"type": "base64", "media_type": media, "data": b64}}


def extract_invoice_details(data: bytes, mime_type: str, client=None) -> Optional[dict]:
    """{'recipientName', 'amount', 'description'} ou None."""
    client = client or get_ai()
    if client is None:
        current_app.logger.warning("IA indisponível: extração de fatura ignorada.")
        return None
    try:
        text = _ask(client, [_attachment(data, mime_type), {"type": "text", "text": INVOICE_PROMPT}])
        parsed = json.loads(_strip_fences(text))
    except Exception:
        current_app.logger.exception("Falha na extração de dados da fatura")
        return None
    if not isinstance(parsed, dict):
        return None
    return {k: parsed.get(k) for k in ("recipientName", "amount", "description")}


def suggest_category(description: str, client=None) -> Optional[str]:
    client = client or get_ai()
    if client is None:
        current_app.logger.warning("IA indisponível: sugestão de categoria ignorada.")
        return None
    if not (description or "").strip():
        return None
    try:
        return _ask(client, CATEGORY_PROMPT.format(description=description.strip())) or None
    except Exception:
        current_app.logger.exception("Falha na sugestão de categoria")
        return None


def analyze_risk(req, client=None) -> str:
    client = client or get_ai()
    if client is None:
        return UNAVAILABLE
    prompt = RISK_PROMPT.format(
        amount=f"{req.amount:.2f}", currency=req.currency or "BRL",
        recipient=req.recipient_full_name or "N/A", description=req.description or "",
        category=req.category or "N/A",
    )
    try:
        return _ask(client, prompt) or RISK_FAILED
    except Exception:
        current_app.logger.exception("Falha na análise de risco da solicitação %s", req.id)
        return RISK_FAILED


def generate_summary(requests: Iterable, client=None) -> str:
    client = client or get_ai()
    if client is None:
        return UNAVAILABLE
    requests = list(requests)
    if not requests:
        return SUMMARY_EMPTY
    data = [{"amount": float(r.amount or 0), "status": r.status, "category": r.category or "Outros"}
            for r in requests]
    try:
        return _ask(client, SUMMARY_PROMPT.format(data=json.dumps(data, ensure_ascii=False))) or SUMMARY_FAILED
    except Exception:
        current_app.logger.exception("Falha ao gerar o resumo")
        return SUMMARY_FAILED
