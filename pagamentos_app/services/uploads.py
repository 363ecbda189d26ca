# pagamentos_app/services/uploads.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import os
from pathlib import Path
from typing import Optional

from flask import current_app
from werkzeug.utils import secure_filename

from ..errors import ValidationError

ALLOWED = {".pdf", ".png", ".jpg", ".jpeg", ".webp"}
MIME_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}


def upload_root() -> Path:
    root = Path(current_app.config.get("UPLOAD_FOLDER", "./uploads"))
    root.mkdir(parents=True, exist_ok=True)
    return root


def mime_for(filename: str) -> str:
    return MIME_TYPES.get(os.path.splitext(filename or "")[1].lower(), "application/octet-stream")


def has_file(file) -> bool:
    return bool(file is not None and getattr(file, "filename", ""))


def save_upload(file, request_id: str, kind: str) -> tuple[str, str]:
    """
    Grava ``file`` (FileStorage) em ``UPLOAD_FOLDER/<request_id>/<kind>/``.
    Retorna (caminho relativo à raiz, nome original).
    """
    if not has_file(file):
        raise ValidationError("Nenhum arquivo enviado.")
    original = file.filename
    safe_name = secure_filename(original) or f"{kind}.bin"
    stem, ext = os.path.splitext(safe_name)
    if ext.lower() not in ALLOWED:
        raise ValidationError("Formato de arquivo não suportado. Envie PDF ou imagem (PNG, JPG, WEBP).")

    folder = upload_root() / secure_filename(request_id) / kind
    folder.mkdir(parents=True, exist_ok=True)
    target = folder / safe_name
    i = 2
    while target.exists():
        target = folder / f"{stem}_{i}{ext}"
        i += 1
    file.save(str(target))
    current_app.logger.info("upload %s gravado em %s", kind, target)
    return target.relative_to(upload_root()).as_posix(), original


def resolve_upload(relative: Optional[str]) -> Optional[Path]:
    """Caminho absoluto de um upload, ou None se não existir / sair da raiz."""
    if not relative:
        return None
    root = upload_root().resolve()
    p = (root / relative).resolve()
    if root not in p.parents or not p.is_file():
        return None
    return p
