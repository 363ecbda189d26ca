# pagamentos_app/models/user.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from ..extensions import db, bcrypt
from ..lifecycle import Role

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(180), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=Role.REQUESTER.value, index=True)  # REQUESTER | MANAGER | FINANCE
    active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    requests = db.relationship("PaymentRequest", backref="requester", lazy="dynamic",
                               foreign_keys="PaymentRequest.requester_id")

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    @property
    def role_label(self) -> str:
        return self.role_enum.label

    def set_password(self, raw: str) -> None:
        self.password_hash = bcrypt.generate_password_hash(raw).decode("utf-8")

    def check_password(self, raw: str) -> bool:
        if not raw or not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, raw)

    @classmethod
    def by_email(cls, email: str | None):
        email = (email or "").strip().lower()
        if not email:
            return None
        return cls.query.filter(db.func.lower(cls.email) == email).first()
