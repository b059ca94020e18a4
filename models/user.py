"""Account that owns refresh token families.

Refresh token records reference users by id only; the token store never
joins against this table.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import Column, String, JSON
from sqlalchemy.orm import Session

from models.base_model import Base, BaseModel
from utils.security import hash_password, verify_password

DEFAULT_ROLES = ("user",)


class User(BaseModel, Base):
    __tablename__ = "users"
    f_name = Column(String(255), nullable=True)
    l_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    roles = Column(JSON, nullable=True, default=lambda: list(DEFAULT_ROLES))

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    @password.setter
    def password(self, raw: str) -> None:
        self.password_hash = hash_password(raw)

    def check_password(self, raw: str) -> bool:
        return verify_password(raw, self.password_hash)

    def has_role(self, role: str) -> bool:
        return role in (self.roles or DEFAULT_ROLES)

    def token_claims(self) -> dict:
        """Claims carried by every token issued to this user."""
        return {"email": self.email, "roles": list(self.roles or DEFAULT_ROLES)}

    @classmethod
    def find_by_email(cls, session: Session, email: str) -> Optional["User"]:
        return session.query(cls).filter(cls.email == email).first()
