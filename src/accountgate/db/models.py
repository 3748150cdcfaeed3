"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Three tables:

- accounts        — credential root (email + bcrypt hash)
- users           — named identities, many per account, globally unique username
- refresh_tokens  — one row per outstanding refresh token; the token string
                    itself is the primary key

Ids are opaque strings so the same values travel in JWT claims unchanged.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def new_id() -> str:
    return str(uuid.uuid4())


class Account(Base):
    """Credential root. Owns one or more Users.

    Learn: The password lives on the Account, not the User. Every User
    on an Account logs in with the same email/password pair.
    """

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    salt: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    users: Mapped[list["User"]] = relationship(back_populates="account")
    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(
        back_populates="account"
    )


class User(Base):
    """A named identity under exactly one Account."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )
    roles: Mapped[str] = mapped_column(String(255), nullable=False, default="user")
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    account: Mapped["Account"] = relationship(back_populates="users")


class RefreshToken(Base):
    """An outstanding, not-yet-consumed refresh token."""

    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(Text, primary_key=True)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    account: Mapped["Account"] = relationship(back_populates="refresh_tokens")
