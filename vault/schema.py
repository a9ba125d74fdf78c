"""
Table definitions for the credential store.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .models import Account, Platform, PlatformType


class Base(DeclarativeBase):
    pass


class PlatformTypeColumn(TypeDecorator):
    """Stores PlatformType as its display name; unknown strings load as None."""

    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return value.to_string()

    def process_result_value(self, value, dialect):
        return PlatformType.from_string(value)


class PlatformRow(Base):
    __tablename__ = "platform"
    __table_args__ = (
        Index("idx_platform_name", "name", unique=True),
        Index("idx_platform_type", "type"),
        Index("idx_platform_order", "sort_index", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[Optional[PlatformType]] = mapped_column(PlatformTypeColumn(), nullable=True)
    # Smaller values are shown first
    sort_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    accounts: Mapped[List["AccountRow"]] = relationship(
        "AccountRow",
        back_populates="platform",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_platform(self) -> Platform:
        return Platform(id=self.id, name=self.name, type=self.type, sort_index=self.sort_index)


class AccountRow(Base):
    __tablename__ = "account"
    __table_args__ = (
        Index("idx_account_platform", "platform_id"),
        Index("idx_account_login_name", "login_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    platform_id: Mapped[int] = mapped_column(ForeignKey("platform.id", ondelete="CASCADE"), nullable=False)

    remark: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    login_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    password: Mapped[str] = mapped_column(Text, nullable=False)
    pay_password: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    id_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    platform: Mapped[PlatformRow] = relationship("PlatformRow", back_populates="accounts")

    def to_account(self) -> Account:
        return Account(
            id=self.id,
            platform_id=self.platform_id,
            remark=self.remark,
            login_name=self.login_name,
            password=self.password,
            pay_password=self.pay_password,
            phone=self.phone,
            email=self.email,
            id_number=self.id_number,
        )


ACCOUNT_FIELDS = ("platform_id", "remark", "login_name", "password", "pay_password", "phone", "email", "id_number")
