"""Account model -- one row per registered standard account."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from studio.models.base import Base


class Account(Base):
    """Administrators are synthesized at sign-in and never stored here."""

    __tablename__ = "accounts"

    identifier: Mapped[str] = mapped_column(String(320), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(80), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="standard", nullable=False)
    balance: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    has_ever_purchased: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    sign_in_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Legacy fixed-quota fields; NULL on rows written before schema v2.
    plan_group: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    max_generations: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_edits: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    generation_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    edit_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    schema_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
        CheckConstraint("role = 'standard'", name="ck_accounts_role_standard"),
    )
