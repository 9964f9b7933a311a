from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey

from .authz import Base  # reuse same metadata


class AuditTrailEntry(Base):
    """One status change of a cash request. Rows are only ever inserted."""
    __tablename__ = 'cash_request_audit_entries'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cash_request_id: Mapped[int] = mapped_column(ForeignKey('cash_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    from_status: Mapped[str] = mapped_column(String(32), nullable=False)
    to_status: Mapped[str] = mapped_column(String(32), nullable=False)
    performed_by: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    performed_by_name: Mapped[Optional[str]] = mapped_column(String(128))
    actor_role: Mapped[str] = mapped_column(String(32), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    cash_request = relationship('CashRequest', back_populates='audit_trail')
