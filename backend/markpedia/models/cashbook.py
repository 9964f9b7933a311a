from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Date, DateTime, Numeric, text
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from .authz import Base


class CashbookEntry(Base):
    __tablename__ = 'cashbook_entries'
    TYPE_INCOME = 'Income'
    TYPE_EXPENSE = 'Expense'
    ALL_TYPES = (TYPE_INCOME, TYPE_EXPENSE)
    METHODS = ('Cash', 'Bank', 'Mobile Money')
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ref_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount_in: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0'))
    amount_out: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0'))
    method: Mapped[str] = mapped_column(String(16), nullable=False)
    entered_by: Mapped[int] = mapped_column(Integer, nullable=False)
    approved_by: Mapped[Optional[str]] = mapped_column(String(128))
    linked_request_id: Mapped[Optional[str]] = mapped_column(String(32))
    linked_receipt_id: Mapped[Optional[str]] = mapped_column(String(32))
    # running balance is derived on read
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
