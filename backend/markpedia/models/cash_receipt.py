from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Date, DateTime, Numeric, ForeignKey, text
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from .authz import Base


class CashReceipt(Base):
    """Disbursement voucher issued by a cashier when a request is paid out."""
    __tablename__ = 'cash_receipts'
    STATUS_PENDING = 'Pending'
    STATUS_COMPLETED = 'Completed'
    STATUS_ACKNOWLEDGED = 'Acknowledged'
    STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_ACKNOWLEDGED)
    METHODS = ('Cash', 'Bank', 'Mobile Money')
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    receipt_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    cash_request_id: Mapped[int] = mapped_column(ForeignKey('cash_requests.id'), nullable=False, index=True)
    linked_request_id: Mapped[str] = mapped_column(String(32), nullable=False)
    date_of_receipt: Mapped[date] = mapped_column(Date, nullable=False)
    receiver_id: Mapped[int] = mapped_column(Integer, nullable=False)
    department: Mapped[str] = mapped_column(String(64), nullable=False)
    purpose_of_funds: Mapped[str] = mapped_column(String(255), nullable=False)
    amount_received: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False)
    payment_reference_no: Mapped[str] = mapped_column(String(64), nullable=False)
    issued_by: Mapped[int] = mapped_column(Integer, nullable=False)
    approved_by: Mapped[str] = mapped_column(String(128), nullable=False)
    remarks: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_COMPLETED)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
