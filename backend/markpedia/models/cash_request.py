from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Boolean, Date, DateTime, Numeric, JSON, ForeignKey, text

from .authz import Base
from .audit import AuditTrailEntry


class CashRequest(Base):
    __tablename__ = 'cash_requests'
    # Status constants
    STATUS_PENDING_ACCOUNTANT = 'Pending Accountant'
    STATUS_PENDING_CFO = 'Pending CFO'
    STATUS_PENDING_CEO = 'Pending CEO'
    STATUS_APPROVED = 'Approved'
    STATUS_PAID = 'Paid'
    STATUS_DECLINED = 'Declined'
    ALL_STATUSES = (
        STATUS_PENDING_ACCOUNTANT, STATUS_PENDING_CFO, STATUS_PENDING_CEO,
        STATUS_APPROVED, STATUS_PAID, STATUS_DECLINED,
    )
    PENDING_STATUSES = (STATUS_PENDING_ACCOUNTANT, STATUS_PENDING_CFO, STATUS_PENDING_CEO)
    TERMINAL_STATUSES = (STATUS_PAID, STATUS_DECLINED)

    METHOD_BANK = 'Bank Transfer'
    METHOD_MOMO = 'Mobile Money'
    METHOD_CASH = 'Cash'
    PAYMENT_METHODS = (METHOD_CASH, METHOD_BANK, METHOD_MOMO)
    # Detail group per preferred method: (required, optional)
    PAYMENT_DETAIL_FIELDS = {
        METHOD_BANK: (('bank_name', 'account_name', 'account_number'), ()),
        METHOD_MOMO: (('momo_provider', 'momo_number'), ('momo_name',)),
        METHOD_CASH: ((), ()),
    }

    REQUEST_TYPES = ('Operations', 'Project', 'Travel', 'Logistics', 'Purchase', 'Other')
    URGENCY_LEVELS = ('Low', 'Medium', 'High', 'Critical')
    FUNDING_MODES = ('Advance', 'Reimbursement')
    CURRENCY = 'XAF'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    date_of_request: Mapped[date] = mapped_column(Date, nullable=False)

    amount_requested: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=CURRENCY)
    expense_category: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    budget_line: Mapped[Optional[str]] = mapped_column(String(64))

    type_of_request: Mapped[str] = mapped_column(String(32), nullable=False, default='Operations')
    purpose_of_request: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    urgency_level: Mapped[str] = mapped_column(String(16), nullable=False, default='Medium')
    expected_date_of_use: Mapped[Optional[date]] = mapped_column(Date)
    advance_or_reimbursement: Mapped[str] = mapped_column(String(16), nullable=False, default='Advance')
    project_cost_center_code: Mapped[Optional[str]] = mapped_column(String(64))
    payee_name: Mapped[Optional[str]] = mapped_column(String(128))

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_PENDING_ACCOUNTANT, index=True)
    ceo_approval_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approval_notes: Mapped[Optional[str]] = mapped_column(Text)

    requested_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    requested_by_name: Mapped[str] = mapped_column(String(128), nullable=False)
    designation: Mapped[Optional[str]] = mapped_column(String(64))
    department: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    supervisor: Mapped[Optional[str]] = mapped_column(String(128))
    finance_officer: Mapped[Optional[str]] = mapped_column(String(128))

    payment_method_preferred: Mapped[str] = mapped_column(String(32), nullable=False, default=METHOD_CASH)
    bank_name: Mapped[Optional[str]] = mapped_column(String(128))
    account_name: Mapped[Optional[str]] = mapped_column(String(128))
    account_number: Mapped[Optional[str]] = mapped_column(String(64))
    momo_provider: Mapped[Optional[str]] = mapped_column(String(64))
    momo_name: Mapped[Optional[str]] = mapped_column(String(128))
    momo_number: Mapped[Optional[str]] = mapped_column(String(32))

    supporting_documents: Mapped[List[str]] = mapped_column(JSON, default=list)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    audit_trail = relationship(
        'AuditTrailEntry',
        back_populates='cash_request',
        order_by=[AuditTrailEntry.timestamp, AuditTrailEntry.id],
        cascade='all, delete-orphan',
        lazy='selectin',
    )

    # UPDATE ... WHERE version = :expected; zero rows matched raises StaleDataError
    __mapper_args__ = {'version_id_col': version}

    def __repr__(self) -> str:
        return f"<CashRequest {self.request_id} status={self.status!r} v{self.version}>"
