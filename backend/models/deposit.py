"""
ProcessorDeposit Model

Deposits are ingested upstream; this service only approves them and writes
back the rates and bonus it computed.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, TimestampMixin, UTCDateTime


class DepositStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ProcessorDeposit(TimestampMixin, Base):
    __tablename__ = "processor_deposits"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    processor_id: Mapped[UUID] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD")
    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=DepositStatus.PENDING.value,
        comment="PENDING|APPROVED|REJECTED",
    )
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Written back on approval
    commission_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    bonus_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    bonus_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    __table_args__ = (
        Index("ix_processor_deposits_processor_status_approved", "processor_id", "status", "approved_at"),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="ck_processor_deposits_status",
        ),
        CheckConstraint("amount > 0", name="ck_processor_deposits_amount"),
    )

    def __repr__(self) -> str:
        return f"<ProcessorDeposit {self.id} {self.amount} {self.currency} {self.status}>"
