"""Contract model — a standard labor contract and its anchoring state."""

import enum
from datetime import date, datetime, timezone

from sqlalchemy import String, DateTime, Date, Text, Integer, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database import Base


class ContractType(str, enum.Enum):
    REGULAR = "REGULAR"
    PARTTIME = "PARTTIME"
    DAILY = "DAILY"


class ContractStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    SIGNED = "SIGNED"
    COMPLETED = "COMPLETED"


class Contract(Base):
    __tablename__ = "contracts"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    company_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("companies.id"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContractStatus.DRAFT.value, index=True
    )
    contract_type: Mapped[str] = mapped_column(String(20), nullable=False)

    employer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    employer_ceo: Mapped[str] = mapped_column(String(100), nullable=False)
    employer_address: Mapped[str] = mapped_column(String(300), nullable=False)
    employer_phone: Mapped[str] = mapped_column(String(30), nullable=False)

    worker_name: Mapped[str] = mapped_column(String(100), nullable=False)
    worker_birth: Mapped[str] = mapped_column(String(20), nullable=False)
    worker_phone: Mapped[str] = mapped_column(String(30), nullable=False)
    worker_address: Mapped[str] = mapped_column(String(300), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=True)
    work_days: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    work_start: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM
    work_end: Mapped[str] = mapped_column(String(5), nullable=False)
    break_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # minutes
    hourly_wage: Mapped[int] = mapped_column(Integer, nullable=False)
    pay_day: Mapped[int] = mapped_column(Integer, nullable=False)
    special_terms: Mapped[str] = mapped_column(Text, nullable=True)

    # Base64 image data URLs, hashed exactly as stored
    employer_sign: Mapped[str] = mapped_column(Text, nullable=True)
    worker_sign: Mapped[str] = mapped_column(Text, nullable=True)
    signed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    # Set once at SIGNED -> COMPLETED
    pdf_hash: Mapped[str] = mapped_column(String(64), nullable=True)
    solana_tx_id: Mapped[str] = mapped_column(String(100), nullable=True)
    # Submitted anchoring tx whose completion was not persisted yet
    pending_tx_id: Mapped[str] = mapped_column(String(100), nullable=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    company = relationship("Company", back_populates="contracts", lazy="raise")
