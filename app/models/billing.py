"""
Therapist billing models
Patients, calendar label aliases, ignored labels, per-event price overrides,
monthly payments, daily expenses and analysis settings
"""
import enum
import uuid
from sqlalchemy import (
    Column, String, Boolean, ForeignKey, DateTime, Date, Integer, Numeric, Text, JSON,
    UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class BillingType(str, enum.Enum):
    """How a patient is billed"""
    MONTHLY = "monthly"
    PER_SESSION = "per_session"
    INSTITUTION = "institution"


class CommissionType(str, enum.Enum):
    PERCENT = "percent"
    FIXED = "fixed"


class PaymentStatus(str, enum.Enum):
    """Payment row status"""
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    CANCELED = "canceled"


class DeductionType(str, enum.Enum):
    PERCENT = "percent"
    FIXED = "fixed"


class PatientRecord(Base):
    """
    Patient roster entry
    Institutions aggregate the sessions of their child patients
    """
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=_uuid)
    therapist_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False, default="")
    session_price = Column(Numeric(10, 2), nullable=False, default=0)
    billing_type = Column(SQLEnum(BillingType), nullable=False, default=BillingType.MONTHLY)
    parent_patient_id = Column(String(36), ForeignKey("patients.id", ondelete="SET NULL"), nullable=True, index=True)

    # Commission charged by a referring clinic / institution
    commission_enabled = Column(Boolean, nullable=False, default=False)
    commission_type = Column(SQLEnum(CommissionType), nullable=False, default=CommissionType.PERCENT)
    commission_value = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    payments = relationship("PaymentRecord", back_populates="patient", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<PatientRecord(id='{self.id}', name='{self.name}', billing_type='{self.billing_type}')>"


class EventAliasRecord(Base):
    """Maps a literal calendar event label to a patient"""
    __tablename__ = "event_aliases"

    id = Column(String(36), primary_key=True, default=_uuid)
    therapist_id = Column(String(64), nullable=False, index=True)
    event_name = Column(String(255), nullable=False)
    # normalize_name(event_name); one alias per normalized label
    event_key = Column(String(255), nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('therapist_id', 'event_key', name='uq_event_alias_therapist_key'),
    )


class IgnoredEventRecord(Base):
    """Calendar labels that should never be suggested as new patients"""
    __tablename__ = "ignored_calendar_events"

    id = Column(String(36), primary_key=True, default=_uuid)
    therapist_id = Column(String(64), nullable=False, index=True)
    event_name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('therapist_id', 'event_name', name='uq_ignored_event_therapist_name'),
    )


class SessionOverrideRecord(Base):
    """Custom price for one specific calendar event"""
    __tablename__ = "session_overrides"

    id = Column(String(36), primary_key=True, default=_uuid)
    therapist_id = Column(String(64), nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    event_id = Column(String(255), nullable=False)
    custom_price = Column(Numeric(10, 2), nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('event_id', 'therapist_id', name='uq_session_override_event'),
    )


class PaymentRecord(Base):
    """
    Monthly payment state for one patient
    paid_event_ids holds the calendar event ids recorded as paid
    """
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=_uuid)
    therapist_id = Column(String(64), nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    month = Column(String(7), nullable=False, index=True)  # "YYYY-MM"
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    session_count = Column(Integer, nullable=False, default=0)
    paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True), nullable=True, index=True)
    paid_event_ids = Column(JSON, nullable=False, default=list)
    status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True)
    receipt_number = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    patient = relationship("PatientRecord", back_populates="payments")

    __table_args__ = (
        UniqueConstraint('patient_id', 'month', name='uq_payment_patient_month'),
    )

    def __repr__(self):
        return f"<PaymentRecord(patient_id='{self.patient_id}', month='{self.month}', paid={self.paid})>"


class DailyExpenseRecord(Base):
    """One of the (up to four) expense slots of a day"""
    __tablename__ = "daily_expenses"

    id = Column(String(36), primary_key=True, default=_uuid)
    therapist_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False)
    slot_index = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False, default="")
    amount = Column(Numeric(10, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('therapist_id', 'date', 'slot_index', name='uq_daily_expense_slot'),
    )


class AnalysisSettingsRecord(Base):
    """
    Per-therapist analysis configuration
    """
    __tablename__ = "analysis_settings"

    id = Column(String(36), primary_key=True, default=_uuid)
    therapist_id = Column(String(64), nullable=False, unique=True, index=True)
    vat_rate = Column(Numeric(5, 2), nullable=False, default=17)

    # Global month-level deductions
    deductions = Column(JSON, nullable=False, default=list)
    # Example structure:
    # [
    #   {"id": "income-tax", "name": "מס הכנסה", "type": "percent", "value": 10, "enabled": true}
    # ]

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
