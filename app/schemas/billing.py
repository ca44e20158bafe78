"""
Billing Pydantic schemas
Typed boundary structs for calendar events, the patient roster, payments
and the computed billing / analysis views
"""
import datetime
import enum
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, model_validator

from app.models import BillingType, CommissionType, PaymentStatus, DeductionType

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class EventColor(str, enum.Enum):
    """Billing status carried by a calendar event's color"""
    NEEDS_BILLING = "needs_billing"
    NEEDS_BILLING_ANNOTATED = "needs_billing_annotated"  # notes written
    PAID = "paid"
    CANCELLED = "cancelled"
    OTHER = "other"

    @property
    def is_billable(self) -> bool:
        return self is not EventColor.CANCELLED


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class CalendarEvent(BaseModel):
    """A calendar event, already converted from the provider payload"""
    id: str
    calendar_id: str = "primary"
    summary: str = ""
    start: Optional[datetime.datetime] = None
    color: EventColor = EventColor.NEEDS_BILLING


class EventRef(BaseModel):
    """Identifies one event for a color patch"""
    calendar_id: str
    event_id: str


class Patient(BaseModel):
    id: str
    name: str
    phone: str = ""
    session_price: float = 0
    billing_type: BillingType = BillingType.MONTHLY
    parent_patient_id: Optional[str] = None
    commission_enabled: bool = False
    commission_type: CommissionType = CommissionType.PERCENT
    commission_value: Optional[float] = None

    class Config:
        from_attributes = True

    @model_validator(mode="after")
    def _no_nested_institutions(self):
        if self.billing_type == BillingType.INSTITUTION and self.parent_patient_id:
            raise ValueError("An institution cannot belong to another institution")
        return self

    @property
    def is_institution(self) -> bool:
        return self.billing_type == BillingType.INSTITUTION


class EventAlias(BaseModel):
    event_name: str
    patient_id: str

    class Config:
        from_attributes = True


class IgnoredEventName(BaseModel):
    event_name: str

    class Config:
        from_attributes = True


class SessionOverride(BaseModel):
    event_id: str
    patient_id: str
    custom_price: float

    class Config:
        from_attributes = True


class Payment(BaseModel):
    id: Optional[str] = None
    patient_id: str
    month: str = Field(..., pattern=MONTH_PATTERN)
    amount: float = 0
    session_count: int = 0
    paid: bool = False
    paid_at: Optional[datetime.datetime] = None
    paid_event_ids: List[str] = Field(default_factory=list)
    status: PaymentStatus = PaymentStatus.PENDING
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class GlobalDeduction(BaseModel):
    id: str
    name: str
    type: DeductionType
    value: float = 0
    enabled: bool = True


class DailyExpense(BaseModel):
    date: datetime.date
    slot_index: int = Field(0, ge=0, le=3)
    name: str = ""
    amount: float = 0

    class Config:
        from_attributes = True


DEFAULT_DEDUCTIONS = [
    GlobalDeduction(id="income-tax", name="מס הכנסה", type=DeductionType.PERCENT, value=0, enabled=True),
    GlobalDeduction(id="national-insurance", name="ביטוח לאומי", type=DeductionType.FIXED, value=0, enabled=True),
]


# ---------------------------------------------------------------------------
# Monthly billing view
# ---------------------------------------------------------------------------

class BillingSession(BaseModel):
    event_id: str
    calendar_id: str
    date: str  # "D/M/YY"
    start: Optional[datetime.datetime] = None
    summary: str
    price: float
    color: EventColor
    child_patient_name: Optional[str] = None


class PatientBilling(BaseModel):
    patient: Patient
    sessions: List[BillingSession] = Field(default_factory=list)
    total: float = 0
    child_patients: List[Patient] = Field(default_factory=list)


class UnmatchedLabel(BaseModel):
    """A calendar label that resolved to no patient"""
    label: str
    count: int
    suggestions: List[Patient] = Field(default_factory=list)


class MonthBilling(BaseModel):
    lines: List[PatientBilling] = Field(default_factory=list)
    unmatched: List[UnmatchedLabel] = Field(default_factory=list)
    calendar_name_by_patient: Dict[str, str] = Field(default_factory=dict)


class PaymentMutation(BaseModel):
    """Create-or-update instruction for one payment row"""
    action: Literal["create", "update"]
    payment: Payment


class ColorUpdateResult(BaseModel):
    updated: int = 0
    failed: int = 0
    total: int = 0


class RenameResult(BaseModel):
    updated: int = 0
    failed: int = 0


class BillingLineResponse(BaseModel):
    billing: PatientBilling
    payment: Optional[Payment] = None
    paid_count: int = 0
    paid_amount: float = 0
    calendar_event_name: Optional[str] = None


class MonthBillingResponse(BaseModel):
    month: str
    lines: List[BillingLineResponse]
    unmatched: List[UnmatchedLabel]
    # matched patient id (child patients included) -> aliased calendar label
    calendar_name_by_patient: Dict[str, str] = Field(default_factory=dict)
    billed_total: float
    paid_total: float
    synced_mutations: int = 0


class ToggleResponse(BaseModel):
    payment: Payment
    repaint: ColorUpdateResult


class BillingMessageResponse(BaseModel):
    text: str
    url: str


# ---------------------------------------------------------------------------
# Financial analysis
# ---------------------------------------------------------------------------

class PatientAnalysis(BaseModel):
    patient: Patient
    gross: float
    vat: float
    base: float
    commission: float
    net_after_commission: float
    payments: List[Payment] = Field(default_factory=list)
    refund_count: int = 0
    refund_amount: float = 0


class DeductionResult(BaseModel):
    name: str
    amount: float


class MonthAnalysis(BaseModel):
    total_gross: float = 0
    total_vat: float = 0
    month_base_after_vat: float = 0
    deduction_results: List[DeductionResult] = Field(default_factory=list)
    global_deductions_total: float = 0
    commissions_total: float = 0
    net: float = 0
    patient_analyses: List[PatientAnalysis] = Field(default_factory=list)
    payment_count: int = 0
    total_refund_count: int = 0
    total_refund_amount: float = 0


class AnalysisSettings(BaseModel):
    vat_rate: float = Field(17, ge=0, le=100)
    deductions: List[GlobalDeduction] = Field(default_factory=lambda: [d.model_copy() for d in DEFAULT_DEDUCTIONS])


class AnalysisResponse(BaseModel):
    month: str
    analysis: MonthAnalysis
    settings: AnalysisSettings
    session_dates: Dict[str, List[str]] = Field(default_factory=dict)  # patient id -> "D/M/YY" dates


# ---------------------------------------------------------------------------
# Weekly finance
# ---------------------------------------------------------------------------

class DaySession(BaseModel):
    price: float
    summary: str


class DayTotals(BaseModel):
    date: datetime.date
    sessions: List[DaySession] = Field(default_factory=list)
    gross: float = 0
    after_vat: float = 0
    expenses: List[DailyExpense] = Field(default_factory=list)
    total_expenses: float = 0
    remaining: float = 0


class WeekSummary(BaseModel):
    days: List[DayTotals]
    gross: float = 0
    after_vat: float = 0
    total_expenses: float = 0
    remaining: float = 0


# ---------------------------------------------------------------------------
# Payment history
# ---------------------------------------------------------------------------

class PaymentHistoryEntry(BaseModel):
    payment: Payment
    patient_name: Optional[str] = None
    partial: bool = False  # some sessions recorded paid, not all


class MonthPayments(BaseModel):
    month: str
    total: float = 0
    payments: List[PaymentHistoryEntry] = Field(default_factory=list)


class MonthRevenue(BaseModel):
    month: str
    total: float = 0
    paid: float = 0


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class PatientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = ""
    session_price: float = Field(0, ge=0)
    billing_type: BillingType = BillingType.MONTHLY
    parent_patient_id: Optional[str] = None
    commission_enabled: bool = False
    commission_type: CommissionType = CommissionType.PERCENT
    commission_value: Optional[float] = Field(None, ge=0)


class PatientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = None
    session_price: Optional[float] = Field(None, ge=0)
    billing_type: Optional[BillingType] = None
    parent_patient_id: Optional[str] = None
    commission_enabled: Optional[bool] = None
    commission_type: Optional[CommissionType] = None
    commission_value: Optional[float] = Field(None, ge=0)


class PatientUpdateResponse(BaseModel):
    patient: Patient
    calendar_rename: Optional[RenameResult] = None


class OverrideUpdate(BaseModel):
    patient_id: str
    custom_price: float = Field(..., ge=0)


class AliasCreate(BaseModel):
    event_name: str = Field(..., min_length=1)
    patient_id: str


class IgnoreCreate(BaseModel):
    event_name: str = Field(..., min_length=1)


class ExpenseUpdate(BaseModel):
    date: datetime.date
    slot_index: int = Field(..., ge=0, le=3)
    name: str = ""
    amount: float = 0
