"""
Database Models
SQLAlchemy models for the therapist billing tables
"""

from .billing import (
    BillingType,
    CommissionType,
    PaymentStatus,
    DeductionType,
    PatientRecord,
    EventAliasRecord,
    IgnoredEventRecord,
    SessionOverrideRecord,
    PaymentRecord,
    DailyExpenseRecord,
    AnalysisSettingsRecord,
)

__all__ = [
    'BillingType',
    'CommissionType',
    'PaymentStatus',
    'DeductionType',
    'PatientRecord',
    'EventAliasRecord',
    'IgnoredEventRecord',
    'SessionOverrideRecord',
    'PaymentRecord',
    'DailyExpenseRecord',
    'AnalysisSettingsRecord',
]
