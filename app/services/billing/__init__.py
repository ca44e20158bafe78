"""
Billing Engine
Event-to-patient matching, monthly billing, payment reconciliation and
financial analysis over already-fetched data
"""

from .normalizer import normalize_name
from .matcher import PatientMatcher, MatchResult, build_alias_map, match_patient, suggest_partial_matches
from .institutions import InstitutionAggregator
from .pricing import build_override_map, price_of
from .assembler import assemble_month, billed_total, paid_total, paid_amount, session_dates_by_patient
from .reconciler import sync_month, toggle_paid, toggle_all_paid, recompute_payment, ToggleOutcome
from .analysis import compute_analysis, select_month_payments, split_vat
from .weekly import week_dates, months_spanned, sessions_by_day, daily_totals
from .messages import build_billing_message, BillingMessage
from .history import REVENUE_MONTHS, payment_history, revenue_by_month

__all__ = [
    'normalize_name',
    'PatientMatcher',
    'MatchResult',
    'build_alias_map',
    'match_patient',
    'suggest_partial_matches',
    'InstitutionAggregator',
    'build_override_map',
    'price_of',
    'assemble_month',
    'billed_total',
    'paid_total',
    'paid_amount',
    'session_dates_by_patient',
    'sync_month',
    'toggle_paid',
    'toggle_all_paid',
    'recompute_payment',
    'ToggleOutcome',
    'compute_analysis',
    'select_month_payments',
    'split_vat',
    'week_dates',
    'months_spanned',
    'sessions_by_day',
    'daily_totals',
    'build_billing_message',
    'BillingMessage',
    'REVENUE_MONTHS',
    'payment_history',
    'revenue_by_month',
]
