"""Data models for session usage telemetry"""
from .metrics_event import MetricsEvent, USAGE_CATEGORIES, check_usage_value
from .usage_summary import UsageSummary

__all__ = ['MetricsEvent', 'USAGE_CATEGORIES', 'check_usage_value', 'UsageSummary']
