"""Data layer for session usage telemetry"""
from .models import MetricsEvent, UsageSummary
from .usage_aggregator import UsageAggregator

__all__ = [
    'MetricsEvent',
    'UsageSummary',
    'UsageAggregator',
]
