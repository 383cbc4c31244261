import logging
from typing import Any, Dict, List, Mapping, Optional

from livekit.agents import metrics

from .models import MetricsEvent, UsageSummary, check_usage_value

logger = logging.getLogger("usage-aggregator")

# metrics types ModelUsageCollector bills; the rest are latency-only
BILLED_METRICS = (
    metrics.LLMMetrics,
    metrics.RealtimeModelMetrics,
    metrics.STTMetrics,
    metrics.TTSMetrics,
    metrics.InterruptionMetrics,
    metrics.EOTInferenceMetrics,
)

# attributes ModelUsageCollector adds up
BILLED_FIELDS = (
    "prompt_tokens",
    "prompt_cached_tokens",
    "cache_creation_tokens",
    "completion_tokens",
    "reasoning_tokens",
    "input_tokens",
    "input_audio_tokens",
    "output_tokens",
    "characters_count",
    "audio_duration",
    "session_duration",
    "num_requests",
)


class UsageAggregator:
    """Accumulates metrics events into running per-category totals.

    livekit metrics are handed to the library's ModelUsageCollector, which
    keeps usage per provider and model; summary() folds that into flat
    categories. MetricsEvents carrying other categories are summed as is.

    One instance per session. Events are delivered serially from the
    session's event loop, so there is a single writer and no lock.
    """

    def __init__(self):
        self._model_usage = metrics.ModelUsageCollector()
        self._totals: Dict[str, float] = {}
        self._collected = 0
        self._dropped = 0

    def collect(self, event: Any) -> None:
        """Add an event's usage to the totals

        Args:
            event: a MetricsEvent or a livekit AgentMetrics object
        """
        if isinstance(event, MetricsEvent):
            self._add(event)
            return

        if not isinstance(event, metrics.AgentMetrics):
            self._drop(f"not a livekit metrics object: {event!r}")
            return

        try:
            for name in BILLED_FIELDS:
                value = getattr(event, name, None)
                if value is not None:
                    check_usage_value(name, value)
        except ValueError as e:
            self._drop(f"{event.type}: {e}")
            return

        if not isinstance(event, BILLED_METRICS):
            logger.debug("No usage fields in %s event", event.type)
            return

        self._model_usage.collect(event)
        self._collected += 1

    def _add(self, event: MetricsEvent) -> None:
        if not event.values:
            logger.debug("No usage fields in %s event", event.kind)
            return

        for category, value in event.values.items():
            self._totals[category] = self._totals.get(category, 0) + value
        self._collected += 1

    def _drop(self, reason: str) -> None:
        self._dropped += 1
        logger.warning("Dropping malformed metrics event: %s", reason)

    def summary(self) -> Dict[str, float]:
        """Current totals; reading does not reset them"""
        totals = dict(self._totals)
        for usage in self._model_usage.flatten():
            for category, value in MetricsEvent.from_model_usage(usage).values.items():
                totals[category] = totals.get(category, 0) + value
        return totals

    def model_usage(self) -> List[dict]:
        """Usage per provider and model, as reported by livekit"""
        return [usage.model_dump() for usage in self._model_usage.flatten()]

    @property
    def events_collected(self) -> int:
        return self._collected

    @property
    def events_dropped(self) -> int:
        return self._dropped

    def report(self, job_id: str, rates: Optional[Mapping[str, float]] = None) -> UsageSummary:
        return UsageSummary.from_totals(
            job_id,
            self.summary(),
            models=self.model_usage(),
            rates=rates,
            events_collected=self._collected,
            events_dropped=self._dropped,
        )
