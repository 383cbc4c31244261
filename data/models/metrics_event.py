import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

# livekit ModelUsage `type` -> (attribute, usage category)
# Realtime models report into llm_usage, so their tokens are priced as LLM tokens.
USAGE_CATEGORIES = {
    "llm_usage": (
        ("input_tokens", "llm_prompt_tokens"),
        ("input_cached_tokens", "llm_prompt_cached_tokens"),
        ("output_tokens", "llm_completion_tokens"),
        ("input_audio_tokens", "llm_input_audio_tokens"),
        ("output_audio_tokens", "llm_output_audio_tokens"),
        ("session_duration", "llm_session_duration"),
    ),
    "stt_usage": (
        ("audio_duration", "stt_audio_duration"),
        ("input_tokens", "stt_input_tokens"),
        ("output_tokens", "stt_output_tokens"),
    ),
    "tts_usage": (
        ("characters_count", "tts_characters_count"),
        ("audio_duration", "tts_audio_duration"),
        ("input_tokens", "tts_input_tokens"),
        ("output_tokens", "tts_output_tokens"),
    ),
    "interruption_usage": (
        ("total_requests", "interruption_requests"),
    ),
    "eot_usage": (
        ("total_requests", "eot_requests"),
    ),
}


def check_usage_value(name: str, value: Any) -> None:
    """Raise ValueError unless value is a finite, non-negative number"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} is not a number: {value!r}")
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"{name} must be a finite, non-negative number: {value!r}")


@dataclass(frozen=True)
class MetricsEvent:
    """One batch of usage, keyed by category"""
    kind: str
    values: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        for category, value in self.values.items():
            check_usage_value(category, value)
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @classmethod
    def from_model_usage(cls, usage: Any) -> 'MetricsEvent':
        """Create a MetricsEvent from a livekit ModelUsage entry

        Args:
            usage: LLMModelUsage, STTModelUsage, TTSModelUsage... as
                returned by ModelUsageCollector.flatten()

        Returns:
            MetricsEvent with the non-zero categories only
        """
        values = {}
        for attribute, category in USAGE_CATEGORIES.get(usage.type, ()):
            value = getattr(usage, attribute, 0)
            if value:
                values[category] = value

        return cls(kind=usage.type, values=values)

    def __repr__(self) -> str:
        return f"MetricsEvent(kind={self.kind}, values={dict(self.values)})"
