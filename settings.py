"""Pipeline configuration read from the process environment."""

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from lifecycle.errors import ConfigurationError

DEFAULT_INSTRUCTIONS = """You are a helpful voice AI assistant. The user is interacting with you via voice, even if you perceive the conversation as text.
You eagerly assist users with their questions by providing information from your extensive knowledge.
Your responses are concise, to the point, and without any complex formatting or punctuation including emojis, asterisks, or other symbols.
You are curious, friendly, and have a sense of humor."""

# env var -> usage category it prices
RATE_ENV_VARS = {
    "COST_PER_STT_SECOND": "stt_audio_duration",
    "COST_PER_LLM_PROMPT_TOKEN": "llm_prompt_tokens",
    "COST_PER_LLM_COMPLETION_TOKEN": "llm_completion_tokens",
    "COST_PER_TTS_CHARACTER": "tts_characters_count",
}

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class PipelineConfig:
    """Model, voice and language identifiers for one pipeline session."""

    stt_model: str = "assemblyai/universal-streaming"
    stt_language: str = "en"
    llm_model: str = "openai/gpt-5.2"
    tts_model: str = "mistv2"
    tts_voice: str = "rainforest"
    instructions: str = DEFAULT_INSTRUCTIONS
    greeting: Optional[str] = None
    noise_cancellation: bool = True
    usage_rates: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("stt_model", "stt_language", "llm_model", "tts_model", "tts_voice"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"{name} must be a non-empty string")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        env = os.environ if environ is None else environ
        defaults = cls()

        return cls(
            stt_model=env.get("STT_MODEL", defaults.stt_model),
            stt_language=env.get("STT_LANGUAGE", defaults.stt_language),
            llm_model=env.get("LLM_MODEL", defaults.llm_model),
            tts_model=env.get("TTS_MODEL", defaults.tts_model),
            tts_voice=env.get("TTS_VOICE", defaults.tts_voice),
            instructions=env.get("AGENT_INSTRUCTIONS") or defaults.instructions,
            greeting=env.get("AGENT_GREETING") or None,
            noise_cancellation=env.get("NOISE_CANCELLATION", "1").strip().lower() not in _FALSE_VALUES,
            usage_rates=_parse_rates(env),
        )


def _parse_rates(env: Mapping[str, str]) -> Dict[str, float]:
    rates = {}
    for var, category in RATE_ENV_VARS.items():
        raw = env.get(var)
        if raw is None or not raw.strip():
            continue
        try:
            rate = float(raw)
        except ValueError:
            raise ConfigurationError(f"{var} must be a number, got {raw!r}") from None
        if rate < 0:
            raise ConfigurationError(f"{var} must not be negative")
        rates[category] = rate
    return rates
