"""Construction of the STT -> LLM -> TTS pipeline session."""

import logging
from typing import Any, Callable, TypeVar

from livekit.agents import AgentSession, inference
from livekit.plugins import rime

from lifecycle.errors import ConfigurationError, ProvisioningError
from settings import PipelineConfig

logger = logging.getLogger("pipeline")

T = TypeVar("T")


def construct(component: str, factory: Callable[[], T]) -> T:
    """Build one sub-component, classifying its failure.

    Plugins raise ValueError for missing credentials or invalid options;
    anything else is a runtime construction failure.
    """
    try:
        return factory()
    except ValueError as e:
        raise ConfigurationError(f"{component}: {e}") from e
    except Exception as e:
        raise ProvisioningError(f"{component} could not be constructed: {e}") from e


def build_session(config: PipelineConfig, vad: Any) -> AgentSession:
    stt = construct("stt", lambda: inference.STT(model=config.stt_model, language=config.stt_language))
    llm = construct("llm", lambda: inference.LLM(model=config.llm_model))
    tts = construct("tts", lambda: rime.TTS(model=config.tts_model, speaker=config.tts_voice))
    turn_detection = construct("turn_detection", inference.TurnDetector)

    logger.info(
        "Pipeline components ready: stt=%s llm=%s tts=%s/%s",
        config.stt_model, config.llm_model, config.tts_model, config.tts_voice,
    )

    return construct(
        "session",
        lambda: AgentSession(
            stt=stt,
            llm=llm,
            tts=tts,
            turn_detection=turn_detection,
            vad=vad,
        ),
    )
