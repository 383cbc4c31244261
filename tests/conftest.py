import asyncio
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from livekit.agents import metrics


class FakeEmitter:
    def __init__(self, timeline: List[str]):
        self.timeline = timeline
        self.handlers: Dict[str, list] = {}
        self.on_calls: List[str] = []
        self.off_calls: List[str] = []

    def on(self, event, callback):
        self.handlers.setdefault(event, []).append(callback)
        self.on_calls.append(event)
        self.timeline.append(f"on:{event}")
        return callback

    def off(self, event, callback):
        self.off_calls.append(event)
        self.handlers[event].remove(callback)

    def emit(self, event, payload):
        for callback in list(self.handlers.get(event, [])):
            callback(payload)


class FakePipeline(FakeEmitter):
    """Stands in for livekit's AgentSession."""

    def __init__(self, timeline: List[str], *, start_error=None, close_error=None, block_start=False, close_delay=0.0):
        super().__init__(timeline)
        self.start_error = start_error
        self.close_error = close_error
        self.block_start = block_start
        self.close_delay = close_delay
        self.start_calls: List[dict] = []
        self.replies: List[dict] = []
        self.close_calls = 0
        self.start_entered = asyncio.Event()

    async def start(self, **kwargs):
        self.timeline.append("start")
        self.start_calls.append(kwargs)
        self.start_entered.set()
        if self.block_start:
            await asyncio.Event().wait()
        if self.start_error:
            raise self.start_error

    async def generate_reply(self, **kwargs):
        self.replies.append(kwargs)

    async def aclose(self):
        self.timeline.append("aclose")
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        self.close_calls += 1
        if self.close_error:
            raise self.close_error


class FakeRoom(FakeEmitter):
    def __init__(self, timeline: List[str]):
        super().__init__(timeline)
        self.name = "room-1"
        self.local_participant = SimpleNamespace(identity="agent")


class FakeJobContext:
    """Stands in for livekit's JobContext."""

    def __init__(self, timeline: List[str], *, vad: Any = "vad"):
        self.timeline = timeline
        self.job = SimpleNamespace(id="job-1")
        self.room = FakeRoom(timeline)
        self.proc = SimpleNamespace(userdata={} if vad is None else {"vad": vad})
        self.shutdown_callbacks: list = []
        self.shutdown_reasons: List[str] = []
        self.connect_calls = 0

    def add_shutdown_callback(self, callback):
        self.timeline.append("add_shutdown_callback")
        self.shutdown_callbacks.append(callback)

    async def connect(self):
        self.timeline.append("connect")
        self.connect_calls += 1

    def shutdown(self, reason: str = ""):
        self.shutdown_reasons.append(reason)

    async def run_shutdown_callbacks(self, reason: str = "test"):
        for callback in self.shutdown_callbacks:
            await callback(reason)


def metrics_collected(collected: Any) -> SimpleNamespace:
    return SimpleNamespace(metrics=collected)


def stt_metrics(audio_duration: float, **fields) -> metrics.STTMetrics:
    return metrics.STTMetrics(
        label="stt", request_id="req", timestamp=0.0, duration=0.1,
        audio_duration=audio_duration, streamed=True, **fields,
    )


def tts_metrics(characters_count: int, audio_duration: float, **fields) -> metrics.TTSMetrics:
    return metrics.TTSMetrics(
        label="tts", request_id="req", timestamp=0.0, ttfb=0.2, duration=0.5,
        audio_duration=audio_duration, cancelled=False, characters_count=characters_count,
        streamed=True, **fields,
    )


def llm_metrics(prompt_tokens: int, completion_tokens: int, prompt_cached_tokens: int = 0, **fields) -> metrics.LLMMetrics:
    return metrics.LLMMetrics(
        label="llm", request_id="req", timestamp=0.0, duration=0.8, ttft=0.3, cancelled=False,
        prompt_tokens=prompt_tokens, prompt_cached_tokens=prompt_cached_tokens,
        completion_tokens=completion_tokens, total_tokens=prompt_tokens + completion_tokens,
        tokens_per_second=25.0, **fields,
    )


def realtime_metrics(input_tokens: int, output_tokens: int, **fields) -> metrics.RealtimeModelMetrics:
    return metrics.RealtimeModelMetrics(
        request_id="req", timestamp=0.0, input_tokens=input_tokens, output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
        input_token_details=metrics.RealtimeModelMetrics.InputTokenDetails(),
        output_token_details=metrics.RealtimeModelMetrics.OutputTokenDetails(),
        **fields,
    )


def absent_loader(capability_id: str):
    from capabilities import Capability

    return Capability(capability_id, reason="not installed")


@pytest.fixture
def timeline() -> List[str]:
    return []


@pytest.fixture
def job_ctx(timeline) -> FakeJobContext:
    return FakeJobContext(timeline)


@pytest.fixture
def pipeline(timeline) -> FakePipeline:
    return FakePipeline(timeline)
