import asyncio
import inspect
import json
import logging
from typing import Any, Callable, List, Optional

from livekit import rtc
from livekit.agents import JobContext, MetricsCollectedEvent, metrics, room_io

from agent_helper.core import StateMachine
from agent_helper.enums import CleanupState, SessionEvent, SessionState
from agent_helper.transition import LIFECYCLE_TRANSITIONS
from capabilities import (
    NOISE_CANCELLATION_BVC,
    NOISE_CANCELLATION_BVC_TELEPHONY,
    Capability,
    try_load,
)
from data.models import UsageSummary
from data.usage_aggregator import UsageAggregator
from lifecycle.errors import (
    ConfigurationError,
    ProvisioningError,
    SessionError,
    SessionRuntimeError,
    TeardownError,
)
from lifecycle.session_log import SessionLog
from lifecycle.session_record import SessionRecord, Subscription
from settings import PipelineConfig

logger = logging.getLogger("session-controller")

METRICS_EVENT = "metrics_collected"
ERROR_EVENT = "error"
DISCONNECT_EVENT = "participant_disconnected"


class SessionController:
    """
    Owns one job's pipeline session, from provisioning to teardown.

    The controller is the only place the session record and the cleanup
    state are mutated. Teardown runs at most once whichever of the error
    path, the job shutdown hook or a participant disconnect reaches it
    first; later callers return immediately, except the job shutdown hook,
    which waits for the running teardown to finish.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        agent_factory: Callable[[], Any],
        session_factory: Callable[[PipelineConfig, Any], Any],
        capability_loader: Callable[[str], Capability] = try_load,
    ):
        self._config = config
        self._agent_factory = agent_factory
        self._session_factory = session_factory
        self._capability_loader = capability_loader

        self._ctx: Optional[JobContext] = None
        self._record: Optional[SessionRecord] = None
        self._aggregator = UsageAggregator()
        self._cleanup_state = CleanupState.NOT_STARTED
        self._shutdown_registered = False
        self._disconnect_handler: Optional[Callable[..., None]] = None
        self._background_tasks: set = set()
        self._closed = asyncio.Event()

        self.session_log = SessionLog()
        self.final_usage: Optional[UsageSummary] = None
        self.failure: Optional[BaseException] = None
        self.teardown_errors: List[TeardownError] = []

        self._lifecycle = StateMachine(
            initial_state=SessionState.CREATED,
            transitions=LIFECYCLE_TRANSITIONS,
            name="session",
            on_enter={state: self._on_state_entered for state in SessionState},
        )

    # ------------------ Accessors ------------------

    @property
    def state(self) -> SessionState:
        return self._lifecycle.state

    @property
    def cleanup_state(self) -> CleanupState:
        return self._cleanup_state

    @property
    def session(self) -> Optional[SessionRecord]:
        return self._record

    @property
    def aggregator(self) -> UsageAggregator:
        return self._aggregator

    @property
    def teardown_steps(self) -> List[str]:
        return self.session_log.steps()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    # ------------------ Entry ------------------

    async def run(self, ctx: JobContext) -> None:
        """Provision, observe and start the pipeline for one job."""
        self._ctx = ctx
        self.session_log.job_id = ctx.job.id
        self.session_log.add_event(f"SESSION STARTED: room={ctx.room.name}")
        self._lifecycle.handle_event(SessionEvent.START)

        try:
            await self.provision(ctx)
            self.attach_observability()
            self.register_shutdown(ctx)

            # Join the room first so the agent can see participants
            await ctx.connect()
            await self.start(ctx.room)

        except asyncio.CancelledError:
            logger.info("Session cancelled before it finished starting")
            await self.teardown("cancelled")
            raise

        except Exception as e:
            logger.exception("Error in agent entry: %s", e)
            self.failure = e
            self.session_log.add_event(f"Session error: {e}")
            self._lifecycle.handle_event(SessionEvent.FAIL)
            await self.teardown("session_error")
            raise

    # ------------------ Provisioning ------------------

    async def provision(self, ctx: JobContext) -> SessionRecord:
        """Construct the pipeline session from the configured sub-components."""
        if self._record is not None:
            raise SessionRuntimeError("a pipeline session is already provisioned for this job")

        vad = ctx.proc.userdata.get("vad")
        if vad is None:
            raise ConfigurationError("voice activity detector was not prewarmed for this process")

        try:
            pipeline = self._session_factory(self._config, vad)
            if inspect.isawaitable(pipeline):
                pipeline = await pipeline
        except SessionError:
            raise
        except Exception as e:
            raise ProvisioningError(f"pipeline session could not be constructed: {e}") from e

        if self._cleanup_state is not CleanupState.NOT_STARTED:
            # shut down while the factory was suspended; nobody else will close it
            try:
                await pipeline.aclose()
            except Exception:
                logger.exception("Error closing pipeline provisioned after shutdown")
            raise SessionRuntimeError("session was shut down while provisioning")

        self._record = SessionRecord(
            job_id=ctx.job.id,
            room_name=ctx.room.name,
            pipeline=pipeline,
        )
        self.session_log.add_event("Pipeline session provisioned")
        return self._record

    def attach_observability(self) -> None:
        """Subscribe usage collection and error handling to the pipeline."""
        record = self._require_record()

        if record.metrics_subscription is None:
            handler = self._on_metrics_collected
            record.pipeline.on(METRICS_EVENT, handler)
            record.metrics_subscription = Subscription(METRICS_EVENT, handler)

        if record.error_subscription is None:
            handler = self._on_pipeline_error
            record.pipeline.on(ERROR_EVENT, handler)
            record.error_subscription = Subscription(ERROR_EVENT, handler)

    def register_shutdown(self, ctx: JobContext) -> None:
        """Hand teardown to the job's shutdown callbacks and watch for disconnects."""
        self._require_record()
        if self._shutdown_registered:
            return

        ctx.add_shutdown_callback(self._on_job_shutdown)

        handler = self._on_participant_disconnected
        ctx.room.on(DISCONNECT_EVENT, handler)
        self._disconnect_handler = handler

        self._shutdown_registered = True

    # ------------------ Start ------------------

    async def start(self, room: Any, **options: Any) -> None:
        """Start media flow; noise cancellation is used only if it loads."""
        record = self._require_record()
        if record.metrics_subscription is None or not self._shutdown_registered:
            raise SessionRuntimeError("observability and shutdown hook must be in place before start")

        start_kwargs = dict(options)
        noise_cancellation = self._noise_cancellation_selector()
        if noise_cancellation is not None:
            start_kwargs["room_options"] = room_io.RoomOptions(
                audio_input=room_io.AudioInputOptions(noise_cancellation=noise_cancellation)
            )
            record.noise_cancellation = True

        await record.pipeline.start(agent=self._agent_factory(), room=room, **start_kwargs)

        if self._cleanup_state is not CleanupState.NOT_STARTED:
            logger.info("Session was shut down while starting")
            return

        self._lifecycle.handle_event(SessionEvent.STARTED)
        self.session_log.add_event(
            f"Agent ready (noise cancellation {'on' if record.noise_cancellation else 'off'})"
        )

        if self._config.greeting:
            await record.pipeline.generate_reply(instructions=self._config.greeting)

        logger.info("Agent session started successfully")

    def _noise_cancellation_selector(self) -> Optional[Callable[[Any], Any]]:
        if not self._config.noise_cancellation:
            return None

        standard = self._probe(NOISE_CANCELLATION_BVC)
        if not standard.available:
            return None
        telephony = self._probe(NOISE_CANCELLATION_BVC_TELEPHONY)

        def select(params):
            if telephony.available and params.participant.kind == rtc.ParticipantKind.PARTICIPANT_KIND_SIP:
                return telephony.instance
            return standard.instance

        return select

    def _probe(self, capability_id: str) -> Capability:
        try:
            return self._capability_loader(capability_id)
        except Exception as e:
            logger.warning("Optional capability %s unavailable, running without it: %s", capability_id, e)
            return Capability(capability_id, reason=str(e))

    # ------------------ Event handlers ------------------

    def _on_metrics_collected(self, ev: MetricsCollectedEvent) -> None:
        collected = getattr(ev, "metrics", None)
        self._aggregator.collect(collected)
        # log_metrics reads attributes only livekit's own metrics models carry
        if isinstance(collected, metrics.AgentMetrics):
            metrics.log_metrics(collected)

    def _on_pipeline_error(self, ev: Any) -> None:
        error = getattr(ev, "error", ev)
        if getattr(error, "recoverable", False):
            logger.warning("Recoverable pipeline error: %s", error)
            return

        failure = SessionRuntimeError(f"unrecoverable pipeline error: {error}")
        logger.error("%s", failure)
        self.fail(failure)

    def _on_participant_disconnected(self, participant: Any) -> None:
        if self._ctx is not None and participant.identity == self._ctx.room.local_participant.identity:
            return
        logger.info("User disconnected: %s", participant.identity)
        self.session_log.add_event(f"User disconnected: {participant.identity}")
        self._schedule_teardown("user_disconnected")

    async def _on_job_shutdown(self, reason: str = "") -> None:
        await self.teardown(f"job_shutdown:{reason}" if reason else "job_shutdown")
        # another trigger may own the teardown; the job must not end before it does
        await self._closed.wait()

    def fail(self, error: BaseException) -> None:
        """Abort a running session: mark it failed and tear it down."""
        if self._cleanup_state is not CleanupState.NOT_STARTED:
            logger.debug("Ignoring failure after teardown started: %s", error)
            return
        if self.failure is None:
            self.failure = error
        self.session_log.add_event(f"Session error: {error}")
        self._lifecycle.handle_event(SessionEvent.FAIL)
        self._schedule_teardown("runtime_error")
        if self._ctx is not None:
            self._ctx.shutdown(reason=str(error))

    def _schedule_teardown(self, reason: str) -> None:
        task = asyncio.create_task(self.teardown(reason))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    # ------------------ Teardown ------------------

    async def teardown(self, reason: str = "normal_end") -> None:
        """Release the session's resources, exactly once.

        Steps run in a fixed order and each is isolated: a failure is
        logged and the next step still runs.
        """
        if self._cleanup_state is not CleanupState.NOT_STARTED:
            logger.debug("Teardown already %s, ignoring %s", self._cleanup_state.value, reason)
            return

        self._cleanup_state = CleanupState.IN_PROGRESS
        self._lifecycle.handle_event(SessionEvent.SHUTDOWN)
        self.session_log.add_event(f"SESSION TERMINATION: {reason}")

        record = self._record
        try:
            if record is None:
                logger.info("No pipeline session was provisioned, nothing to clean up")
            else:
                # 1. Final usage
                await self._run_step("log_usage", self._log_usage, record)

                # 2. Listeners
                await self._run_step("unsubscribe_metrics", self._unsubscribe, record, "metrics_subscription")
                await self._run_step("unsubscribe_errors", self._unsubscribe, record, "error_subscription")
                await self._run_step("detach_room_listener", self._detach_room_listener)

                # 3. Pipeline
                await self._run_step("close_pipeline", self._close_pipeline, record)
        finally:
            # 4. Handles
            if record is not None:
                await self._run_step("release_handles", self._release_handles, record)

            self._cleanup_state = CleanupState.DONE
            self._lifecycle.handle_event(SessionEvent.CLOSED)
            self._closed.set()
            logger.info("Session log:\n%s", self.session_log.get_log())

    async def _run_step(self, name: str, step: Callable[..., Any], *args: Any) -> None:
        try:
            result = step(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            failure = TeardownError(name, e)
            self.teardown_errors.append(failure)
            logger.error("%s", failure, exc_info=e)
            self.session_log.add_step(name, e)
        else:
            self.session_log.add_step(name)

    def _log_usage(self, record: SessionRecord) -> None:
        self.final_usage = self._aggregator.report(record.job_id, self._config.usage_rates)
        logger.info("Usage: %s", json.dumps(self.final_usage.to_dict()))

    def _unsubscribe(self, record: SessionRecord, attribute: str) -> None:
        subscription = getattr(record, attribute)
        if subscription is None:
            return
        record.pipeline.off(subscription.event, subscription.handler)
        setattr(record, attribute, None)

    def _detach_room_listener(self) -> None:
        if self._disconnect_handler is None or self._ctx is None:
            return
        handler, self._disconnect_handler = self._disconnect_handler, None
        self._ctx.room.off(DISCONNECT_EVENT, handler)

    async def _close_pipeline(self, record: SessionRecord) -> None:
        await record.pipeline.aclose()
        self.session_log.add_event("Agent session closed")

    def _release_handles(self, record: SessionRecord) -> None:
        record.release()
        self._record = None
        self._disconnect_handler = None

    # ------------------ Helpers ------------------

    def _require_record(self) -> SessionRecord:
        if self._record is None or self._record.pipeline is None:
            raise SessionRuntimeError("no pipeline session has been provisioned")
        return self._record

    def _on_state_entered(self, state: SessionState) -> None:
        self.session_log.add_state(state.value)
