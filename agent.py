from dotenv import load_dotenv
from livekit import agents
from livekit.agents import Agent, AgentServer, JobProcess
from livekit.plugins import silero
import logging

from lifecycle.controller import SessionController
from pipeline import build_session
from settings import PipelineConfig


load_dotenv(".env.local")
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("voice-agent")


class Assistant(Agent):
    def __init__(self, instructions: str) -> None:
        super().__init__(instructions=instructions)


server = AgentServer()


def prewarm(proc: JobProcess):
    proc.userdata["vad"] = silero.VAD.load()


server.setup_fnc = prewarm


@server.rtc_session()
async def my_agent(ctx: agents.JobContext):
    logger.info("Starting new agent session")

    config = PipelineConfig.from_env()
    controller = SessionController(
        config,
        agent_factory=lambda: Assistant(config.instructions),
        session_factory=build_session,
    )
    await controller.run(ctx)


if __name__ == "__main__":
    agents.cli.run_app(server)
