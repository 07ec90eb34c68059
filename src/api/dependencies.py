"""Service singletons and dependency injection for the Shorts API."""

from shorts_agent import ShortsProductionAgent
from utils.config import load_config

# Service singletons
_agent: ShortsProductionAgent | None = None


def get_agent() -> ShortsProductionAgent:
    """Get or create the shorts production agent."""
    global _agent
    if _agent is None:
        _agent = ShortsProductionAgent(load_config())
    return _agent


async def close_agent() -> None:
    """Close and forget the agent, if one was created."""
    global _agent
    if _agent is not None:
        await _agent.close()
        _agent = None
