"""
Engine proxy agent for padrun.

See manager.py for the singleton lifecycle and agent.py for reporting.
"""

from .agent import AgentState, EngineConfig, ProxyAgent, TraceReport
from .manager import ENGINE_KEY_SECRET, ORIGIN_URL_SECRET, ProxyAgentManager

__all__ = [
    "AgentState",
    "EngineConfig",
    "ProxyAgent",
    "TraceReport",
    "ProxyAgentManager",
    "ENGINE_KEY_SECRET",
    "ORIGIN_URL_SECRET",
]
