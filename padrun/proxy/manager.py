"""
Proxy Agent Manager.

Starts at most one engine agent per warm process, the first time a
request's tenant context carries the engine credential.

Rules:
    - No agent and no credential -> no proxying (None)
    - Agent already created       -> the same agent, credential or not
    - Otherwise                   -> create, store, start in background

Startup is fire-and-forget: the request that triggers it does not wait
for the agent to come up. A startup failure is logged and the process
continues without proxying; the agent is not recreated.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from padrun.proxy.agent import DEFAULT_REPORT_URL, EngineConfig, ProxyAgent
from padrun.runtime.state import ProcessState

logger = logging.getLogger(__name__)

ENGINE_KEY_SECRET = "APOLLO_ENGINE_KEY"
ORIGIN_URL_SECRET = "url"

AgentFactory = Callable[[EngineConfig], ProxyAgent]


class ProxyAgentManager:
    """
    Owns the proxy agent singleton stored on ProcessState.

    Example:
        manager = ProxyAgentManager(state)
        agent = manager.ensure_started(tenant_context, request_url)
        if agent is not None and agent.route(ctx):
            ...
    """

    def __init__(
        self,
        state: ProcessState,
        *,
        report_url: str = DEFAULT_REPORT_URL,
        report_interval: float = 10.0,
        timeout: float = 5.0,
        debug_reports: bool = True,
        agent_factory: AgentFactory = ProxyAgent,
    ):
        self._state = state
        self._report_url = report_url
        self._report_interval = report_interval
        self._timeout = timeout
        self._debug_reports = debug_reports
        self._agent_factory = agent_factory
        self._start_task: asyncio.Task[None] | None = None
        self.starts = 0
        self.start_error: Exception | None = None

    @property
    def agent(self) -> ProxyAgent | None:
        return self._state.agent

    def ensure_started(
        self,
        tenant_context: dict[str, str],
        request_url: str,
    ) -> ProxyAgent | None:
        """
        Return the process agent, starting it if the credential is present.

        Args:
            tenant_context: Current invocation's tenant context
            request_url: Invocation URL the agent is bound to

        Returns:
            The active agent, or None when proxying is not enabled
        """
        if self._state.agent is not None:
            return self._state.agent

        api_key = tenant_context.get(ENGINE_KEY_SECRET)
        if not api_key:
            return None

        config = EngineConfig(
            api_key=api_key,
            origin_url=request_url,
            report_url=self._report_url,
            report_interval=self._report_interval,
            timeout=self._timeout,
            debug_reports=self._debug_reports,
        )
        agent = self._agent_factory(config)
        self._state.agent = agent
        self.starts += 1

        self._start_task = asyncio.ensure_future(self._start(agent))
        logger.info(f"[engine] Starting agent for {request_url}")
        return agent

    async def _start(self, agent: ProxyAgent) -> None:
        try:
            await agent.start()
        except Exception as e:
            self.start_error = e
            logger.warning(f"[engine] Agent failed to start, continuing without proxying: {e}")

    async def wait_started(self) -> None:
        """Wait for a pending background start. Used by tests and shutdown."""
        if self._start_task is not None:
            await self._start_task
