"""Status and notification publishing to the monitoring dashboard."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol

from night_shift.http.client import DashboardClient, DashboardRequestError
from night_shift.orchestrator.health import AgentSnapshot
from night_shift.orchestrator.models import utc_now

logger = logging.getLogger(__name__)

SYNC_PATH = "/api/sync"
AGENTS_PATH = "/api/agents"


class AgentState(str, Enum):
    """Runner states published to the dashboard."""

    ACTIVE = "active"
    IDLE = "idle"
    ERROR = "error"


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class MonitorSink(Protocol):
    """Best-effort sink: implementations must not raise."""

    async def publish_status(
        self,
        agent_name: str,
        state: AgentState,
        success_rate: float | None = None,
        succeeded: int | None = None,
        failed: int | None = None,
    ) -> bool:
        """Publish the runner state; return whether it was delivered."""

    async def notify(self, title: str, message: str, severity: Severity) -> bool:
        """Send a notification; return whether it was delivered."""


class DashboardMonitor:
    """Publishes runner status and notifications through ``/api/sync``."""

    def __init__(self, client: DashboardClient) -> None:
        self._client = client

    async def publish_status(
        self,
        agent_name: str,
        state: AgentState,
        success_rate: float | None = None,
        succeeded: int | None = None,
        failed: int | None = None,
    ) -> bool:
        update: dict[str, Any] = {
            "name": agent_name,
            "status": state.value,
            "lastSeen": utc_now().isoformat(),
        }
        if success_rate is not None:
            update["score"] = success_rate
        if succeeded is not None:
            update["tasksToday"] = succeeded
        if failed is not None:
            update["errorsToday"] = failed
        try:
            await self._client.post(SYNC_PATH, {"agents": [update]})
        except DashboardRequestError as error:
            logger.warning("Failed to sync agent status for %s: %s", agent_name, error)
            return False
        logger.debug("Agent status synced: %s - %s", agent_name, state.value)
        return True

    async def notify(self, title: str, message: str, severity: Severity) -> bool:
        notification = {
            "title": title,
            "message": message,
            "type": severity.value,
            "link": None,
            "timestamp": utc_now().isoformat(),
            "read": False,
        }
        try:
            await self._client.post(SYNC_PATH, {"notifications": [notification]})
        except DashboardRequestError as error:
            logger.warning("Failed to send notification %r: %s", title, error)
            return False
        logger.info("Notification sent: %s (%s)", title, severity.value)
        return True

    async def fetch_agent_snapshots(self) -> list[AgentSnapshot]:
        """Pull per-agent status snapshots; request failures propagate."""

        response = await self._client.get(AGENTS_PATH)
        return [AgentSnapshot.from_api(item) for item in response.get("agents") or []]
