from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any
from urllib import error, request

from report_relay.errors import DispatchError, InvalidTransitionError
from report_relay.services.tasks import TaskManager
from report_relay.storage.models import TaskRecord, TaskStatus

logger = logging.getLogger(__name__)

GENERATE_PATH = "/agent/generate-ai-news"
ACCEPTED_STATUS_CODES = frozenset({200, 202})


class AgentClient:
    """Sends report-generation requests to the external agent.

    The agent answers right away and delivers the report later through the
    callback URL, so ``request_generation`` never sees the result.
    """

    def __init__(
        self,
        tasks: TaskManager,
        *,
        base_url: str,
        callback_url_for: Callable[[str], str],
        timeout_s: float = 10.0,
    ) -> None:
        self.tasks = tasks
        self.base_url = base_url.rstrip("/")
        self.callback_url_for = callback_url_for
        self.timeout_s = timeout_s

    def request_generation(self, task_id: str, period: str, topic: str) -> TaskRecord:
        """Dispatch generation for ``task_id`` and move the task to RUNNING.

        ``topic`` is accepted for the public contract but the agent endpoint
        only takes ``period``; it is not forwarded.
        """
        url = f"{self.base_url}{GENERATE_PATH}"
        payload = {"period": period, "callbackUrl": self.callback_url_for(task_id)}
        logger.info(
            "dispatch event=start task_id=%s period=%s topic=%s url=%s",
            task_id,
            period,
            topic,
            url,
        )
        status_code = self._post_json(url, payload)
        if status_code not in ACCEPTED_STATUS_CODES:
            raise DispatchError(f"Agent service returned non-OK status: {status_code}")
        logger.info("dispatch event=accepted task_id=%s status_code=%d", task_id, status_code)

        try:
            return self.tasks.transition(task_id, TaskStatus.RUNNING)
        except InvalidTransitionError as exc:
            # A fast callback may already have moved the task past PENDING.
            logger.info(
                "dispatch event=running_skipped task_id=%s current=%s",
                task_id,
                exc.current,
            )
            return self.tasks.get(task_id)

    def _post_json(self, url: str, payload: dict[str, Any]) -> int:
        raw_payload = json.dumps(payload).encode("utf-8")
        req = request.Request(
            url=url,
            method="POST",
            data=raw_payload,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                return int(response.status)
        except error.HTTPError as exc:
            exc.close()
            return int(exc.code)
        except error.URLError as exc:
            raise DispatchError(f"Failed to send request to agent service: {exc.reason}") from exc
        except (TimeoutError, OSError) as exc:
            raise DispatchError(f"Failed to send request to agent service: {exc}") from exc
