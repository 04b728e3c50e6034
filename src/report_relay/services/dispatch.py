from __future__ import annotations

import logging

from report_relay.errors import RelayError
from report_relay.services.agent_client import AgentClient
from report_relay.services.tasks import TaskManager
from report_relay.storage.models import TaskRecord, TaskStatus

logger = logging.getLogger(__name__)


class ReportDispatcher:
    """Public "request a report" flow: create the task, then hand it to the agent."""

    def __init__(self, tasks: TaskManager, agent: AgentClient) -> None:
        self.tasks = tasks
        self.agent = agent

    def request_report(self, period: str, topic: str) -> TaskRecord:
        """Return the task as created (PENDING).

        Raises DispatchError if the agent refused it, or the StoreError of a
        failed RUNNING update. Either way the task is marked FAILED first.
        """
        task = self.tasks.create()
        try:
            self.agent.request_generation(task.task_id, period, topic)
        except RelayError as exc:
            logger.warning("dispatch event=failed task_id=%s reason=%s", task.task_id, exc)
            self._mark_failed(task.task_id, exc.message)
            raise
        return task

    def _mark_failed(self, task_id: str, message: str) -> None:
        try:
            self.tasks.transition(task_id, TaskStatus.FAILED, error_message=message)
        except RelayError:
            logger.exception("dispatch event=mark_failed_error task_id=%s", task_id)
