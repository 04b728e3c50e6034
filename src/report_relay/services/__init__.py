"""Task lifecycle, agent dispatch, callback reconciliation and queries."""

from report_relay.services.agent_client import AgentClient
from report_relay.services.callbacks import CallbackReconciler, CallbackResult, ReportCallback
from report_relay.services.dispatch import ReportDispatcher
from report_relay.services.queries import ReportQueryService, ReportView, TaskStatusView
from report_relay.services.tasks import ALLOWED_TRANSITIONS, TaskManager

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AgentClient",
    "CallbackReconciler",
    "CallbackResult",
    "ReportCallback",
    "ReportDispatcher",
    "ReportQueryService",
    "ReportView",
    "TaskManager",
    "TaskStatusView",
]
