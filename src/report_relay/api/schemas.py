"""Request/response bodies of the public HTTP surface."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from report_relay.storage.models import TaskStatus


class ReportRequest(BaseModel):
    """Body of POST /reports. Empty values fall back to configured defaults."""

    # e.g. "24h", "7d"
    period: str = Field(default="", max_length=32)
    # Accepted and defaulted, but not forwarded to the agent.
    topic: str = Field(default="", max_length=128)


class TaskResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    task_id: str
    status: TaskStatus


class MessageResponse(BaseModel):
    message: str
