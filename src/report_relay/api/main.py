"""FastAPI app entrypoint for the report relay.

Beginner terms used in this file:
- FastAPI app: the main web application object.
- Route/path operation: a function exposed over HTTP (for example, GET /ping).
- app.state: a place to store shared runtime objects (store, task manager, ...).
- Exception handler: turns a raised error into an HTTP response.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import APIRouter, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from report_relay.api.schemas import MessageResponse, ReportRequest, TaskResponse
from report_relay.api.ui import render_homepage
from report_relay.config.settings import Settings, get_settings
from report_relay.errors import DispatchError, RelayError
from report_relay.services.agent_client import AgentClient
from report_relay.services.callbacks import CallbackReconciler, ReportCallback
from report_relay.services.dispatch import ReportDispatcher
from report_relay.services.queries import ReportQueryService, ReportView, TaskStatusView
from report_relay.services.tasks import TaskManager
from report_relay.storage.base import RecordStore
from report_relay.storage.memory import InMemoryRecordStore
from report_relay.storage.postgres import PostgresRecordStore

logger = logging.getLogger(__name__)


@dataclass
class RelayServices:
    """Components wired around one store; shared by all route handlers."""

    store: RecordStore
    tasks: TaskManager
    agent: AgentClient
    dispatcher: ReportDispatcher
    reconciler: CallbackReconciler
    queries: ReportQueryService


def build_services(settings: Settings, store: RecordStore) -> RelayServices:
    tasks = TaskManager(store)
    agent = AgentClient(
        tasks,
        base_url=settings.resolved_agent_base_url(),
        callback_url_for=settings.callback_url_for,
        timeout_s=settings.agent_timeout_s,
    )
    return RelayServices(
        store=store,
        tasks=tasks,
        agent=agent,
        dispatcher=ReportDispatcher(tasks, agent),
        reconciler=CallbackReconciler(tasks),
        queries=ReportQueryService(store, tasks),
    )


def build_store(settings: Settings) -> RecordStore:
    backend = settings.store_backend.lower()
    if backend == "memory":
        return InMemoryRecordStore()
    if backend != "postgres":
        raise RuntimeError(f"Unknown store backend: {settings.store_backend!r}")
    return PostgresRecordStore(
        settings.resolved_database_url(),
        connect_timeout_s=settings.db_connect_timeout_s,
    )


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    store_override: RecordStore | None,
) -> None:
    if not hasattr(app.state, "services"):
        store = store_override or build_store(settings)
        store.migrate()
        app.state.services = build_services(settings, store)

    if not hasattr(app.state, "settings"):
        app.state.settings = settings


def create_app(
    *,
    store: RecordStore | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_runtime_state(app, settings=settings, store_override=store)
        yield

    app_lifespan = lifespan if store is None else None
    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=app_lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if store is not None:
        _ensure_runtime_state(app, settings=settings, store_override=store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Origin", "Content-Type"],
        expose_headers=["Content-Length"],
    )

    @app.exception_handler(RelayError)
    async def relay_error_handler(_: Request, exc: RelayError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "detail": jsonable_encoder(exc.errors())},
        )

    def _services(request: Request) -> RelayServices:
        if not hasattr(request.app.state, "services"):
            _ensure_runtime_state(request.app, settings=settings, store_override=store)
        return request.app.state.services

    @app.get("/", response_class=HTMLResponse)
    def home() -> str:
        return render_homepage(app_name=settings.app_name, api_prefix=settings.api_prefix)

    @app.get("/ping")
    def ping() -> dict[str, str]:
        return {"message": "pong"}

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    api = APIRouter(prefix=settings.api_prefix.rstrip("/"))

    @api.post("/reports", status_code=202, response_model=TaskResponse)
    def create_report_task(payload: ReportRequest, request: Request) -> TaskResponse | JSONResponse:
        services = _services(request)
        period = payload.period or settings.default_period
        topic = payload.topic or settings.default_topic
        try:
            task = services.dispatcher.request_report(period, topic)
        except DispatchError as exc:
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to request report generation", "detail": exc.message},
            )
        return TaskResponse(task_id=task.task_id, status=task.status)

    @api.get("/reports/latest", response_model=ReportView)
    def get_latest_report(request: Request) -> ReportView:
        return _services(request).queries.get_latest_report()

    @api.get("/reports/{report_id}", response_model=ReportView)
    def get_report(report_id: str, request: Request) -> ReportView:
        return _services(request).queries.get_report_by_id(report_id)

    @api.get(
        "/tasks/{task_id}/status",
        response_model=TaskStatusView,
        response_model_exclude_none=True,
    )
    def get_task_status(task_id: str, request: Request) -> TaskStatusView:
        return _services(request).queries.get_task_status(task_id)

    @api.get("/tasks/{task_id}/report", response_model=ReportView)
    def get_task_report(task_id: str, request: Request) -> ReportView:
        return _services(request).queries.get_report_for_task(task_id)

    @api.post("/internal/report-callback/{task_id}", response_model=MessageResponse)
    def handle_report_callback(
        task_id: str,
        payload: ReportCallback,
        request: Request,
    ) -> MessageResponse:
        result = _services(request).reconciler.handle(task_id, payload)
        if result.duplicate:
            return MessageResponse(message="Callback already processed")
        return MessageResponse(message="Callback processed successfully")

    app.include_router(api)
    return app


app = create_app()
