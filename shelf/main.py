"""Entry point for the FastAPI-powered library export service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, Literal

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from .config import ExportMode, RunConfig, normalize_mode, settings
from .database import Database
from .report import use_system_collation
from .services.exporter import LibraryExporter, static_credentials
from .services.profiles import ProfileRepository
from .services.reporting import ProgressTracker

logging.basicConfig(level=logging.INFO)
use_system_collation()
logger = logging.getLogger(__name__)

app: FastAPI


class ExportRequest(BaseModel):
    """Options the host UI sends to start an export."""

    kind: Literal["full", "basic"] = "full"
    mode: ExportMode | None = None
    concurrency_limit: int | None = Field(
        default=None,
        ge=1,
        le=200,
        validation_alias=AliasChoices("concurrencyLimit", "concurrency_limit"),
    )
    customer_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("customerName", "customer_name"),
    )
    customer_email: str | None = Field(
        default=None,
        validation_alias=AliasChoices("customerEmail", "customer_email"),
    )
    csrf_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("csrfToken", "csrf_token"),
    )

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: object) -> object:
        if value is None or value == "":
            return None
        return normalize_mode(value)


class ProfileUpdate(BaseModel):
    customer_name: str | None = Field(
        default=None, validation_alias=AliasChoices("customerName", "customer_name")
    )
    customer_email: str | None = Field(
        default=None, validation_alias=AliasChoices("customerEmail", "customer_email")
    )
    mode: ExportMode | None = None
    concurrency_limit: int | None = Field(
        default=None,
        ge=1,
        le=200,
        validation_alias=AliasChoices("concurrencyLimit", "concurrency_limit"),
    )

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: object) -> object:
        if value is None or value == "":
            return None
        return normalize_mode(value)


@asynccontextmanager
async def lifespan(_: FastAPI):
    exit_stack = AsyncExitStack()
    http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.api_base_url),
            timeout=httpx.Timeout(30.0, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    app.state.exporter = LibraryExporter(settings, http_client)
    app.state.profiles = ProfileRepository(settings, database.session_factory)
    app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Export an enriched list of your purchased books",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["*"],
    )

    fastapi_app.state.progress = ProgressTracker()

    register_routes(fastapi_app)
    return fastapi_app


def get_exporter(app: FastAPI) -> LibraryExporter:
    exporter = getattr(app.state, "exporter", None)
    if not isinstance(exporter, LibraryExporter):
        raise RuntimeError("Library exporter not initialised")
    return exporter


def get_profiles(app: FastAPI) -> ProfileRepository:
    profiles = getattr(app.state, "profiles", None)
    if not isinstance(profiles, ProfileRepository):
        raise RuntimeError("Profile repository not initialised")
    return profiles


def _profile_payload(state: Any) -> dict[str, Any]:
    return {
        "customerName": state.customer_name,
        "customerEmail": state.customer_email,
        "mode": state.mode,
        "concurrencyLimit": state.concurrency_limit,
        "anonymousId": state.anonymous_id,
        "lastExportAt": state.last_export_at.isoformat() if state.last_export_at else None,
    }


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/progress")
    async def progress() -> dict[str, Any]:
        tracker = getattr(fastapi_app.state, "progress", None)
        if not isinstance(tracker, ProgressTracker):
            return ProgressTracker().snapshot()
        return tracker.snapshot()

    @fastapi_app.get("/profile")
    async def read_profile() -> dict[str, Any]:
        state = await get_profiles(fastapi_app).load()
        return _profile_payload(state)

    @fastapi_app.put("/profile")
    async def update_profile(request: Request) -> dict[str, Any]:
        try:
            update = ProfileUpdate.model_validate(await _json_body(request))
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.errors()) from exc
        state = await get_profiles(fastapi_app).save(
            customer_name=update.customer_name,
            customer_email=update.customer_email,
            mode=update.mode,
            concurrency_limit=update.concurrency_limit,
        )
        return _profile_payload(state)

    @fastapi_app.post("/exports", response_class=PlainTextResponse)
    async def create_export(request: Request) -> PlainTextResponse:
        try:
            options = ExportRequest.model_validate(await _json_body(request))
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.errors()) from exc

        profiles = get_profiles(fastapi_app)
        profile = await profiles.load()
        config = RunConfig.from_settings(
            settings,
            mode=options.mode or profile.mode,
            concurrency_limit=options.concurrency_limit or profile.concurrency_limit,
            customer_name=options.customer_name or profile.customer_name,
            customer_email=options.customer_email or profile.customer_email,
            anonymous_id=profile.anonymous_id,
        )
        token = (
            options.csrf_token
            or request.headers.get("x-csrf-token")
            or settings.csrf_token
        )
        tracker = ProgressTracker()
        fastapi_app.state.progress = tracker

        exporter = get_exporter(fastapi_app)
        if options.kind == "basic":
            result = await exporter.run_basic(config, static_credentials(token), tracker)
        else:
            result = await exporter.run(config, static_credentials(token), tracker)
        await profiles.mark_exported()

        return PlainTextResponse(
            result.report,
            media_type="text/csv",
            headers={
                "Content-Disposition": 'attachment; filename="library.csv"',
                "X-Record-Count": str(result.record_count),
            },
        )


async def _json_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        payload = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Body must be JSON") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")
    return payload


app = create_app()
