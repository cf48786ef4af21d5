from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from shelf.config import RunConfig
from shelf.main import register_routes
from shelf.models import ExportResult
from shelf.services.exporter import LibraryExporter
from shelf.services.profiles import ProfileRepository, ProfileState
from shelf.services.reporting import ProgressReporter


class DummyExporter(LibraryExporter):
    """Minimal LibraryExporter stub recording what each run received."""

    def __init__(self) -> None:  # pragma: no cover - nothing to initialise
        # Skip super().__init__ so no HTTP client is needed.
        self.calls: list[tuple[str, RunConfig, str | None]] = []

    async def run(self, config, credentials, progress: ProgressReporter | None = None):  # type: ignore[override]
        self.calls.append(("full", config, credentials()))
        if progress is not None:
            progress.items_discovered(2)
            progress.done()
        return ExportResult(report='"header"\n', record_count=2, mode=config.mode)

    async def run_basic(self, config, credentials, progress: ProgressReporter | None = None):  # type: ignore[override]
        self.calls.append(("basic", config, credentials()))
        return ExportResult(report='"basic"\n', record_count=1, mode=config.mode)


class DummyProfiles(ProfileRepository):
    """In-memory profile store."""

    def __init__(self) -> None:  # pragma: no cover - nothing to initialise
        self.state = ProfileState(
            id="default",
            anonymous_id="abcd1234",
            customer_name="Jane Doe",
            customer_email=None,
            mode="preview",
            concurrency_limit=7,
        )
        self.exports = 0

    async def load(self, profile_id: str = "default") -> ProfileState:  # type: ignore[override]
        return self.state

    async def save(self, profile_id: str = "default", **changes) -> ProfileState:  # type: ignore[override]
        for key, value in changes.items():
            if value is not None:
                setattr(self.state, key, value)
        return self.state

    async def mark_exported(self, profile_id: str = "default") -> None:  # type: ignore[override]
        self.exports += 1


def _app() -> tuple[FastAPI, DummyExporter, DummyProfiles]:
    app = FastAPI()
    register_routes(app)
    exporter = DummyExporter()
    profiles = DummyProfiles()
    app.state.exporter = exporter
    app.state.profiles = profiles
    return app, exporter, profiles


def test_export_uses_profile_defaults_and_body_token() -> None:
    app, exporter, profiles = _app()

    with TestClient(app) as client:
        response = client.post("/exports", json={"csrfToken": "body-token"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["x-record-count"] == "2"
    assert response.text == '"header"\n'
    kind, config, token = exporter.calls[0]
    assert kind == "full"
    assert token == "body-token"
    assert config.mode == "preview"
    assert config.concurrency_limit == 7
    assert config.customer_name == "Jane Doe"
    assert config.anonymous_id == "abcd1234"
    assert profiles.exports == 1


def test_export_request_overrides_and_header_token() -> None:
    app, exporter, _ = _app()

    with TestClient(app) as client:
        response = client.post(
            "/exports",
            json={"kind": "basic", "mode": "full access", "concurrencyLimit": 3},
            headers={"x-csrf-token": "header-token"},
        )

    assert response.status_code == 200
    kind, config, token = exporter.calls[0]
    assert kind == "basic"
    assert token == "header-token"
    assert config.mode == "full"
    assert config.concurrency_limit == 3


def test_export_rejects_invalid_options() -> None:
    app, exporter, _ = _app()

    with TestClient(app) as client:
        response = client.post("/exports", json={"concurrencyLimit": 0})

    assert response.status_code == 422
    assert exporter.calls == []


def test_progress_reflects_latest_run() -> None:
    app, _, _ = _app()

    with TestClient(app) as client:
        before = client.get("/progress").json()
        client.post("/exports", json={"csrfToken": "token"})
        after = client.get("/progress").json()

    assert before == {"overall": 0, "pages": 0, "phases": {}, "done": False}
    assert after["overall"] == 2
    assert after["done"] is True


def test_profile_update_round_trip() -> None:
    app, _, _ = _app()

    with TestClient(app) as client:
        response = client.put(
            "/profile", json={"customerEmail": "jane@example.com", "mode": "trial"}
        )
        fetched = client.get("/profile")

    assert response.status_code == 200
    payload = fetched.json()
    assert payload["customerEmail"] == "jane@example.com"
    assert payload["mode"] == "preview"
    assert payload["anonymousId"] == "abcd1234"
    assert payload["lastExportAt"] is None


def test_health() -> None:
    app, _, _ = _app()

    with TestClient(app) as client:
        assert client.get("/health").json() == {"status": "ok"}
