"""Tests for the HTTP endpoints."""

import json
from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from sheets_api.client import SheetClient
from sheets_api.config import Settings
from sheets_api.credentials import ServiceAccountCredential
from sheets_api.main import create_app
from sheets_api.row_mapper import RowMapper
from tests.fakes import FakeClock, FakeSheetsBackend, create_http_client

PROJECTS = {
    "motobarn": {
        "sheetId": "sheet123",
        "ranges": {"leads": "Leads!A:Z", "archive": "Archive!A:Z"},
    }
}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        sa_email="",
        sa_private_key="",
        service_account_file="",
        projects_config=json.dumps(PROJECTS),
    )


@pytest.fixture
def app(
    settings: Settings,
    backend: FakeSheetsBackend,
    credential: ServiceAccountCredential,
    clock: FakeClock,
) -> FastAPI:
    """App whose row mapper talks to the fake backend."""
    app = create_app(settings)
    client = SheetClient(credential, http_client=create_http_client(backend), clock=clock)
    app.state.row_mapper = RowMapper(client)
    return app


@pytest.fixture
def http(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as client:
        yield client


class TestHealth:
    """Tests for the health endpoints."""

    def test_health(self, http: TestClient) -> None:
        response = http.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "sheets-api"

    def test_ready(self, http: TestClient) -> None:
        body = http.get("/health/ready").json()

        assert body["status"] == "ready"
        assert body["credential_configured"] is True


class TestConfiguredLists:
    """Tests for /{project_id}/{list_name}."""

    def test_append_single_record(self, http: TestClient, backend: FakeSheetsBackend) -> None:
        response = http.post("/motobarn/leads", json={"data": {"a": 1, "b": "x"}})

        assert response.status_code == 200
        assert response.json() == {"ok": True, "written": 1}
        assert backend.append_requests[0]["range"] == "Leads!A:Z"
        assert backend.append_requests[0]["values"] == [[1, "x"]]

    def test_append_list(self, http: TestClient, backend: FakeSheetsBackend) -> None:
        response = http.post("/motobarn/leads", json={"data": [{"a": 1}, {"b": 2}]})

        assert response.json() == {"ok": True, "written": 2}
        assert backend.append_requests[0]["values"] == [[1, ""], ["", 2]]

    def test_read_objects(self, http: TestClient, backend: FakeSheetsBackend) -> None:
        backend.spreadsheets["sheet123"].tabs["Archive"].append(["Ada", "ada@example.com"])

        response = http.get("/motobarn/archive")

        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "data": [{"name": "Ada", "email": "ada@example.com"}],
            "count": 2,
        }

    def test_read_raw(self, http: TestClient) -> None:
        response = http.get("/motobarn/archive", params={"format": "raw"})

        assert response.json() == {"ok": True, "data": [["name", "email"]], "count": 1}

    def test_bad_format(self, http: TestClient) -> None:
        response = http.get("/motobarn/archive", params={"format": "csv"})

        assert response.status_code == 400
        body = response.json()
        assert body["ok"] is False
        assert body["error"] == "validation_error"
        assert body["kind"] == "invalid_format"

    def test_unknown_project(self, http: TestClient, backend: FakeSheetsBackend) -> None:
        response = http.post("/nope/leads", json={"data": {"a": 1}})

        assert response.status_code == 404
        assert response.json() == {
            "ok": False,
            "error": "config_error",
            "kind": "unknown_project",
            "detail": 'Project "nope" not found',
        }
        assert backend.requests == []

    def test_unknown_list(self, http: TestClient) -> None:
        response = http.get("/motobarn/nope")

        assert response.status_code == 404
        assert response.json()["kind"] == "unknown_list"

    @pytest.mark.parametrize(
        "body",
        [{}, {"data": "text"}, {"data": [1, 2]}, {"rows": [{"a": 1}]}],
    )
    def test_malformed_body(self, http: TestClient, body: dict) -> None:
        response = http.post("/motobarn/leads", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert response.json()["kind"] == "invalid_payload"

    def test_nested_value(self, http: TestClient, backend: FakeSheetsBackend) -> None:
        response = http.post("/motobarn/leads", json={"data": {"a": {"b": 1}}})

        assert response.status_code == 400
        assert response.json()["kind"] == "invalid_payload"
        assert backend.append_requests == []


class TestDirectRanges:
    """Tests for /sheets/{spreadsheet_id}/{range}."""

    def test_append_and_read(self, http: TestClient) -> None:
        """Rows carry no header of their own; reads key them by the sheet's header."""
        http.post("/sheets/sheet123/Leads!A:Z", json={"data": {"a": "1", "b": "2"}})

        response = http.get("/sheets/sheet123/Leads!A:Z")

        assert response.json() == {
            "ok": True,
            "data": [{"a": "1", "b": "2", "c": ""}],
            "count": 2,
        }

    def test_missing_tab(self, http: TestClient) -> None:
        response = http.post("/sheets/sheet123/Nope!A:Z", json={"data": {"a": 1}})

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "sheet_error"
        assert body["kind"] == "sheet_not_found"

    def test_unknown_spreadsheet(self, http: TestClient) -> None:
        response = http.get("/sheets/missing/Leads!A:Z")

        assert response.status_code == 502
        assert response.json()["kind"] == "read_failed"

    def test_token_failure(self, http: TestClient, backend: FakeSheetsBackend) -> None:
        backend.fail_token_with = (400, '{"error": "invalid_grant"}')

        response = http.get("/sheets/sheet123/Leads!A:Z")

        assert response.status_code == 502
        assert response.json() == {
            "ok": False,
            "error": "auth_error",
            "kind": "token_exchange_failed",
            "detail": '{"error": "invalid_grant"}',
        }


class TestWithoutCredential:
    """Tests for an app started with no service account configured."""

    def test_requests_report_missing_credential(self, settings: Settings) -> None:
        with TestClient(create_app(settings)) as http:
            response = http.get("/motobarn/leads")
            ready = http.get("/health/ready").json()

        assert response.status_code == 500
        assert response.json()["error"] == "config_error"
        assert response.json()["kind"] == "missing_credential"
        assert ready["credential_configured"] is False


class TestCors:
    """Tests for browser access."""

    def test_preflight(self, http: TestClient) -> None:
        response = http.options(
            "/motobarn/leads",
            headers={
                "Origin": "https://site.example",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_simple_request(self, http: TestClient) -> None:
        response = http.get("/health", headers={"Origin": "https://site.example"})
        assert response.headers["access-control-allow-origin"] == "*"
