"""
End-to-end tests for the link resolution HTTP service.

These tests build real SQLite databases, start the FastAPI application
(lifespan included) and exercise the full round-trip from query parameters
to the JSON response.

Run with: pytest tests/integration/link_resolution/ -v
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.services.link_resolution.config import LinkServiceConfig
from src.services.link_resolution.errors import RelationConnectionError, SchemaError
from src.services.link_resolution.schema import load_schema
from src.services.link_resolution.transports.http import create_app

SCHEMA_TEMPLATE = """
listen = "127.0.0.1:3000"

[[fields]]
id = "user_id"
distinct = true

[[fields]]
id = "email"
distinct = true

[[fields]]
id = "country"

[[relations]]
name = "r1"
connect = "sqlite://{users}"
table_name = "users"
fields = [
  {{ id = "user_id", query = "CAST(id AS TEXT)" }},
  {{ id = "email", query = "email" }},
]

[[relations]]
name = "r2"
connect = "{accounts_connect}"
table_name = "accounts"
fields = [
  {{ id = "email", query = "email" }},
  {{ id = "country", query = "country" }},
]
"""


def _create_db(path: Path, ddl: str, insert: str, rows: list[tuple]) -> Path:
    conn = sqlite3.connect(path)
    try:
        conn.execute(ddl)
        conn.executemany(insert, rows)
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def databases(tmp_path: Path) -> dict[str, Path]:
    users = _create_db(
        tmp_path / "users.db",
        "CREATE TABLE users (id INTEGER PRIMARY KEY, email TEXT)",
        "INSERT INTO users VALUES (?, ?)",
        [(42, "a@x.com"), (43, "b@x.com")],
    )
    accounts = _create_db(
        tmp_path / "accounts.db",
        "CREATE TABLE accounts (email TEXT, country TEXT)",
        "INSERT INTO accounts VALUES (?, ?)",
        [("a@x.com", "US"), ("b@x.com", "FR")],
    )
    return {"users": users, "accounts": accounts}


def _write_schema(tmp_path: Path, databases: dict[str, Path], accounts_connect: str | None = None) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(
        SCHEMA_TEMPLATE.format(
            users=databases["users"],
            accounts_connect=accounts_connect or f"sqlite://{databases['accounts']}",
        )
    )
    return path


@pytest.fixture
def config(tmp_path: Path, databases: dict[str, Path]) -> LinkServiceConfig:
    schema_path = _write_schema(tmp_path, databases)
    return LinkServiceConfig(schema_path=str(schema_path), _env_file=None)


@pytest.fixture
def client(config: LinkServiceConfig):
    with TestClient(create_app(config)) as client:
        yield client


class TestQueryEndpoint:
    """Tests for GET /query."""

    def test_resolves_linked_values(self, client: TestClient) -> None:
        response = client.get("/query", params={"user_id": "42"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "",
            "data": {"country": ["US"], "email": ["a@x.com"]},
        }

    def test_unknown_field_is_reported_with_200(self, client: TestClient) -> None:
        response = client.get("/query", params={"bogus_field": "1"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert "no relation has field `bogus_field`" in body["message"]
        assert body["data"] == {}

    def test_repeated_parameters_are_all_seeds(self, client: TestClient) -> None:
        response = client.get("/query?user_id=42&user_id=43")

        assert response.json()["data"] == {
            "country": ["FR", "US"],
            "email": ["a@x.com", "b@x.com"],
        }

    def test_identical_requests_identical_responses(self, client: TestClient) -> None:
        first = client.get("/query", params={"email": "b@x.com"}).json()
        second = client.get("/query", params={"email": "b@x.com"}).json()

        assert first == second
        assert first["data"] == {"country": ["FR"], "user_id": ["43"]}

    def test_no_parameters(self, client: TestClient) -> None:
        response = client.get("/query")

        assert response.json() == {"success": True, "message": "", "data": {}}

    def test_depth_limit_keeps_partial_data(self, tmp_path: Path, databases) -> None:
        schema_path = _write_schema(tmp_path, databases)
        config = LinkServiceConfig(schema_path=str(schema_path), max_depth=1, _env_file=None)

        with TestClient(create_app(config)) as client:
            body = client.get("/query", params={"user_id": "42"}).json()

        assert body["success"] is True
        assert body["message"] == "depth length limit exceeded"
        assert body["data"] == {"email": ["a@x.com"]}

    def test_lookup_failure_is_reported_with_200(self, tmp_path: Path, databases) -> None:
        """A table missing at query time fails only that request."""
        schema_path = tmp_path / "config.toml"
        schema_path.write_text(
            SCHEMA_TEMPLATE.format(
                users=databases["users"],
                accounts_connect=f"sqlite://{databases['accounts']}",
            ).replace('table_name = "accounts"', 'table_name = "no_such_table"')
        )
        config = LinkServiceConfig(schema_path=str(schema_path), _env_file=None)

        with TestClient(create_app(config)) as client:
            response = client.get("/query", params={"user_id": "42"})
            health = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["message"].startswith(
            "failed to query relation `r2` with field `email`, value `a@x.com`"
        )
        assert body["data"] == {}
        assert health.status_code == 200


class TestProbes:
    """Tests for service info and probes."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_ready(self, client: TestClient) -> None:
        response = client.get("/ready")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["checks"]["r1"]["connected"] is True
        assert body["checks"]["r2"]["connected"] is True

    def test_root_lists_schema(self, client: TestClient) -> None:
        body = client.get("/").json()

        assert body["name"] == "link-resolution"
        assert body["endpoints"]["query"] == "/query"
        assert body["relations"] == ["r1", "r2"]
        assert {"id": "country", "distinct": False} in body["fields"]


class TestStartupFailures:
    """Startup-class errors prevent the service from serving."""

    def test_invalid_connection_descriptor(self, tmp_path: Path, databases) -> None:
        schema_path = _write_schema(tmp_path, databases, accounts_connect="nosuchdb://nowhere")
        config = LinkServiceConfig(schema_path=str(schema_path), _env_file=None)
        app = create_app(config)

        with pytest.raises(RelationConnectionError, match="relation r2"):
            with TestClient(app):
                pass

    def test_unreachable_database(self, tmp_path: Path, databases) -> None:
        schema_path = _write_schema(
            tmp_path, databases, accounts_connect=f"sqlite://{tmp_path / 'gone.db'}"
        )
        config = LinkServiceConfig(schema_path=str(schema_path), _env_file=None)

        with pytest.raises(RelationConnectionError):
            with TestClient(create_app(config)):
                pass

    def test_undeclared_field_rejected_before_serving(self, tmp_path: Path, databases) -> None:
        schema_path = _write_schema(tmp_path, databases)
        schema_path.write_text(schema_path.read_text().replace('id = "country"\n', 'id = "region"\n', 1))
        config = LinkServiceConfig(schema_path=str(schema_path), _env_file=None)

        with pytest.raises(SchemaError, match="undeclared field `country`"):
            create_app(config)

    def test_schema_object_can_be_passed(self, config: LinkServiceConfig) -> None:
        schema = load_schema(config.schema_path)

        with TestClient(create_app(config, schema)) as client:
            assert client.get("/query", params={"user_id": "43"}).json()["data"] == {
                "country": ["FR"],
                "email": ["b@x.com"],
            }
