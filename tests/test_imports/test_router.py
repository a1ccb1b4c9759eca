"""Tests for the imports API routes."""

import inspect
import io

import pytest
from fastapi.testclient import TestClient

from app.imports.router import router

HOURS_CSV = (
    b"Employee ID,Hours Worked,Period Start,Period End,Notes\n"
    b"E100,40,2024-01-01,2024-01-07,\n"
    b"E101,32.5,2024-01-01,2024-01-07,PTO Friday\n"
    b"E999,38,2024-01-01,2024-01-07,\n"
)

MAPPING = {
    "Employee ID": "employee_id",
    "Hours Worked": "hours",
    "Period Start": "period_start",
    "Period End": "period_end",
    "Notes": "notes",
}


def _upload(content: bytes = HOURS_CSV, name: str = "hours.csv"):
    return {"file": (name, io.BytesIO(content), "text/csv")}


@pytest.fixture
def session_id(client: TestClient, employees, employer_headers) -> str:
    response = client.post("/api/imports/sessions", files=_upload(), headers=employer_headers)
    assert response.status_code == 201
    return response.json()["id"]


class TestSessionRoutes:
    """Tests for the session lifecycle over HTTP."""

    def test_missing_employer(self, client):
        """Test requests without an employer scope are rejected."""
        response = client.post("/api/imports/sessions", files=_upload())

        assert response.status_code == 401

    def test_create_session(self, client, employees, employer_headers):
        """Test uploading a file starts a session with detected columns."""
        response = client.post("/api/imports/sessions", files=_upload(), headers=employer_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "created"
        assert data["row_count"] == 3
        assert data["detected_columns"][0]["name"] == "Employee ID"
        assert data["detected_columns"][0]["suggested_field"] == "employee_id"

    def test_unsupported_file(self, client, employer_headers):
        """Test unsupported uploads are a bad request."""
        response = client.post(
            "/api/imports/sessions", files=_upload(name="hours.txt"), headers=employer_headers
        )

        assert response.status_code == 400

    def test_get_unknown_session(self, client, employer_headers):
        """Test unknown sessions are not found."""
        response = client.get("/api/imports/sessions/does-not-exist", headers=employer_headers)

        assert response.status_code == 404

    def test_other_employer_cannot_see_session(self, client, session_id, other_employer_id):
        """Test sessions are scoped to the employer."""
        response = client.get(
            f"/api/imports/sessions/{session_id}",
            headers={"X-Employer-Id": other_employer_id},
        )

        assert response.status_code == 404

    def test_full_flow(self, client, session_id, employer_headers):
        """Test map, preview and commit."""
        response = client.put(
            f"/api/imports/sessions/{session_id}/mappings",
            json={"column_mappings": MAPPING, "match_strategy": "id"},
            headers=employer_headers,
        )
        assert response.status_code == 200
        assert response.json()["readiness"]["ready"] is True
        assert response.json()["session"]["status"] == "mapped"

        response = client.post(
            f"/api/imports/sessions/{session_id}/preview",
            files=_upload(),
            headers=employer_headers,
        )
        assert response.status_code == 200
        preview = response.json()
        assert preview["total_rows"] == 3
        assert preview["success_count"] == 2
        assert preview["error_count"] == 1

        response = client.post(
            f"/api/imports/sessions/{session_id}/commit", headers=employer_headers
        )
        assert response.status_code == 200
        assert response.json() == {
            "session_id": session_id,
            "committed_count": 2,
            "status": "committed",
        }

        response = client.post(
            f"/api/imports/sessions/{session_id}/commit", headers=employer_headers
        )
        assert response.status_code == 409

    def test_invalid_mapping(self, client, session_id, employer_headers):
        """Test invalid mappings are unprocessable."""
        response = client.put(
            f"/api/imports/sessions/{session_id}/mappings",
            json={"column_mappings": {"Nope": "hours"}},
            headers=employer_headers,
        )

        assert response.status_code == 422
        assert "unknown column 'Nope'" in response.json()["detail"]["errors"]

    def test_preview_unready(self, client, session_id, employer_headers):
        """Test previewing an unready mapping is a conflict."""
        client.put(
            f"/api/imports/sessions/{session_id}/mappings",
            json={"column_mappings": {"Employee ID": "employee_id"}},
            headers=employer_headers,
        )

        response = client.post(
            f"/api/imports/sessions/{session_id}/preview",
            files=_upload(),
            headers=employer_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]["missing"] == ["hours"]

    def test_abort(self, client, session_id, employer_headers):
        """Test aborting and rejecting further changes."""
        response = client.post(f"/api/imports/sessions/{session_id}/abort", headers=employer_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "aborted"

        response = client.put(
            f"/api/imports/sessions/{session_id}/mappings",
            json={"column_mappings": MAPPING},
            headers=employer_headers,
        )
        assert response.status_code == 409

    def test_resolve(self, client, session_id, employer_headers):
        """Test resolving a mapping from detection and overrides."""
        response = client.post(
            f"/api/imports/sessions/{session_id}/resolve",
            json={"overrides": {"Notes": "ignore"}},
            headers=employer_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["mapping"]["Employee ID"] == "employee_id"
        assert data["mapping"]["Notes"] == "ignore"
        assert data["readiness"]["ready"] is True


class TestTemplateRoutes:
    """Tests for template endpoints."""

    def test_create_and_list(self, client, employer_headers):
        """Test templates are listed in creation order."""
        for name in ["Second", "First"]:
            response = client.post(
                "/api/imports/templates",
                json={"name": name, "column_mappings": MAPPING, "match_strategy": "email"},
                headers=employer_headers,
            )
            assert response.status_code == 201

        response = client.get("/api/imports/templates", headers=employer_headers)

        assert response.status_code == 200
        assert [t["name"] for t in response.json()] == ["Second", "First"]
        assert response.json()[0]["match_strategy"] == "email"

    def test_save_from_session_and_apply(self, client, session_id, employer_headers):
        """Test a template saved from a session resolves the same mapping."""
        client.put(
            f"/api/imports/sessions/{session_id}/mappings",
            json={"column_mappings": MAPPING, "match_strategy": "id"},
            headers=employer_headers,
        )
        response = client.post(
            f"/api/imports/sessions/{session_id}/templates",
            json={"name": "Weekly"},
            headers=employer_headers,
        )
        assert response.status_code == 201
        template_id = response.json()["id"]

        response = client.post(
            f"/api/imports/sessions/{session_id}/resolve",
            json={"template_id": template_id},
            headers=employer_headers,
        )

        assert response.status_code == 200
        assert response.json()["mapping"] == MAPPING
        assert response.json()["match_strategy"] == "id"

    def test_unknown_template(self, client, session_id, employer_headers):
        """Test resolving with an unknown template is not found."""
        response = client.post(
            f"/api/imports/sessions/{session_id}/resolve",
            json={"template_id": "missing"},
            headers=employer_headers,
        )

        assert response.status_code == 404


class TestSampleFile:
    """Tests for the sample file download."""

    def test_download_sample_file(self, client):
        """Test the sample CSV is served as an attachment."""
        response = client.get("/api/imports/sample-file")

        assert response.status_code == 200
        assert "text/csv" in response.headers["content-type"]
        assert "Employee ID" in response.text


class TestRouteExecution:
    """Tests for how the routes are executed."""

    def test_database_routes_are_sync(self):
        """Test routes doing database work are plain functions run in the threadpool."""
        routes = [r for r in router.routes if r.path.startswith(("/sessions", "/templates"))]

        assert len(routes) == 10
        for route in routes:
            assert not inspect.iscoroutinefunction(route.endpoint), route.path
