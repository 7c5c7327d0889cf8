"""Tests for the web UI and JSON API."""

import tempfile

import pytest

from issuetrack.config import Config
from issuetrack.database import Database
from issuetrack.web import create_app

PASSWORD = "secret1"


@pytest.fixture
def app():
    """Create an app bound to a temporary database."""
    with tempfile.NamedTemporaryFile(suffix=".db") as f:
        config = Config(db_path=f.name, secret_key="test")
        app = create_app(config, database=Database(f.name))
        app.config["TESTING"] = True
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    """A client signed in through the API."""
    response = client.post(
        "/api/register",
        json={"email": "dev@example.com", "password": PASSWORD, "displayName": "Dev"},
    )
    assert response.status_code == 201
    return client


def issue_body(title="Login button not working", **extra):
    body = {
        "title": title,
        "description": "Nothing happens on click",
        "priority": "High",
        "assignedTo": "qa@example.com",
    }
    body.update(extra)
    return body


class TestAuthPages:
    """Test sign-in, registration and session handling."""

    def test_list_redirects_to_login(self, client):
        """Test anonymous visitors are sent to the sign-in form."""
        response = client.get("/")
        assert response.status_code == 302
        assert "/login" in response.headers["Location"]

    def test_register_and_login_form(self, client):
        """Test the HTML forms create a session."""
        response = client.post(
            "/register", data={"email": "a@example.com", "password": PASSWORD}
        )
        assert response.status_code == 302

        client.post("/logout")
        assert client.get("/").status_code == 302

        response = client.post(
            "/login", data={"email": "a@example.com", "password": PASSWORD, "next": "/issues/new"}
        )
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/issues/new")

    def test_login_ignores_external_next(self, client):
        """Test redirects only go to local paths."""
        client.post("/register", data={"email": "a@example.com", "password": PASSWORD})
        client.post("/logout")

        response = client.post(
            "/login",
            data={"email": "a@example.com", "password": PASSWORD, "next": "//evil.example"},
        )

        assert "evil.example" not in response.headers["Location"]

    def test_login_failure(self, client):
        """Test bad credentials re-render the form with a generic message."""
        response = client.post("/login", data={"email": "x@example.com", "password": "nope123"})
        assert response.status_code == 401
        assert b"Invalid email or password" in response.data

    def test_register_failure(self, client):
        """Test registration errors are shown."""
        response = client.post("/register", data={"email": "bad", "password": PASSWORD})
        assert response.status_code == 400
        assert b"valid email" in response.data

    def test_api_login(self, auth_client):
        """Test signing in over the API."""
        auth_client.post("/api/logout")

        response = auth_client.post(
            "/api/login", json={"email": "dev@example.com", "password": PASSWORD}
        )

        assert response.status_code == 200
        assert response.get_json()["email"] == "dev@example.com"

    def test_api_login_failure(self, client):
        """Test the API reports bad credentials as 401."""
        response = client.post("/api/login", json={"email": "x@example.com", "password": "x"})
        assert response.status_code == 401
        assert response.get_json()["error"] == "Invalid email or password"

    def test_api_login_malformed_body(self, client):
        """Test credentials that are not text give 400."""
        assert client.post("/api/login", json={"email": 1, "password": 2}).status_code == 400
        assert client.post("/api/register", json=["a@b.com"]).status_code == 400

    def test_api_duplicate_register(self, auth_client):
        """Test registering the same email twice fails."""
        auth_client.post("/api/logout")
        response = auth_client.post(
            "/api/register", json={"email": "dev@example.com", "password": PASSWORD}
        )
        assert response.status_code == 400


class TestIssuesAPI:
    """Test the JSON issue endpoints."""

    def test_requires_session(self, client):
        """Test API calls without a session get 401."""
        assert client.get("/api/issues").status_code == 401
        assert client.post("/api/issues", json=issue_body()).status_code == 401
        assert client.get("/api/issues/abc").status_code == 401

    def test_create_and_get(self, auth_client):
        """Test creating an issue when nothing resembles it."""
        response = auth_client.post("/api/issues", json=issue_body())

        assert response.status_code == 201
        data = response.get_json()
        assert data["status"] == "Open"
        assert data["createdBy"] == "dev@example.com"
        assert data["assignedTo"] == "qa@example.com"

        fetched = auth_client.get(f"/api/issues/{data['id']}").get_json()
        assert fetched == data

    def test_get_missing(self, auth_client):
        """Test unknown ids give 404."""
        assert auth_client.get("/api/issues/missing").status_code == 404

    def test_similar_blocks_creation(self, auth_client):
        """Test a likely duplicate returns the shortlist and creates nothing."""
        auth_client.post("/api/issues", json=issue_body())

        response = auth_client.post("/api/issues", json=issue_body("Login button broken"))

        assert response.status_code == 409
        similar = response.get_json()["similar"]
        assert [c["title"] for c in similar] == ["Login button not working"]
        assert similar[0]["similarity"] == 0.667
        assert len(auth_client.get("/api/issues").get_json()) == 1

    def test_force_creates_despite_similar(self, auth_client):
        """Test "force" skips the duplicate check."""
        auth_client.post("/api/issues", json=issue_body())

        response = auth_client.post(
            "/api/issues", json=issue_body("Login button broken", force=True)
        )

        assert response.status_code == 201
        assert len(auth_client.get("/api/issues").get_json()) == 2

    def test_anonymous_invalid_body_is_unauthorized(self, client):
        """Test authentication is checked before the body is validated."""
        assert client.post("/api/issues", json={"title": ""}).status_code == 401
        assert client.post("/api/issues", json=[1, 2]).status_code == 401

    @pytest.mark.parametrize("body", [[1, 2], "title", 42])
    def test_body_must_be_object(self, auth_client, body):
        """Test non-object JSON bodies are rejected."""
        response = auth_client.post("/api/issues", json=body)
        assert response.status_code == 400
        assert response.get_json()["error"] == "Request body must be a JSON object"

    @pytest.mark.parametrize("field_name", ["title", "description", "priority", "assignedTo"])
    def test_non_text_fields_rejected(self, auth_client, field_name):
        """Test fields that are not strings give 400."""
        response = auth_client.post("/api/issues", json=issue_body(**{field_name: 123}))
        assert response.status_code == 400
        assert "must be text" in response.get_json()["error"]

    def test_status_body_checked(self, auth_client):
        """Test malformed status bodies give 400."""
        issue_id = auth_client.post("/api/issues", json=issue_body()).get_json()["id"]
        url = f"/api/issues/{issue_id}/status"

        assert auth_client.patch(url, json=["Done"]).status_code == 400
        assert auth_client.patch(url, json={"status": 5}).status_code == 400

    def test_validation_error(self, auth_client):
        """Test missing required fields give 400."""
        response = auth_client.post("/api/issues", json=issue_body(assignedTo=""))
        assert response.status_code == 400
        assert response.get_json()["error"] == "Assigned To is required"

    def test_list_filters(self, auth_client):
        """Test filtering the list by status and priority."""
        auth_client.post("/api/issues", json=issue_body("Alpha problem", priority="Low"))
        auth_client.post("/api/issues", json=issue_body("Beta crash"))

        low = auth_client.get("/api/issues?priority=Low").get_json()
        assert [i["title"] for i in low] == ["Alpha problem"]

        everything = auth_client.get("/api/issues?status=All").get_json()
        assert [i["title"] for i in everything] == ["Beta crash", "Alpha problem"]

        assert auth_client.get("/api/issues?status=closed").status_code == 400

    def test_status_change_path(self, auth_client):
        """Test Open to Done is refused, then the two-step path succeeds."""
        issue_id = auth_client.post("/api/issues", json=issue_body()).get_json()["id"]
        url = f"/api/issues/{issue_id}/status"

        response = auth_client.patch(url, json={"status": "Done"})
        assert response.status_code == 409
        body = response.get_json()
        assert body["error"] == "Cannot move directly from Open to Done"
        assert '"In Progress"' in body["description"]

        assert auth_client.patch(url, json={"status": "In Progress"}).status_code == 200
        response = auth_client.patch(url, json={"status": "Done"})
        assert response.status_code == 200
        assert response.get_json()["status"] == "Done"

    def test_status_change_errors(self, auth_client):
        """Test missing, invalid and unknown status requests."""
        issue_id = auth_client.post("/api/issues", json=issue_body()).get_json()["id"]

        assert auth_client.patch(f"/api/issues/{issue_id}/status", json={}).status_code == 400
        assert (
            auth_client.patch(f"/api/issues/{issue_id}/status", json={"status": "Closed"}).status_code
            == 400
        )
        assert (
            auth_client.patch("/api/issues/missing/status", json={"status": "Done"}).status_code
            == 404
        )

    def test_similar_preview(self, auth_client):
        """Test the shortlist preview endpoint."""
        auth_client.post("/api/issues", json=issue_body())

        assert auth_client.get("/api/similar?title=ab").get_json() == []
        preview = auth_client.get(
            "/api/similar", query_string={"title": "login button broken"}
        ).get_json()
        assert [c["title"] for c in preview] == ["Login button not working"]


class TestIssuePages:
    """Test the HTML issue pages."""

    def test_list_page(self, auth_client):
        """Test the list page renders issues."""
        auth_client.post("/api/issues", json=issue_body())

        response = auth_client.get("/")

        assert response.status_code == 200
        assert b"Login button not working" in response.data
        assert b"1 issue" in response.data

    def test_list_page_bad_filter(self, auth_client):
        """Test an unknown filter is reported."""
        response = auth_client.get("/?priority=Urgent")
        assert response.status_code == 400
        assert b"Invalid priority" in response.data

    def test_new_issue_form(self, auth_client):
        """Test the form prefills from the query string."""
        response = auth_client.get("/issues/new?title=Prefilled")
        assert response.status_code == 200
        assert b'value="Prefilled"' in response.data

    def test_create_shows_similar_then_create_anyway(self, auth_client):
        """Test the duplicate warning and the Create Anyway path."""
        auth_client.post("/api/issues", json=issue_body())
        form = {
            "title": "Login button broken",
            "description": "Still broken",
            "priority": "Medium",
            "assigned_to": "qa@example.com",
        }

        response = auth_client.post("/issues/new", data=form)

        assert response.status_code == 200
        assert b"Similar Issues Found" in response.data
        assert b"Create Anyway" in response.data
        assert b'name="force" value="1"' in response.data
        assert b"readonly" in response.data
        assert len(auth_client.get("/api/issues").get_json()) == 1

        response = auth_client.post(
            "/issues/new",
            data=dict(form, force="1", checked_title="Login button broken"),
            follow_redirects=True,
        )

        assert response.status_code == 200
        assert b"Issue created" in response.data
        assert len(auth_client.get("/api/issues").get_json()) == 2

    def test_create_anyway_with_changed_title_is_checked_again(self, auth_client):
        """Test an edited title cannot ride on an earlier Create Anyway."""
        auth_client.post("/api/issues", json=issue_body())
        auth_client.post("/api/issues", json=issue_body("Crash saving report files"))
        form = {
            "title": "crash saving report",
            "description": "Still broken",
            "priority": "Medium",
            "assigned_to": "qa@example.com",
            "force": "1",
            "checked_title": "Login button broken",
        }

        response = auth_client.post("/issues/new", data=form)

        assert response.status_code == 200
        assert b"Similar Issues Found" in response.data
        assert b"Crash saving report files" in response.data
        assert len(auth_client.get("/api/issues").get_json()) == 2

    def test_create_validation(self, auth_client):
        """Test required fields are enforced on the form."""
        response = auth_client.post(
            "/issues/new", data={"title": "Something", "description": "", "assigned_to": "x"}
        )
        assert response.status_code == 400
        assert b"Description is required" in response.data

    def test_status_form_rejection_is_shown(self, auth_client):
        """Test a refused transition is reported on the list page."""
        issue_id = auth_client.post("/api/issues", json=issue_body()).get_json()["id"]

        response = auth_client.post(
            f"/issues/{issue_id}/status", data={"status": "Done"}, follow_redirects=True
        )

        assert response.status_code == 200
        assert b"Cannot move directly from Open to Done" in response.data
        assert auth_client.get(f"/api/issues/{issue_id}").get_json()["status"] == "Open"

    def test_status_form_success(self, auth_client):
        """Test a permitted transition from the list page."""
        issue_id = auth_client.post("/api/issues", json=issue_body()).get_json()["id"]

        response = auth_client.post(
            f"/issues/{issue_id}/status", data={"status": "In Progress"}, follow_redirects=True
        )

        assert b"Status set to In Progress" in response.data
