"""Flask Web UI and API for issuetrack."""

import functools
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional, Union

from flask import (
    Blueprint,
    Flask,
    current_app,
    g,
    jsonify,
    redirect,
    render_template_string,
    request,
    session,
    url_for,
)
from werkzeug.exceptions import BadRequest
from werkzeug.wrappers import Response

from issuetrack.auth import AuthService
from issuetrack.config import Config
from issuetrack.database import Database
from issuetrack.errors import (
    IssueNotFound,
    PersistenceFailure,
    RegistrationError,
    SubmissionInProgress,
    TransitionRejected,
    Unauthorized,
)
from issuetrack.logging import get_logger
from issuetrack.models import Priority, Status
from issuetrack.repository import FILTER_ALL, IssueRepository
from issuetrack.similarity import find_similar_issues, should_check_duplicates
from issuetrack.workflow import CreationWorkflow, IssueDraft, StatusWorkflow

logger = get_logger("web")

bp = Blueprint("tracker", __name__)


@dataclass
class Services:
    """Collaborators injected into the app by create_app()."""

    db: Database
    repo: IssueRepository
    auth: AuthService


def services() -> Services:
    """Get the services bound to the running app."""
    return current_app.extensions["issuetrack"]


def login_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """Redirect anonymous visitors of an HTML page to the login form."""

    @functools.wraps(view)
    def wrapped(*args: Any, **kwargs: Any) -> Any:
        if g.user is None:
            return redirect(url_for("tracker.login", next=request.path))
        return view(*args, **kwargs)

    return wrapped


def api_login_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """Reject anonymous API calls before the request body is looked at."""

    @functools.wraps(view)
    def wrapped(*args: Any, **kwargs: Any) -> Any:
        if g.user is None:
            raise Unauthorized("Authentication required")
        return view(*args, **kwargs)

    return wrapped


def _wants_json() -> bool:
    return request.path.startswith("/api/")


def _json_object() -> dict[str, Any]:
    """Request body as a JSON object; a missing or unparsable body is {}.

    Raises:
        BadRequest: If the body is JSON but not an object.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise BadRequest(f"{key} must be text")
    return value


# =============================================================================
# HTML Templates
# =============================================================================

BASE_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{% block title %}issuetrack{% endblock %}</title>
    <style>
        :root {
            --bg-primary: #0d1117;
            --bg-secondary: #161b22;
            --bg-tertiary: #21262d;
            --border-color: #30363d;
            --text-primary: #e6edf3;
            --text-secondary: #8b949e;
            --text-muted: #6e7681;
            --accent-blue: #58a6ff;
            --accent-green: #3fb950;
            --accent-yellow: #d29922;
            --accent-red: #f85149;
            --status-open: #3fb950;
            --status-progress: #d29922;
            --status-done: #8b949e;
        }

        * {
            margin: 0;
            padding: 0;
            box-sizing: border-box;
        }

        body {
            font-family: 'SF Mono', 'Monaco', 'Inconsolata', 'Fira Code', monospace;
            font-size: 14px;
            line-height: 1.6;
            background-color: var(--bg-primary);
            color: var(--text-primary);
            min-height: 100vh;
        }

        .container {
            max-width: 960px;
            margin: 0 auto;
            padding: 0 24px;
        }

        .header {
            background-color: var(--bg-secondary);
            border-bottom: 1px solid var(--border-color);
            padding: 12px 0;
        }

        .header-content {
            display: flex;
            align-items: center;
            justify-content: space-between;
        }

        .logo {
            color: var(--text-primary);
            font-weight: 700;
            text-decoration: none;
        }

        .nav {
            display: flex;
            gap: 8px;
            align-items: center;
        }

        .nav a {
            color: var(--text-secondary);
            text-decoration: none;
            padding: 6px 12px;
            border-radius: 6px;
        }

        .nav a.active {
            color: var(--text-primary);
            background-color: var(--bg-tertiary);
        }

        .main {
            padding: 32px 0;
        }

        .page-header {
            display: flex;
            justify-content: space-between;
            align-items: flex-start;
            margin-bottom: 24px;
        }

        .page-title {
            font-size: 24px;
            font-weight: 700;
        }

        .page-subtitle {
            color: var(--text-secondary);
        }

        .btn {
            display: inline-block;
            padding: 6px 14px;
            border: 1px solid var(--border-color);
            border-radius: 6px;
            background-color: var(--bg-tertiary);
            color: var(--text-primary);
            font-family: inherit;
            font-size: 13px;
            text-decoration: none;
            cursor: pointer;
        }

        .btn-primary {
            background-color: #238636;
            border-color: #2ea043;
        }

        .btn-warning {
            background-color: #9e6a03;
            border-color: var(--accent-yellow);
        }

        .card {
            background-color: var(--bg-secondary);
            border: 1px solid var(--border-color);
            border-radius: 8px;
            margin-bottom: 16px;
        }

        .card-header {
            display: flex;
            justify-content: space-between;
            gap: 12px;
            padding: 12px 16px;
            border-bottom: 1px solid var(--border-color);
        }

        .card-title {
            font-size: 15px;
            font-weight: 600;
        }

        .card-body {
            padding: 16px;
        }

        .meta {
            display: flex;
            flex-wrap: wrap;
            gap: 16px;
            color: var(--text-secondary);
            font-size: 12px;
            margin-top: 8px;
        }

        .badge {
            display: inline-block;
            padding: 1px 8px;
            border-radius: 10px;
            font-size: 11px;
            border: 1px solid var(--border-color);
        }

        .badge-open { color: var(--status-open); }
        .badge-in-progress { color: var(--status-progress); }
        .badge-done { color: var(--status-done); }
        .badge-high { color: var(--accent-red); }
        .badge-medium { color: var(--accent-blue); }
        .badge-low { color: var(--text-secondary); }

        .alert {
            padding: 12px 16px;
            border-radius: 6px;
            margin-bottom: 16px;
            border: 1px solid var(--border-color);
        }

        .alert-error {
            border-color: var(--accent-red);
            color: var(--accent-red);
        }

        .alert-warning {
            border-color: var(--accent-yellow);
        }

        .alert-success {
            border-color: var(--accent-green);
            color: var(--accent-green);
        }

        .form-group {
            margin-bottom: 16px;
        }

        .form-row {
            display: grid;
            grid-template-columns: 1fr 1fr;
            gap: 16px;
        }

        .form-label {
            display: block;
            margin-bottom: 6px;
            color: var(--text-secondary);
        }

        .form-control {
            width: 100%;
            padding: 8px 12px;
            background-color: var(--bg-primary);
            border: 1px solid var(--border-color);
            border-radius: 6px;
            color: var(--text-primary);
            font-family: inherit;
        }

        textarea.form-control {
            min-height: 100px;
        }

        .filters {
            display: flex;
            gap: 12px;
            align-items: flex-end;
            margin-bottom: 24px;
        }
    </style>
</head>
<body>
    <header class="header">
        <div class="container">
            <div class="header-content">
                <a href="/" class="logo">issuetrack</a>
                <nav class="nav">
                    {% if g.user %}
                    <a href="/" class="{{ 'active' if active_page == 'issues' else '' }}">Issues</a>
                    <a href="/issues/new" class="{{ 'active' if active_page == 'new' else '' }}">New Issue</a>
                    <span style="color: var(--text-muted);">{{ g.user.label }}</span>
                    <form action="/logout" method="post" style="display: inline;">
                        <button type="submit" class="btn">Sign out</button>
                    </form>
                    {% else %}
                    <a href="/login" class="{{ 'active' if active_page == 'login' else '' }}">Sign in</a>
                    <a href="/register" class="{{ 'active' if active_page == 'register' else '' }}">Register</a>
                    {% endif %}
                </nav>
            </div>
        </div>
    </header>

    <main class="main">
        <div class="container">
            {% block content %}{% endblock %}
        </div>
    </main>
</body>
</html>
"""

AUTH_TEMPLATE = BASE_TEMPLATE.replace(
    "{% block title %}issuetrack{% endblock %}",
    "{% block title %}{{ heading }} - issuetrack{% endblock %}",
).replace(
    "{% block content %}{% endblock %}",
    """{% block content %}
<div class="page-header">
    <h1 class="page-title">{{ heading }}</h1>
</div>

{% if error %}
<div class="alert alert-error">{{ error }}</div>
{% endif %}

<div class="card">
    <div class="card-body">
        <form method="post">
            <input type="hidden" name="next" value="{{ next_url or '' }}">
            <div class="form-group">
                <label class="form-label" for="email">Email</label>
                <input type="email" id="email" name="email" class="form-control"
                       value="{{ email or '' }}" required>
            </div>
            {% if active_page == 'register' %}
            <div class="form-group">
                <label class="form-label" for="display_name">Display name</label>
                <input type="text" id="display_name" name="display_name" class="form-control"
                       value="{{ display_name or '' }}">
            </div>
            {% endif %}
            <div class="form-group">
                <label class="form-label" for="password">Password</label>
                <input type="password" id="password" name="password" class="form-control" required>
            </div>
            <button type="submit" class="btn btn-primary">{{ heading }}</button>
        </form>
    </div>
</div>
{% endblock %}""",
)

ISSUES_LIST_TEMPLATE = BASE_TEMPLATE.replace(
    "{% block title %}issuetrack{% endblock %}", "{% block title %}Issues - issuetrack{% endblock %}"
).replace(
    "{% block content %}{% endblock %}",
    """{% block content %}
<div class="page-header">
    <div>
        <h1 class="page-title">Issues</h1>
        <p class="page-subtitle">{{ issues|length }} issue{{ 's' if issues|length != 1 else '' }}</p>
    </div>
    <a href="/issues/new" class="btn btn-primary">New Issue</a>
</div>

{% if message %}
<div class="alert alert-success">{{ message }}</div>
{% endif %}

{% if error %}
<div class="alert alert-error">
    <strong>{{ error }}</strong>
    {% if error_description %}<div>{{ error_description }}</div>{% endif %}
    <a href="/?status={{ status_filter }}&priority={{ priority_filter }}" class="btn" style="margin-top: 8px;">Dismiss</a>
</div>
{% endif %}

<form class="filters" method="get" action="/">
    <div>
        <label class="form-label" for="status">Status</label>
        <select id="status" name="status" class="form-control">
            <option value="All">All</option>
            {% for s in statuses %}
            <option value="{{ s.value }}" {{ 'selected' if status_filter == s.value }}>{{ s.value }}</option>
            {% endfor %}
        </select>
    </div>
    <div>
        <label class="form-label" for="priority">Priority</label>
        <select id="priority" name="priority" class="form-control">
            <option value="All">All</option>
            {% for p in priorities %}
            <option value="{{ p.value }}" {{ 'selected' if priority_filter == p.value }}>{{ p.value }}</option>
            {% endfor %}
        </select>
    </div>
    <button type="submit" class="btn">Filter</button>
</form>

{% if not issues %}
<div class="card"><div class="card-body">No issues found.</div></div>
{% endif %}

{% for issue in issues %}
<div class="card">
    <div class="card-header">
        <span class="card-title">{{ issue.title }}</span>
        <div>
            <span class="badge badge-{{ issue.priority.value|lower }}">{{ issue.priority.value }}</span>
            <form action="/issues/{{ issue.id }}/status" method="post" style="display: inline;">
                <select name="status" class="form-control" style="width: auto; display: inline;">
                    {% for s in statuses %}
                    <option value="{{ s.value }}" {{ 'selected' if issue.status == s }}>{{ s.value }}</option>
                    {% endfor %}
                </select>
                <button type="submit" class="btn">Set</button>
            </form>
        </div>
    </div>
    <div class="card-body">
        <p>{{ issue.description }}</p>
        <div class="meta">
            <span>Assigned to: {{ issue.assigned_to }}</span>
            <span>Created by: {{ issue.created_by }}</span>
            <span>Created: {{ issue.created_at.strftime('%Y-%m-%d %H:%M') }}</span>
            <span class="badge badge-{{ issue.status.value|lower|replace(' ', '-') }}">{{ issue.status.value }}</span>
        </div>
    </div>
</div>
{% endfor %}
{% endblock %}""",
)

ISSUE_FORM_TEMPLATE = BASE_TEMPLATE.replace(
    "{% block title %}issuetrack{% endblock %}",
    "{% block title %}New Issue - issuetrack{% endblock %}",
).replace(
    "{% block content %}{% endblock %}",
    """{% block content %}
<div class="page-header">
    <div>
        <h1 class="page-title">Create New Issue</h1>
        <p class="page-subtitle">Similar issues are checked before the issue is created</p>
    </div>
</div>

{% if error %}
<div class="alert alert-error">{{ error }}</div>
{% endif %}

{% if candidates %}
<div class="alert alert-warning">
    <h2 class="card-title">Similar Issues Found</h2>
    <p>We found {{ candidates|length }} similar issue{{ 's' if candidates|length > 1 else '' }}.
       Please review before creating a new one.</p>
</div>
{% for candidate in candidates %}
<div class="card">
    <div class="card-header">
        <span class="card-title">{{ candidate.issue.title }}</span>
        <span class="badge badge-{{ candidate.issue.status.value|lower|replace(' ', '-') }}">{{ candidate.issue.status.value }}</span>
    </div>
    <div class="card-body">
        <p>{{ candidate.issue.description }}</p>
        <div class="meta">
            <span class="badge">{{ candidate.issue.priority.value }}</span>
            <span>Assigned to: {{ candidate.issue.assigned_to }}</span>
            <span>{{ (candidate.score * 100)|round(1) }}% keyword match</span>
        </div>
    </div>
</div>
{% endfor %}
{% endif %}

<div class="card">
    <div class="card-body">
        <form action="/issues/new" method="post">
            {% if candidates %}
            <input type="hidden" name="force" value="1">
            <input type="hidden" name="checked_title" value="{{ draft.title }}">
            {% endif %}
            <div class="form-group">
                <label class="form-label" for="title">Title *</label>
                <input type="text" id="title" name="title" class="form-control"
                       value="{{ draft.title }}" required {{ 'readonly' if candidates }}
                       placeholder="Brief description of the issue">
            </div>

            <div class="form-group">
                <label class="form-label" for="description">Description *</label>
                <textarea id="description" name="description" class="form-control" required {{ 'readonly' if candidates }}
                          placeholder="Detailed explanation of the issue">{{ draft.description }}</textarea>
            </div>

            <div class="form-row">
                <div class="form-group">
                    <label class="form-label" for="priority">Priority</label>
                    <select id="priority" name="priority" class="form-control">
                        {% for p in priorities %}
                        <option value="{{ p.value }}" {{ 'selected' if draft.priority == p.value }}>{{ p.value }}</option>
                        {% endfor %}
                    </select>
                </div>

                <div class="form-group">
                    <label class="form-label" for="assigned_to">Assigned To *</label>
                    <input type="text" id="assigned_to" name="assigned_to" class="form-control"
                           value="{{ draft.assigned_to }}" required {{ 'readonly' if candidates }}
                           placeholder="Email or name">
                </div>
            </div>

            <div style="display: flex; gap: 12px; margin-top: 8px;">
                {% if candidates %}
                <button type="submit" class="btn btn-warning">Create Anyway</button>
                <a href="/issues/new?{{ draft_fields|urlencode }}" class="btn">Cancel</a>
                {% else %}
                <button type="submit" class="btn btn-primary">Create Issue</button>
                <a href="/" class="btn">Cancel</a>
                {% endif %}
            </div>
        </form>
    </div>
</div>
{% endblock %}""",
)


# =============================================================================
# Request lifecycle and error handling
# =============================================================================


@bp.before_app_request
def load_user() -> None:
    """Attach the signed-in user (or None) to the request."""
    user_id = session.get("user_id")
    g.user = services().auth.get_user(user_id) if user_id is not None else None


@bp.app_errorhandler(Unauthorized)
def handle_unauthorized(error: Unauthorized) -> Any:
    if _wants_json():
        return jsonify({"error": str(error)}), 401
    return redirect(url_for("tracker.login", next=request.path))


@bp.app_errorhandler(IssueNotFound)
def handle_not_found(error: IssueNotFound) -> Any:
    if _wants_json():
        return jsonify({"error": str(error)}), 404
    return redirect(url_for("tracker.issues_list", error=str(error)))


@bp.app_errorhandler(TransitionRejected)
def handle_transition_rejected(error: TransitionRejected) -> Any:
    if _wants_json():
        return jsonify({"error": error.message, "description": error.description}), 409
    return redirect(
        url_for(
            "tracker.issues_list",
            error=error.message,
            error_description=error.description,
        )
    )


@bp.app_errorhandler(PersistenceFailure)
def handle_persistence_failure(error: PersistenceFailure) -> Any:
    if _wants_json():
        return jsonify({"error": f"Storage failure: {error}"}), 500
    return redirect(url_for("tracker.issues_list", error=f"Storage failure: {error}"))


@bp.app_errorhandler(BadRequest)
def handle_bad_request(error: BadRequest) -> Any:
    if _wants_json():
        return jsonify({"error": error.description}), 400
    return error


@bp.app_errorhandler(SubmissionInProgress)
def handle_submission_in_progress(error: SubmissionInProgress) -> Any:
    return jsonify({"error": str(error)}), 409


# =============================================================================
# HTML pages
# =============================================================================


@bp.route("/login", methods=["GET", "POST"])
def login() -> Union[str, Response, tuple[str, int]]:
    """Sign-in form."""
    next_url = request.values.get("next") or ""

    if request.method == "POST":
        email = request.form.get("email", "")
        try:
            user = services().auth.authenticate(email, request.form.get("password", ""))
        except Unauthorized as e:
            return (
                render_template_string(
                    AUTH_TEMPLATE,
                    active_page="login",
                    heading="Sign in",
                    error=str(e),
                    email=email,
                    next_url=next_url,
                ),
                401,
            )

        session.clear()
        session["user_id"] = user.id
        # Only follow local redirects
        if not next_url.startswith("/") or next_url.startswith("//"):
            next_url = url_for("tracker.issues_list")
        return redirect(next_url)

    return render_template_string(
        AUTH_TEMPLATE, active_page="login", heading="Sign in", next_url=next_url
    )


@bp.route("/register", methods=["GET", "POST"])
def register() -> Union[str, Response, tuple[str, int]]:
    """Account registration form."""
    if request.method == "POST":
        email = request.form.get("email", "")
        display_name = request.form.get("display_name", "")
        try:
            user = services().auth.register(
                email, request.form.get("password", ""), display_name=display_name
            )
        except RegistrationError as e:
            return (
                render_template_string(
                    AUTH_TEMPLATE,
                    active_page="register",
                    heading="Register",
                    error=str(e),
                    email=email,
                    display_name=display_name,
                ),
                400,
            )

        session.clear()
        session["user_id"] = user.id
        return redirect(url_for("tracker.issues_list"))

    return render_template_string(AUTH_TEMPLATE, active_page="register", heading="Register")


@bp.route("/logout", methods=["POST"])
def logout() -> Response:
    """Sign out."""
    session.clear()
    return redirect(url_for("tracker.login"))


@bp.route("/")
@login_required
def issues_list() -> Union[str, tuple[str, int]]:
    """Issue list with status and priority filters."""
    status_filter = request.args.get("status") or FILTER_ALL
    priority_filter = request.args.get("priority") or FILTER_ALL
    error = request.args.get("error")

    try:
        issues = services().repo.list_issues(
            g.user, status=status_filter, priority=priority_filter
        )
        code = 200
    except ValueError as e:
        issues, error, code = [], str(e), 400

    return (
        render_template_string(
            ISSUES_LIST_TEMPLATE,
            active_page="issues",
            issues=issues,
            statuses=list(Status),
            priorities=list(Priority),
            status_filter=status_filter,
            priority_filter=priority_filter,
            message=request.args.get("message"),
            error=error,
            error_description=request.args.get("error_description"),
        ),
        code,
    )


@bp.route("/issues/new", methods=["GET", "POST"])
@login_required
def create_issue() -> Union[str, Response, tuple[str, int]]:
    """Create a new issue, showing likely duplicates first."""

    def render(draft: IssueDraft, **context: Any) -> str:
        return render_template_string(
            ISSUE_FORM_TEMPLATE,
            active_page="new",
            draft=draft,
            draft_fields=asdict(draft),
            priorities=list(Priority),
            **context,
        )

    if request.method == "GET":
        return render(IssueDraft.from_dict(request.args.to_dict()))

    draft = IssueDraft.from_dict(request.form.to_dict())
    # "Create Anyway" only applies to the title the shortlist was built for
    force = (
        request.form.get("force") == "1"
        and request.form.get("checked_title") == draft.title
    )
    workflow = CreationWorkflow(services().repo, g.user)

    try:
        outcome = workflow.submit(draft, force=force)
    except ValueError as e:
        return render(draft, error=str(e)), 400
    except PersistenceFailure as e:
        return render(draft, error=f"Failed to create issue: {e}"), 500

    if not outcome.created:
        return render(draft, candidates=outcome.candidates)

    return redirect(url_for("tracker.issues_list", message="Issue created"))


@bp.route("/issues/<issue_id>/status", methods=["POST"])
@login_required
def change_status(issue_id: str) -> Response:
    """Apply a status change from the issue list."""
    repo = services().repo
    issue = repo.get_issue(issue_id, g.user)
    if issue is None:
        raise IssueNotFound(f"Issue {issue_id} not found")

    try:
        new_status = StatusWorkflow(repo, g.user).change_status(
            issue, request.form.get("status", "")
        )
    except ValueError as e:
        return redirect(url_for("tracker.issues_list", error=str(e)))

    return redirect(url_for("tracker.issues_list", message=f"Status set to {new_status.value}"))


# =============================================================================
# JSON API
# =============================================================================


@bp.route("/api/login", methods=["POST"])
def api_login() -> Any:
    """API: Sign in with {"email", "password"}."""
    data = _json_object()
    user = services().auth.authenticate(_text(data, "email"), _text(data, "password"))
    session.clear()
    session["user_id"] = user.id
    return jsonify(user.to_dict())


@bp.route("/api/register", methods=["POST"])
def api_register() -> Any:
    """API: Register with {"email", "password", "displayName"}."""
    data = _json_object()
    try:
        user = services().auth.register(
            _text(data, "email"),
            _text(data, "password"),
            display_name=_text(data, "displayName"),
        )
    except RegistrationError as e:
        return jsonify({"error": str(e)}), 400
    session.clear()
    session["user_id"] = user.id
    return jsonify(user.to_dict()), 201


@bp.route("/api/logout", methods=["POST"])
def api_logout() -> Any:
    """API: Sign out."""
    session.clear()
    return jsonify({"message": "Signed out"})


@bp.route("/api/issues", methods=["GET"])
@api_login_required
def api_list_issues() -> Any:
    """API: List issues, newest first."""
    try:
        issues = services().repo.list_issues(
            g.user,
            status=request.args.get("status"),
            priority=request.args.get("priority"),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify([i.to_dict() for i in issues])


@bp.route("/api/issues", methods=["POST"])
@api_login_required
def api_create_issue() -> Any:
    """API: Create an issue.

    Responds 409 with the shortlist when similar issues exist, unless the
    body sets "force": true.
    """
    data = _json_object()
    workflow = CreationWorkflow(services().repo, g.user)

    try:
        draft = IssueDraft.from_dict(data)
        outcome = workflow.submit(draft, force=bool(data.get("force")))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if not outcome.created:
        return jsonify({"similar": [c.to_dict() for c in outcome.candidates]}), 409

    assert outcome.issue is not None  # created outcomes carry the issue
    return jsonify(outcome.issue.to_dict()), 201


@bp.route("/api/issues/<issue_id>", methods=["GET"])
@api_login_required
def api_get_issue(issue_id: str) -> Any:
    """API: Get issue by ID."""
    issue = services().repo.get_issue(issue_id, g.user)
    if not issue:
        return jsonify({"error": "Issue not found"}), 404
    return jsonify(issue.to_dict())


@bp.route("/api/issues/<issue_id>/status", methods=["PATCH", "POST"])
@api_login_required
def api_change_status(issue_id: str) -> Any:
    """API: Change an issue's status with {"status": ...}."""
    status = _text(_json_object(), "status")
    if not status:
        return jsonify({"error": "Status is required"}), 400

    repo = services().repo
    issue = repo.get_issue(issue_id, g.user)
    if issue is None:
        raise IssueNotFound(f"Issue {issue_id} not found")

    try:
        StatusWorkflow(repo, g.user).change_status(issue, status)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(issue.to_dict())


@bp.route("/api/similar", methods=["GET"])
@api_login_required
def api_similar_issues() -> Any:
    """API: Preview the duplicate shortlist for a title."""
    title = request.args.get("title", "")
    if not should_check_duplicates(title):
        return jsonify([])

    corpus = services().repo.fetch_all(g.user)
    return jsonify([c.to_dict() for c in find_similar_issues(title, corpus)])


# =============================================================================
# Application factory
# =============================================================================


def create_app(config: Optional[Config] = None, database: Optional[Database] = None) -> Flask:
    """Build the Flask application.

    Args:
        config: Settings; read from the environment when omitted.
        database: Database to serve; opened from config.db_path when omitted.

    Returns:
        Configured Flask app.
    """
    config = config or Config.from_env()
    db = database or Database(config.db_path)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.extensions["issuetrack"] = Services(
        db=db,
        repo=IssueRepository(db),
        auth=AuthService(db),
    )
    app.register_blueprint(bp)

    @app.teardown_appcontext
    def close_db(exc: Optional[BaseException]) -> None:
        db.close_connection()

    return app


def run_server(
    host: str = "0.0.0.0",
    port: int = 7760,
    debug: bool = False,
    config: Optional[Config] = None,
) -> None:
    """Run the web server.

    Args:
        host: Host to bind to.
        port: Port to bind to.
        debug: Enable debug mode (uses Flask dev server).
        config: Settings passed to create_app().
    """
    app = create_app(config)

    if debug:
        logger.info("Starting issuetrack on http://%s:%s (DEBUG mode with Flask)", host, port)
        app.run(host=host, port=port, debug=True)
    else:
        from waitress import serve

        logger.info("Starting issuetrack on http://%s:%s (waitress, 4 threads)", host, port)
        serve(app, host=host, port=port, threads=4)
