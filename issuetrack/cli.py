"""Command-line interface for issuetrack."""

import argparse
import json
import os
import sys
from typing import Any, Callable, List, Optional

from issuetrack.auth import AuthService
from issuetrack.config import Config
from issuetrack.database import Database
from issuetrack.errors import IssueNotFound, TransitionRejected, Unauthorized
from issuetrack.logging import setup_logging
from issuetrack.models import Issue, Priority, SimilarityCandidate, Status, User
from issuetrack.repository import IssueRepository
from issuetrack.similarity import find_similar_issues, should_check_duplicates
from issuetrack.workflow import CreationWorkflow, IssueDraft, StatusWorkflow


class CLI:
    """Command-line interface handler."""

    def __init__(
        self,
        db_path: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        """Initialize CLI with repository and credentials.

        Args:
            db_path: Optional path to database file.
            email: Account email used for issue commands.
            password: Account password used for issue commands.
        """
        self.db = Database(db_path)
        self.repo = IssueRepository(self.db)
        self.auth = AuthService(self.db)
        self.email = email
        self.password = password
        self._user: Optional[User] = None

    @property
    def user(self) -> User:
        """The signed-in user, authenticated on first use."""
        if self._user is None:
            if not self.email:
                raise Unauthorized(
                    "Sign in with --email/--password or ISSUETRACK_EMAIL/ISSUETRACK_PASSWORD"
                )
            self._user = self.auth.authenticate(self.email, self.password or "")
        return self._user

    def format_output(self, data: Any, as_json: bool = False) -> str:
        """Format output for display.

        Args:
            data: Data to format (Issue, list of Issues, dict, etc).
            as_json: If True, output as JSON.

        Returns:
            Formatted string output.
        """
        if as_json:
            if isinstance(data, Issue):
                return json.dumps(data.to_dict(), indent=2)
            elif isinstance(data, list) and all(isinstance(i, Issue) for i in data):
                return json.dumps([i.to_dict() for i in data], indent=2)
            return json.dumps(data, indent=2)

        if isinstance(data, Issue):
            return self._format_issue(data)
        elif isinstance(data, list) and all(isinstance(i, Issue) for i in data):
            if not data:
                return "No issues found."
            return "\n\n".join(self._format_issue(i) for i in data)
        elif isinstance(data, dict):
            return "\n".join(
                f"{key.replace('_', ' ').title()}: {value}" for key, value in data.items()
            )
        return str(data)

    def _format_issue(self, issue: Issue) -> str:
        lines = [
            f"ID: {issue.id}",
            f"Title: {issue.title}",
            f"Status: {issue.status.value}",
            f"Priority: {issue.priority.value}",
            f"Assigned To: {issue.assigned_to}",
            f"Created By: {issue.created_by}",
        ]
        if issue.description:
            lines.append(f"Description: {issue.description}")
        lines.append(f"Created: {issue.created_at.strftime('%Y-%m-%d %H:%M:%S')}")
        return "\n".join(lines)

    def format_candidates(
        self, candidates: List[SimilarityCandidate], as_json: bool = False
    ) -> str:
        """Format a duplicate shortlist.

        Args:
            candidates: Shortlist from the duplicate detector.
            as_json: Output as JSON.

        Returns:
            Formatted output.
        """
        if as_json:
            return json.dumps({"similar": [c.to_dict() for c in candidates]}, indent=2)

        if not candidates:
            return "No similar issues found."

        lines = [f"Found {len(candidates)} similar issue(s):\n"]
        for candidate in candidates:
            issue = candidate.issue
            lines.append(f"Issue {issue.id} ({round(candidate.score * 100, 1)}% keyword match)")
            lines.append(f"  Title: {issue.title}")
            lines.append(f"  Status: {issue.status.value}")
            lines.append(f"  Priority: {issue.priority.value}")
            lines.append(f"  Assigned To: {issue.assigned_to}")
            lines.append("")
        return "\n".join(lines)

    def register(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        as_json: bool = False,
    ) -> str:
        """Create an account."""
        user = self.auth.register(email, password, display_name=display_name)
        if as_json:
            return json.dumps(user.to_dict(), indent=2)
        return f"Registered {user.email}"

    def create_issue(
        self,
        title: str,
        description: str,
        assigned_to: str,
        priority: str = Priority.MEDIUM.value,
        force: bool = False,
        confirm: Optional[Callable[[str], bool]] = None,
        as_json: bool = False,
    ) -> str:
        """Create an issue after checking for likely duplicates.

        Args:
            title: Issue title.
            description: Issue description.
            assigned_to: Assignee email or name.
            priority: Low, Medium or High.
            force: Skip the duplicate check.
            confirm: Called with the formatted shortlist when duplicates are
                found; returning True creates the issue anyway.
            as_json: Output as JSON.

        Returns:
            The created issue, or the shortlist when creation was declined.
        """
        workflow = CreationWorkflow(self.repo, self.user)
        draft = IssueDraft(
            title=title,
            description=description,
            priority=priority,
            assigned_to=assigned_to,
        )

        outcome = workflow.submit(draft, force=force)
        if outcome.created:
            return self.format_output(outcome.issue, as_json)

        if confirm is not None and confirm(self.format_candidates(outcome.candidates)):
            return self.format_output(workflow.proceed(draft), as_json)

        if as_json:
            return self.format_candidates(outcome.candidates, as_json=True)
        return (
            self.format_candidates(outcome.candidates)
            + "\nIssue not created. Re-run with --force to create it anyway."
        )

    def list_issues(
        self,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        as_json: bool = False,
    ) -> str:
        """List issues newest first."""
        issues = self.repo.list_issues(self.user, status=status, priority=priority)
        return self.format_output(issues, as_json)

    def get_issue(self, issue_id: str, as_json: bool = False) -> str:
        """Show one issue."""
        issue = self.repo.get_issue(issue_id, self.user)
        if not issue:
            raise IssueNotFound(f"Issue {issue_id} not found")
        return self.format_output(issue, as_json)

    def set_status(self, issue_id: str, status: str, as_json: bool = False) -> str:
        """Move an issue to a new status."""
        issue = self.repo.get_issue(issue_id, self.user)
        if not issue:
            raise IssueNotFound(f"Issue {issue_id} not found")

        StatusWorkflow(self.repo, self.user).change_status(issue, status)
        return self.format_output(issue, as_json)

    def find_similar(self, title: str, as_json: bool = False) -> str:
        """Preview the duplicate shortlist for a title."""
        candidates: List[SimilarityCandidate] = []
        if should_check_duplicates(title):
            candidates = find_similar_issues(title, self.repo.fetch_all(self.user))
        return self.format_candidates(candidates, as_json)

    def clear_all(self, confirm: bool = False, as_json: bool = False) -> str:
        """Delete every issue. Accounts are kept.

        Args:
            confirm: Safety confirmation.
            as_json: Output as JSON.

        Raises:
            ValueError: If not confirmed.
            Unauthorized: If the credentials are missing or wrong.
        """
        if not confirm:
            raise ValueError("Must use --confirm flag to clear all issues")

        cleared_by = self.user.email
        count = self.db.clear_database(confirm=True)
        result = {"message": f"Cleared {count} issues from database", "cleared_by": cleared_by}
        return self.format_output(result, as_json)

    def get_info(self, as_json: bool = False) -> str:
        """Show database statistics."""
        return self.format_output(self.db.get_database_info(), as_json)


def _prompt_confirm(shortlist: str) -> bool:
    print(shortlist, file=sys.stderr, flush=True)
    answer = input("Create anyway? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def _announce(shortlist: str) -> bool:
    print(shortlist, file=sys.stderr, flush=True)
    return True


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="issuetrack",
        description="Issue tracker with duplicate detection",
    )

    parser.add_argument(
        "--db",
        help="Path to database file (default: ISSUETRACK_DB or ./.issuetrack.db)",
        default=None,
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output results in JSON format",
    )
    parser.add_argument(
        "--email",
        default=os.getenv("ISSUETRACK_EMAIL"),
        help="Account email (default: ISSUETRACK_EMAIL)",
    )
    parser.add_argument(
        "--password",
        default=os.getenv("ISSUETRACK_PASSWORD"),
        help="Account password (default: ISSUETRACK_PASSWORD)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("ISSUETRACK_LOG_LEVEL", "WARNING"),
        help="Log level (default: ISSUETRACK_LOG_LEVEL or WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Register command
    register_parser = subparsers.add_parser("register", help="Create an account")
    register_parser.add_argument("account_email", metavar="EMAIL", help="Account email")
    register_parser.add_argument("account_password", metavar="PASSWORD", help="Account password")
    register_parser.add_argument("-n", "--name", help="Display name")

    # Create command
    create_parser = subparsers.add_parser("create", help="Create a new issue")
    create_parser.add_argument("-t", "--title", required=True, help="Issue title")
    create_parser.add_argument("-d", "--description", required=True, help="Issue description")
    create_parser.add_argument("-a", "--assigned-to", required=True, help="Assignee email or name")
    create_parser.add_argument(
        "--priority",
        choices=[p.value for p in Priority],
        default=Priority.MEDIUM.value,
        help="Priority level",
    )
    create_parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Create even if similar issues exist",
    )
    create_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Show similar issues, then create without asking",
    )

    # List command
    list_parser = subparsers.add_parser("list", help="List issues")
    list_parser.add_argument("-s", "--status", help="Filter by status (Open, In Progress, Done)")
    list_parser.add_argument("--priority", help="Filter by priority (Low, Medium, High)")

    # Get command
    get_parser = subparsers.add_parser("get", help="Get issue details")
    get_parser.add_argument("id", help="Issue ID")

    # Status command
    status_parser = subparsers.add_parser("status", help="Change an issue's status")
    status_parser.add_argument("id", help="Issue ID")
    status_parser.add_argument(
        "status", help=f"New status ({', '.join(s.value for s in Status)})"
    )

    # Find-similar command
    find_similar_parser = subparsers.add_parser(
        "find-similar", help="Show issues whose titles overlap a new title"
    )
    find_similar_parser.add_argument("title", help="Title to check")

    subparsers.add_parser("info", help="Get database information")

    clear_parser = subparsers.add_parser("clear", help="Delete all issues")
    clear_parser.add_argument("--confirm", action="store_true", help="Confirm deletion (required)")

    # Web command
    web_parser = subparsers.add_parser("web", help="Start the web UI server")
    web_parser.add_argument("--host", default=None, help="Host to bind to (default: 0.0.0.0)")
    web_parser.add_argument(
        "-p", "--port", type=int, default=None, help="Port to bind to (default: 7760)"
    )
    web_parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "web":
            from issuetrack.web import run_server

            config = Config.from_env(db_path=args.db, host=args.host, port=args.port)
            setup_logging(level=config.log_level, log_dir=config.log_dir)
            run_server(host=config.host, port=config.port, debug=args.debug, config=config)
            return

        setup_logging(level=args.log_level)
        cli = CLI(Config.from_env(db_path=args.db).db_path, args.email, args.password)

        if args.command == "register":
            result = cli.register(
                args.account_email,
                args.account_password,
                display_name=args.name,
                as_json=args.json,
            )

        elif args.command == "create":
            if args.yes:
                confirm = _announce
            elif args.force or args.json:
                confirm = None
            else:
                confirm = _prompt_confirm
            result = cli.create_issue(
                title=args.title,
                description=args.description,
                assigned_to=args.assigned_to,
                priority=args.priority,
                force=args.force,
                confirm=confirm,
                as_json=args.json,
            )

        elif args.command == "list":
            result = cli.list_issues(
                status=args.status, priority=args.priority, as_json=args.json
            )

        elif args.command == "get":
            result = cli.get_issue(args.id, as_json=args.json)

        elif args.command == "status":
            result = cli.set_status(args.id, args.status, as_json=args.json)

        elif args.command == "find-similar":
            result = cli.find_similar(args.title, as_json=args.json)

        elif args.command == "clear":
            result = cli.clear_all(confirm=args.confirm, as_json=args.json)

        else:
            result = cli.get_info(as_json=args.json)

        print(result, file=sys.stdout, flush=True)

    except TransitionRejected as e:
        print(f"Error: {e.message}. {e.description}", file=sys.stderr, flush=True)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr, flush=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
