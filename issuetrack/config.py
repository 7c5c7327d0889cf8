"""Runtime configuration for issuetrack, read from the environment."""

import os
import secrets
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_DB_PATH = ".issuetrack.db"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 7760
DEFAULT_LOG_LEVEL = "INFO"


@dataclass
class Config:
    """Settings shared by the web app and the CLI."""

    db_path: str = field(default=DEFAULT_DB_PATH)
    secret_key: str = field(default_factory=lambda: secrets.token_hex(32))
    host: str = field(default=DEFAULT_HOST)
    port: int = field(default=DEFAULT_PORT)
    log_level: str = field(default=DEFAULT_LOG_LEVEL)
    log_dir: Optional[str] = field(default=None)

    @classmethod
    def from_env(
        cls,
        db_path: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> "Config":
        """Build a Config from ISSUETRACK_* environment variables.

        Args:
            db_path: Overrides ISSUETRACK_DB.
            host: Overrides ISSUETRACK_HOST.
            port: Overrides ISSUETRACK_PORT.

        Returns:
            Config instance.

        Raises:
            ValueError: If ISSUETRACK_PORT is not an integer.
        """
        env_port = os.getenv("ISSUETRACK_PORT", str(DEFAULT_PORT))
        try:
            resolved_port = port or int(env_port)
        except ValueError:
            raise ValueError(f"Invalid ISSUETRACK_PORT: {env_port}") from None

        config = cls(
            db_path=db_path or os.getenv("ISSUETRACK_DB", DEFAULT_DB_PATH),
            host=host or os.getenv("ISSUETRACK_HOST", DEFAULT_HOST),
            port=resolved_port,
            log_level=os.getenv("ISSUETRACK_LOG_LEVEL", DEFAULT_LOG_LEVEL),
            log_dir=os.getenv("ISSUETRACK_LOG_DIR") or None,
        )
        # An unset key means sessions do not survive a restart
        secret_key = os.getenv("ISSUETRACK_SECRET_KEY")
        if secret_key:
            config.secret_key = secret_key
        return config
