"""Configuration management for reposync."""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import List

from dotenv import load_dotenv

from .platform import get_platform_specific_defaults, normalize_path, validate_git_availability

load_dotenv()  # Load .env file if it exists


VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@dataclass
class Config:
    """Configuration class for reposync with validation and defaults."""

    # Working copies
    workspace_dir: Path = field(default_factory=Path.cwd)
    default_branch: str = "master"
    default_remote: str = "origin"

    # Untracked-file rescue quarantine, relative to each working copy
    rescue_dir_name: str = ".reposync-rescue"

    # Report mutating commands instead of running them
    dry_run: bool = False

    # Logging
    log_level: str = "INFO"

    # Identity written into repositories created by init
    git_user_name: str = "reposync"
    git_user_email: str = "reposync@localhost"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.workspace_dir = normalize_path(self.workspace_dir)
        self.log_level = self.log_level.upper()

        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}")

        if not self.default_branch.strip():
            raise ValueError("default_branch must not be empty")

        if not self.default_remote.strip():
            raise ValueError("default_remote must not be empty")

        rescue_parts = PurePath(self.rescue_dir_name).parts
        if len(rescue_parts) != 1 or self.rescue_dir_name in (".", ".."):
            raise ValueError(f"rescue_dir_name must be a single relative directory name, got {self.rescue_dir_name!r}")


def load_configuration() -> Config:
    """Load configuration from environment variables with platform-specific defaults."""
    try:
        defaults = get_platform_specific_defaults()

        return Config(
            workspace_dir=Path(os.getenv("REPOSYNC_WORKSPACE_DIR", str(defaults['workspace_dir']))),
            default_branch=os.getenv("REPOSYNC_DEFAULT_BRANCH", defaults['default_branch']),
            default_remote=os.getenv("REPOSYNC_DEFAULT_REMOTE", defaults['default_remote']),
            rescue_dir_name=os.getenv("REPOSYNC_RESCUE_DIR", defaults['rescue_dir_name']),
            dry_run=os.getenv("REPOSYNC_DRY_RUN", "false").lower() == "true",
            log_level=os.getenv("REPOSYNC_LOG_LEVEL", defaults['log_level']).upper(),
            git_user_name=os.getenv("REPOSYNC_GIT_USER_NAME", "reposync"),
            git_user_email=os.getenv("REPOSYNC_GIT_USER_EMAIL", "reposync@localhost"),
        )
    except (ValueError, TypeError) as e:
        raise ValueError(f"Configuration error: {e}")


def validate_configuration(config: Config) -> List[str]:
    """Validate configuration and return any errors or warnings."""
    errors = []

    git_available, git_error = validate_git_availability()
    if not git_available:
        errors.append(f"ERROR: Git not available: {git_error}")

    if not config.workspace_dir.exists():
        errors.append(f"ERROR: Workspace directory does not exist: {config.workspace_dir}")
    elif not config.workspace_dir.is_dir():
        errors.append(f"ERROR: Workspace path is not a directory: {config.workspace_dir}")

    if config.dry_run:
        errors.append("WARNING: Dry-run mode enabled, mutating git commands will only be logged")

    if config.default_branch == "master":
        logging.getLogger('reposync.config').debug(
            "Using 'master' as default branch; set REPOSYNC_DEFAULT_BRANCH to override"
        )

    return errors
