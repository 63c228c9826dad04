"""Main server implementation for the reposync MCP server."""

import logging
import sys
import threading
from typing import Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from . import __version__
from .config import Config, load_configuration, validate_configuration
from .errors import error_handler
from .git_sync import FileAction, GitSyncError, get_repository_manager
from .package import discover_packages


def setup_logging(config: Config) -> None:
    """Setup comprehensive logging configuration with structured logging."""
    # Create custom formatter for structured logging
    class StructuredFormatter(logging.Formatter):
        def format(self, record):
            # Add structured data if available
            if hasattr(record, 'operation'):
                record.msg = f"[{record.operation}] {record.msg}"
            return super().format(record)

    # Configure root logger
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Set up specific loggers
    loggers = [
        'reposync.init',
        'reposync.git_sync',
        'reposync.package',
        'reposync.error_handler',
    ]

    formatter = StructuredFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    for logger_name in loggers:
        logger = logging.getLogger(logger_name)
        logger.setLevel(getattr(logging, config.log_level))

        # stdout carries the MCP protocol, so log to stderr only
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.propagate = False


def register_tools(server: FastMCP, server_config: Config) -> None:
    """Register MCP tools with the server instance."""
    manager = get_repository_manager(server_config)

    @server.tool()
    def repository_status(directory: str = "") -> dict:
        """
        Describe a working copy: branch, tracking remote, head commit and remotes.

        Args:
            directory: Working copy path, relative to the workspace (empty for the workspace itself)

        Returns:
            Dictionary with branch, remote, head_hash, remotes, has_local_changes and is_repository
        """
        context = {"repository_path": directory}
        try:
            repo = manager.get_repository(directory or None)
            if not repo.is_repository():
                return error_handler.handle_git_sync_error(
                    ValueError(f"{repo.directory} is not a git repository"), context
                ).to_dict()

            def describe(repo):
                info = repo.local_branch_info()
                return {
                    "directory": str(repo.directory),
                    "branch": info.branch,
                    "remote": info.remote,
                    "head_hash": info.head_hash,
                    "remotes": [{"name": r.name, "url": r.url} for r in repo.list_remotes()],
                    "has_local_changes": repo.has_local_changes(),
                    "is_repository": True,
                }

            data = manager.run_exclusive(repo.directory, describe)
            return error_handler.create_success_response("repository_status", data)
        except GitSyncError as e:
            return error_handler.handle_git_sync_error(e, context).to_dict()

    @server.tool()
    def file_status(directory: str = "") -> dict:
        """
        List changed files of a working copy.

        A file changed both in the index and in the work tree is listed twice,
        once as staged and once as unstaged.

        Args:
            directory: Working copy path, relative to the workspace

        Returns:
            Dictionary whose data.files holds records with status, status_string, change and file_name
        """
        context = {"repository_path": directory}
        try:
            records = manager.run_exclusive(directory or None, lambda repo: repo.file_status())
            return error_handler.create_success_response(
                "file_status", {"files": [record.to_dict() for record in records]}
            )
        except GitSyncError as e:
            return error_handler.handle_git_sync_error(e, context).to_dict()

    @server.tool()
    def change_files(directory: str, action: str, file_names: Optional[List[str]] = None) -> dict:
        """
        Stage, unstage or discard changed files.

        Args:
            directory: Working copy path, relative to the workspace
            action: One of "stage", "unstage" or "discard"
            file_names: Restrict the action to these paths (all changed files when empty)

        Returns:
            Dictionary with the git sub-commands that were run, grouped by kind
        """
        context = {"repository_path": directory, "field": "action", "value": action}
        try:
            file_action = FileAction(action)
        except ValueError:
            return error_handler.handle_validation_error(
                ValueError(f"Unknown action {action!r}, expected stage, unstage or discard"), context
            ).to_dict()

        def apply(repo):
            records = repo.file_status()
            if file_names:
                wanted = set(file_names)
                records = [record for record in records if record.file_name in wanted]
            return repo.apply_file_action(file_action, records)

        try:
            plan = manager.run_exclusive(directory or None, apply)
            return error_handler.create_success_response(
                "change_files",
                {"action": plan.action.value, "groups": {k: v for k, v in plan.groups.items() if v}}
            )
        except GitSyncError as e:
            return error_handler.handle_git_sync_error(e, context).to_dict()

    @server.tool()
    def safe_update(directory: str = "", branch: Optional[str] = None, remote: Optional[str] = None) -> dict:
        """
        Update a branch from its remote without losing local work.

        Local edits are stashed and restored, the previous branch is checked out
        again and untracked files in the way of the pull are moved aside and back.

        Args:
            directory: Working copy path, relative to the workspace
            branch: Branch to update (configured default branch when omitted)
            remote: Remote to pull from (the branch's tracking remote or the default)

        Returns:
            Dictionary with up_to_date, message and the states the update went through
        """
        context = {"repository_path": directory, "branch": branch, "remote": remote}
        try:
            result = manager.update(directory or None, branch, remote)
            return error_handler.create_success_response("safe_update", result.to_dict())
        except GitSyncError as e:
            return error_handler.handle_git_sync_error(e, context).to_dict()

    @server.tool()
    def update_packages(directory: str = "") -> dict:
        """
        Safe update of every package found directly below a directory.

        A package is a directory containing package.json. Packages are updated
        in parallel; one failing package does not stop the others.

        Args:
            directory: Directory holding the packages, relative to the workspace

        Returns:
            Dictionary mapping package names to their update result or error
        """
        root = manager.resolve_directory(directory or None)
        packages = discover_packages(root, config=server_config, log=manager.log_sink, runner=manager.runner)
        outcomes: Dict[str, dict] = {}
        outcomes_lock = threading.Lock()
        threads = []

        for package in packages:
            key = package.name or package.directory.name

            def record(result, error, key=key, package=package):
                if error is None:
                    outcome = result.to_dict()
                elif isinstance(error, GitSyncError):
                    outcome = error_handler.handle_git_sync_error(
                        error, {"repository_path": str(package.directory)}
                    ).to_dict()
                else:
                    outcome = error_handler.handle_file_io_error(
                        error, {"file_path": str(package.directory)}
                    ).to_dict()
                with outcomes_lock:
                    outcomes[key] = outcome

            threads.append(manager.update_background(package.directory, package.branch, on_done=record))

        for thread in threads:
            thread.join()

        return error_handler.create_success_response(
            "update_packages", {"directory": str(root), "packages": outcomes}
        )

    # Log successful tool registration
    init_logger = logging.getLogger('reposync.init')
    init_logger.info("MCP tools registered successfully")


def initialize_server() -> FastMCP:
    """Initialize MCP server with stdio transport."""
    try:
        # Load and validate configuration
        server_config = load_configuration()
        validation_issues = validate_configuration(server_config)

        # Setup logging with the loaded configuration
        setup_logging(server_config)
        init_logger = logging.getLogger('reposync.init')

        # Report configuration validation issues
        if validation_issues:
            for issue in validation_issues:
                if issue.startswith("ERROR:"):
                    init_logger.error(issue[7:])  # Remove "ERROR: " prefix
                elif issue.startswith("WARNING:"):
                    init_logger.warning(issue[9:])  # Remove "WARNING: " prefix

            # Exit if there are any errors
            error_count = sum(1 for issue in validation_issues if issue.startswith("ERROR:"))
            if error_count > 0:
                init_logger.critical(f"Server startup failed due to {error_count} configuration error(s)")
                sys.exit(1)

        init_logger.info(f"Configuration loaded successfully, workspace: {server_config.workspace_dir}")

        init_logger.info("Initializing MCP server with stdio transport")
        server = FastMCP(
            "reposync",
            log_level=server_config.log_level.upper()
        )

        init_logger.info("Registering MCP tools")
        register_tools(server, server_config)

        init_logger.info("reposync MCP server initialized successfully")

        return server

    except Exception as e:
        # Use basic logging if our logging setup failed
        if 'init_logger' not in locals():
            logging.basicConfig(level=logging.ERROR)
            init_logger = logging.getLogger('reposync.init')

        init_logger.critical(f"Server initialization failed: {e}", exc_info=True)
        raise


def main():
    """Main entry point for the reposync server with stdio transport."""
    startup_logger = None

    try:
        # Setup basic logging for startup
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        startup_logger = logging.getLogger('reposync.startup')

        startup_logger.info("=" * 60)
        startup_logger.info("reposync MCP Server")
        startup_logger.info(f"Version: {__version__}")
        startup_logger.info("=" * 60)

        python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
        if sys.version_info < (3, 10):
            startup_logger.error(f"Python 3.10+ required, found {python_version}")
            sys.exit(1)

        startup_logger.info(f"Python version: {python_version} ✓")

        server = initialize_server()

        startup_logger.info("=" * 60)
        startup_logger.info("Server startup completed successfully!")
        startup_logger.info("Ready to accept MCP connections via stdio transport")
        startup_logger.info("=" * 60)

        server.run(transport="stdio")

        # Leave a summary of slow steps behind when the client disconnects
        from .git_sync.performance_logger import get_performance_logger
        get_performance_logger().log_performance_summary()

    except KeyboardInterrupt:
        if startup_logger:
            startup_logger.info("Server stopped by user (Ctrl+C)")
        else:
            print("\nServer stopped by user")
    except SystemExit:
        # Re-raise SystemExit to preserve exit codes
        raise
    except Exception as e:
        if startup_logger:
            startup_logger.critical(f"Server failed to start: {e}", exc_info=True)
        else:
            print(f"CRITICAL: Server failed to start: {e}")
        sys.exit(1)
