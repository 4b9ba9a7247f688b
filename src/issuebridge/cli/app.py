"""
CLI App - Main entry point for the issuebridge command line tool.
"""

import argparse
import logging
import signal
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from issuebridge.adapters import (
    AzureDevOpsApiClient,
    AzureDevOpsIssueSource,
    EnvironmentConfigProvider,
    GitLabApiClient,
    GitLabIssueSource,
)
from issuebridge.application import (
    IssueTrackerService,
    create_work_item,
    download_artifact,
    find_work_items,
    queue_build,
)
from issuebridge.core.cancellation import CancellationToken
from issuebridge.core.domain.value_objects import IssueFilter
from issuebridge.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    IssueBridgeError,
    MalformedRecordError,
    OperationCancelledError,
    RateLimitError,
    ResourceNotFoundError,
    TrackerError,
    TransientError,
    TransitionError,
)
from issuebridge.core.ports.config_provider import AppConfig, TrackerType

from .exit_codes import ExitCode
from .logging import setup_logging
from .output import Console


def create_parser() -> argparse.ArgumentParser:
    """
    Create the command-line argument parser for issuebridge.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="issuebridge",
        description="Query and transition Azure DevOps and GitLab issues",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List work items of an iteration
  issuebridge issues --project Fabrikam --iteration "Fabrikam\\Release 1.4"

  # Resolve all active work items of a release (preview, then apply)
  issuebridge transition --iteration "Fabrikam\\Release 1.4" --from Active --to Resolved
  issuebridge transition --iteration "Fabrikam\\Release 1.4" --from Active --to Resolved --execute

  # Close every open GitLab issue of a milestone
  issuebridge --tracker gitlab transition --iteration v1.4 --to closed --execute

  # Download and extract a build artifact
  issuebridge download --definition CI --artifact drop --target ./out
        """,
    )

    parser.add_argument("--config", "-c", help="Path to a config file (.yaml, .toml, pyproject.toml)")
    parser.add_argument(
        "--tracker",
        choices=[t.value for t in TrackerType],
        help="Tracker to talk to (default: from config, else azure_devops)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only print errors and results")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument(
        "--log-format", choices=["text", "json"], default="text", help="Log record format"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    def add_filter_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--project", "-p", help="Project (overrides config)")
        sub.add_argument("--iteration", "-i", help="Iteration path or milestone; may use $Variables")
        sub.add_argument("--query", help="Custom query; project and iteration are ignored")
        sub.add_argument("--filter", dest="extra_clause", help="Extra clause appended to the query")
        sub.add_argument(
            "--var",
            action="append",
            default=[],
            metavar="NAME=VALUE",
            help="Template variable (repeatable)",
        )
        sub.add_argument("--closed-states", help="Comma-separated closed states")

    issues = subparsers.add_parser("issues", help="List issues matching a filter")
    add_filter_args(issues)
    issues.add_argument("--json", action="store_true", help="Output JSON")

    versions = subparsers.add_parser("versions", help="List iterations/milestones")
    versions.add_argument("--project", "-p", help="Project (overrides config)")
    versions.add_argument("--json", action="store_true", help="Output JSON")

    transition = subparsers.add_parser("transition", help="Move matching issues to a status")
    add_filter_args(transition)
    transition.add_argument("--to", dest="to_status", required=True, help="Target status")
    transition.add_argument("--from", dest="from_status", help="Only change issues in this status")
    transition.add_argument("--comment", help="Comment recorded with each change")
    transition.add_argument("--execute", "-x", action="store_true", help="Apply changes")
    transition.add_argument("--json", action="store_true", help="Output JSON")

    create = subparsers.add_parser("create", help="Create an Azure DevOps work item")
    create.add_argument("--project", "-p", help="Project (overrides config)")
    create.add_argument("--type", dest="work_item_type", required=True, help="Work item type")
    create.add_argument("--title", required=True)
    create.add_argument("--description")
    create.add_argument("--iteration", "-i", help="Iteration path")
    create.add_argument("--execute", "-x", action="store_true", help="Apply changes")

    find = subparsers.add_parser("find", help="Find Azure DevOps work items as column maps")
    find.add_argument("--project", "-p", help="Project (overrides config)")
    find.add_argument("--iteration", "-i", help="Iteration path")
    find.add_argument("--filter", dest="extra_clause", help="WIQL appended to the WHERE clause")
    find.add_argument("--query", help="Custom WIQL; project and iteration are ignored")
    find.add_argument("--closed-states", help="Comma-separated closed states")
    find.add_argument("--json", action="store_true", help="Output JSON")

    download = subparsers.add_parser("download", help="Download an Azure DevOps build artifact")
    download.add_argument("--project", "-p", help="Project (overrides config)")
    download.add_argument("--definition", required=True, help="Build definition name")
    download.add_argument("--artifact", required=True, help="Artifact name")
    download.add_argument("--build-number", help="Build number (default: latest)")
    download.add_argument("--target", default=".", help="Target directory")
    download.add_argument("--no-extract", action="store_true", help="Save the zip instead of extracting")

    queue = subparsers.add_parser("queue-build", help="Queue an Azure DevOps build")
    queue.add_argument("--project", "-p", help="Project (overrides config)")
    queue.add_argument("--definition", required=True, help="Build definition name")
    queue.add_argument("--branch", help="Source branch, e.g. refs/heads/main")
    queue.add_argument("--wait", action="store_true", help="Wait for the build to finish")
    queue.add_argument("--execute", "-x", action="store_true", help="Apply changes")

    subparsers.add_parser("projects", help="List projects")

    return parser


# -------------------------------------------------------------------------
# Wiring
# -------------------------------------------------------------------------


def load_config(args: argparse.Namespace, console: Console) -> AppConfig | None:
    """Load and validate configuration; print errors and return None on failure."""
    config_file = Path(args.config) if getattr(args, "config", None) else None
    overrides = {
        "tracker": getattr(args, "tracker", None),
        "issues.closed_states": getattr(args, "closed_states", None),
    }
    provider = EnvironmentConfigProvider(config_file=config_file, cli_overrides=overrides)
    config = provider.load()
    errors = provider.validate()
    if errors:
        console.config_errors(errors)
        return None
    console.debug(f"Configuration loaded from {provider.name}")

    if getattr(args, "execute", False):
        config.dry_run = False
    return config


def create_client(config: AppConfig) -> AzureDevOpsApiClient | GitLabApiClient:
    """Create the API client of the configured tracker."""
    if config.tracker == TrackerType.GITLAB:
        if config.gitlab is None:
            raise ConfigurationError("Missing GitLab configuration")
        return GitLabApiClient(
            token=config.gitlab.token,
            project_id=config.gitlab.project,
            base_url=config.gitlab.base_url,
            dry_run=config.dry_run,
            max_retries=config.max_retries,
            timeout=config.timeout,
        )
    if config.azure_devops is None:
        raise ConfigurationError("Missing Azure DevOps configuration")
    return AzureDevOpsApiClient(
        organization=config.azure_devops.organization,
        pat=config.azure_devops.pat,
        project=config.azure_devops.project,
        base_url=config.azure_devops.base_url,
        dry_run=config.dry_run,
        max_retries=config.max_retries,
        timeout=config.timeout,
    )


def create_service(
    config: AppConfig, client: AzureDevOpsApiClient | GitLabApiClient
) -> IssueTrackerService:
    if isinstance(client, GitLabApiClient):
        source: Any = GitLabIssueSource(client)
    else:
        source = AzureDevOpsIssueSource(client)
    return IssueTrackerService(source, closed_states=config.issues.closed_states)


def parse_variables(pairs: list[str]) -> dict[str, str]:
    """Parse NAME=VALUE pairs."""
    variables = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ConfigurationError(f"Invalid variable '{pair}'; expected NAME=VALUE")
        variables[name] = value
    return variables


def build_filter(
    args: argparse.Namespace, config: AppConfig, service: IssueTrackerService
) -> IssueFilter:
    """Build the issue filter from CLI arguments layered over configuration."""
    settings = config.issues
    variables = {**settings.variables, **parse_variables(getattr(args, "var", []))}
    return service.create_filter(
        custom_query_template=args.query or settings.custom_query,
        simple_mapping_expression=args.iteration or settings.iteration_path or settings.mapping_expression,
        project=args.project or config.project,
        variables=variables,
        extra_clause=args.extra_clause or settings.extra_clause,
    )


def require_azure_devops(
    client: AzureDevOpsApiClient | GitLabApiClient, command: str
) -> AzureDevOpsApiClient:
    if not isinstance(client, AzureDevOpsApiClient):
        raise ConfigurationError(f"The '{command}' command is only available for Azure DevOps")
    return client


def require_project(args: argparse.Namespace, config: AppConfig) -> str:
    project = getattr(args, "project", None) or config.project
    if not project:
        raise ConfigurationError("A project is required (--project or config)")
    return project


# -------------------------------------------------------------------------
# Commands
# -------------------------------------------------------------------------


def run_issues(ctx: "CommandContext") -> int:
    service = create_service(ctx.config, ctx.client)
    issue_filter = build_filter(ctx.args, ctx.config, service)
    issues = list(service.enumerate_issues(issue_filter, ctx.cancel_token))

    if ctx.args.json:
        ctx.console.json_output({"issues": [issue.to_dict() for issue in issues]})
        return ExitCode.SUCCESS

    ctx.console.section(f"{len(issues)} issue(s)")
    ctx.console.table(
        ["ID", "Status", "Closed", "Type", "Title"],
        [[i.id, i.status, "yes" if i.is_closed else "no", i.type or "", i.title] for i in issues],
    )
    return ExitCode.SUCCESS


def run_versions(ctx: "CommandContext") -> int:
    service = create_service(ctx.config, ctx.client)
    project = require_project(ctx.args, ctx.config)
    versions = list(service.enumerate_versions(project, ctx.cancel_token))

    if ctx.args.json:
        ctx.console.json_output({"versions": [v.to_dict() for v in versions]})
        return ExitCode.SUCCESS

    ctx.console.table(
        ["Name", "Closed"],
        [[v.name, "yes" if v.is_closed else "no"] for v in versions],
    )
    return ExitCode.SUCCESS


def run_transition(ctx: "CommandContext") -> int:
    args = ctx.args
    service = create_service(ctx.config, ctx.client)
    issue_filter = build_filter(args, ctx.config, service)

    if ctx.config.dry_run:
        ctx.console.dry_run_banner()

    result = service.transition_issues(
        issue_filter,
        to_status=args.to_status,
        from_status=args.from_status,
        comment=args.comment,
        cancel_token=ctx.cancel_token,
    )
    ctx.console.transition_result(result, dry_run=ctx.config.dry_run)
    return ExitCode.SUCCESS


def run_create(ctx: "CommandContext") -> int:
    client = require_azure_devops(ctx.client, "create")
    args = ctx.args
    if ctx.config.dry_run:
        ctx.console.dry_run_banner()

    created = create_work_item(
        client,
        project=require_project(args, ctx.config),
        work_item_type=args.work_item_type,
        title=args.title,
        description=args.description,
        iteration_path=args.iteration,
    )
    if created is None:
        ctx.console.info(f"Would create {args.work_item_type} '{args.title}'")
    else:
        ctx.console.success(f"Created work item {created.id}")
        if created.url:
            ctx.console.detail(created.url)
    return ExitCode.SUCCESS


def run_find(ctx: "CommandContext") -> int:
    client = require_azure_devops(ctx.client, "find")
    args = ctx.args
    items = find_work_items(
        client,
        project=args.project or ctx.config.project,
        iteration_path=args.iteration or ctx.config.issues.iteration_path,
        extra_clause=args.extra_clause or ctx.config.issues.extra_clause,
        custom_query=args.query or ctx.config.issues.custom_query,
        closed_states=ctx.config.issues.closed_states,
        cancel_token=ctx.cancel_token,
    )

    if args.json:
        ctx.console.json_output({"work_items": items})
        return ExitCode.SUCCESS

    ctx.console.section(f"{len(items)} work item(s)")
    ctx.console.table(
        ["Id", "State", "Closed", "Title"],
        [
            [
                item["Id"],
                item.get("System.State") or "",
                "yes" if item.get("IsClosed") else "no",
                item.get("System.Title") or "",
            ]
            for item in items
        ],
    )
    return ExitCode.SUCCESS


def run_download(ctx: "CommandContext") -> int:
    client = require_azure_devops(ctx.client, "download")
    args = ctx.args
    path = download_artifact(
        client,
        project=require_project(args, ctx.config),
        build_definition=args.definition,
        artifact_name=args.artifact,
        target_directory=args.target,
        build_number=args.build_number,
        extract=not args.no_extract,
        cancel_token=ctx.cancel_token,
    )
    ctx.console.success(f"Artifact {args.artifact} downloaded to {path}")
    return ExitCode.SUCCESS


def run_queue_build(ctx: "CommandContext") -> int:
    client = require_azure_devops(ctx.client, "queue-build")
    args = ctx.args
    if ctx.config.dry_run:
        ctx.console.dry_run_banner()

    build = queue_build(
        client,
        project=require_project(args, ctx.config),
        build_definition=args.definition,
        branch=args.branch,
        wait=args.wait,
        cancel_token=ctx.cancel_token,
    )
    if build is None:
        ctx.console.info(f"Would queue a build of '{args.definition}'")
    elif build.result:
        ctx.console.success(f"Build {build.build_number} {build.result}")
    else:
        ctx.console.success(f"Build {build.build_number} queued")
    return ExitCode.SUCCESS


def run_projects(ctx: "CommandContext") -> int:
    for project in ctx.client.iter_projects(ctx.cancel_token):
        ctx.console.print(project.get("path_with_namespace") or project.get("name", ""), force=True)
    return ExitCode.SUCCESS


COMMANDS: dict[str, Callable[["CommandContext"], int]] = {
    "issues": run_issues,
    "versions": run_versions,
    "transition": run_transition,
    "create": run_create,
    "find": run_find,
    "download": run_download,
    "queue-build": run_queue_build,
    "projects": run_projects,
}


class CommandContext:
    """Everything a command needs: arguments, configuration, client and output."""

    def __init__(
        self,
        args: argparse.Namespace,
        config: AppConfig,
        client: AzureDevOpsApiClient | GitLabApiClient,
        console: Console,
        cancel_token: CancellationToken,
    ):
        self.args = args
        self.config = config
        self.client = client
        self.console = console
        self.cancel_token = cancel_token


def exit_code_for(error: IssueBridgeError) -> ExitCode:
    """Map a library error to a process exit code."""
    if isinstance(error, ConfigurationError):
        return ExitCode.CONFIG_ERROR
    if isinstance(error, OperationCancelledError):
        return ExitCode.CANCELLED
    if isinstance(error, AuthenticationError):
        return ExitCode.AUTH_ERROR
    if isinstance(error, ResourceNotFoundError):
        return ExitCode.NOT_FOUND
    if isinstance(error, MalformedRecordError):
        return ExitCode.MALFORMED_DATA
    if isinstance(error, TransitionError):
        if error.result is not None and error.result.count > 0:
            return ExitCode.PARTIAL_SUCCESS
        return ExitCode.ERROR
    if isinstance(error, (RateLimitError, TransientError)):
        return ExitCode.CONNECTION_ERROR
    if isinstance(error, TrackerError) and isinstance(error.cause, OSError):
        return ExitCode.CONNECTION_ERROR
    return ExitCode.ERROR


def main(argv: list[str] | None = None) -> int:
    """
    Run the CLI.

    Args:
        argv: Arguments without the program name; sys.argv when None.

    Returns:
        Exit code.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(level=log_level, log_format=args.log_format)

    console = Console(
        color=not args.no_color,
        verbose=args.verbose,
        quiet=args.quiet,
        json_mode=getattr(args, "json", False),
    )

    config = load_config(args, console)
    if config is None:
        console.flush_json_errors()
        return ExitCode.CONFIG_ERROR

    cancel_token = CancellationToken()

    def on_sigint(signum: int, frame: Any) -> None:
        if cancel_token.is_cancelled:
            raise KeyboardInterrupt
        cancel_token.cancel("interrupted by user")

    previous_handler = signal.signal(signal.SIGINT, on_sigint)
    try:
        with create_client(config) as client:
            ctx = CommandContext(args, config, client, console, cancel_token)
            return COMMANDS[args.command](ctx)
    except TransitionError as e:
        console.error(str(e))
        if e.result is not None:
            console.detail(f"{e.result.count} issue(s) were updated before the failure")
        return exit_code_for(e)
    except IssueBridgeError as e:
        console.error(str(e))
        return exit_code_for(e)
    except KeyboardInterrupt:
        console.error("Interrupted")
        return ExitCode.SIGINT
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        console.flush_json_errors()


def run() -> None:
    """Console script entry point."""
    sys.exit(main())
