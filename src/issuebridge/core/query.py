"""
Query Filter Builder - turns mapping parameters into tracker queries.

Azure DevOps filters render to WIQL; GitLab filters render to REST
query-string parameters. Single-quote doubling in WIQL literals is the only
escaping performed: extra clauses and custom queries are trusted verbatim.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from string import Template
from urllib.parse import parse_qsl

from .domain.value_objects import IssueFilter
from .exceptions import ConfigurationError


logger = logging.getLogger("QueryBuilder")

ISSUE_COLUMNS: tuple[str, ...] = (
    "System.Id",
    "System.Title",
    "System.Description",
    "System.State",
    "System.CreatedDate",
    "System.CreatedBy",
    "System.WorkItemType",
)

DEFAULT_MAPPING_EXPRESSION = "$ReleaseNumber"


def escape_literal(value: str) -> str:
    """Escape a WIQL string literal by doubling single quotes."""
    return value.replace("'", "''")


def build_wiql(
    project: str | None = None,
    iteration_path: str | None = None,
    extra_clause: str | None = None,
    custom_query: str | None = None,
    columns: tuple[str, ...] = ISSUE_COLUMNS,
) -> str:
    """
    Build a WIQL query.

    A non-empty ``custom_query`` is returned unchanged. Otherwise a SELECT
    over ``columns`` is built, with a WHERE section only when a project,
    iteration path or extra clause is given. ``extra_clause`` is appended
    raw, prefixed by AND when an earlier clause exists.

    Args:
        project: Team project name.
        iteration_path: Iteration path; matches the path and its children.
        extra_clause: Additional WIQL condition, not escaped.
        custom_query: Complete WIQL query overriding everything else.
        columns: Reference names of the fields to select.

    Returns:
        The WIQL query string.
    """
    if custom_query:
        if project or iteration_path:
            logger.debug(
                "Custom query is set; project and iteration path are ignored"
            )
        return custom_query

    select = ", ".join(f"[{column}]" for column in columns)
    wiql = f"SELECT {select} FROM WorkItems"

    clauses: list[str] = []
    if project:
        clauses.append(f"[System.TeamProject] = '{escape_literal(project)}'")
    if iteration_path:
        clauses.append(f"[System.IterationPath] UNDER '{escape_literal(iteration_path)}'")

    if extra_clause:
        clauses.append(extra_clause)

    if clauses:
        wiql += " WHERE " + " AND ".join(clauses)

    return wiql


def render_wiql(issue_filter: IssueFilter, columns: tuple[str, ...] = ISSUE_COLUMNS) -> str:
    """
    Render a filter to WIQL for enumeration or transition.

    Without a custom query both project and iteration path are required,
    so an unconstrained query is never sent to the tracker.

    Raises:
        ConfigurationError: If project or iteration path is missing.
    """
    if issue_filter.is_custom:
        return build_wiql(
            project=issue_filter.project,
            iteration_path=issue_filter.iteration_path,
            custom_query=issue_filter.custom_query,
            columns=columns,
        )

    if not issue_filter.project or not issue_filter.iteration_path:
        raise ConfigurationError(
            "A custom query or both a project and an iteration path are required "
            f"(got {issue_filter.describe()})"
        )

    return build_wiql(
        project=issue_filter.project,
        iteration_path=issue_filter.iteration_path,
        extra_clause=issue_filter.extra_clause,
        columns=columns,
    )


def build_gitlab_params(issue_filter: IssueFilter) -> dict[str, str]:
    """
    Render a filter to GitLab issue-list query parameters.

    A custom query is read as a URL query string (``labels=bug&state=opened``).
    Otherwise the iteration path is the milestone title and the extra clause,
    if any, is parsed as further query-string parameters.

    Raises:
        ConfigurationError: If neither a custom query nor a milestone is given.
    """
    if issue_filter.is_custom:
        return dict(parse_qsl(issue_filter.custom_query or "", keep_blank_values=True))

    if not issue_filter.iteration_path:
        raise ConfigurationError(
            f"A custom query or a milestone is required (got {issue_filter.describe()})"
        )

    params = {"milestone": issue_filter.iteration_path}
    if issue_filter.extra_clause:
        params.update(parse_qsl(issue_filter.extra_clause, keep_blank_values=True))
    return params


def evaluate_template(expression: str, variables: Mapping[str, str] | None) -> str:
    """
    Substitute ``$Name`` and ``${Name}`` variables into ``expression``.

    Raises:
        ConfigurationError: If a referenced variable is missing or the
            expression has an invalid placeholder.
    """
    try:
        return Template(expression).substitute(variables or {})
    except KeyError as e:
        raise ConfigurationError(
            f"Could not parse the Issue mapping query \"{expression}\": "
            f"variable {e.args[0]} is not defined",
            cause=e,
        ) from e
    except ValueError as e:
        raise ConfigurationError(
            f"Could not parse the Issue mapping query \"{expression}\": {e}",
            cause=e,
        ) from e


def create_filter(
    custom_query_template: str | None = None,
    simple_mapping_expression: str | None = None,
    project: str | None = None,
    variables: Mapping[str, str] | None = None,
    extra_clause: str | None = None,
) -> IssueFilter:
    """
    Create an IssueFilter from configuration.

    When ``custom_query_template`` is set it is evaluated and used as-is;
    project and mapping expression are ignored. Otherwise the mapping
    expression (default ``$ReleaseNumber``) is evaluated into the iteration
    path and combined with ``project``.

    Args:
        custom_query_template: Query template, e.g. ``SELECT ... '$ReleaseNumber'``.
        simple_mapping_expression: Template evaluating to the iteration path.
        project: Team project name (GitLab: project path).
        variables: Values for template variables.
        extra_clause: Raw clause appended to mapping queries.

    Raises:
        ConfigurationError: If the evaluated query or iteration path is
            empty, a variable is missing, or no project is configured.
    """
    if custom_query_template:
        query = evaluate_template(custom_query_template, variables)
        if not query:
            raise ConfigurationError(
                f"Could not parse the Issue mapping query \"{custom_query_template}\": "
                "resulting query is an empty string"
            )
        return IssueFilter.custom(query)

    expression = simple_mapping_expression or DEFAULT_MAPPING_EXPRESSION
    iteration_path = evaluate_template(expression, variables)
    if not iteration_path:
        raise ConfigurationError(
            f"Could not parse the simple mapping expression \"{expression}\": "
            "milestone expression is an empty string"
        )

    if not project:
        raise ConfigurationError(
            "A project is required when no custom query is configured"
        )

    return IssueFilter.mapping(project, iteration_path, extra_clause)
