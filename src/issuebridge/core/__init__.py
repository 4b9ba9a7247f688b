"""
Core layer - domain types, ports, query building, classification and
transitions. Has no dependency on any concrete tracker.
"""

from .cancellation import CancellationToken
from .classifier import classify, parse_closed_states
from .query import build_gitlab_params, build_wiql, create_filter, escape_literal, render_wiql
from .transitions import TransitionEngine


__all__ = [
    "CancellationToken",
    "TransitionEngine",
    "build_gitlab_params",
    "build_wiql",
    "classify",
    "create_filter",
    "escape_literal",
    "parse_closed_states",
    "render_wiql",
]
