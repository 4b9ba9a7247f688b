"""
CLI - command line interface for issuebridge.
"""

from .app import create_parser, main, run
from .exit_codes import ExitCode
from .output import Console


__all__ = ["Console", "ExitCode", "create_parser", "main", "run"]
