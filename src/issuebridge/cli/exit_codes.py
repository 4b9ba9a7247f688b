"""
Exit Codes - process exit codes returned by the issuebridge CLI.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """
    Exit codes for the issuebridge CLI.

    0 is success; 1-9 are general failures; 130 follows the shell
    convention for SIGINT.
    """

    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 2
    NOT_FOUND = 3
    CONNECTION_ERROR = 4
    AUTH_ERROR = 5
    MALFORMED_DATA = 6
    PARTIAL_SUCCESS = 7
    CANCELLED = 8
    SIGINT = 130
