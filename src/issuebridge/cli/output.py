"""
Output - console output formatting for the CLI.
"""

import json
import sys
from typing import Any

from issuebridge.core.domain.entities import TransitionResult


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


class Symbols:
    """Unicode symbols for terminal output."""

    CHECK = "✓"
    CROSS = "✗"
    ARROW = "→"
    DOT = "•"
    INFO = "ℹ"


class Console:
    """
    Console output helper with colors and formatting.

    Attributes:
        color: Whether to use ANSI color codes.
        verbose: Whether to print debug messages.
        quiet: Whether to suppress most output (for CI/scripting).
        json_mode: Whether to output JSON format for programmatic use.
    """

    def __init__(
        self,
        color: bool = True,
        verbose: bool = False,
        quiet: bool = False,
        json_mode: bool = False,
    ):
        """
        Initialize the console output helper.

        Args:
            color: Enable colored output. Automatically disabled if stdout is not a TTY.
            verbose: Enable verbose debug output.
            quiet: Suppress most output, only show errors and final results.
            json_mode: Output JSON format instead of text.
        """
        self.json_mode = json_mode
        self.color = color and sys.stdout.isatty() and not json_mode
        self.verbose = verbose
        self.quiet = quiet or json_mode

        self._json_errors: list[str] = []

        if self.quiet:
            self.verbose = False

    def _c(self, text: str, *codes: str) -> str:
        if not self.color:
            return text
        return "".join(codes) + text + Colors.RESET

    def print(self, text: str = "", force: bool = False) -> None:
        """Print text to stdout unless quiet (``force`` overrides quiet)."""
        if self.quiet and not force:
            return
        print(text)

    def section(self, text: str) -> None:
        if self.quiet:
            return
        self.print()
        self.print(self._c(f"{Symbols.ARROW} {text}", Colors.BOLD, Colors.BLUE))

    def success(self, text: str) -> None:
        if self.quiet:
            return
        self.print(self._c(f"  {Symbols.CHECK} {text}", Colors.GREEN))

    def error(self, text: str) -> None:
        """
        Print an error message with cross symbol.

        Always prints, even in quiet mode. Collected in JSON mode.
        """
        if self.json_mode:
            self._json_errors.append(text)
            return
        print(self._c(f"  {Symbols.CROSS} {text}", Colors.RED), file=sys.stderr)

    def config_errors(self, errors: list[str]) -> None:
        """Print configuration errors; always shown."""
        if self.json_mode:
            self._json_errors.extend(errors)
            return
        self.error("Configuration errors:")
        for error in errors:
            print(f"    {Symbols.DOT} {error}", file=sys.stderr)

    def info(self, text: str) -> None:
        if self.quiet:
            return
        self.print(self._c(f"  {Symbols.INFO} {text}", Colors.CYAN))

    def detail(self, text: str) -> None:
        if self.quiet:
            return
        self.print(self._c(f"    {text}", Colors.DIM))

    def debug(self, text: str) -> None:
        """Print debug message (only visible in verbose mode)."""
        if self.verbose:
            self.print(self._c(f"  [DEBUG] {text}", Colors.DIM))

    def dry_run_banner(self) -> None:
        if self.quiet:
            return
        self.print()
        self.print(self._c("  DRY-RUN: no changes will be made (use --execute to apply)", Colors.BOLD, Colors.YELLOW))

    def table(self, headers: list[str], rows: list[list[str]]) -> None:
        """
        Print a formatted table with headers.

        Column widths are computed from the content.
        """
        if self.quiet:
            return
        widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                if i < len(widths):
                    widths[i] = max(widths[i], len(str(cell)))

        self.print(
            "  " + "  ".join(self._c(h.ljust(widths[i]), Colors.BOLD) for i, h in enumerate(headers))
        )
        self.print("  " + "  ".join("-" * w for w in widths))
        for row in rows:
            self.print("  " + "  ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row)))

    def json_output(self, payload: Any) -> None:
        """Write a JSON document to stdout, including collected errors."""
        if self._json_errors and isinstance(payload, dict):
            payload = {**payload, "errors": list(self._json_errors)}
        print(json.dumps(payload, indent=2, default=str))

    def transition_result(self, result: TransitionResult, dry_run: bool) -> None:
        """Print the outcome of a transition run."""
        if self.json_mode:
            self.json_output({"dry_run": dry_run, **result.to_dict()})
            return

        verb = "Would update" if dry_run else "Updated"
        self.success(f"{verb} {result.count} issue(s) to '{result.to_status}'")
        for issue_id in result.transitioned:
            self.detail(f"{Symbols.DOT} {issue_id}")
        if result.skipped:
            self.info(f"Skipped {len(result.skipped)} issue(s)")
            if self.verbose:
                for issue_id, reason in result.skipped:
                    self.detail(f"{Symbols.DOT} {issue_id}: {reason}")

    def flush_json_errors(self) -> None:
        """In JSON mode, write collected errors as a JSON document."""
        if self.json_mode and self._json_errors:
            self.json_output({})
            self._json_errors = []
