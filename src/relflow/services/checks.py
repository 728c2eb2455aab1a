"""Quality check runner for the configured package scripts.

Categories (format, lint, typecheck, test, build) run in the configured
order. Commands run with ``CI=true`` so test runners such as Jest never
enter watch mode, and with colors disabled so coverage tables can be
parsed from the output.
"""

import logging
import os
import shlex
import subprocess
import time
from pathlib import Path

from ..config import ChecksConfig
from ..constants import CHECKS_TIMEOUT
from ..models import CategoryResult, ChecksSummary

logger = logging.getLogger(__name__)

# Categories whose failure is reported but never blocks a release
ADVISORY_CATEGORIES = frozenset({"format"})

# npm scripts can print thousands of lines; keep the end, where errors are
OUTPUT_TAIL_CHARS = 20_000


class ChecksError(Exception):
    """A check command could not be run."""

    pass


def _check_env() -> dict[str, str]:
    return {**os.environ, "CI": "true", "FORCE_COLOR": "0", "NO_COLOR": "1"}


def run_single_check(
    command: str,
    cwd: Path,
    timeout: int | None = None,
) -> tuple[str, int]:
    """Run one check command.

    stdout and stderr are merged in the order the command wrote them.

    Returns:
        Tuple of (``$ command`` header plus output tail, exit code)

    Raises:
        ChecksError: If the command cannot be parsed, is not installed or times out
    """
    timeout = timeout or CHECKS_TIMEOUT
    try:
        args = shlex.split(command)
    except ValueError as e:
        raise ChecksError(f"Invalid command syntax: {e}") from e
    if not args:
        raise ChecksError("Empty check command")

    logger.debug("Running check: %s", command)
    try:
        result = subprocess.run(
            args,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
            env=_check_env(),
        )
    except subprocess.TimeoutExpired as e:
        raise ChecksError(f"'{command}' timed out after {timeout} seconds") from e
    except FileNotFoundError:
        raise ChecksError(f"Command not found: {args[0]}") from None

    output = result.stdout or ""
    if len(output) > OUTPUT_TAIL_CHARS:
        output = "[... output truncated ...]\n" + output[-OUTPUT_TAIL_CHARS:]
    return f"$ {command}\n{output}", result.returncode


def run_checks(
    config: ChecksConfig,
    cwd: Path,
    timeout: int | None = None,
    fail_fast: bool = False,
    only: list[str] | None = None,
) -> ChecksSummary:
    """Run every configured category.

    Args:
        config: Check commands and their order
        cwd: Package root
        timeout: Timeout per category
        fail_fast: Stop at the first blocking failure
        only: Restrict to these category names

    Returns:
        ChecksSummary; ``first_failure`` names the first blocking failure,
        advisory categories never set it
    """
    categories = config.get_categories()
    if only is not None:
        categories = {k: v for k, v in categories.items() if k in only}

    summary = ChecksSummary()
    for name, command in categories.items():
        advisory = name in ADVISORY_CATEGORIES
        start = time.monotonic()
        try:
            output, exit_code = run_single_check(command, cwd, timeout)
        except ChecksError as e:
            output, exit_code = str(e), 127
        result = CategoryResult(
            category=name,
            exit_code=exit_code,
            passed=exit_code == 0,
            advisory=advisory,
            output=output,
            duration=time.monotonic() - start,
        )
        summary.categories[name] = result
        logger.debug("%s: %s", name, "passed" if result.passed else f"exit {exit_code}")

        if result.passed or advisory:
            continue
        if summary.first_failure is None:
            summary.first_failure = name
            summary.all_passed = False
        if fail_fast:
            break
    return summary
