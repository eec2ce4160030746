"""
Quality gate runner.

Gates are named checks run as shell commands in the project directory:
    tests     detected test command (default: npm test)
    lint      detected lint command (skipped if none)
    types     detected type-check command (skipped if none)
    coverage  test command with --coverage, compared against a threshold

A gate never raises: failures, timeouts and unknown gate names all come back
as a GateResult with passed=False.
"""

import copy
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from agileflow.lib.config import get_quality_gates, load_metadata
from agileflow.lib.jsonstore import read_json
from agileflow.lib.shell import run_shell

logger = logging.getLogger(__name__)

# Timeouts in seconds. Configured values above MAX_TIMEOUT_SECONDS are read
# as milliseconds, the unit older metadata files use.
DEFAULT_GATE_CONFIG = {
    "tests": {"enabled": True, "timeout": 300, "command": None},
    "lint": {"enabled": False, "timeout": 60, "command": None},
    "types": {"enabled": False, "timeout": 60, "command": None},
    "coverage": {"enabled": False, "timeout": 300, "threshold": 80, "command": None},
}

GATES = tuple(DEFAULT_GATE_CONFIG)
DEFAULT_TIMEOUT = 60
MAX_TIMEOUT_SECONDS = 3600
DEFAULT_COVERAGE_THRESHOLD = 80
DEFAULT_TEST_COMMAND = "npm test"

# Hook settings that live next to gates in quality_gates.<hook>
NON_GATE_KEYS = frozenset({"require_validator_approval"})

MESSAGE_TAIL_LINES = 3
MESSAGE_MAX_CHARS = 200

_COVERAGE_PATTERNS = [
    re.compile(r"All files\s*\|\s*([\d.]+)"),          # jest / vitest (istanbul)
    re.compile(r"^TOTAL\s+.*?([\d.]+)%\s*$", re.M),     # pytest-cov / coverage.py
    re.compile(r"Statements\s*:\s*([\d.]+)%"),          # istanbul text-summary
]


@dataclass
class GateResult:
    """Outcome of one gate."""
    gate: str
    passed: bool
    message: str
    duration: int = 0  # milliseconds
    output: str = ""
    command: Optional[str] = None
    skipped: bool = False


@dataclass
class GatesResult:
    """Outcome of a batch of gates."""
    results: list[GateResult] = field(default_factory=list)
    all_passed: bool = True
    total_duration: int = 0  # milliseconds


# ----------------------------------------------------------------------------
# Command detection
# ----------------------------------------------------------------------------

def _package_scripts(root: Path) -> dict:
    result = read_json(Path(root) / "package.json")
    if not result.ok or not isinstance(result.data, dict):
        return {}
    scripts = result.data.get("scripts")
    return scripts if isinstance(scripts, dict) else {}


def detect_test_command(root: Path) -> str:
    root = Path(root)
    if _package_scripts(root).get("test"):
        return "npm test"
    if (root / "jest.config.js").exists():
        return "npx jest"
    if (root / "vitest.config.ts").exists():
        return "npx vitest run"
    if (root / "pytest.ini").exists():
        return "pytest"
    return DEFAULT_TEST_COMMAND


def detect_lint_command(root: Path) -> Optional[str]:
    scripts = _package_scripts(root)
    if scripts.get("lint"):
        return "npm run lint"
    if scripts.get("lint:all"):
        return "npm run lint:all"
    return None


def detect_type_check_command(root: Path) -> Optional[str]:
    root = Path(root)
    scripts = _package_scripts(root)
    if scripts.get("typecheck"):
        return "npm run typecheck"
    if scripts.get("type-check"):
        return "npm run type-check"
    if (root / "tsconfig.json").exists():
        return "npx tsc --noEmit"
    return None


# ----------------------------------------------------------------------------
# Execution
# ----------------------------------------------------------------------------

@dataclass
class CommandRun:
    passed: bool
    output: str
    duration: int  # milliseconds
    timed_out: bool = False


def run_command(command: str, root: Path, timeout: float) -> CommandRun:
    """Run a gate command and time it."""
    start = time.monotonic()
    result = run_shell(command, cwd=root, timeout=timeout)
    duration = int((time.monotonic() - start) * 1000)
    return CommandRun(
        passed=result.success,
        output=result.output,
        duration=duration,
        timed_out=result.timed_out,
    )


def summarize_output(output: str) -> str:
    """Last few non-blank lines of output, joined and truncated."""
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    return " ".join(lines[-MESSAGE_TAIL_LINES:])[:MESSAGE_MAX_CHARS]


def parse_coverage(output: str) -> Optional[float]:
    """Overall line/statement coverage percentage reported in output, if any."""
    for pattern in _COVERAGE_PATTERNS:
        match = pattern.search(output)
        if match:
            try:
                return float(match.group(1))
            except ValueError:
                continue
    return None


def _failure(gate: str, label: str, run: CommandRun, command: str, timeout: float) -> GateResult:
    if run.timed_out:
        message = f"{label}: timed out after {timeout:g}s"
    else:
        message = f"{label}: {summarize_output(run.output)}"
    return GateResult(gate=gate, passed=False, message=message, duration=run.duration,
                      output=run.output, command=command)


def _skipped(gate: str, message: str) -> GateResult:
    return GateResult(gate=gate, passed=True, message=message, duration=0, skipped=True)


def gate_timeout(value, default: float) -> float:
    """Timeout in seconds for a configured value; None means ``default``."""
    if value is None:
        return default
    if value > MAX_TIMEOUT_SECONDS:
        logger.debug(f"Gate timeout {value} read as milliseconds")
        return value / 1000
    return value


def evaluate_gate(gate: str, root: Path, options: Optional[dict] = None) -> GateResult:
    """Run one gate.

    Args:
        gate: "tests", "lint", "types" or "coverage"
        root: Project directory the command runs in
        options: Optional overrides: command, timeout, threshold. timeout is in
            seconds; values above MAX_TIMEOUT_SECONDS are taken as milliseconds.
    """
    options = options or {}
    if gate not in DEFAULT_GATE_CONFIG:
        logger.warning(f"Unknown gate: {gate}")
        return GateResult(gate=gate, passed=False, message=f"Unknown gate: {gate}")

    timeout = gate_timeout(options.get("timeout"), DEFAULT_GATE_CONFIG[gate].get("timeout", DEFAULT_TIMEOUT))
    command = options.get("command")

    if gate == "tests":
        command = command or detect_test_command(root)
        run = run_command(command, root, timeout)
        if not run.passed:
            return _failure(gate, "Tests failing", run, command, timeout)
        return GateResult(gate=gate, passed=True, message="All tests passing",
                          duration=run.duration, output=run.output, command=command)

    if gate == "lint":
        command = command or detect_lint_command(root)
        if not command:
            return _skipped(gate, "No lint command found (skipped)")
        run = run_command(command, root, timeout)
        if not run.passed:
            return _failure(gate, "Lint errors", run, command, timeout)
        return GateResult(gate=gate, passed=True, message="Lint passing",
                          duration=run.duration, output=run.output, command=command)

    if gate == "types":
        command = command or detect_type_check_command(root)
        if not command:
            return _skipped(gate, "No type-check command found (skipped)")
        run = run_command(command, root, timeout)
        if not run.passed:
            return _failure(gate, "Type errors", run, command, timeout)
        return GateResult(gate=gate, passed=True, message="Type check passing",
                          duration=run.duration, output=run.output, command=command)

    # coverage
    command = command or f"{detect_test_command(root)} -- --coverage"
    threshold = options.get("threshold")
    if threshold is None:
        threshold = DEFAULT_COVERAGE_THRESHOLD
    run = run_command(command, root, timeout)
    if not run.passed:
        return _failure(gate, "Coverage check failed", run, command, timeout)

    coverage = parse_coverage(run.output)
    if coverage is not None and coverage < threshold:
        return GateResult(gate=gate, passed=False,
                          message=f"Coverage {coverage:g}% is below threshold {threshold}%",
                          duration=run.duration, output=run.output, command=command)
    detail = f"{coverage:g}%, " if coverage is not None else ""
    return GateResult(gate=gate, passed=True,
                      message=f"Coverage check passed ({detail}threshold: {threshold}%)",
                      duration=run.duration, output=run.output, command=command)


GateSetting = Union[bool, dict]


def _gate_options(setting: GateSetting, overrides: Optional[dict]) -> Optional[dict]:
    """Options for an enabled gate, or None if the gate is disabled."""
    if isinstance(setting, dict):
        if not setting.get("enabled", True):
            return None
        options = {k: v for k, v in setting.items() if k != "enabled" and v is not None}
    elif setting:
        options = {}
    else:
        return None
    options.update(overrides or {})
    return options


def evaluate_gates(
    config: dict[str, GateSetting],
    root: Path,
    options: Optional[dict[str, dict]] = None,
) -> GatesResult:
    """Run every enabled gate in ``config`` sequentially, in config order.

    Args:
        config: gate name -> bool, or a dict with enabled/timeout/threshold/command
        root: Project directory
        options: Optional per-gate overrides, keyed by gate name
    """
    options = options or {}
    results = []
    for gate, setting in config.items():
        if gate in NON_GATE_KEYS:
            continue
        gate_options = _gate_options(setting, options.get(gate))
        if gate_options is None:
            continue
        result = evaluate_gate(gate, root, gate_options)
        logger.info(f"Gate {gate}: {'passed' if result.passed else 'FAILED'} ({result.duration}ms)")
        results.append(result)

    return GatesResult(
        results=results,
        all_passed=all(r.passed for r in results),
        total_duration=sum(r.duration for r in results),
    )


def load_gate_config(root: Path, hook_name: str) -> dict:
    """quality_gates[hook_name] from metadata, or the defaults if it is absent.

    No merging: a hook config that exists replaces the defaults entirely.
    """
    hook_config = get_quality_gates(load_metadata(root), hook_name)
    if hook_config is not None:
        return hook_config
    return copy.deepcopy(DEFAULT_GATE_CONFIG)
