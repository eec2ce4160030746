"""
af gates - Run quality gates for a hook.
"""

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from agileflow.teams.gate_runner import evaluate_gates, load_gate_config

console = Console()


def cmd_gates_run(args, root: Path) -> int:
    config = load_gate_config(root, args.hook)
    if args.gate:
        # Explicit gates run regardless of the enabled flag in config
        config = {
            gate: {**(config.get(gate) if isinstance(config.get(gate), dict) else {}), "enabled": True}
            for gate in args.gate
        }

    options = {}
    if args.timeout:
        options = {gate: {"timeout": args.timeout} for gate in config}

    result = evaluate_gates(config, root, options)
    if not result.results:
        print(f"No gates enabled for {args.hook}.")
        return 0

    table = Table(title=f"Quality gates ({args.hook})")
    for column in ("Gate", "Result", "Duration", "Message"):
        table.add_column(column)
    for gate in result.results:
        verdict = "[green]PASS[/green]" if gate.passed else "[red]FAIL[/red]"
        if gate.skipped:
            verdict = "[yellow]SKIP[/yellow]"
        table.add_row(gate.gate, verdict, f"{gate.duration / 1000:.1f}s", gate.message)
    console.print(table)

    print(f"{'All gates passed' if result.all_passed else 'Gates failed'} ({result.total_duration / 1000:.1f}s)")
    return 0 if result.all_passed else 1


def cmd_gates_config(args, root: Path) -> int:
    print(json.dumps(load_gate_config(root, args.hook), indent=2))
    return 0
