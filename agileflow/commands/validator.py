"""
af validator - Inspect builder/validator pairing and approvals.
"""

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from agileflow.lib.config import TeamTemplate, find_team_template, list_team_templates, load_team_template
from agileflow.teams.validation_registry import (
    get_all_pairs,
    get_validator,
    get_verdict,
    requires_validation,
)

console = Console()


def _load_team(args, root: Path) -> tuple[bool, Optional[TeamTemplate]]:
    """(ok, template) for --team, which may be a template name or a file path."""
    if not args.team:
        return True, None

    template = find_team_template(root, args.team)
    if template is None and Path(args.team).exists():
        template = load_team_template(Path(args.team))
    if template is None:
        print(f"ERROR: Team template not found: {args.team}")
        available = list_team_templates(root)
        if available:
            print(f"Available: {', '.join(available)}")
        return False, None
    return True, template


def cmd_validator_get(args, root: Path) -> int:
    ok, template = _load_team(args, root)
    if not ok:
        return 1

    validator = get_validator(args.builder, team_template=template, root=root)
    if validator is None:
        print(f"No validator paired with {args.builder}")
        return 1

    required = requires_validation(args.builder, team_template=template, root=root)
    print(validator)
    print(f"Approval required: {'yes' if required else 'no'}")
    return 0


def cmd_validator_pairs(args, root: Path) -> int:
    ok, template = _load_team(args, root)
    if not ok:
        return 1

    table = Table(title="Validation pairs")
    table.add_column("Builder")
    table.add_column("Validator")
    for builder, validator in sorted(get_all_pairs(team_template=template, root=root).items()):
        table.add_row(builder, validator)
    console.print(table)
    return 0


def cmd_validator_check(args, root: Path) -> int:
    verdict = get_verdict(args.task_id, args.validator, root)
    if verdict is None:
        print(f"{args.task_id}: no verdict from {args.validator}")
        return 1
    print(f"{args.task_id}: {verdict} by {args.validator}")
    return 0 if verdict == "approved" else 1
