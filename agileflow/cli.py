#!/usr/bin/env python3
"""AgileFlow CLI entrypoint."""

import argparse
import logging
import sys
from pathlib import Path

from agileflow.commands import bus as cmd_bus_module
from agileflow.commands import gates as cmd_gates_module
from agileflow.commands import ideas as cmd_ideas_module
from agileflow.commands import tasks as cmd_tasks_module
from agileflow.commands import validator as cmd_validator_module
from agileflow.ideation.models import IDEA_STATUSES
from agileflow.teams.bus import KEEP_RECENT, ROTATE_THRESHOLD
from agileflow.teams.gate_runner import GATES


def get_root(args) -> Path:
    """Project root from --root, defaulting to the current directory."""
    root = Path(args.root).expanduser().resolve() if args.root else Path.cwd()
    if not root.is_dir():
        print(f"ERROR: Project root not found: {root}")
        sys.exit(2)
    return root


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='af', description='AgileFlow CLI')
    parser.add_argument('--root', '-r', help='Project root (default: current directory)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # af ideas
    p_ideas = subparsers.add_parser('ideas', help='Ideation history')
    p_ideas.set_defaults(func=cmd_ideas_module.cmd_ideas_summary)
    ideas_sub = p_ideas.add_subparsers(dest='ideas_cmd')

    p = ideas_sub.add_parser('summary', help='Index summary')
    p.set_defaults(func=cmd_ideas_module.cmd_ideas_summary)

    p = ideas_sub.add_parser('list', help='List ideas')
    p.add_argument('--status', '-s', choices=IDEA_STATUSES, help='Filter by status')
    p.add_argument('--category', '-c', help='Filter by category')
    p.set_defaults(func=cmd_ideas_module.cmd_ideas_list)

    p = ideas_sub.add_parser('recurring', help='Ideas seen in 2+ reports')
    p.add_argument('--all', action='store_true', help='Include implemented ideas')
    p.set_defaults(func=cmd_ideas_module.cmd_ideas_recurring)

    p = ideas_sub.add_parser('search', help='Search idea titles')
    p.add_argument('query', help='Search text')
    p.set_defaults(func=cmd_ideas_module.cmd_ideas_search)

    p = ideas_sub.add_parser('focus', help='Full history of one idea')
    p.add_argument('id', help='Idea ID (e.g., IDEA-0023 or 23)')
    p.set_defaults(func=cmd_ideas_module.cmd_ideas_focus)

    p = ideas_sub.add_parser('trends', help='Trend analysis')
    p.set_defaults(func=cmd_ideas_module.cmd_ideas_trends)

    p = ideas_sub.add_parser('compare', help='Compare two reports')
    p.add_argument('report_a', help='Earlier report (e.g., 20260114)')
    p.add_argument('report_b', help='Later report')
    p.set_defaults(func=cmd_ideas_module.cmd_ideas_compare)

    p = ideas_sub.add_parser('reports', help='List indexed reports')
    p.set_defaults(func=cmd_ideas_module.cmd_ideas_reports)

    p = ideas_sub.add_parser('ingest', help='Record the ideas of a report')
    p.add_argument('report', help='Report name (e.g., ideation-20260114.md or 20260114)')
    p.add_argument('file', help='JSON file with a list of ideas')
    p.add_argument('--scope', help='Report scope')
    p.add_argument('--depth', help='Report depth')
    p.set_defaults(func=cmd_ideas_module.cmd_ideas_ingest)

    p = ideas_sub.add_parser('status', help='Change an idea status')
    p.add_argument('id', help='Idea ID')
    p.add_argument('status', choices=IDEA_STATUSES, help='New status')
    p.add_argument('--story', help='Link to a story (e.g., US-0095)')
    p.add_argument('--epic', help='Link to an epic (e.g., EP-0017)')
    p.set_defaults(func=cmd_ideas_module.cmd_ideas_status)

    p = ideas_sub.add_parser('sync', help='Mark ideas of completed epics/stories implemented')
    p.add_argument('--dry-run', action='store_true', help='Show changes without saving')
    p.set_defaults(func=cmd_ideas_module.cmd_ideas_sync)

    # af tasks
    p_tasks = subparsers.add_parser('tasks', help='Story/task status sync')
    tasks_sub = p_tasks.add_subparsers(dest='tasks_cmd', required=True)

    p = tasks_sub.add_parser('list', help='Project stories as native tasks')
    p.add_argument('--epic', help='Filter by epic')
    p.add_argument('--status', help='Filter by story status')
    p.add_argument('--owner', help='Filter by owner')
    p.add_argument('--json', action='store_true', help='Print tasks as JSON')
    p.set_defaults(func=cmd_tasks_module.cmd_tasks_list)

    p = tasks_sub.add_parser('set', help='Update a story')
    p.add_argument('story', help='Story ID (e.g., US-0001)')
    p.add_argument('status', help='New story status')
    p.add_argument('--owner', help='New owner')
    p.set_defaults(func=cmd_tasks_module.cmd_tasks_set)

    p = tasks_sub.add_parser('reconcile', help='Apply native task statuses to stories')
    p.add_argument('file', help='JSON file with a list of tasks')
    p.set_defaults(func=cmd_tasks_module.cmd_tasks_reconcile)

    # af gates
    p_gates = subparsers.add_parser('gates', help='Quality gates')
    gates_sub = p_gates.add_subparsers(dest='gates_cmd', required=True)

    p = gates_sub.add_parser('run', help='Run quality gates')
    p.add_argument('--hook', default='task_completed', help='Hook name (default: task_completed)')
    p.add_argument('--gate', '-g', action='append', choices=GATES, help='Run only this gate (repeatable)')
    p.add_argument('--timeout', type=int, help='Timeout per gate in seconds')
    p.set_defaults(func=cmd_gates_module.cmd_gates_run)

    p = gates_sub.add_parser('config', help='Show gate config for a hook')
    p.add_argument('--hook', default='task_completed', help='Hook name (default: task_completed)')
    p.set_defaults(func=cmd_gates_module.cmd_gates_config)

    # af validator
    p_validator = subparsers.add_parser('validator', help='Builder/validator pairing')
    validator_sub = p_validator.add_subparsers(dest='validator_cmd', required=True)

    p = validator_sub.add_parser('get', help='Validator for a builder')
    p.add_argument('builder', help='Builder agent (e.g., agileflow-api)')
    p.add_argument('--team', '-t', help='Team template name or path')
    p.set_defaults(func=cmd_validator_module.cmd_validator_get)

    p = validator_sub.add_parser('pairs', help='All builder/validator pairs')
    p.add_argument('--team', '-t', help='Team template name or path')
    p.set_defaults(func=cmd_validator_module.cmd_validator_pairs)

    p = validator_sub.add_parser('check', help='Latest verdict on a task')
    p.add_argument('task_id', help='Task ID')
    p.add_argument('validator', help='Validator agent')
    p.set_defaults(func=cmd_validator_module.cmd_validator_check)

    # af bus
    p_bus = subparsers.add_parser('bus', help='Agent message bus')
    p_bus.set_defaults(func=cmd_bus_module.cmd_bus_stats)
    bus_sub = p_bus.add_subparsers(dest='bus_cmd')

    p = bus_sub.add_parser('send', help='Append a message')
    p.add_argument('sender', help='Sending agent')
    p.add_argument('type', help='Message type (e.g., validation, task_assignment)')
    p.add_argument('--to', help='Receiving agent')
    p.add_argument('--task', help='Task ID')
    p.add_argument('--status', help='Status (e.g., approved, rejected)')
    p.add_argument('--text', '-m', help='Message text')
    p.set_defaults(func=cmd_bus_module.cmd_bus_send)

    p = bus_sub.add_parser('tail', help='Read messages')
    p.add_argument('--from', dest='sender', help='Filter by sender')
    p.add_argument('--to', help='Filter by receiver')
    p.add_argument('--type', help='Filter by type')
    p.add_argument('--since', help='Only messages at or after this ISO timestamp')
    p.add_argument('--limit', '-n', type=int, default=20, help='Number of messages (default: 20)')
    p.set_defaults(func=cmd_bus_module.cmd_bus_tail)

    p = bus_sub.add_parser('rotate', help='Archive old messages')
    p.add_argument('--keep', type=int, default=KEEP_RECENT, help=f'Messages to keep (default: {KEEP_RECENT})')
    p.add_argument('--threshold', type=int, default=ROTATE_THRESHOLD,
                   help=f'Rotate above this many messages (default: {ROTATE_THRESHOLD})')
    p.set_defaults(func=cmd_bus_module.cmd_bus_rotate)

    p = bus_sub.add_parser('stats', help='Log and archive sizes')
    p.set_defaults(func=cmd_bus_module.cmd_bus_stats)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )
    return args.func(args, get_root(args))


if __name__ == '__main__':
    sys.exit(main())
