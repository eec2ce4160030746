"""
af ideas - Query and maintain the ideation history index.
"""

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from agileflow.ideation.index import (
    get_idea_by_id,
    get_ideas_by_category,
    get_ideas_by_status,
    get_index_store,
    get_index_summary,
    get_recurring_ideas,
    focus,
    ingest_report,
    list_reports,
    load_index,
    normalize_report_name,
    save_index,
    search_ideas,
    update_idea_status,
    resolve_idea_id,
)
from agileflow.ideation.models import IdeationError
from agileflow.ideation.sync import get_sync_status, sync_implemented_ideas
from agileflow.ideation.trends import compare, trends
from agileflow.teams.task_sync import read_status_stories

console = Console()


def _ideas_table(title: str, ideas) -> Table:
    table = Table(title=title)
    table.add_column("ID")
    table.add_column("Status")
    table.add_column("Seen", justify="right")
    table.add_column("Category")
    table.add_column("Title")
    for idea in ideas:
        table.add_row(idea.id, idea.status, str(idea.occurrence_count), idea.category, idea.title)
    return table


def cmd_ideas_summary(args, root: Path) -> int:
    summary = get_index_summary(load_index(get_index_store(root)))

    print(f"Ideas:     {summary['total_ideas']}")
    print(f"Reports:   {summary['total_reports']}")
    print(f"Recurring: {summary['recurring_count']}")
    print()
    for status, count in summary["by_status"].items():
        print(f"  {status:<12} {count}")
    if summary["by_category"]:
        print()
        for category, count in sorted(summary["by_category"].items()):
            print(f"  {category:<20} {count}")
    return 0


def cmd_ideas_list(args, root: Path) -> int:
    index = load_index(get_index_store(root))
    if args.status:
        ideas = get_ideas_by_status(index, args.status)
    elif args.category:
        ideas = get_ideas_by_category(index, args.category)
    else:
        ideas = list(index.ideas.values())

    if not ideas:
        print("No ideas found.")
        return 0
    console.print(_ideas_table("Ideas", ideas))
    return 0


def cmd_ideas_recurring(args, root: Path) -> int:
    index = load_index(get_index_store(root))
    ideas = get_recurring_ideas(index, exclude_implemented=not args.all)
    if not ideas:
        print("No recurring ideas.")
        return 0
    console.print(_ideas_table("Recurring ideas", ideas))
    return 0


def cmd_ideas_search(args, root: Path) -> int:
    ideas = search_ideas(load_index(get_index_store(root)), args.query)
    if not ideas:
        print(f"No ideas matching '{args.query}'.")
        return 0
    console.print(_ideas_table(f"Ideas matching '{args.query}'", ideas))
    return 0


def cmd_ideas_focus(args, root: Path) -> int:
    index = load_index(get_index_store(root))
    try:
        context = focus(index, args.id)
    except IdeationError as e:
        print(f"ERROR: {e}")
        available = getattr(e, "available", None)
        if available:
            print(f"Available: {', '.join(available[:20])}")
        return 1

    idea = context.idea
    print(f"{idea.id}: {idea.title}")
    print(f"  Status:     {idea.status}")
    print(f"  Category:   {idea.category}")
    print(f"  Confidence: {idea.confidence}")
    if idea.files:
        print(f"  Files:      {', '.join(idea.files)}")
    if idea.linked_story or idea.linked_epic:
        print(f"  Linked:     {idea.linked_story or '-'} / {idea.linked_epic or '-'}")
    print(f"  First seen: {context.first_seen} ({context.source_report})")
    print(f"  Last seen:  {context.last_seen}")
    print(f"  Experts:    {', '.join(context.all_experts) or '-'}")
    print()
    print(f"History ({context.occurrence_count} occurrence(s)):")
    for occ in context.occurrences:
        experts = f" [{', '.join(occ.experts)}]" if occ.experts else ""
        print(f"  {occ.date}  {occ.report}{experts}")
    return 0


def cmd_ideas_trends(args, root: Path) -> int:
    report = trends(load_index(get_index_store(root)))

    print(f"Implementation rate: {report.implementation_rate:.0%}")
    print(f"Average velocity:    {report.velocity.average_velocity} implemented/month")
    print()

    if report.category_stats:
        table = Table(title="Categories")
        for column in ("Category", "Total", "Recurring %", "Implemented %"):
            table.add_column(column)
        for stats in report.category_stats:
            table.add_row(stats.category, str(stats.total),
                          f"{stats.recurring_percentage}%", f"{stats.implemented_percentage}%")
        console.print(table)

    if report.velocity.monthly:
        table = Table(title="Velocity")
        for column in ("Month", "New", "Implemented", "Occurrences"):
            table.add_column(column)
        for month in report.velocity.monthly:
            table.add_row(month.month, str(month.new), str(month.implemented), str(month.occurrences))
        console.print(table)

    if report.stale_ideas:
        print("Stale ideas:")
        for stale in report.stale_ideas:
            print(f"  {stale.idea.id}  x{stale.occurrence_count}  {stale.stale_days}d  {stale.idea.title}")

    if report.expert_agreement:
        print("Expert agreement:")
        for pattern in report.expert_agreement:
            print(f"  {pattern.pair[0]} + {pattern.pair[1]}: {pattern.agreements} idea(s)")
    return 0


def cmd_ideas_compare(args, root: Path) -> int:
    result = compare(load_index(get_index_store(root)), args.report_a, args.report_b)
    if not result.ok:
        print(f"ERROR: {result.error}")
        return 1

    print(f"{result.report_a} ({result.report_a_date or '?'}) -> {result.report_b} ({result.report_b_date or '?'})")
    for label in ("resolved", "new", "persisted", "dropped"):
        ideas = getattr(result, label)
        print(f"\n{label.capitalize()} ({len(ideas)}):")
        for idea in ideas:
            print(f"  {idea.id}  {idea.status:<12} {idea.title}")
    return 0


def cmd_ideas_reports(args, root: Path) -> int:
    reports = list_reports(load_index(get_index_store(root)))
    if not reports:
        print("No reports indexed.")
        return 0
    table = Table(title="Reports")
    for column in ("Report", "Date", "Ideas", "Scope", "Depth"):
        table.add_column(column)
    for report in reports:
        table.add_row(report["name"], report["date"] or "-", str(report["idea_count"]),
                      report["scope"] or "-", report["depth"] or "-")
    console.print(table)
    return 0


def cmd_ideas_ingest(args, root: Path) -> int:
    """Record the ideas of a report from a JSON file (list of {title, files, ...})."""
    source = Path(args.file)
    try:
        ideas = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"ERROR: Cannot read ideas from {source}: {e}")
        return 1
    if not isinstance(ideas, list) or not all(isinstance(i, dict) for i in ideas):
        print(f"ERROR: {source} must contain a JSON list of idea objects")
        return 1

    store = get_index_store(root)
    index = load_index(store)
    report = normalize_report_name(args.report)
    results = ingest_report(index, ideas, report, stories=read_status_stories(root),
                            scope=args.scope, depth=args.depth)

    for result in results:
        if not result.ok:
            print(f"  SKIP       {result.error}")
            continue
        flag = " (candidate)" if result.candidate else ""
        print(f"  {result.status.value:<11}{result.id}  {result.title}{flag}")

    write = save_index(store, index)
    if not write.ok:
        print(f"ERROR: {write.error}")
        return 1
    return 0


def cmd_ideas_status(args, root: Path) -> int:
    store = get_index_store(root)
    index = load_index(store)
    try:
        idea_id = resolve_idea_id(index, args.id)
        changed = update_idea_status(index, idea_id, args.status,
                                     linked_story=args.story, linked_epic=args.epic)
    except (IdeationError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    write = save_index(store, index)
    if not write.ok:
        print(f"ERROR: {write.error}")
        return 1
    idea = get_idea_by_id(index, idea_id)
    print(f"{idea_id}: {idea.status}" + ("" if changed else " (unchanged)"))
    return 0


def cmd_ideas_sync(args, root: Path) -> int:
    result = sync_implemented_ideas(root, dry_run=args.dry_run)
    if not result.ok:
        print(f"ERROR: {'; '.join(result.errors)}")
        return 1

    prefix = "[dry run] " if args.dry_run else ""
    print(f"{prefix}{result.updated} idea(s) marked implemented")
    for source, ideas in result.details.items():
        print(f"  {source}: {', '.join(ideas)}")

    status = get_sync_status(root)
    print(f"Pending: {status['pending']}  In progress: {status['in-progress']}  "
          f"Implemented: {status['implemented']}  Rejected: {status['rejected']}")
    return 0

