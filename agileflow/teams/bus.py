"""
Agent message bus: an append-only JSONL log at docs/09-agents/bus/log.jsonl.

Each line is one JSON message: {from, to, type, status?, task_id?, ..., at}.
Messages are only ever appended; readers that care about recent messages
walk the file backwards in chunks instead of loading it whole.

Once the log grows past a threshold, older lines are moved to
bus/archive/YYYY-MM-archive.jsonl and only the most recent ones are kept.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from agileflow.lib.config import is_agent_teams_enabled
from agileflow.lib.paths import get_bus_log_path
from agileflow.lib.validate import SchemaValidationError, validate

logger = logging.getLogger(__name__)

MESSAGE_SCHEMA = "bus-message"
CHUNK_SIZE = 8192
ROTATE_THRESHOLD = 1000
KEEP_RECENT = 100
ARCHIVE_DIR = "archive"
ARCHIVE_SUFFIX = "-archive.jsonl"
CONTEXT_LIMIT = 30


@dataclass
class BusResult:
    """Result of a bus read or write."""
    ok: bool
    error: Optional[str] = None
    messages: list[dict] = field(default_factory=list)


@dataclass
class RotateResult:
    ok: bool
    archived: int = 0
    kept: int = 0
    archive_file: Optional[Path] = None
    message: str = ""
    error: Optional[str] = None


# ----------------------------------------------------------------------------
# Reading
# ----------------------------------------------------------------------------

def iter_recent_lines(path: Path, limit: Optional[int] = None, chunk_size: int = CHUNK_SIZE) -> Iterator[str]:
    """Yield non-blank lines of a file, most recent first.

    Reads fixed-size chunks from the end of the file, so the cost is
    proportional to the number of lines consumed rather than the file size.
    """
    path = Path(path)
    if limit is not None and limit <= 0:
        return
    if not path.exists():
        return

    yielded = 0
    with open(path, "rb") as f:
        f.seek(0, os.SEEK_END)
        position = f.tell()
        remainder = b""

        while position > 0:
            read_size = min(chunk_size, position)
            position -= read_size
            f.seek(position)
            chunk = f.read(read_size) + remainder
            lines = chunk.split(b"\n")
            # First piece may be a partial line; carry it into the next chunk
            remainder = lines.pop(0)
            for raw in reversed(lines):
                line = raw.decode("utf-8", errors="replace").strip()
                if not line:
                    continue
                yield line
                yielded += 1
                if limit is not None and yielded >= limit:
                    return

        line = remainder.decode("utf-8", errors="replace").strip()
        if line:
            yield line


def iter_recent_messages(path: Path, limit: Optional[int] = None) -> Iterator[dict]:
    """Yield parsed messages most recent first, scanning at most ``limit`` lines.

    Malformed lines count toward the limit but are skipped.
    """
    for line in iter_recent_lines(path, limit):
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed bus line in {path}")
            continue
        if isinstance(message, dict):
            yield message


def _parse_time(value) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    # Naive timestamps are local time
    return parsed if parsed.tzinfo else parsed.astimezone()


def read_messages(
    root: Path,
    from_: Optional[str] = None,
    to: Optional[str] = None,
    type_: Optional[str] = None,
    since: Optional[str] = None,
    limit: Optional[int] = None,
) -> BusResult:
    """Read bus messages in log order, filtered.

    ``limit`` keeps the last N matching messages.
    """
    path = get_bus_log_path(root)
    if not path.exists():
        return BusResult(ok=True)

    since_time = _parse_time(since) if since else None
    if since and since_time is None:
        return BusResult(ok=False, error=f"Invalid since timestamp: {since}")

    messages = []
    try:
        for line_num, line in enumerate(path.read_text(encoding="utf-8", errors="replace").splitlines(), 1):
            if not line.strip():
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping corrupted bus line {line_num} in {path}: {e}")
                continue
            if not isinstance(message, dict):
                continue
            if from_ and message.get("from") != from_:
                continue
            if to and message.get("to") != to:
                continue
            if type_ and message.get("type") != type_:
                continue
            if since_time is not None:
                at = _parse_time(message.get("at"))
                if at is None or at < since_time:
                    continue
            messages.append(message)
    except OSError as e:
        return BusResult(ok=False, error=f"Failed to read bus log: {e}")

    if limit and limit > 0:
        messages = messages[-limit:]
    return BusResult(ok=True, messages=messages)


def get_agent_context(root: Path, agent: str, limit: int = CONTEXT_LIMIT) -> BusResult:
    """Recent messages relevant to one agent: addressed to it, plus coordination."""
    batches = [
        read_messages(root, to=agent, limit=20),
        read_messages(root, type_="coordination", limit=10),
        read_messages(root, type_="task_assignment", limit=10),
    ]
    for batch in batches:
        if not batch.ok:
            return batch

    seen = set()
    context = []
    for batch in batches:
        for message in batch.messages:
            key = (message.get("at"), message.get("from"), message.get("type"))
            if key in seen:
                continue
            seen.add(key)
            context.append(message)

    context.sort(key=lambda m: m.get("at") or "")
    return BusResult(ok=True, messages=context[-limit:])


# ----------------------------------------------------------------------------
# Writing
# ----------------------------------------------------------------------------

def send_message(root: Path, message: dict) -> BusResult:
    """Append one message, stamping ``at`` and the agent_teams flag."""
    entry = {
        **message,
        "at": datetime.now().isoformat(),
        "agent_teams": is_agent_teams_enabled(root),
    }
    try:
        validate(entry, MESSAGE_SCHEMA)
    except SchemaValidationError as e:
        return BusResult(ok=False, error=str(e))

    path = get_bus_log_path(root)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a") as f:
            f.write(json.dumps(entry) + "\n")
            f.flush()
    except OSError as e:
        logger.warning(f"Failed to append to bus log {path}: {e}")
        return BusResult(ok=False, error=f"Failed to write bus log: {e}")

    logger.debug(f"bus: {entry.get('from')} -> {entry.get('to', '*')} ({entry.get('type')})")
    return BusResult(ok=True, messages=[entry])


def send_validation_result(
    root: Path,
    validator: str,
    task_id: str,
    status: str,
    details: Optional[str] = None,
    to: str = "team-lead",
) -> BusResult:
    """Record a validator's verdict ("approved" or "rejected") on a task."""
    message = {"from": validator, "to": to, "type": "validation", "task_id": task_id, "status": status}
    if details:
        message["details"] = details
    return send_message(root, message)


def send_task_assignment(root: Path, from_: str, to: str, task_id: str, description: str = "") -> BusResult:
    return send_message(root, {
        "from": from_,
        "to": to,
        "type": "task_assignment",
        "task_id": task_id,
        "description": description,
    })


# ----------------------------------------------------------------------------
# Rotation
# ----------------------------------------------------------------------------

def get_line_count(path: Path) -> int:
    """Number of non-blank lines; 0 if the file is missing or unreadable."""
    path = Path(path)
    if not path.exists():
        return 0
    try:
        with open(path, "rb") as f:
            return sum(1 for line in f if line.strip())
    except OSError as e:
        logger.warning(f"Could not count lines in {path}: {e}")
        return 0


def should_rotate(path: Path, threshold: int = ROTATE_THRESHOLD) -> bool:
    return get_line_count(path) > threshold


def get_archive_path(log_path: Path, when: Optional[datetime] = None) -> Path:
    when = when or datetime.now()
    return Path(log_path).parent / ARCHIVE_DIR / f"{when:%Y-%m}{ARCHIVE_SUFFIX}"


def rotate_log(
    log_path: Path,
    keep_recent: int = KEEP_RECENT,
    threshold: int = ROTATE_THRESHOLD,
    when: Optional[datetime] = None,
) -> RotateResult:
    """Move all but the most recent ``keep_recent`` lines into the monthly archive.

    Nothing happens unless the log has more than ``threshold`` lines.
    Malformed lines are dropped during rotation.
    """
    log_path = Path(log_path)
    line_count = get_line_count(log_path)
    if line_count <= threshold:
        return RotateResult(ok=True, kept=line_count, message="No rotation needed")

    try:
        lines = [line for line in log_path.read_text(encoding="utf-8", errors="replace").splitlines() if line.strip()]
    except OSError as e:
        return RotateResult(ok=False, error=f"Failed to read log: {e}")

    valid = []
    for line in lines:
        try:
            json.loads(line)
        except json.JSONDecodeError:
            logger.warning(f"Dropping malformed bus line during rotation of {log_path}")
            continue
        valid.append(line)

    split = max(len(valid) - keep_recent, 0)
    to_archive, to_keep = valid[:split], valid[split:]
    archive_path = get_archive_path(log_path, when)
    tmp_path = log_path.with_name(log_path.name + ".tmp")

    try:
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        if to_archive:
            with open(archive_path, "a") as f:
                f.write("\n".join(to_archive) + "\n")
        tmp_path.write_text("".join(line + "\n" for line in to_keep))
        os.replace(tmp_path, log_path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        return RotateResult(ok=False, error=f"Failed to rotate log: {e}")

    logger.info(f"Rotated bus log: archived {len(to_archive)} line(s) to {archive_path.name}, kept {len(to_keep)}")
    return RotateResult(
        ok=True,
        archived=len(to_archive),
        kept=len(to_keep),
        archive_file=archive_path,
        message=f"Archived {len(to_archive)} messages",
    )


def get_log_stats(log_path: Path) -> dict:
    """Line counts and sizes for the current log and its archives."""
    log_path = Path(log_path)
    archive_dir = log_path.parent / ARCHIVE_DIR

    archives = []
    if archive_dir.exists():
        for archive in sorted(archive_dir.glob(f"*{ARCHIVE_SUFFIX}")):
            archives.append({
                "filename": archive.name,
                "size": archive.stat().st_size,
                "lines": get_line_count(archive),
            })

    return {
        "current_lines": get_line_count(log_path),
        "current_size": log_path.stat().st_size if log_path.exists() else 0,
        "archives": archives,
        "total_archived": sum(a["lines"] for a in archives),
    }
