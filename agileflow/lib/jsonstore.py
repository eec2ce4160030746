"""
JSON document access for AgileFlow.

Reads are tolerant: a missing, empty or malformed file is reported as
"not found" rather than raised. Writes always replace the whole document
through a temp file + rename so readers never observe a half-written file.

Call sites work against the DocumentStore interface (load/save) so tests can
swap in MemoryDocumentStore and file locking can be added in one place.
"""

import copy
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from agileflow.lib.validate import SchemaValidationError, validate_before_write

logger = logging.getLogger(__name__)


@dataclass
class ReadResult:
    """Result of reading a JSON document."""
    ok: bool
    data: Any = None
    error: Optional[str] = None
    missing: bool = False  # File absent (as opposed to unreadable/malformed)


@dataclass
class WriteResult:
    """Result of writing a JSON document."""
    ok: bool
    error: Optional[str] = None


def read_json(path: Path) -> ReadResult:
    """Read and parse a JSON file.

    Never raises for I/O or parse problems; the caller branches on ``ok``.
    """
    path = Path(path)
    if not path.exists():
        return ReadResult(ok=False, error=f"{path.name} not found", missing=True)

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"Failed to read {path}: {e}")
        return ReadResult(ok=False, error=f"{path.name} not found (unreadable: {e})")
    except UnicodeDecodeError as e:
        logger.warning(f"Malformed encoding in {path}: {e}")
        return ReadResult(ok=False, error=f"{path.name} not found (malformed encoding)")

    if not content.strip():
        return ReadResult(ok=False, error=f"{path.name} not found (empty file)")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Malformed JSON in {path}: {e}")
        return ReadResult(ok=False, error=f"{path.name} not found (malformed JSON)")

    return ReadResult(ok=True, data=data)


def write_json(path: Path, data: Any) -> WriteResult:
    """Write the full document atomically, creating parent directories."""
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(data, indent=2) + "\n")
        os.replace(tmp_path, path)
        return WriteResult(ok=True)
    except (OSError, TypeError, ValueError) as e:
        logger.warning(f"Failed to write {path}: {e}")
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            logger.debug(f"Could not remove temp file {tmp_path}")
        return WriteResult(ok=False, error=f"Failed to write {path.name}: {e}")


class DocumentStore(Protocol):
    """A single JSON document that is loaded, mutated and saved whole."""

    def load(self) -> Optional[dict]:
        """Return the document, or None if absent or unreadable."""
        ...

    def save(self, data: dict) -> WriteResult:
        ...


class JsonDocumentStore:
    """DocumentStore backed by a JSON file on disk."""

    def __init__(self, path: Path, schema_name: Optional[str] = None):
        self.path = Path(path)
        self.schema_name = schema_name

    def load(self) -> Optional[dict]:
        result = read_json(self.path)
        if not result.ok:
            return None
        if not isinstance(result.data, dict):
            logger.warning(f"Expected a JSON object in {self.path}, got {type(result.data).__name__}")
            return None
        return result.data

    def save(self, data: dict) -> WriteResult:
        if self.schema_name:
            try:
                validate_before_write(data, self.schema_name, self.path)
            except SchemaValidationError as e:
                logger.warning(str(e))
                return WriteResult(ok=False, error=str(e))
        return write_json(self.path, data)

    def __repr__(self) -> str:
        return f"JsonDocumentStore({str(self.path)!r})"


class MemoryDocumentStore:
    """In-memory DocumentStore, used by tests and dry runs.

    Stores deep copies so callers cannot mutate the saved state by accident.
    """

    def __init__(self, data: Optional[dict] = None):
        self._data = copy.deepcopy(data) if data is not None else None
        self.saves = 0

    def load(self) -> Optional[dict]:
        return copy.deepcopy(self._data) if self._data is not None else None

    def save(self, data: dict) -> WriteResult:
        self._data = copy.deepcopy(data)
        self.saves += 1
        return WriteResult(ok=True)
