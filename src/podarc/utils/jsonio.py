"""Deterministic JSON persistence.

Every artefact is written with sorted keys, two-space indentation and a
trailing newline so that reruns on unchanged input produce byte-identical
files and readable diffs.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from podarc.utils.errors import StorageError

logger = logging.getLogger(__name__)


def dumps_stable(data: Any) -> str:
    """Serialise ``data`` to stable, newline-terminated JSON."""
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def read_json(path: Path, fallback: Any) -> Any:
    """Read a JSON document, returning ``fallback`` when the file is missing.

    Args:
        path: File to read
        fallback: Value returned when ``path`` does not exist

    Returns:
        Parsed JSON or ``fallback``

    Raises:
        StorageError: If the file exists but cannot be read or parsed
    """
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        logger.debug(f"{path} not found, starting from empty")
        return fallback
    except (OSError, json.JSONDecodeError) as e:
        raise StorageError(f"Failed to read {path}: {e}") from e


def write_json_atomic(path: Path, data: Any) -> None:
    """Write ``data`` as stable JSON using temp file + fsync + rename.

    Args:
        path: Target file path (parent directories are created)
        data: JSON-serialisable value

    Raises:
        StorageError: If the write or sync fails
    """
    content = dumps_stable(data)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".json")
    except OSError as e:
        raise StorageError(f"Failed to prepare {path}: {e}") from e

    try:
        with open(temp_fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        Path(temp_path).replace(path)

        # Persist the rename; not every filesystem supports directory fsync
        try:
            dir_fd = os.open(path.parent, os.O_RDONLY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)
        except (OSError, AttributeError) as e:
            logger.debug(f"Directory fsync not supported: {e}")

    except OSError as e:
        Path(temp_path).unlink(missing_ok=True)
        raise StorageError(f"Failed to write {path}: {e}") from e


def append_json_lines(path: Path, entries: list[dict[str, Any]]) -> None:
    """Append one compact, key-sorted JSON object per line.

    Does nothing when ``entries`` is empty.

    Raises:
        StorageError: If the file cannot be appended to
    """
    if not entries:
        return

    content = "".join(
        json.dumps(entry, sort_keys=True, ensure_ascii=False, separators=(",", ":")) + "\n"
        for entry in entries
    )
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise StorageError(f"Failed to append to {path}: {e}") from e


def read_json_lines(path: Path) -> list[dict[str, Any]]:
    """Read a JSON-Lines file, skipping blank lines. Missing file reads as empty."""
    if not path.exists():
        return []
    try:
        with open(path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]
    except (OSError, json.JSONDecodeError) as e:
        raise StorageError(f"Failed to read {path}: {e}") from e
