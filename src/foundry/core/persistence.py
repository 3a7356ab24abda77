"""
Checkpoint file I/O.

A checkpoint is one JSON document holding a ``StateSnapshot``. Writes are
atomic: the snapshot goes to a temp file in the same directory, the temp
file is read back and validated, and only then renamed over the previous
checkpoint. A crash mid-write leaves the old checkpoint in place.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from foundry.core.errors import FoundryError
from foundry.core.state import SNAPSHOT_VERSION, StateSnapshot

logger = logging.getLogger(__name__)


class CheckpointCorruptedError(FoundryError):
    """The checkpoint file cannot be parsed as a snapshot."""

    code = "checkpoint_corrupted"

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Checkpoint {path} is corrupted: {reason}", path=str(path))


def _parse(path: Path, text: str) -> StateSnapshot:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise CheckpointCorruptedError(path, f"invalid JSON at line {e.lineno}") from e
    if not isinstance(data, dict):
        raise CheckpointCorruptedError(path, "expected a JSON object")

    version = data.get("version")
    if version != SNAPSHOT_VERSION:
        raise CheckpointCorruptedError(path, f"unsupported snapshot version {version!r}")

    try:
        return StateSnapshot.model_validate(data)
    except PydanticValidationError as e:
        raise CheckpointCorruptedError(path, f"{e.error_count()} invalid value(s)") from e


def save_checkpoint(path: Path, snapshot: StateSnapshot) -> Path:
    """
    Atomically write ``snapshot`` to ``path``.

    Args:
        path: Checkpoint file path; parent directories are created
        snapshot: Snapshot from ``RecordState.checkpoint()``

    Returns:
        The path written

    Raises:
        CheckpointCorruptedError: If the written file does not read back
        OSError: If the file cannot be written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".state_", suffix=".json.tmp")
    temp_path_obj = Path(temp_path)

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(snapshot.model_dump_json(indent=2))
            f.write("\n")

        # Validate the temp file before committing
        _parse(temp_path_obj, temp_path_obj.read_text(encoding="utf-8"))

        os.replace(temp_path, path)

    except Exception:
        # Clean up temp file on error
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise

    logger.debug(f"Saved checkpoint to {path}")
    return path


def load_checkpoint(path: Path) -> StateSnapshot | None:
    """
    Read a checkpoint.

    Returns:
        The snapshot, or None if no checkpoint exists yet

    Raises:
        CheckpointCorruptedError: If the file exists but is not a valid snapshot
    """
    path = Path(path)
    if not path.exists():
        return None
    snapshot = _parse(path, path.read_text(encoding="utf-8"))
    logger.debug(f"Loaded checkpoint from {path}")
    return snapshot
