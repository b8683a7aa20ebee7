"""
Run history and result records.

The run result is the single durable output of an entry run. It is written
as one JSON document that the n8n workflow reads back.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..utils.logger import get_logger

logger = get_logger("result")


class RunStatus(Enum):
    """Terminal status of an entry run."""
    OK = "ok"
    NO_ITEMS = "no_items"
    ERROR = "error"


class RunHistory:
    """Append-only log of notable actions taken during a run."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._lines: List[str] = []
        self._logger = log or get_logger("run")

    def add(self, message: str, level: int = logging.INFO) -> None:
        self._lines.append(message)
        self._logger.log(level, message)

    def warning(self, message: str) -> None:
        self.add(message, logging.WARNING)

    @property
    def lines(self) -> Tuple[str, ...]:
        return tuple(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(self._lines)


@dataclass(frozen=True)
class RunResult:
    """
    Outcome of one entry run.

    Only error results carry an error message; ``added_count`` always
    matches ``added_urls``.
    """
    status: RunStatus
    history: Tuple[str, ...] = ()
    added_urls: Tuple[str, ...] = ()
    error: Optional[str] = None
    added_count: int = field(init=False)

    def __post_init__(self):
        if self.status is RunStatus.ERROR and not self.error:
            raise ValueError("error results need an error message")
        if self.status is not RunStatus.ERROR and self.error is not None:
            raise ValueError(f"{self.status.value} results cannot carry an error message")
        object.__setattr__(self, 'history', tuple(self.history))
        object.__setattr__(self, 'added_urls', tuple(self.added_urls))
        object.__setattr__(self, 'added_count', len(self.added_urls))

    @classmethod
    def ok(cls, history, added_urls) -> 'RunResult':
        return cls(RunStatus.OK, tuple(history), tuple(added_urls))

    @classmethod
    def no_items(cls, history, added_urls=()) -> 'RunResult':
        return cls(RunStatus.NO_ITEMS, tuple(history), tuple(added_urls))

    @classmethod
    def failed(cls, history, added_urls, error: str) -> 'RunResult':
        return cls(RunStatus.ERROR, tuple(history), tuple(added_urls), error=error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape consumed by the n8n workflow."""
        data = {
            'status': self.status.value,
            'history': list(self.history),
            'addedUrls': list(self.added_urls),
            'addedCount': self.added_count,
        }
        if self.status is RunStatus.ERROR:
            data['error'] = self.error
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def write_result(result: RunResult, result_path) -> Path:
    """
    Write the result JSON, replacing any previous content atomically.

    Args:
        result: Run result to write
        result_path: Destination file

    Returns:
        Path that was written
    """
    path = Path(result_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(result.to_json())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise

    logger.debug(f"Wrote {result.status.value} result to {path}")
    return path


def clear_result(result_path) -> bool:
    """
    Remove a result file left over from an earlier run.

    Returns:
        True if a file was removed
    """
    path = Path(result_path)
    if not path.exists():
        return False
    path.unlink()
    logger.debug(f"Removed previous result at {path}")
    return True
