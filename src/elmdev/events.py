"""Event models shared across watcher components."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


class ChangeKind(str, Enum):
    """Kinds of filesystem changes delivered by the watcher."""

    CREATE = "create"
    MODIFY_DATA = "modify:data"
    MODIFY_METADATA = "modify:metadata"
    MODIFY_OTHER = "modify:other"
    REMOVE = "remove"
    RENAME = "rename"


@dataclass(frozen=True)
class ChangeEvent:
    """A single change observed under the watched source directory."""

    kind: ChangeKind
    paths: Tuple[Path, ...]


@dataclass(frozen=True)
class WatchError:
    """A failure reported by the watcher in place of an event."""

    message: str
    path: Optional[Path] = None

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.message} ({self.path})"
