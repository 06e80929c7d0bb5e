"""Node: a generated filesystem entry."""

import posixpath
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field

from spectra.errors import InvalidNameError
from spectra.models.world import PRIMARY_WORLD

ROOT_PATH = "/"
FILE_SIZE = 1024


class NodeType(str, Enum):
    FOLDER = "folder"
    FILE = "file"


class ChildSpec(BaseModel):
    """A conceived child: name and type, before any id or persistence."""

    name: str
    type: NodeType


class Node(BaseModel):
    """A materialized node as held by the store."""

    id: str
    path: str
    name: str
    type: NodeType
    depth: int = Field(ge=0)
    size: int = 0
    checksum: Optional[str] = None          # SHA-256 hex, files only, memoized
    last_updated: datetime
    existence_map: Dict[str, bool] = {}     # Secondary worlds only; primary is implicit
    children_generated: bool = False        # Folders: has the listing been expanded
    position: int = 0                       # Order among siblings

    @property
    def parent_path(self) -> Optional[str]:
        if self.path == ROOT_PATH:
            return None
        return parent_of(self.path)

    @property
    def is_folder(self) -> bool:
        return self.type == NodeType.FOLDER

    @property
    def is_file(self) -> bool:
        return self.type == NodeType.FILE

    def exists_in(self, world_name: str) -> Optional[bool]:
        """Recorded membership in a world, or None if never decided."""
        if world_name == PRIMARY_WORLD:
            return True
        return self.existence_map.get(world_name)


def normalize_path(path: str) -> str:
    """
    Normalize to an absolute, slash-separated path with no trailing slash.
    "", "." and "/" all mean the root.
    """
    path = (path or "").strip()
    if path in ("", "."):
        return ROOT_PATH
    if not path.startswith("/"):
        path = "/" + path
    path = posixpath.normpath(path)
    # normpath keeps a leading double slash as-is
    if path.startswith("//"):
        path = "/" + path.lstrip("/")
    return path


def parent_of(path: str) -> str:
    return posixpath.dirname(normalize_path(path)) or ROOT_PATH


def join_path(parent_path: str, name: str) -> str:
    return normalize_path(posixpath.join(normalize_path(parent_path), name))


def path_depth(path: str) -> int:
    path = normalize_path(path)
    if path == ROOT_PATH:
        return 0
    return path.count("/")


def validate_name(name: str) -> str:
    if not name or name in (".", "..") or "/" in name or "\x00" in name:
        raise InvalidNameError(f"invalid node name '{name}'")
    return name
