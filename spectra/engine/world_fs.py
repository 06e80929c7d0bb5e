"""
WorldFS: a filesystem-style view of one world.

Wraps SpectraFS with path-oriented calls (stat, read_dir, ranged reads,
walk, mkdirs) bound to a single world, the shape traversal and migration
tools expect from a storage backend.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Iterator, List, Optional, Tuple

from pydantic import BaseModel

from spectra.errors import NodeNotFoundError, NotAFileError, NotAFolderError
from spectra.models.node import ROOT_PATH, Node, NodeType, normalize_path, parent_of

if TYPE_CHECKING:
    from spectra.engine.filesystem import SpectraFS, WorldRef


class DirEntry(BaseModel):
    """One entry of a directory listing."""

    name: str
    path: str
    type: NodeType
    size: int
    last_updated: datetime

    @property
    def is_dir(self) -> bool:
        return self.type == NodeType.FOLDER

    @classmethod
    def from_node(cls, node: Node) -> "DirEntry":
        return cls(
            name=node.name,
            path=node.path,
            type=node.type,
            size=node.size,
            last_updated=node.last_updated,
        )


class WorldFS:
    """Path-based access to a SpectraFS within one world."""

    def __init__(self, spectra: "SpectraFS", world: "WorldRef"):
        self.spectra = spectra
        self.world = spectra.resolve_world(world)

    def __repr__(self) -> str:
        return f"WorldFS(world={self.world.name!r})"

    def stat(self, path: str) -> Node:
        return self.spectra.get_node(path, self.world)

    def exists(self, path: str) -> bool:
        try:
            self.stat(path)
        except (NodeNotFoundError, NotAFolderError):
            return False
        return True

    def is_dir(self, path: str) -> bool:
        try:
            return self.stat(path).is_folder
        except (NodeNotFoundError, NotAFolderError):
            return False

    def read_dir(self, path: str = ROOT_PATH) -> List[DirEntry]:
        return [
            DirEntry.from_node(n)
            for n in self.spectra.list_children(path, self.world)
        ]

    def read_file(self, path: str, start: int = 0, end: Optional[int] = None) -> bytes:
        """
        File bytes in [start, end). Out-of-range bounds are clamped to the
        file; an empty range returns b"".
        """
        node = self.stat(path)
        if not node.is_file:
            raise NotAFileError(node.path)
        data, _ = self.spectra.read_file_bytes(node.id)
        start = max(0, start)
        end = len(data) if end is None else min(max(0, end), len(data))
        if start >= end:
            return b""
        return data[start:end]

    def checksum(self, path: str) -> str:
        return self.spectra.file_checksum(path, self.world)

    def walk(
        self, path: str = ROOT_PATH, max_depth: Optional[int] = None
    ) -> Iterator[Tuple[str, List[str], List[str]]]:
        """
        Depth-first, top-down traversal yielding (dir_path, folder_names,
        file_names), like os.walk. max_depth counts levels below path;
        None walks the whole hierarchy.
        """
        stack = [(normalize_path(path), 0)]
        while stack:
            dir_path, level = stack.pop()
            entries = self.read_dir(dir_path)
            folders = [e.name for e in entries if e.is_dir]
            files = [e.name for e in entries if not e.is_dir]
            yield dir_path, folders, files
            if max_depth is not None and level >= max_depth:
                continue
            for e in reversed([e for e in entries if e.is_dir]):
                stack.append((e.path, level + 1))

    def mkdir(self, path: str) -> Node:
        path = normalize_path(path)
        return self.spectra.create_folder(parent_of(path), self.world, path.rsplit("/", 1)[-1])

    def mkdirs(self, path: str) -> Node:
        """Create path and any missing parents; existing folders are fine."""
        path = normalize_path(path)
        node = self.stat(ROOT_PATH)
        current = ROOT_PATH
        for part in [p for p in path.split("/") if p]:
            current = normalize_path(f"{current}/{part}")
            try:
                node = self.stat(current)
            except NodeNotFoundError:
                node = self.spectra.create_folder(parent_of(current), self.world, part)
                continue
            if not node.is_folder:
                raise NotAFolderError(current)
        return node

    def write_file(self, path: str, data: bytes) -> Node:
        path = normalize_path(path)
        return self.spectra.upload_file(
            parent_of(path), self.world, path.rsplit("/", 1)[-1], data
        )

    def remove(self, path: str) -> None:
        """Delete a file."""
        node = self.stat(path)
        if node.is_folder:
            raise NotAFileError(node.path)
        self.spectra.delete_node(node.path, self.world)

    def rmdir(self, path: str) -> None:
        """Delete an empty folder."""
        node = self.stat(path)
        if not node.is_folder:
            raise NotAFolderError(node.path)
        self.spectra.delete_node(node.path, self.world)
