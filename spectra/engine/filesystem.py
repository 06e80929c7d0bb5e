"""
SpectraFS: the generation orchestrator.

Coordinates the hierarchy generator, the world sampler, the content
generator and the node store. Directories are expanded lazily: the first
request that needs a directory's children generates and persists them, and
every later request is served from the store.

Behavioral Contract:
- Generation is a pure function of (path, seed config). Order and timing of
  requests never change what is generated.
- Listing a directory materializes only its direct children.
- File content is generated on read, never at listing time.
- A node hidden in a world raises NodeNotFoundError in that world.
- Concurrent callers converge through NodeStore.put_if_absent and
  NodeStore.put_children. The per-path locks only avoid duplicate work
  inside one process and are dropped once released.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from spectra.errors import (
    FolderNotEmptyError,
    NodeExistsError,
    NodeNotFoundError,
    NotAFileError,
    NotAFolderError,
    RootProtectedError,
)
from spectra.generation.content import generate_content
from spectra.generation.hierarchy import HierarchyGenerator
from spectra.generation.rng import node_id_for
from spectra.generation.worlds import decide_existence, sample_existence_map
from spectra.models.config import SpectraConfig
from spectra.models.node import (
    FILE_SIZE,
    ROOT_PATH,
    Node,
    NodeType,
    join_path,
    normalize_path,
    parent_of,
    validate_name,
)
from spectra.models.world import PRIMARY_WORLD, World
from spectra.store.node_store import NodeStore

log = logging.getLogger(__name__)

WorldRef = Union[str, World]


class SpectraFS:
    """Deterministic synthetic filesystem over a persistent node store."""

    def __init__(self, config: SpectraConfig, store: Optional[NodeStore] = None):
        self.config = config
        self.seed_config = config.seed
        self.store = store or NodeStore(config.seed.db_path)
        self.generator = HierarchyGenerator(config.seed)
        self._secondary = config.secondary_worlds()
        self._locks: Dict[str, Tuple[threading.Lock, int]] = {}
        self._locks_guard = threading.Lock()
        self._ensure_root()

    @classmethod
    def from_config_file(cls, config_path: Union[str, Path]) -> "SpectraFS":
        from spectra.config.loader import load_config

        return cls(load_config(config_path))

    def __enter__(self) -> "SpectraFS":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.store.close()

    def get_config(self) -> SpectraConfig:
        return self.config

    def secondary_world_names(self) -> List[str]:
        return self.config.world_names()

    def resolve_world(self, world: WorldRef) -> World:
        """Accept a World or a configured world name."""
        if isinstance(world, World):
            return world
        return self.config.resolve_world(world)

    def as_fs(self, world: WorldRef = PRIMARY_WORLD) -> "WorldFS":
        from spectra.engine.world_fs import WorldFS

        return WorldFS(self, world)

    # === MATERIALIZATION ===

    def _ensure_root(self) -> Node:
        root = Node(
            id=node_id_for(self.seed_config.seed, ROOT_PATH),
            path=ROOT_PATH,
            name="",
            type=NodeType.FOLDER,
            depth=0,
            last_updated=datetime.utcnow(),
            existence_map=sample_existence_map(
                self.seed_config.seed, node_id_for(self.seed_config.seed, ROOT_PATH),
                self._secondary, None,
            ),
        )
        persisted, inserted = self.store.put_if_absent(root)
        if inserted:
            log.debug("materialized root %s", persisted.id)
        return persisted

    @contextmanager
    def _path_lock(self, path: str) -> Iterator[None]:
        """
        Singleflight mutex for one path. The entry lives only while some
        caller holds or waits on it.
        """
        with self._locks_guard:
            lock, users = self._locks.get(path, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[path] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                lock, users = self._locks[path]
                if users == 1:
                    del self._locks[path]
                else:
                    self._locks[path] = (lock, users - 1)

    def _materialize(self, path: str) -> Node:
        """
        Return the persisted node at path, expanding every ancestor from the
        root down as needed. Raises NotAFolderError when an ancestor is a
        file and NodeNotFoundError when the generator never produces path.
        """
        node = self.store.get(path)
        if node is not None:
            return node
        if path == ROOT_PATH:
            return self._ensure_root()

        parent = self._materialize(parent_of(path))
        if not parent.is_folder:
            raise NotAFolderError(parent.path)
        if not parent.children_generated:
            self._expand(parent)

        node = self.store.get(path)
        if node is None:
            raise NodeNotFoundError(path)
        return node

    def _resolve(self, path: str, world: World) -> Node:
        """
        _materialize as seen from world. A file hidden in world is absent
        there, so traversing through it is not found rather than not a
        folder.
        """
        try:
            node = self._materialize(path)
        except NotAFolderError as e:
            blocker = self.store.get(e.path)
            if blocker is None or not self._visible(blocker, world):
                raise NodeNotFoundError(path, world.name) from e
            raise
        if not self._visible(node, world):
            raise NodeNotFoundError(path, world.name)
        return node

    def _expand(self, folder: Node) -> None:
        """Generate and persist the direct children of folder, once."""
        with self._path_lock(folder.path):
            current = self.store.get(folder.path)
            if current is None:
                raise NodeNotFoundError(folder.path)
            if current.children_generated:
                return

            specs = self.generator.generate_children(current.path, current.depth)
            parent_map = {w.name: self._visible(current, w) for w in self._secondary}
            now = datetime.utcnow()
            children = []
            for position, spec in enumerate(specs):
                child_path = join_path(current.path, spec.name)
                child_id = node_id_for(self.seed_config.seed, child_path)
                children.append(Node(
                    id=child_id,
                    path=child_path,
                    name=spec.name,
                    type=spec.type,
                    depth=current.depth + 1,
                    size=FILE_SIZE if spec.type == NodeType.FILE else 0,
                    last_updated=now,
                    existence_map=sample_existence_map(
                        self.seed_config.seed, child_id, self._secondary, parent_map
                    ),
                    position=position,
                ))
            inserted = self.store.put_children(current.path, children)
            if inserted is None:
                if self.store.get(current.path) is None:
                    raise NodeNotFoundError(current.path)
                log.debug("%s was expanded by another writer", current.path)
                return
            log.debug(
                "expanded %s: %d children, %d newly persisted",
                current.path, len(specs), inserted,
            )

    def _visible(self, node: Node, world: World) -> bool:
        """
        Membership of node in world. A world configured after the node was
        materialized is decided here on first query and then persisted.
        """
        if world.is_primary:
            return True
        decided = node.existence_map.get(world.name)
        if decided is not None:
            return decided

        if node.path == ROOT_PATH:
            present = True
        else:
            parent = self.store.get(parent_of(node.path))
            parent_present = parent is not None and self._visible(parent, world)
            present = decide_existence(
                self.seed_config.seed, node.id, world, parent_present
            )
        persisted = self.store.set_existence_if_absent(node.id, world.name, present)
        node.existence_map[world.name] = persisted
        log.debug("late existence decision for %s in %s: %s", node.path, world.name, persisted)
        return persisted

    def _filter(self, nodes: List[Node], world: World) -> List[Node]:
        return [n for n in nodes if self._visible(n, world)]

    def _created_existence(self, world: World) -> Dict[str, bool]:
        """Nodes created by a caller exist only in the world they were written to."""
        return {w.name: w.name == world.name for w in self._secondary}

    # === LISTING & LOOKUP ===

    def ensure_listed(self, dir_path: str, world: WorldRef = PRIMARY_WORLD) -> List[Node]:
        """
        Children of dir_path visible in world, generating them on first use.
        """
        world = self.resolve_world(world)
        path = normalize_path(dir_path)

        node = self._resolve(path, world)
        if not node.is_folder:
            raise NotAFolderError(path)

        if node.children_generated:
            log.debug("listing cache hit for %s", path)
        else:
            self._expand(node)
        return self._filter(self.store.list_children(path), world)

    def list_children(self, parent_path: str, world: WorldRef = PRIMARY_WORLD) -> List[Node]:
        """Listing for hosts: a parent that is a file reads as not found."""
        world = self.resolve_world(world)
        path = normalize_path(parent_path)
        try:
            return self.ensure_listed(path, world)
        except NotAFolderError as e:
            if e.path == path:
                raise NodeNotFoundError(path, world.name) from e
            raise

    def get_node(self, path: str, world: WorldRef = PRIMARY_WORLD) -> Node:
        world = self.resolve_world(world)
        path = normalize_path(path)
        return self._resolve(path, world)

    # === MUTATION ===

    def create_folder(self, parent_path: str, world: WorldRef, name: str) -> Node:
        """
        Create an empty folder. A folder that exists but is hidden in this
        world is made visible in it instead.
        """
        world = self.resolve_world(world)
        validate_name(name)
        parent_path = normalize_path(parent_path)
        self.ensure_listed(parent_path, world)
        parent = self.store.get(parent_path)
        if parent is None:
            raise NodeNotFoundError(parent_path, world.name)

        path = join_path(parent_path, name)
        existing = self.store.get(path)
        if existing is not None:
            if existing.is_folder and not self._visible(existing, world):
                self.store.set_existence(existing.id, world.name, True)
                return self.store.get(path)
            raise NodeExistsError(path)

        node = Node(
            id=node_id_for(self.seed_config.seed, path),
            path=path,
            name=name,
            type=NodeType.FOLDER,
            depth=parent.depth + 1,
            last_updated=datetime.utcnow(),
            existence_map=self._created_existence(world),
            children_generated=True,
            position=self.store.next_position(parent_path),
        )
        persisted, inserted = self.store.put_if_absent(node)
        if not inserted:
            raise NodeExistsError(path)
        log.debug("created folder %s in world %s", path, world.name)
        return persisted

    def upload_file(
        self, parent_path: str, world: WorldRef, name: str, data: bytes
    ) -> Node:
        """
        Create or replace a file. Replacing clears the cached checksum and
        keeps id, path and existence in other worlds.
        """
        world = self.resolve_world(world)
        validate_name(name)
        parent_path = normalize_path(parent_path)
        self.ensure_listed(parent_path, world)
        parent = self.store.get(parent_path)
        if parent is None:
            raise NodeNotFoundError(parent_path, world.name)

        path = join_path(parent_path, name)
        existing = self.store.get(path)
        if existing is None:
            node = Node(
                id=node_id_for(self.seed_config.seed, path),
                path=path,
                name=name,
                type=NodeType.FILE,
                depth=parent.depth + 1,
                size=FILE_SIZE,
                last_updated=datetime.utcnow(),
                existence_map=self._created_existence(world),
                position=self.store.next_position(parent_path),
            )
            persisted, inserted = self.store.put_if_absent(node)
            if inserted:
                log.debug("uploaded new file %s in world %s", path, world.name)
                return persisted
            existing = persisted

        if existing.is_folder:
            raise NodeExistsError(path)
        if not self._visible(existing, world):
            self.store.set_existence(existing.id, world.name, True)
        updated = self.store.update_content(path, data)
        if updated is None:
            raise NodeNotFoundError(path, world.name)
        return updated

    def delete_node(self, path: str, world: WorldRef = PRIMARY_WORLD) -> None:
        """
        Delete a file or an empty folder from every world. A folder counts as
        non-empty while any child is persisted, or would be generated, in any
        world.
        """
        world = self.resolve_world(world)
        path = normalize_path(path)
        if path == ROOT_PATH:
            raise RootProtectedError()

        node = self.get_node(path, world)
        if node.is_folder:
            if not node.children_generated:
                # Never listed: generated children are conceived but not persisted
                if self.generator.generate_children(node.path, node.depth):
                    raise FolderNotEmptyError(path)
            elif self.store.count_children(path) > 0:
                raise FolderNotEmptyError(path)

        if not self.store.delete(path):
            raise NodeNotFoundError(path, world.name)
        log.debug("deleted %s (requested in world %s)", path, world.name)

    # === CONTENT ===

    def read_file_bytes(self, node_id: str) -> Tuple[bytes, str]:
        """File payload and SHA-256 checksum, caching the checksum on first read."""
        node = self.store.get_by_id(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        if not node.is_file:
            raise NotAFileError(node.path)

        data, checksum = generate_content(node.id, self.seed_config.file_binary_seed)
        if node.checksum is None:
            self.store.set_checksum_if_absent(node.id, checksum)
            log.debug("cached checksum for %s", node.path)
        return data, checksum

    def file_checksum(self, path: str, world: WorldRef = PRIMARY_WORLD) -> str:
        """Cached checksum of a file, computing it if it was never read."""
        node = self.get_node(path, world)
        if not node.is_file:
            raise NotAFileError(node.path)
        if node.checksum is not None:
            return node.checksum
        _, checksum = self.read_file_bytes(node.id)
        return checksum

    def __repr__(self) -> str:
        return (
            f"SpectraFS(seed={self.seed_config.seed}, "
            f"db_path={self.store.db_path!r}, "
            f"worlds={[PRIMARY_WORLD] + self.secondary_world_names()})"
        )
