"""
Node Store: embedded persistence for materialized nodes.

Holds exactly the nodes that have been generated so far. It memoizes
generation decisions (children, existence per world, checksums) and is not
a general-purpose database.

Behavioral Contract:
- put_if_absent is the convergence point. Concurrent materialization of the
  same path yields one record; losers get the winner's record back.
- World filtering is by recorded membership. The primary world is never
  stored and never filtered. The world argument of get/list_children is
  for store-level callers that only need decided membership; SpectraFS
  reads unfiltered and filters itself, because it decides membership for
  late-configured worlds on first query, which SQL cannot do.
- put_children persists a whole expansion atomically and only once.
- Deletion is world-agnostic: a deleted node is gone from every world.
- Deleting the backing file resets all state.
"""

import logging
import sqlite3
import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from spectra.models.node import Node, NodeType
from spectra.models.world import PRIMARY_WORLD

log = logging.getLogger(__name__)

_NODE_COLUMNS = (
    "id, path, parent_path, name, type, depth, size, checksum, "
    "last_updated, children_generated, position"
)


class NodeStore:
    """
    sqlite3-backed node store. One connection shared across threads,
    serialized by a lock; separate processes converge through sqlite
    transactions on the same file.
    """

    def __init__(self, db_path: str = ":memory:", timeout: float = 30.0):
        self.db_path = db_path
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(db_path, timeout=timeout, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()
        log.info("opened node store at %s", db_path)

    def _init_schema(self) -> None:
        """Create the node tables if they don't exist."""
        with self._lock:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS nodes (
                    id TEXT PRIMARY KEY,
                    path TEXT NOT NULL UNIQUE,
                    parent_path TEXT,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL,
                    depth INTEGER NOT NULL,
                    size INTEGER NOT NULL DEFAULT 0,
                    checksum TEXT,
                    last_updated TEXT NOT NULL,
                    children_generated INTEGER NOT NULL DEFAULT 0,
                    position INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL DEFAULT (datetime('now'))
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_nodes_parent_path ON nodes(parent_path)
            """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS node_worlds (
                    node_id TEXT NOT NULL,
                    world TEXT NOT NULL,
                    present INTEGER NOT NULL,
                    PRIMARY KEY (node_id, world)
                )
            """)
            self._conn.commit()

    # --- Reads ---

    def _existence_for(self, node_ids: List[str]) -> Dict[str, Dict[str, bool]]:
        if not node_ids:
            return {}
        placeholders = ", ".join("?" for _ in node_ids)
        rows = self._conn.execute(
            f"SELECT node_id, world, present FROM node_worlds WHERE node_id IN ({placeholders})",
            node_ids,
        ).fetchall()
        existence: Dict[str, Dict[str, bool]] = {node_id: {} for node_id in node_ids}
        for r in rows:
            existence[r["node_id"]][r["world"]] = bool(r["present"])
        return existence

    def _deserialize(self, row: sqlite3.Row, existence: Dict[str, bool]) -> Node:
        """Deserialize a row back into a Node."""
        return Node(
            id=row["id"],
            path=row["path"],
            name=row["name"],
            type=NodeType(row["type"]),
            depth=row["depth"],
            size=row["size"],
            checksum=row["checksum"],
            last_updated=datetime.fromisoformat(row["last_updated"]),
            existence_map=existence,
            children_generated=bool(row["children_generated"]),
            position=row["position"],
        )

    @staticmethod
    def _world_filter(world: Optional[str]) -> Tuple[str, tuple]:
        if world is None or world == PRIMARY_WORLD:
            return "", ()
        return (
            " AND EXISTS (SELECT 1 FROM node_worlds w WHERE w.node_id = n.id"
            " AND w.world = ? AND w.present = 1)",
            (world,),
        )

    def _select_one(self, where: str, params: tuple, world: Optional[str]) -> Optional[Node]:
        clause, extra = self._world_filter(world)
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_NODE_COLUMNS} FROM nodes n WHERE {where}{clause}",
                params + extra,
            ).fetchone()
            if row is None:
                return None
            existence = self._existence_for([row["id"]])[row["id"]]
        return self._deserialize(row, existence)

    def get(self, path: str, world: Optional[str] = None) -> Optional[Node]:
        """Get a node by normalized path, optionally only if present in world."""
        return self._select_one("n.path = ?", (path,), world)

    def get_by_id(self, node_id: str, world: Optional[str] = None) -> Optional[Node]:
        return self._select_one("n.id = ?", (node_id,), world)

    def list_children(self, parent_path: str, world: Optional[str] = None) -> List[Node]:
        """Persisted children of parent_path in sibling order, filtered by world."""
        clause, extra = self._world_filter(world)
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_NODE_COLUMNS} FROM nodes n WHERE n.parent_path = ?{clause} "
                "ORDER BY n.position, n.name",
                (parent_path,) + extra,
            ).fetchall()
            existence = self._existence_for([r["id"] for r in rows])
        return [self._deserialize(r, existence[r["id"]]) for r in rows]

    def count_children(self, parent_path: str) -> int:
        """Persisted children in any world."""
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) AS cnt FROM nodes WHERE parent_path = ?", (parent_path,)
            ).fetchone()
        return row["cnt"]

    def next_position(self, parent_path: str) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT MAX(position) AS pos FROM nodes WHERE parent_path = ?", (parent_path,)
            ).fetchone()
        return 0 if row["pos"] is None else row["pos"] + 1

    def count(self) -> int:
        """Total number of materialized nodes."""
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) AS cnt FROM nodes").fetchone()
        return row["cnt"]

    # --- Writes ---

    def _insert(self, node: Node) -> bool:
        """INSERT OR IGNORE one node and, if new, its world rows. No commit."""
        cursor = self._conn.execute(
            f"INSERT OR IGNORE INTO nodes ({_NODE_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                node.id,
                node.path,
                node.parent_path,
                node.name,
                node.type.value,
                node.depth,
                node.size,
                node.checksum,
                node.last_updated.isoformat(),
                int(node.children_generated),
                node.position,
            ),
        )
        inserted = cursor.rowcount == 1
        if inserted:
            self._conn.executemany(
                "INSERT OR IGNORE INTO node_worlds (node_id, world, present) VALUES (?, ?, ?)",
                [(node.id, w, int(p)) for w, p in node.existence_map.items()],
            )
        return inserted

    def put_if_absent(self, node: Node) -> Tuple[Node, bool]:
        """
        Insert node unless its path is already persisted. Returns the
        persisted record and whether this call inserted it.
        """
        with self._lock:
            inserted = self._insert(node)
            self._conn.commit()
            persisted = self.get(node.path)
        if persisted is None:
            # Deleted between insert and read by another connection
            return node, inserted
        return persisted, inserted

    def put_children(self, parent_path: str, children: List[Node]) -> Optional[int]:
        """
        Persist a folder's generated children and mark the folder expanded in
        one write transaction. The expanded flag is re-read under the write
        lock, so a listing that lost the race never re-inserts children
        deleted after the winner committed.

        Returns the number of children inserted, or None when the folder is
        already expanded or no longer exists.
        """
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                row = self._conn.execute(
                    "SELECT children_generated FROM nodes WHERE path = ?", (parent_path,)
                ).fetchone()
                if row is None or row["children_generated"]:
                    self._conn.rollback()
                    return None
                inserted = sum(int(self._insert(child)) for child in children)
                self._conn.execute(
                    "UPDATE nodes SET children_generated = 1 WHERE path = ?", (parent_path,)
                )
                self._conn.commit()
            except BaseException:
                self._conn.rollback()
                raise
        return inserted

    def set_existence_if_absent(self, node_id: str, world: str, present: bool) -> bool:
        """Record membership unless already decided; returns the persisted decision."""
        with self._lock:
            self._conn.execute(
                "INSERT OR IGNORE INTO node_worlds (node_id, world, present) VALUES (?, ?, ?)",
                (node_id, world, int(present)),
            )
            self._conn.commit()
            row = self._conn.execute(
                "SELECT present FROM node_worlds WHERE node_id = ? AND world = ?",
                (node_id, world),
            ).fetchone()
        return bool(row["present"])

    def set_existence(self, node_id: str, world: str, present: bool) -> None:
        """Overwrite membership. Only explicit writes into a world do this."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO node_worlds (node_id, world, present) VALUES (?, ?, ?)",
                (node_id, world, int(present)),
            )
            self._conn.commit()

    def set_checksum_if_absent(self, node_id: str, checksum: str) -> Optional[str]:
        """Cache a checksum unless one is already cached; returns the cached value."""
        with self._lock:
            self._conn.execute(
                "UPDATE nodes SET checksum = ? WHERE id = ? AND checksum IS NULL",
                (checksum, node_id),
            )
            self._conn.commit()
            row = self._conn.execute(
                "SELECT checksum FROM nodes WHERE id = ?", (node_id,)
            ).fetchone()
        return row["checksum"] if row else None

    def update_content(self, path: str, new_bytes: bytes) -> Optional[Node]:
        """
        Replace a file's content. Only the cached checksum and last_updated
        change; the payload itself is not persisted.
        """
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE nodes SET checksum = NULL, last_updated = ? "
                "WHERE path = ? AND type = ?",
                (datetime.utcnow().isoformat(), path, NodeType.FILE.value),
            )
            self._conn.commit()
            if cursor.rowcount == 0:
                return None
        log.debug("replaced content of %s (%d bytes received)", path, len(new_bytes))
        return self.get(path)

    def delete(self, path: str) -> bool:
        """Remove a node and its world memberships. Returns False if absent."""
        with self._lock:
            row = self._conn.execute(
                "SELECT id FROM nodes WHERE path = ?", (path,)
            ).fetchone()
            if row is None:
                return False
            self._conn.execute("DELETE FROM node_worlds WHERE node_id = ?", (row["id"],))
            self._conn.execute("DELETE FROM nodes WHERE id = ?", (row["id"],))
            self._conn.commit()
        return True

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
