"""
Hierarchy Generator: decides the children of a directory.

The decision depends only on the directory path and the seed config, never
on what else has been generated, so any directory can be expanded lazily
and out of order.
"""

import logging
from typing import List, Set

from spectra.generation.rng import DerivedStream, derive
from spectra.models.config import SeedConfig
from spectra.models.node import ChildSpec, NodeType, normalize_path

log = logging.getLogger(__name__)

FILE_EXTENSIONS = (".txt", ".bin", ".dat", ".csv", ".log", ".json")


class HierarchyGenerator:
    """Generates (name, type) children for directories under one seed config."""

    def __init__(self, seed_config: SeedConfig):
        self.config = seed_config

    def folder_count(self, stream: DerivedStream, depth: int) -> int:
        # Leaf enforcement: nothing below max_depth can be a folder
        if depth >= self.config.max_depth:
            return 0
        return stream.randint(self.config.min_folders, self.config.max_folders)

    def file_count(self, stream: DerivedStream) -> int:
        return stream.randint(self.config.min_files, self.config.max_files)

    def generate_children(self, dir_path: str, depth: int) -> List[ChildSpec]:
        """
        Children of dir_path, folders first then files, in a stable order.

        Both counts are drawn before any name so the counts of a directory
        never depend on how its names came out.
        """
        dir_path = normalize_path(dir_path)
        stream = derive(self.config.seed, "children", dir_path)

        n_folders = self.folder_count(stream, depth)
        n_files = self.file_count(stream)

        taken: Set[str] = set()
        children: List[ChildSpec] = []
        for _ in range(n_folders):
            name = self._unique(stream, f"folder_{stream.token(4)}", taken)
            children.append(ChildSpec(name=name, type=NodeType.FOLDER))
        for _ in range(n_files):
            ext = stream.choice(FILE_EXTENSIONS)
            name = self._unique(stream, f"file_{stream.token(4)}{ext}", taken)
            children.append(ChildSpec(name=name, type=NodeType.FILE))

        log.debug(
            "generated %d folders, %d files for %s (depth %d)",
            n_folders, n_files, dir_path, depth,
        )
        return children

    @staticmethod
    def _unique(stream: DerivedStream, name: str, taken: Set[str]) -> str:
        """Perturb name with stream-derived suffixes until it is unused."""
        candidate = name
        while candidate in taken:
            stem, dot, ext = name.partition(".")
            candidate = f"{stem}-{stream.token(2)}{dot}{ext}"
        taken.add(candidate)
        return candidate
