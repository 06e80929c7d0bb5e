"""Spectra data models."""

from spectra.models.config import ApiConfig, SeedConfig, SpectraConfig
from spectra.models.node import (
    FILE_SIZE,
    ROOT_PATH,
    ChildSpec,
    Node,
    NodeType,
    join_path,
    normalize_path,
    parent_of,
    path_depth,
    validate_name,
)
from spectra.models.world import PRIMARY_WORLD, World, WorldKind

__all__ = [
    "ApiConfig",
    "ChildSpec",
    "FILE_SIZE",
    "Node",
    "NodeType",
    "PRIMARY_WORLD",
    "ROOT_PATH",
    "SeedConfig",
    "SpectraConfig",
    "World",
    "WorldKind",
    "join_path",
    "normalize_path",
    "parent_of",
    "path_depth",
    "validate_name",
]
