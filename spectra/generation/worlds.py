"""
World Existence Sampler.

Membership of a node in a secondary world is a per-node, per-world draw
compared against the world's probability. A node can only be in a world if
its parent is, so every world sees a connected hierarchy rooted at "/".

The draws compound down the tree: a node at depth d is in a world of
probability p with probability p ** d, not p. The root (depth 0) is in
every world.
"""

from typing import Dict, Iterable, Optional

from spectra.generation.rng import derive
from spectra.models.world import World


def exists_in_world(seed: int, node_id: str, world: World) -> bool:
    """Raw draw for one node in one world. Primary always contains the node."""
    if world.is_primary:
        return True
    return derive(seed, "world", world.name, node_id).random() < world.probability


def decide_existence(
    seed: int,
    node_id: str,
    world: World,
    parent_exists: Optional[bool] = True,
) -> bool:
    """Membership given the parent's membership in the same world."""
    if world.is_primary:
        return True
    if not parent_exists:
        return False
    return exists_in_world(seed, node_id, world)


def sample_existence_map(
    seed: int,
    node_id: str,
    worlds: Iterable[World],
    parent_map: Optional[Dict[str, bool]] = None,
) -> Dict[str, bool]:
    """
    Existence map for a newly materialized node. parent_map is None for the
    root, which exists in every world. Each entry is one draw gated by the
    parent, so the chance of presence at depth d is probability ** d.
    """
    existence: Dict[str, bool] = {}
    for world in worlds:
        if world.is_primary:
            continue
        if parent_map is None:
            existence[world.name] = True
        else:
            existence[world.name] = decide_existence(
                seed, node_id, world, parent_map.get(world.name, False)
            )
    return existence
