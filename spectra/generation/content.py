"""Content Generator: fixed-size deterministic file payloads."""

import hashlib
from typing import Tuple

from spectra.generation.rng import derive
from spectra.models.node import FILE_SIZE


def generate_content(node_id: str, file_binary_seed: int) -> Tuple[bytes, str]:
    """
    The FILE_SIZE-byte payload of a file and its SHA-256 hex digest.

    Pure: the same (node_id, file_binary_seed) always yields the same bytes,
    so any cached checksum can be recomputed and must agree.
    """
    data = derive(file_binary_seed, "content", node_id).read(FILE_SIZE)
    return data, checksum_of(data)


def checksum_of(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()
