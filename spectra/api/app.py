"""
Spectra API: FastAPI endpoints.

Exposes the engine's host interface over HTTP:
- Node lookup and directory listing per world
- Folder creation, file upload (create or replace), deletion
- File content and checksum reads
- Configuration inspection
"""

import base64
import binascii
from typing import Optional

from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel

from spectra.engine.filesystem import SpectraFS
from spectra.errors import (
    FolderNotEmptyError,
    InvalidConfigError,
    InvalidNameError,
    NodeExistsError,
    NodeNotFoundError,
    NotAFileError,
    NotAFolderError,
    RootProtectedError,
    SpectraError,
)
from spectra.models.config import SpectraConfig
from spectra.models.node import Node
from spectra.models.world import PRIMARY_WORLD


# --- Request/Response Models ---

class FolderCreateRequest(BaseModel):
    parent_path: str
    name: str
    world: str = PRIMARY_WORLD


class FileUploadRequest(BaseModel):
    parent_path: str
    name: str
    data_base64: str = ""
    world: str = PRIMARY_WORLD


def _node_json(node: Node) -> dict:
    data = node.model_dump(mode="json")
    data["parent_path"] = node.parent_path
    return data


def _http_error(exc: SpectraError) -> HTTPException:
    """Map an engine error onto an HTTP status."""
    if isinstance(exc, NodeNotFoundError):
        return HTTPException(404, str(exc))
    if isinstance(exc, (NodeExistsError, FolderNotEmptyError)):
        return HTTPException(409, str(exc))
    if isinstance(exc, RootProtectedError):
        return HTTPException(403, str(exc))
    if isinstance(exc, (NotAFolderError, NotAFileError, InvalidNameError, InvalidConfigError)):
        return HTTPException(400, str(exc))
    return HTTPException(500, str(exc))


# --- Application Factory ---

def create_app(
    spectra: Optional[SpectraFS] = None,
    config: Optional[SpectraConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application around one SpectraFS."""

    if spectra is None:
        if config is None:
            raise InvalidConfigError("create_app needs a SpectraFS or a SpectraConfig")
        spectra = SpectraFS(config)

    app = FastAPI(
        title="Spectra API",
        description="Deterministic synthetic filesystem",
        version="0.1.0",
    )
    app.state.spectra = spectra

    # === CONFIGURATION ===

    @app.get("/config")
    def get_config():
        """The configuration the engine was started with."""
        return spectra.get_config().model_dump(mode="json")

    @app.get("/worlds")
    def list_worlds():
        """Primary plus every configured secondary world."""
        cfg = spectra.get_config()
        worlds = [{"name": PRIMARY_WORLD, "probability": 1.0}]
        worlds += [
            {"name": name, "probability": cfg.secondary_tables[name]}
            for name in cfg.world_names()
        ]
        return worlds

    # === NODES ===

    @app.get("/nodes")
    def get_node(path: str, world: str = PRIMARY_WORLD):
        """Get the node at path as seen from world."""
        try:
            node = spectra.get_node(path, world)
        except SpectraError as e:
            raise _http_error(e) from e
        return _node_json(node)

    @app.get("/children")
    def list_children(path: str = "/", world: str = PRIMARY_WORLD):
        """List a folder's children as seen from world."""
        try:
            children = spectra.list_children(path, world)
        except SpectraError as e:
            raise _http_error(e) from e
        return {
            "path": path,
            "world": world,
            "children": [_node_json(n) for n in children],
        }

    @app.post("/folders")
    def create_folder(req: FolderCreateRequest):
        """Create an empty folder."""
        try:
            node = spectra.create_folder(req.parent_path, req.world, req.name)
        except SpectraError as e:
            raise _http_error(e) from e
        return _node_json(node)

    @app.post("/files")
    def upload_file(req: FileUploadRequest):
        """Create or replace a file."""
        try:
            data = base64.b64decode(req.data_base64, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(400, "data_base64 is not valid base64")
        try:
            node = spectra.upload_file(req.parent_path, req.world, req.name, data)
        except SpectraError as e:
            raise _http_error(e) from e
        return _node_json(node)

    @app.delete("/nodes")
    def delete_node(path: str, world: str = PRIMARY_WORLD):
        """Delete a file or an empty folder from every world."""
        try:
            spectra.delete_node(path, world)
        except SpectraError as e:
            raise _http_error(e) from e
        return {"status": "deleted", "path": path}

    # === CONTENT ===

    @app.get("/files/{node_id}/data")
    def read_file_data(node_id: str):
        """Raw file bytes; the SHA-256 checksum travels in a header."""
        try:
            data, checksum = spectra.read_file_bytes(node_id)
        except SpectraError as e:
            raise _http_error(e) from e
        return Response(
            content=data,
            media_type="application/octet-stream",
            headers={"X-Checksum-SHA256": checksum},
        )

    @app.get("/files/{node_id}/checksum")
    def read_file_checksum(node_id: str):
        """SHA-256 checksum of a file."""
        try:
            _, checksum = spectra.read_file_bytes(node_id)
        except SpectraError as e:
            raise _http_error(e) from e
        return {"id": node_id, "checksum": checksum}

    return app
