"""Seed and service configuration."""

from typing import Any, Dict, List

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from spectra.errors import InvalidConfigError
from spectra.models.world import PRIMARY_WORLD, World


class _ConfigModel(BaseModel):
    """Config models reject bad values with InvalidConfigError when built directly."""

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise InvalidConfigError(f"invalid {type(self).__name__}: {e}") from e

    @classmethod
    def model_validate(cls, obj: Any, **kwargs: Any):
        try:
            return super().model_validate(obj, **kwargs)
        except ValidationError as e:
            raise InvalidConfigError(f"invalid {cls.__name__}: {e}") from e

    @classmethod
    def model_validate_json(cls, json_data: Any, **kwargs: Any):
        try:
            return super().model_validate_json(json_data, **kwargs)
        except ValidationError as e:
            raise InvalidConfigError(f"invalid {cls.__name__}: {e}") from e


class SeedConfig(_ConfigModel):
    """
    Immutable generation parameters. Every random decision in the engine is
    derived from these values plus a node's identity.
    """

    model_config = ConfigDict(frozen=True)

    max_depth: int = Field(ge=1)
    min_folders: int = Field(ge=0)
    max_folders: int = Field(ge=0)
    min_files: int = Field(ge=0)
    max_files: int = Field(ge=0)
    seed: int
    file_binary_seed: int = 0
    db_path: str = "spectra.db"

    @model_validator(mode="after")
    def _check_bounds(self) -> "SeedConfig":
        if self.min_folders > self.max_folders:
            raise ValueError(
                f"min_folders ({self.min_folders}) exceeds max_folders ({self.max_folders})"
            )
        if self.min_files > self.max_files:
            raise ValueError(
                f"min_files ({self.min_files}) exceeds max_files ({self.max_files})"
            )
        return self


class ApiConfig(_ConfigModel):
    """Where the HTTP service listens."""

    model_config = ConfigDict(frozen=True)

    host: str = "localhost"
    port: int = Field(default=8086, ge=1, le=65535)


class SpectraConfig(_ConfigModel):
    """Top-level configuration, as stored in the JSON config file."""

    model_config = ConfigDict(frozen=True)

    seed: SeedConfig
    api: ApiConfig = ApiConfig()
    secondary_tables: Dict[str, float] = {}   # world name -> inclusion probability

    @field_validator("secondary_tables")
    @classmethod
    def _check_worlds(cls, tables: Dict[str, float]) -> Dict[str, float]:
        for name, probability in tables.items():
            if not name or name == PRIMARY_WORLD:
                raise ValueError(f"invalid secondary world name '{name}'")
            if not 0.0 <= probability <= 1.0:
                raise ValueError(
                    f"probability for world '{name}' must be within [0, 1], got {probability}"
                )
        return tables

    def world_names(self) -> List[str]:
        """Secondary world names, sorted."""
        return sorted(self.secondary_tables)

    def secondary_worlds(self) -> List[World]:
        return [
            World.named(name, self.secondary_tables[name])
            for name in self.world_names()
        ]

    def resolve_world(self, name: str) -> World:
        """Map a world name to a World, rejecting names that are not configured."""
        if name == PRIMARY_WORLD:
            return World.primary()
        if name not in self.secondary_tables:
            available = ", ".join([PRIMARY_WORLD] + self.world_names())
            raise InvalidConfigError(
                f"world '{name}' not found in config (available: {available})"
            )
        return World.named(name, self.secondary_tables[name])
