"""World: a named, probabilistic view over the generated hierarchy."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

PRIMARY_WORLD = "primary"


class WorldKind(str, Enum):
    PRIMARY = "primary"   # Full, unfiltered view. Never sampled.
    NAMED = "named"       # Secondary world backed by an inclusion probability.


class World(BaseModel):
    """A resolved world. Build through SpectraConfig.resolve_world()."""

    model_config = ConfigDict(frozen=True)

    kind: WorldKind
    name: str
    probability: float = Field(ge=0, le=1)

    @classmethod
    def primary(cls) -> "World":
        return cls(kind=WorldKind.PRIMARY, name=PRIMARY_WORLD, probability=1.0)

    @classmethod
    def named(cls, name: str, probability: float) -> "World":
        return cls(kind=WorldKind.NAMED, name=name, probability=probability)

    @property
    def is_primary(self) -> bool:
        return self.kind == WorldKind.PRIMARY
