"""
Pydantic model for a selectable catalog entry.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ManifestDescriptor(BaseModel):
    """One manifest the engine can download. `path` is the stable key."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    name: str
    path: str
    relative_path: str = ""
    level_count: int = 0
    source: Literal["builtin", "overlay"] = "builtin"
