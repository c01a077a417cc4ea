"""Resource declaration schemas.

Artifacts declare their resources in ``metadata.yaml``:

    resources:
      website:
        type: file
        filename: site.tar.gz
        description: Static site content
      app-image:
        type: oci-image
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResourceType(str, Enum):
    """Kinds of resource an artifact can declare."""

    FILE = "file"
    OCI_IMAGE = "oci-image"


class ResourceMeta(BaseModel):
    """Declaration of a single resource.

    Examples:
        >>> meta = ResourceMeta(name="website", type=ResourceType.FILE, filename="site.tgz")
        >>> meta.type == ResourceType.FILE
        True
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., min_length=1)
    type: str = Field(
        default=ResourceType.FILE.value,
        description="Resource type; unknown types are rejected at upload time",
    )
    filename: str = Field(default="")
    description: str = Field(default="")


class ArtifactMeta(BaseModel):
    """The resource section of an artifact's metadata.

    Resource names are the mapping keys; each declaration receives its
    key as ``name``.

    Examples:
        >>> meta = ArtifactMeta.model_validate({"resources": {"website": {"type": "file"}}})
        >>> meta.resources["website"].name
        'website'
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(default="")
    resources: dict[str, ResourceMeta] = Field(default_factory=dict)

    @field_validator("resources", mode="before")
    @classmethod
    def name_resources(cls, v: Any) -> Any:
        """Fill each declaration's name from its key."""
        if not isinstance(v, dict):
            return v
        named: dict[str, Any] = {}
        for key, decl in v.items():
            if decl is None:
                decl = {}
            if isinstance(decl, dict):
                decl = {**decl, "name": key}
            named[key] = decl
        return named


__all__: list[str] = [
    "ArtifactMeta",
    "ResourceMeta",
    "ResourceType",
]
