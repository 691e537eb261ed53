"""Response schemas of the catalog and identity services."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class DirectoryBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ProductPayload(DirectoryBaseModel):
    id: str
    owner_id: str | None = Field(default=None, alias="ownerId")
    active: bool = True


class IdentityPayload(DirectoryBaseModel):
    id: str
    active: bool = True
