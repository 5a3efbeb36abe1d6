"""
Pydantic schemas for the media center: categories and media contents.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator

from ..models.media import MediaType
from .common import ApiModel, Text100, Text255, check_slug, check_uuid, reject_nulls
from .user import KordaBrief


def validate_media_fields(media_type: MediaType, description: Optional[str], file_url: Optional[str]) -> None:
    """COPYWRITING needs text; IMAGE and VIDEO need a file."""
    if media_type == MediaType.COPYWRITING and not (description or "").strip():
        raise ValueError("Description is required for copywriting content")
    if media_type in (MediaType.IMAGE, MediaType.VIDEO) and not (file_url or "").strip():
        raise ValueError("File URL is required for image and video content")


class CategoryCreate(ApiModel):
    name: Text100
    slug: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None

    @field_validator("slug")
    @classmethod
    def _slug(cls, value: str) -> str:
        return check_slug(value)


class CategoryUpdate(ApiModel):
    name: Optional[Text100] = None
    slug: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _required_not_null(cls, data: Any) -> Any:
        return reject_nulls(data, ("name", "slug"))

    @field_validator("slug")
    @classmethod
    def _slug(cls, value: Optional[str]) -> Optional[str]:
        return check_slug(value)


class CategoryOut(ApiModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryBrief(ApiModel):
    id: str
    name: str
    slug: str


class UploaderBrief(ApiModel):
    id: str
    full_name: str


class MediaCreate(ApiModel):
    title: Text255
    description: Optional[str] = None
    type: MediaType
    file_url: Optional[str] = None
    file_size_bytes: Optional[int] = Field(None, ge=0)
    thumbnail_url: Optional[str] = None
    category_id: Optional[str] = None
    korda_id: Optional[str] = None
    is_featured: bool = False

    @field_validator("category_id", "korda_id")
    @classmethod
    def _ids(cls, value: Optional[str]) -> Optional[str]:
        return check_uuid(value)

    @model_validator(mode="after")
    def _type_rules(self) -> "MediaCreate":
        validate_media_fields(self.type, self.description, self.file_url)
        return self


class MediaUpdate(ApiModel):
    title: Optional[Text255] = None
    description: Optional[str] = None
    type: Optional[MediaType] = None
    file_url: Optional[str] = None
    file_size_bytes: Optional[int] = Field(None, ge=0)
    thumbnail_url: Optional[str] = None
    category_id: Optional[str] = None
    korda_id: Optional[str] = None
    is_featured: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def _required_not_null(cls, data: Any) -> Any:
        return reject_nulls(data, ("title", "type", "is_featured"))

    @field_validator("category_id", "korda_id")
    @classmethod
    def _ids(cls, value: Optional[str]) -> Optional[str]:
        return check_uuid(value)


class FeatureIn(ApiModel):
    is_featured: bool = True


class MediaOut(ApiModel):
    id: str
    title: str
    description: Optional[str] = None
    type: MediaType
    file_url: Optional[str] = None
    file_size_bytes: Optional[int] = None
    thumbnail_url: Optional[str] = None
    category_id: Optional[str] = None
    uploaded_by: str
    korda_id: Optional[str] = None
    is_featured: bool
    is_archived: bool
    archived_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    category: Optional[CategoryBrief] = None
    uploader: Optional[UploaderBrief] = None
    korda: Optional[KordaBrief] = None
