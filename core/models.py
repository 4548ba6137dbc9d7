"""Pydantic models shared across the application."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationKind(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    """A single user-facing status message."""

    message: str
    kind: NotificationKind = NotificationKind.INFO


class PlantImage(BaseModel):
    medium_url: Optional[str] = None
    thumbnail: Optional[str] = None


class Plant(BaseModel):
    """One entry of the plant catalog's ``species-list`` response."""

    model_config = ConfigDict(extra="ignore")

    id: int
    common_name: Optional[str] = None
    scientific_name: str = ""
    default_image: Optional[PlantImage] = None

    @property
    def image_url(self) -> Optional[str]:
        if self.default_image is None:
            return None
        return self.default_image.medium_url or self.default_image.thumbnail

    @property
    def label(self) -> str:
        """Name used in messages: common name, else scientific name."""
        return self.common_name or self.scientific_name


class Track(BaseModel):
    """An ambient audio track from the audio catalog."""

    id: str
    title: str = ""
    artist: str = ""
    audio_url: str = ""

    @classmethod
    def from_catalog(cls, item: dict) -> "Track":
        return cls(
            id=str(item["id"]),
            title=item.get("name", ""),
            artist=item.get("artist_name", ""),
            audio_url=item.get("audio", ""),
        )


class FavoritePlant(BaseModel):
    """Denormalized plant snapshot stored in the user's profile document.

    Stored under the wire keys ``id, common_name, scientific_name, image,
    custom_name`` — use ``to_document()`` when writing.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    common_name: Optional[str] = None
    scientific_name: str = ""
    image_url: Optional[str] = Field(default=None, alias="image")
    custom_name: str = ""

    @classmethod
    def from_plant(cls, plant: Plant) -> "FavoritePlant":
        return cls(
            id=plant.id,
            common_name=plant.common_name,
            scientific_name=plant.scientific_name,
            image_url=plant.image_url,
            custom_name=plant.common_name or "",
        )

    @property
    def display_name(self) -> str:
        return self.custom_name or self.common_name or "Unnamed Plant"

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class User(BaseModel):
    """Identity-provider user plus the tokens needed for document access.

    Tokens are kept server side (``users`` table) and never rendered.
    """

    uid: str
    display_name: str = ""
    email: str = ""
    id_token: str = ""
    refresh_token: str = ""
    expires_at: int = 0

    def public(self) -> dict:
        return {"uid": self.uid, "display_name": self.display_name, "email": self.email}
