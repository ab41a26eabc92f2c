"""Geofence region model."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class GeofenceRegion(BaseModel):
    """Named circular region used to label a vehicle's location.

    Accepts both the snake_case field names and the camelCase keys of
    the configuration document (``location``, ``geofenceRadiusMeters``).
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str = Field(min_length=1, validation_alias=AliasChoices("name", "location"))
    latitude: float = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(ge=-180.0, le=180.0, validation_alias=AliasChoices("longitude", "lng", "lon"))
    radius_meters: float = Field(
        ge=0.0,
        validation_alias=AliasChoices("radius_meters", "radiusMeters", "geofenceRadiusMeters", "radius"),
    )
