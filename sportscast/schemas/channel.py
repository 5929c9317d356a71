"""
Tenant-scoped broadcaster and data source models.

Both are owned by a company (tenant) and edited through CRUD screens
elsewhere; the ingestion pipeline consumes them read-only.
"""

from pydantic import BaseModel, ConfigDict, Field


class Channel(BaseModel):
    """A TV channel configured for a tenant, e.g. "Sky Sports Main Event"."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str
    name: str = Field(..., min_length=1)
    company_id: str
    channel_number: str | None = None
    is_active: bool = True


class DataSource(BaseModel):
    """A website registered by a tenant as a place to look for schedules."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str
    company_id: str
    name: str
    url: str = Field(..., min_length=1)
    description: str | None = None
    is_active: bool = True
