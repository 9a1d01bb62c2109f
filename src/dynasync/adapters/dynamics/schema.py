"""Pydantic models describing the Dynamics OData payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DynamicsBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TokenResponse(DynamicsBaseModel):
    """Body of the Azure AD client-credentials token response."""

    access_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = None
    expires_on: int | None = None
    resource: str | None = None

    @field_validator("expires_in", "expires_on", mode="before")
    @classmethod
    def _parse_int(cls, value: int | str | None) -> int | None:
        if value is None or value == "":
            return None
        return int(value)


class ODataPage(DynamicsBaseModel):
    """One page of an OData collection.

    Records are kept as plain dicts so that field order and values survive exactly
    as received.
    """

    value: list[dict[str, Any]]
    context: str | None = Field(default=None, alias="@odata.context")
    next_link: str | None = Field(default=None, alias="@odata.nextLink")


class ODataErrorDetail(DynamicsBaseModel):
    code: str | None = None
    message: str = ""


class ODataErrorResponse(DynamicsBaseModel):
    error: ODataErrorDetail
