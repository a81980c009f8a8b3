"""
Contact lookup response models.
Field aliases match the camelCase keys of the domain serializers.
"""

from pydantic import BaseModel, ConfigDict, Field


class ContactMatchResponse(BaseModel):
    """A resolved phone number."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Contact name, empty when unmatched")
    contact_id: int = Field(..., alias="contactId", description="Directory contact id, 0 if none")
    fuzzy: int | None = Field(None, description="Trailing digits ignored for the match (1-3)")
    city: str | None = Field(None, description="City or number type label")
    formatted: str | None = Field(None, description="Number in international display format")


class LookupResponse(BaseModel):
    """Response for a single number lookup."""

    number: str = Field(..., description="Number as requested")
    match: ContactMatchResponse | None = Field(None, description="Resolution result")


class LookupBatchResponse(BaseModel):
    """Response for a batch lookup, keyed by the requested number."""

    results: dict[str, ContactMatchResponse] = Field(default_factory=dict)
    directory_ready: bool = Field(..., description="Whether a directory snapshot is loaded")
