"""
Contact lookup request models.
Used by routes for input validation.
"""

from pydantic import BaseModel, Field

MAX_BATCH_NUMBERS = 500


class LookupBatchRequest(BaseModel):
    """Request for resolving several phone numbers at once."""

    numbers: list[str] = Field(
        ..., max_length=MAX_BATCH_NUMBERS, description="Raw phone numbers to resolve"
    )
