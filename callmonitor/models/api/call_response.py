"""
Call and extension response models.
Field aliases match the camelCase keys of the domain serializers.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CallRecordResponse(BaseModel):
    """One call leg."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    extension: str
    caller: str
    callee: str
    extension_name: str = Field(..., alias="extensionName")
    direction: str
    start_time: datetime = Field(..., alias="startTime")
    answer_time: datetime | None = Field(None, alias="answerTime")
    end_time: datetime | None = Field(None, alias="endTime")
    duration: int | None = None
    status: str
    end_reason: str | None = Field(None, alias="endReason")


class ActiveCallsResponse(BaseModel):
    """Currently live call legs."""

    calls: list[CallRecordResponse]
    count: int


class ExtensionResponse(BaseModel):
    """Live state of one extension."""

    model_config = ConfigDict(populate_by_name=True)

    extension_number: str = Field(..., alias="extensionNumber")
    name: str
    uuid: str | None = None
    presence: str
    line: str
    last_state_change: datetime | None = Field(None, alias="lastStateChange")
    agent_logged_in: bool = Field(False, alias="agentLoggedIn")
    current_call: str | None = Field(None, alias="currentCall")


class ExtensionsResponse(BaseModel):
    extensions: list[ExtensionResponse]
    count: int
