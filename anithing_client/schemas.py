"""Payload models for queued offline actions."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class ActionType(str, Enum):
    ADD_TO_LIST = "add_to_list"
    UPDATE_PROGRESS = "update_progress"
    RATE_TITLE = "rate_title"
    WRITE_REVIEW = "write_review"


class ActionPayload(BaseModel):
    title_id: int = Field(gt=0)

    @property
    def entity_id(self) -> str:
        return str(self.title_id)


class AddToListPayload(ActionPayload):
    status: Literal[
        "watching", "completed", "on_hold", "dropped", "plan_to_watch"
    ] = "plan_to_watch"
    media_type: Literal["anime", "manga"] | None = None


class UpdateProgressPayload(ActionPayload):
    progress: int = Field(ge=0)
    # Stamped at enqueue time so the server can ignore a stale replay
    client_ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RateTitlePayload(ActionPayload):
    rating: int = Field(ge=1, le=10)


class WriteReviewPayload(ActionPayload):
    content: str = Field(min_length=1)
    headline: str | None = None
    rating: int | None = Field(default=None, ge=1, le=10)
    spoiler_warning: bool = False
    client_ref: str = Field(default_factory=lambda: uuid.uuid4().hex)


PAYLOAD_MODELS: dict[ActionType, type[ActionPayload]] = {
    ActionType.ADD_TO_LIST: AddToListPayload,
    ActionType.UPDATE_PROGRESS: UpdateProgressPayload,
    ActionType.RATE_TITLE: RateTitlePayload,
    ActionType.WRITE_REVIEW: WriteReviewPayload,
}

ENDPOINTS: dict[ActionType, str] = {
    ActionType.ADD_TO_LIST: "/library/entries",
    ActionType.UPDATE_PROGRESS: "/library/progress",
    ActionType.RATE_TITLE: "/library/rating",
    ActionType.WRITE_REVIEW: "/reviews",
}


def validate_payload(action_type: ActionType | str, payload: dict) -> ActionPayload:
    """Validate a raw payload for its action type. Raises pydantic.ValidationError."""
    return PAYLOAD_MODELS[ActionType(action_type)].model_validate(payload)
