"""Pydantic models for Pub/Sub push deliveries."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

# photos.id is a Postgres bigint.
MAX_PHOTO_ID = 2**63 - 1


class PushMessage(BaseModel):
    """Pub/Sub message wrapped in a push request."""

    data: str = Field(min_length=1)
    message_id: str | None = Field(default=None, alias="messageId")
    publish_time: str | None = Field(default=None, alias="publishTime")
    attributes: dict[str, str] | None = None


class PushEnvelope(BaseModel):
    """Pub/Sub push request body."""

    message: PushMessage
    subscription: str | None = None
    delivery_attempt: int | None = Field(default=None, ge=0, alias="deliveryAttempt")


class PhotoJobPayload(BaseModel):
    """JSON document carried base64-encoded in ``message.data``."""

    model_config = ConfigDict(populate_by_name=True)

    photo_id: int = Field(alias="photoId", gt=0, le=MAX_PHOTO_ID)

    @field_validator("photo_id", mode="before")
    @classmethod
    def reject_booleans(cls, value: object) -> object:
        if isinstance(value, bool):
            raise ValueError("photoId must be a number, not a boolean")
        return value
