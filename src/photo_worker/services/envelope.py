"""Decoding of push deliveries into processing jobs.

Every failure here is structural: a malformed delivery will never become
well-formed on redelivery, so callers acknowledge it instead of retrying.
"""

import base64
import binascii
import json

from pydantic import ValidationError

from photo_worker.domain.jobs import DecodeFailure, Job
from photo_worker.domain.pubsub import PhotoJobPayload, PushEnvelope

DELIVERY_ATTEMPT_HEADER = "X-Goog-Delivery-Attempt"

_DETAIL_LIMIT = 400


def resolve_attempt(transport_header: str | None, envelope_field: int | None) -> int:
    """Return the delivery attempt, preferring the transport header."""
    from_header = _positive_int(transport_header)
    if from_header is not None:
        return from_header
    if envelope_field is not None and envelope_field > 0:
        return envelope_field
    return 1


def decode_push_request(body: bytes, attempt_header: str | None) -> Job | DecodeFailure:
    """Validate a push request body and unwrap the job it carries."""
    try:
        envelope = PushEnvelope.model_validate_json(body)
    except ValidationError as exc:
        return DecodeFailure(
            reason="bad_envelope",
            detail=_truncate(str(exc)),
            attempt=resolve_attempt(attempt_header, None),
        )

    attempt = resolve_attempt(attempt_header, envelope.delivery_attempt)
    delivery_id = envelope.message.message_id
    attributes = envelope.message.attributes or {}
    correlation_id = attributes.get("requestId")

    try:
        raw = base64.b64decode(envelope.message.data, validate=True)
        document = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        return DecodeFailure(
            reason="bad_payload",
            detail=_truncate(str(exc)),
            attempt=attempt,
            delivery_id=delivery_id,
            correlation_id=correlation_id,
        )
    if not isinstance(document, dict):
        return DecodeFailure(
            reason="bad_payload",
            detail=f"expected a JSON object, got {type(document).__name__}",
            attempt=attempt,
            delivery_id=delivery_id,
            correlation_id=correlation_id,
        )

    try:
        payload = PhotoJobPayload.model_validate(document)
    except ValidationError as exc:
        return DecodeFailure(
            reason="bad_photo_id",
            detail=_truncate(f"photoId={document.get('photoId')!r}: {exc}"),
            attempt=attempt,
            delivery_id=delivery_id,
            correlation_id=correlation_id,
        )

    return Job(
        photo_id=payload.photo_id,
        attempt=attempt,
        delivery_id=delivery_id,
        correlation_id=correlation_id,
    )


def _positive_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    text = raw.strip()
    try:
        value = int(text)
    except ValueError:
        try:
            number = float(text)
        except ValueError:
            return None
        if not number.is_integer():
            return None
        value = int(number)
    return value if value > 0 else None


def _truncate(text: str, limit: int = _DETAIL_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"
