"""CloudEvent envelope parsing.

Two content modes are recognized:

* binary: attributes in ``ce-*`` headers, payload in the body;
* structured: one JSON document holding attributes and ``data``.

Parsing needs the body, so the dispatcher buffers it once and rebuilds the request
with :func:`replay_request` when the envelope turns out not to be an event.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError
from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.types import Message

from cloud_triggers.events import CloudEvent

HEADER_PREFIX = "ce-"
REQUIRED_ATTRIBUTES = ("specversion", "id", "source", "type", "time")


class InvalidEnvelopeError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class EnvelopeHint:
    """Routing attributes available before full validation."""

    mode: str
    type: str
    source: str


def replay_request(request: Request, body: bytes) -> Request:
    """Return a request over the same scope whose body stream yields ``body`` again."""

    sent = False

    async def receive() -> Message:
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(request.scope, receive)


def _is_structured_content(headers: Headers) -> bool:
    content_type = headers.get("content-type", "")
    return "application/json" in content_type or "application/cloudevents" in content_type


def _json_body(body: bytes) -> dict[str, Any] | None:
    try:
        parsed = json.loads(body or b"null")
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def probe(headers: Headers, body: bytes) -> EnvelopeHint | None:
    """Find event type and source without validating the rest of the envelope."""

    if "ce-type" in headers and "ce-source" in headers:
        return EnvelopeHint(mode="binary", type=headers["ce-type"], source=headers["ce-source"])
    if not _is_structured_content(headers):
        return None
    document = _json_body(body)
    if document is None:
        return None
    event_type, source = document.get("type"), document.get("source")
    if not isinstance(event_type, str) or not isinstance(source, str):
        return None
    return EnvelopeHint(mode="structured", type=event_type, source=source)


def _binary_attributes(headers: Headers, body: bytes) -> dict[str, Any]:
    attributes: dict[str, Any] = {
        key[len(HEADER_PREFIX) :]: value
        for key, value in headers.items()
        if key.startswith(HEADER_PREFIX)
    }
    content_type = headers.get("content-type")
    if content_type:
        attributes["datacontenttype"] = content_type
    if content_type and "json" in content_type:
        try:
            attributes["data"] = json.loads(body) if body else None
        except (UnicodeDecodeError, json.JSONDecodeError):
            attributes["data"] = body
    else:
        # Protobuf and other binary payloads are handed over undecoded.
        attributes["data"] = body
    return attributes


def _structured_attributes(body: bytes) -> dict[str, Any]:
    document = _json_body(body)
    if document is None:
        raise InvalidEnvelopeError("Structured CloudEvent body is not a JSON object")
    attributes = dict(document)
    encoded = attributes.pop("data_base64", None)
    if encoded is not None:
        try:
            attributes["data"] = base64.b64decode(encoded, validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise InvalidEnvelopeError(f"data_base64 is not valid base64: {e}") from e
    return attributes


def parse_cloud_event(headers: Headers, body: bytes) -> CloudEvent:
    """Parse and validate an envelope.

    Raises:
        InvalidEnvelopeError: if the request is not a CloudEvent, misses a required
            attribute or carries an unsupported ``specversion``.
    """

    hint = probe(headers, body)
    if hint is None:
        raise InvalidEnvelopeError("Request does not carry a CloudEvent")

    if hint.mode == "binary":
        attributes = _binary_attributes(headers, body)
    else:
        attributes = _structured_attributes(body)

    missing = [name for name in REQUIRED_ATTRIBUTES if not attributes.get(name)]
    if missing:
        raise InvalidEnvelopeError(f"CloudEvent is missing required attributes: {', '.join(missing)}")

    try:
        return CloudEvent.model_validate(attributes)
    except ValidationError as e:
        raise InvalidEnvelopeError(str(e)) from e
