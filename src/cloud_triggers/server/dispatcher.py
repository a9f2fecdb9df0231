"""Route inbound requests to registered handlers.

Three routing modes are tried in order:

1. single-target, when ``FUNCTION_TARGET`` is set (one function per process);
2. event envelope, for POST requests that carry a CloudEvent;
3. path, where the function name is taken from the URL or the
   ``x-firebase-function`` header.

Event routing recomputes the expected trigger name with the same rules the
manifest uses, so an endpoint key in ``functions.yaml`` always routes back to the
registration it came from.
"""

from __future__ import annotations

import inspect
import json
import logging
import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from cloud_triggers.events import (
    AuthBlockingEvent,
    CallableRequest,
    CloudEvent,
    FunctionsErrorCode,
    HttpsError,
    ScheduledEvent,
    TaskRequest,
)
from cloud_triggers.naming import (
    ALERT_EVENT_TYPE,
    EVENT_TYPE_INDEX,
    WILDCARD_KINDS,
    TriggerKind,
    final_name,
    signature_type,
    to_cloud_run_id,
)
from cloud_triggers.registry import FunctionsContext, RuntimeRegistration
from cloud_triggers.server.config import RuntimeSettings
from cloud_triggers.server.envelope import InvalidEnvelopeError, parse_cloud_event, replay_request

logger = logging.getLogger(__name__)

FUNCTION_HEADER = "x-firebase-function"

_REGION_PREFIX = re.compile(r"^[a-z]+-[a-z]+\d+-")
_NUMERIC_SUFFIX = re.compile(r"-\d+$")


class DispatchMode(str, Enum):
    SINGLE_TARGET = "single-target"
    ENVELOPE = "envelope"
    PATH = "path"


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def match_path(pattern: str, path: str) -> dict[str, str] | None:
    """Match a concrete document/ref path against a ``{wildcard}`` pattern.

    Returns the captured segments, or ``None`` when the paths differ in length or
    in any literal segment.

    >>> match_path("users/{userId}/posts/{postId}", "users/u1/posts/p9")
    {'userId': 'u1', 'postId': 'p9'}
    """

    pattern_parts = pattern.strip("/").split("/")
    path_parts = path.strip("/").split("/")
    if len(pattern_parts) != len(path_parts):
        return None

    captures: dict[str, str] = {}
    for expected, actual in zip(pattern_parts, path_parts):
        if expected.startswith("{") and expected.endswith("}"):
            if not actual:
                return None
            captures[expected[1:-1]] = actual
        elif expected != actual:
            return None
    return captures


def _after(source: str, marker: str) -> str:
    if marker not in source:
        return ""
    return source.split(marker)[-1]


def _document_path(event: CloudEvent) -> str:
    document = event.extension("document")
    if document:
        return document
    return _after(event.source, "/documents/") or _after(event.subject or "", "documents/")


def _ref_path(event: CloudEvent) -> str:
    return event.extension("ref") or ""


# Concrete resource path of an event, for kinds routed by pattern.
_EVENT_PATHS: dict[TriggerKind, Callable[[CloudEvent], str]] = {
    TriggerKind.FIRESTORE: _document_path,
    TriggerKind.DATABASE: _ref_path,
}

# Identifying argument of an event, for kinds routed by exact name.
_EVENT_SUBJECTS: dict[TriggerKind, Callable[[CloudEvent], str]] = {
    TriggerKind.PUBSUB: lambda event: _after(event.source, "/topics/").split("/")[0],
    TriggerKind.STORAGE: lambda event: _after(event.source, "/buckets/").split("/")[0],
    TriggerKind.REMOTE_CONFIG: lambda event: "",
    TriggerKind.TEST_LAB: lambda event: "",
}


def _classify(event: CloudEvent) -> tuple[TriggerKind, str]:
    if event.type == ALERT_EVENT_TYPE:
        return TriggerKind.ALERT, "onAlertPublished"
    indexed = EVENT_TYPE_INDEX.get(event.type)
    if indexed is not None:
        return indexed
    # Anything else can only be a custom event published through Eventarc.
    return TriggerKind.EVENTARC, "onCustomEventPublished"


def expected_identifier(event: CloudEvent) -> str | None:
    """Identifier an exactly-named event trigger for ``event`` would be registered under."""

    kind, method = _classify(event)
    if kind is TriggerKind.ALERT:
        subject = event.extension("alerttype") or ""
    elif kind is TriggerKind.EVENTARC:
        subject = event.type
    elif kind in _EVENT_SUBJECTS:
        subject = _EVENT_SUBJECTS[kind](event)
    else:
        return None

    if kind not in (TriggerKind.REMOTE_CONFIG, TriggerKind.TEST_LAB) and not subject:
        return None
    return to_cloud_run_id(final_name(kind, method, subject))


def wildcard_params(registration: RuntimeRegistration, event: CloudEvent) -> dict[str, str]:
    extract = _EVENT_PATHS.get(registration.spec.kind)
    if extract is None or registration.path_pattern is None:
        return {}
    return match_path(registration.path_pattern, extract(event)) or {}


def extract_function_name(path: str) -> str:
    """Function name addressed by a request path.

    ``functions/projects/{p}/triggers/{id}`` is the emulator's event path; the
    trigger id may carry a region prefix and a numeric suffix. Otherwise the last
    segment names the function (``{project}/{region}/{name}`` or ``{name}``).
    """

    path = path.lstrip("/")
    parts = path.split("/")

    if path.startswith("functions/projects/") and len(parts) >= 5 and parts[3] == "triggers":
        trigger_id = _REGION_PREFIX.sub("", parts[4], count=1)
        return _NUMERIC_SUFFIX.sub("", trigger_id, count=1)

    if len(parts) == 3:
        return parts[2]
    return parts[-1]


# ---------------------------------------------------------------------------
# Invocation
# ---------------------------------------------------------------------------


async def _call(handler: Callable[..., Any], argument: Any) -> Any:
    result = handler(argument)
    if inspect.isawaitable(result):
        result = await result
    return result


def _as_response(result: Any) -> Response:
    if isinstance(result, Response):
        return result
    if result is None:
        return Response(status_code=200)
    if isinstance(result, str):
        return PlainTextResponse(result)
    if isinstance(result, bytes):
        return Response(result)
    return JSONResponse(result)


def _error_response(error: HttpsError) -> JSONResponse:
    return JSONResponse(error.to_dict(), status_code=error.http_status)


def _json_or_none(body: bytes) -> Any:
    try:
        return json.loads(body) if body else None
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


def _cors_headers(cors: Any, origin: str | None) -> dict[str, str]:
    if not cors or not origin:
        return {}
    if cors is True:
        allowed = True
    else:
        origins = [cors] if isinstance(cors, str) else list(cors)
        allowed = origin in origins
    if not allowed:
        return {}
    return {"Access-Control-Allow-Origin": origin, "Vary": "Origin"}


async def _invoke_https(
    registration: RuntimeRegistration, request: Request, event: CloudEvent | None
) -> Response:
    cors_headers = _cors_headers(
        registration.spec.settings.get("cors"), request.headers.get("origin")
    )
    if cors_headers and request.method == "OPTIONS":
        cors_headers.update(
            {
                "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
                "Access-Control-Allow-Headers": request.headers.get(
                    "access-control-request-headers", "*"
                ),
            }
        )
        return Response(status_code=204, headers=cors_headers)

    response = _as_response(await _call(registration.handler, request))
    response.headers.update(cors_headers)
    return response


async def _invoke_callable(
    registration: RuntimeRegistration, request: Request, event: CloudEvent | None
) -> Response:
    cors_headers = _cors_headers(
        registration.spec.settings.get("cors"), request.headers.get("origin")
    )
    if request.method == "OPTIONS":
        cors_headers.update(
            {"Access-Control-Allow-Methods": "POST", "Access-Control-Allow-Headers": "*"}
        )
        return Response(status_code=204, headers=cors_headers)

    body = _json_or_none(await request.body())
    if request.method != "POST" or not isinstance(body, dict) or "data" not in body:
        response: Response = _error_response(
            HttpsError(FunctionsErrorCode.INVALID_ARGUMENT, "Bad Request")
        )
    else:
        try:
            result = await _call(registration.handler, CallableRequest(body["data"], request))
        except HttpsError as e:
            response = _error_response(e)
        else:
            response = JSONResponse({"result": result})
    response.headers.update(cors_headers)
    return response


async def _invoke_event(
    registration: RuntimeRegistration, request: Request, event: CloudEvent | None
) -> Response:
    if event is None:
        try:
            event = parse_cloud_event(request.headers, await request.body())
        except InvalidEnvelopeError as e:
            logger.warning(
                "Rejected malformed CloudEvent",
                extra={"trigger": registration.name, "error": str(e)},
            )
            return PlainTextResponse("Invalid CloudEvent", status_code=400)

    if registration.spec.kind in WILDCARD_KINDS:
        event = event.model_copy(update={"params": wildcard_params(registration, event)})

    await _call(registration.handler, event)
    return Response(status_code=200)


async def _invoke_blocking(
    registration: RuntimeRegistration, request: Request, event: CloudEvent | None
) -> Response:
    body = _json_or_none(await request.body())
    data = body.get("data", body) if isinstance(body, dict) else {}
    blocking_event = AuthBlockingEvent(
        event_type=f"providers/cloud.auth/eventTypes/user.{registration.spec.subject}",
        data=data if isinstance(data, dict) else {},
        raw_request=request,
    )
    try:
        result = await _call(registration.handler, blocking_event)
    except HttpsError as e:
        return _error_response(e)
    return JSONResponse(result if result is not None else {})


async def _invoke_scheduled(
    registration: RuntimeRegistration, request: Request, event: CloudEvent | None
) -> Response:
    headers = request.headers
    scheduled = ScheduledEvent(
        job_name=headers.get("x-cloudscheduler-jobname"),
        schedule_time=headers.get("x-cloudscheduler-scheduletime")
        or datetime.now(tz=UTC).isoformat(),
    )
    await _call(registration.handler, scheduled)
    return Response(status_code=200)


def _int_header(headers: Headers, name: str) -> int:
    try:
        return int(headers.get(name, "0"))
    except ValueError:
        return 0


async def _invoke_task(
    registration: RuntimeRegistration, request: Request, event: CloudEvent | None
) -> Response:
    body = _json_or_none(await request.body())
    headers = request.headers
    task = TaskRequest(
        data=body.get("data") if isinstance(body, dict) else body,
        id=headers.get("x-cloudtasks-taskname"),
        queue_name=headers.get("x-cloudtasks-queuename"),
        retry_count=_int_header(headers, "x-cloudtasks-taskretrycount"),
        execution_count=_int_header(headers, "x-cloudtasks-taskexecutioncount"),
        headers={k: v for k, v in headers.items() if k.startswith("x-cloudtasks-")},
    )
    try:
        await _call(registration.handler, task)
    except HttpsError as e:
        return _error_response(e)
    return Response(status_code=204)


Invoker = Callable[[RuntimeRegistration, Request, CloudEvent | None], Awaitable[Response]]

INVOKERS: dict[TriggerKind, Invoker] = {
    TriggerKind.HTTPS: _invoke_https,
    TriggerKind.CALLABLE: _invoke_callable,
    TriggerKind.PUBSUB: _invoke_event,
    TriggerKind.FIRESTORE: _invoke_event,
    TriggerKind.DATABASE: _invoke_event,
    TriggerKind.STORAGE: _invoke_event,
    TriggerKind.ALERT: _invoke_event,
    TriggerKind.EVENTARC: _invoke_event,
    TriggerKind.REMOTE_CONFIG: _invoke_event,
    TriggerKind.TEST_LAB: _invoke_event,
    TriggerKind.BLOCKING: _invoke_blocking,
    TriggerKind.SCHEDULER: _invoke_scheduled,
    TriggerKind.TASK_QUEUE: _invoke_task,
}


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class Dispatcher:
    """Resolve a request to one registration and invoke its handler."""

    def __init__(self, context: FunctionsContext, settings: RuntimeSettings) -> None:
        self._context = context
        self._settings = settings

    @property
    def mode(self) -> DispatchMode:
        """Base routing mode; POST requests in path mode try the envelope first."""

        if self._settings.function_target.strip():
            return DispatchMode.SINGLE_TARGET
        return DispatchMode.PATH

    def _available(self) -> str:
        return ", ".join(self._context.names)

    def match_event(self, event: CloudEvent) -> RuntimeRegistration | None:
        """Find the internal registration subscribed to ``event``."""

        kind, method = _classify(event)

        if kind in WILDCARD_KINDS:
            path = _EVENT_PATHS[kind](event)
            if not path:
                return None
            for registration in self._context:
                if (
                    not registration.external
                    and registration.spec.kind is kind
                    and registration.spec.method == method
                    and registration.path_pattern is not None
                    and match_path(registration.path_pattern, path) is not None
                ):
                    return registration
            return None

        identifier = expected_identifier(event)
        if identifier is None:
            return None
        registration = self._context.get(identifier)
        if registration is None or registration.external or registration.spec.kind is not kind:
            return None
        return registration

    async def dispatch(self, request: Request) -> Response:
        if self.mode is DispatchMode.SINGLE_TARGET:
            return await self._dispatch_target(request)

        if request.method == "POST":
            body = await request.body()
            event = self._try_envelope(request.headers, body)
            if event is not None:
                registration = self.match_event(event)
                if registration is not None:
                    logger.debug(
                        "Routed CloudEvent",
                        extra={
                            "trigger": registration.name,
                            "event_type": event.type,
                            "mode": DispatchMode.ENVELOPE.value,
                        },
                    )
                    return await self._invoke(registration, request, event)
            request = replay_request(request, body)

        return await self._dispatch_path(request)

    def _try_envelope(self, headers: Headers, body: bytes) -> CloudEvent | None:
        try:
            return parse_cloud_event(headers, body)
        except InvalidEnvelopeError as e:
            logger.debug("Request is not a CloudEvent", extra={"error": str(e)})
            return None

    async def _dispatch_target(self, request: Request) -> Response:
        target = self._settings.function_target.strip()
        registration = self._context.get(target)
        if registration is None:
            return PlainTextResponse(
                f'Function "{target}" not found. Available functions: {self._available()}',
                status_code=404,
            )

        expected = self._settings.function_signature_type.strip().lower()
        actual = signature_type(registration.spec.kind)
        if expected and expected != actual:
            return PlainTextResponse(
                f'Function "{target}" has signature type {actual} '
                f"but FUNCTION_SIGNATURE_TYPE={expected}",
                status_code=500,
            )

        if not registration.external and request.method != "POST":
            return PlainTextResponse(
                f'Event function "{target}" only accepts POST requests',
                status_code=405,
                headers={"Allow": "POST"},
            )

        return await self._invoke(registration, request, None)

    async def _dispatch_path(self, request: Request) -> Response:
        name = extract_function_name(request.url.path)
        if not name:
            name = request.headers.get(FUNCTION_HEADER, "")

        registration = self._context.get(name)
        if registration is not None and (registration.external or request.method == "POST"):
            return await self._invoke(registration, request, None)

        return PlainTextResponse(
            f"Function not found: {name}\nAvailable functions: {self._available()}",
            status_code=404,
        )

    async def _invoke(
        self,
        registration: RuntimeRegistration,
        request: Request,
        event: CloudEvent | None,
    ) -> Response:
        invoker = INVOKERS[registration.spec.kind]
        try:
            await self._context.run_init_once()
            return await invoker(registration, request, event)
        except Exception:
            logger.exception(
                "Function raised an unhandled exception",
                extra={"trigger": registration.name, "kind": registration.spec.kind.value},
            )
            if registration.spec.kind is TriggerKind.CALLABLE:
                return _error_response(HttpsError(FunctionsErrorCode.INTERNAL, "INTERNAL"))
            return PlainTextResponse("Internal Server Error", status_code=500)
