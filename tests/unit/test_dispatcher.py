"""Unit tests for request routing and the function server endpoints."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from types import ModuleType

import pytest
import yaml
from fastapi.testclient import TestClient

from cloud_triggers import CloudEvent, Firebase
from cloud_triggers.server.config import RuntimeSettings
from cloud_triggers.server.dispatcher import Dispatcher, extract_function_name, match_path

SettingsFactory = Callable[..., RuntimeSettings]

EVENT_TIME = "2024-05-01T12:00:00Z"


def _binary_headers(event_type: str, source: str, **extensions: str) -> dict[str, str]:
    headers = {
        "ce-specversion": "1.0",
        "ce-id": "evt-1",
        "ce-source": source,
        "ce-type": event_type,
        "ce-time": EVENT_TIME,
        "content-type": "application/json",
    }
    headers.update({f"ce-{key}": value for key, value in extensions.items()})
    return headers


def _pubsub_headers(topic: str) -> dict[str, str]:
    return _binary_headers(
        "google.cloud.pubsub.topic.v1.messagePublished",
        f"//pubsub.googleapis.com/projects/demo/topics/{topic}",
    )


def _client(firebase: Firebase, settings: RuntimeSettings) -> TestClient:
    return TestClient(firebase.create_app(settings))


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def test_match_path_captures_wildcards() -> None:
    pattern = "users/{userId}/posts/{postId}"

    assert match_path(pattern, "users/u1/posts/p9") == {"userId": "u1", "postId": "p9"}
    assert match_path(pattern, "/users/u1/posts/p9/") == {"userId": "u1", "postId": "p9"}
    assert match_path(pattern, "users/u1") is None
    assert match_path(pattern, "users/u1/comments/c1") is None
    assert match_path("messages/{id}", "messages/m1/extra") is None
    assert match_path("config/global", "config/global") == {}


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        (
            "/functions/projects/demo/triggers/us-central1-on-message-published-orders-0",
            "on-message-published-orders",
        ),
        ("/functions/projects/demo/triggers/europe-west1-hello", "hello"),
        ("/demo/us-central1/hello", "hello"),
        ("/hello", "hello"),
        ("/a/b/c/d", "d"),
        ("/", ""),
    ],
)
def test_extract_function_name(path: str, expected: str) -> None:
    assert extract_function_name(path) == expected


def test_manifest_keys_route_back_to_their_registration(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    firebase = sample_module.firebase
    dispatcher = Dispatcher(firebase.context, runtime_settings())
    endpoints = firebase.manifest()["endpoints"]

    routed = 0
    for key, endpoint in endpoints.items():
        trigger = endpoint.get("eventTrigger")
        if trigger is None:
            continue
        filters = trigger["eventFilters"]
        attributes: dict[str, object] = {
            "specversion": "1.0",
            "id": "evt",
            "time": EVENT_TIME,
            "type": trigger["eventType"],
            "source": "//example.googleapis.com/projects/demo",
        }
        if "topic" in filters:
            attributes["source"] = f"//pubsub.googleapis.com/projects/demo/topics/{filters['topic']}"
        if "bucket" in filters:
            attributes["source"] = f"//storage.googleapis.com/projects/_/buckets/{filters['bucket']}"
        if "alerttype" in filters:
            attributes["alerttype"] = filters["alerttype"]
        patterns = trigger.get("eventFilterPathPatterns", {})
        if "document" in patterns:
            attributes["document"] = "users/u1/posts/p1"
        if "ref" in patterns:
            attributes["ref"] = "messages/m1"

        registration = dispatcher.match_event(CloudEvent.model_validate(attributes))

        assert registration is not None, key
        assert registration.name == key
        routed += 1

    assert routed == 8


# ---------------------------------------------------------------------------
# Runtime endpoints
# ---------------------------------------------------------------------------


def test_health_and_quit(sample_module: ModuleType, runtime_settings: SettingsFactory) -> None:
    client = _client(sample_module.firebase, runtime_settings())

    health = client.get("/__/health")
    assert health.status_code == 200
    assert health.text == "OK"

    assert client.get("/__/quitquitquit").text == "OK"
    assert client.post("/__/quitquitquit").status_code == 200
    rejected = client.put("/__/quitquitquit")
    assert rejected.status_code == 405
    assert rejected.headers["allow"] == "GET, POST"


def test_manifest_endpoint_requires_control_api(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    hidden = _client(sample_module.firebase, runtime_settings())
    assert hidden.get("/__/functions.yaml").status_code == 404

    client = _client(sample_module.firebase, runtime_settings(FUNCTIONS_CONTROL_API="true"))
    response = client.get("/__/functions.yaml")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/yaml")
    assert yaml.safe_load(response.text) == sample_module.firebase.manifest()

    rejected = client.post("/__/functions.yaml")
    assert rejected.status_code == 405
    assert rejected.headers["allow"] == "GET"


# ---------------------------------------------------------------------------
# Event envelope routing
# ---------------------------------------------------------------------------


def test_pubsub_event_is_routed_by_topic(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    client = _client(sample_module.firebase, runtime_settings())

    response = client.post(
        "/", headers=_pubsub_headers("orders-created"), content=b'{"message": {}}'
    )

    assert response.status_code == 200
    assert sample_module.calls == ["orders"]


def test_firestore_event_gets_wildcard_params(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    client = _client(sample_module.firebase, runtime_settings())

    binary = client.post(
        "/",
        headers=_binary_headers(
            "google.cloud.firestore.document.v1.created",
            "//firestore.googleapis.com/projects/demo/databases/(default)",
            document="users/u1/posts/p9",
        ),
        content=b"{}",
    )
    structured = client.post(
        "/",
        json={
            "specversion": "1.0",
            "id": "evt-2",
            "source": (
                "//firestore.googleapis.com/projects/demo/databases/(default)"
                "/documents/users/u2/posts/p3"
            ),
            "type": "google.cloud.firestore.document.v1.created",
            "time": EVENT_TIME,
            "data": {},
        },
    )

    assert binary.status_code == 200
    assert structured.status_code == 200
    assert sample_module.calls == ["post:u1/p9", "post:u2/p3"]


def test_database_alert_and_custom_events(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    client = _client(sample_module.firebase, runtime_settings())

    client.post(
        "/",
        headers=_binary_headers(
            "google.firebase.database.ref.v1.written",
            "//firebasedatabase.googleapis.com/projects/_/locations/us-central1/instances/demo",
            ref="/messages/m1",
        ),
        content=b"{}",
    )
    client.post(
        "/",
        headers=_binary_headers(
            "google.firebase.firebasealerts.alerts.v1.published",
            "//firebasealerts.googleapis.com/projects/123",
            alerttype="crashlytics.newFatalIssue",
        ),
        content=b"{}",
    )
    client.post(
        "/",
        headers=_binary_headers("com.example.order.shipped", "//example.com/orders"),
        content=b"{}",
    )
    client.post(
        "/",
        headers=_binary_headers(
            "google.cloud.storage.object.v1.finalized",
            "//storage.googleapis.com/projects/_/buckets/my-bucket",
        ),
        content=b"{}",
    )

    assert sample_module.calls == ["message:m1", "fatal", "shipped", "upload"]


def test_unmatched_event_falls_through_with_its_body(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    client = _client(sample_module.firebase, runtime_settings())

    unmatched = client.post("/", headers=_pubsub_headers("unknown-topic"), content=b"{}")
    assert unmatched.status_code == 404
    assert unmatched.text.startswith("Function not found: \nAvailable functions: hello, greet")

    # The emulator addresses the trigger by path; the body must still be readable.
    by_path = client.post(
        "/functions/projects/demo/triggers/us-central1-on-message-published-orderscreated-0",
        headers=_pubsub_headers("unknown-topic"),
        content=b'{"message": {}}',
    )
    assert by_path.status_code == 200
    assert sample_module.calls == ["orders"]


def test_event_function_without_envelope_is_a_bad_request(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    client = _client(sample_module.firebase, runtime_settings())

    response = client.post(
        "/on-message-published-orderscreated",
        headers={"content-type": "application/json"},
        content=b'{"hello": "world"}',
    )

    assert response.status_code == 400
    assert response.text == "Invalid CloudEvent"
    assert sample_module.calls == []


# ---------------------------------------------------------------------------
# Path routing and invokers
# ---------------------------------------------------------------------------


def test_https_function_by_path_and_header(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    client = _client(sample_module.firebase, runtime_settings())

    assert client.get("/hello").text == "Hello"
    assert client.get("/demo/us-central1/hello").text == "Hello"
    assert client.get("/", headers={"x-firebase-function": "hello"}).text == "Hello"

    with_origin = client.get("/hello", headers={"origin": "https://app.example"})
    assert with_origin.headers["access-control-allow-origin"] == "https://app.example"


def test_envelope_with_bad_base64_falls_through_to_path(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    client = _client(sample_module.firebase, runtime_settings())

    response = client.post(
        "/hello",
        json={
            "specversion": "1.0",
            "id": "evt-3",
            "source": "//pubsub.googleapis.com/projects/demo/topics/orders-created",
            "type": "google.cloud.pubsub.topic.v1.messagePublished",
            "time": EVENT_TIME,
            "data_base64": "abc",
        },
    )

    assert response.status_code == 200
    assert response.text == "Hello"
    assert sample_module.calls == ["hello"]


def test_event_functions_are_not_reachable_with_get(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    client = _client(sample_module.firebase, runtime_settings())

    response = client.get("/on-message-published-orderscreated")

    assert response.status_code == 404
    assert "Available functions:" in response.text


def test_callable_protocol(sample_module: ModuleType, runtime_settings: SettingsFactory) -> None:
    client = _client(sample_module.firebase, runtime_settings())

    ok = client.post("/greet", json={"data": {"name": "Ada"}})
    assert ok.status_code == 200
    assert ok.json() == {"result": {"message": "Hello Ada"}}

    invalid = client.post("/greet", json={"data": {}})
    assert invalid.status_code == 400
    assert invalid.json() == {
        "error": {"status": "INVALID_ARGUMENT", "message": "name is required"}
    }

    malformed = client.post("/greet", json={"payload": 1})
    assert malformed.status_code == 400
    assert malformed.json()["error"]["status"] == "INVALID_ARGUMENT"


def test_blocking_scheduled_and_task_functions(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    client = _client(sample_module.firebase, runtime_settings())

    blocking = client.post("/before-create", json={"data": {"jwt": "token"}})
    assert blocking.status_code == 200
    assert blocking.json() == {"customClaims": {"beta": True}}

    scheduled = client.post(
        "/on-schedule-every-5-minutes",
        headers={"x-cloudscheduler-jobname": "firebase-schedule-cleanup"},
    )
    assert scheduled.status_code == 200

    task = client.post(
        "/resize-images",
        json={"data": {"image": "a.png"}},
        headers={"X-CloudTasks-TaskRetryCount": "2"},
    )
    assert task.status_code == 204

    assert sample_module.calls == ["cleanup", "resize"]


def test_handler_exception_is_a_generic_500(
    runtime_settings: SettingsFactory, caplog: pytest.LogCaptureFixture
) -> None:
    firebase = Firebase()

    @firebase.https.on_request("boom")
    def boom(request):
        raise RuntimeError("secret detail")

    @firebase.https.on_call("boom_call")
    async def boom_call(request):
        raise KeyError("secret detail")

    client = _client(firebase, runtime_settings())

    with caplog.at_level(logging.ERROR, logger="cloud_triggers.server.dispatcher"):
        response = client.get("/boom")
        callable_response = client.post("/boom-call", json={"data": None})

    assert response.status_code == 500
    assert response.text == "Internal Server Error"
    assert callable_response.status_code == 500
    assert callable_response.json() == {"error": {"status": "INTERNAL", "message": "INTERNAL"}}
    assert "secret detail" not in response.text
    assert "unhandled exception" in caplog.text


def test_init_hook_runs_once_before_first_invocation(runtime_settings: SettingsFactory) -> None:
    firebase = Firebase()
    order: list[str] = []

    @firebase.on_init
    async def warm_up() -> None:
        order.append("init")

    @firebase.https.on_request("ping")
    def ping(request):
        order.append("ping")
        return {"ok": True}

    client = _client(firebase, runtime_settings())

    assert client.get("/ping").json() == {"ok": True}
    client.get("/ping")

    assert order == ["init", "ping", "ping"]


# ---------------------------------------------------------------------------
# Single-target mode
# ---------------------------------------------------------------------------


def test_function_target_serves_every_path(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    client = _client(sample_module.firebase, runtime_settings(FUNCTION_TARGET="hello"))

    assert client.get("/").text == "Hello"
    assert client.get("/any/path").text == "Hello"


def test_function_target_accepts_the_raw_trigger_name(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    settings = runtime_settings(
        FUNCTION_TARGET="onMessagePublished_orderscreated",
        FUNCTION_SIGNATURE_TYPE="cloudevent",
    )
    client = _client(sample_module.firebase, settings)

    response = client.post("/", headers=_pubsub_headers("orders-created"), content=b"{}")

    assert response.status_code == 200
    assert sample_module.calls == ["orders"]


def test_function_target_errors(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    missing = _client(sample_module.firebase, runtime_settings(FUNCTION_TARGET="nope"))
    response = missing.get("/")
    assert response.status_code == 404
    assert "Available functions: hello, greet" in response.text

    mismatch = _client(
        sample_module.firebase,
        runtime_settings(FUNCTION_TARGET="hello", FUNCTION_SIGNATURE_TYPE="cloudevent"),
    )
    assert mismatch.get("/").status_code == 500


def test_function_target_event_requires_post(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    client = _client(
        sample_module.firebase,
        runtime_settings(FUNCTION_TARGET="on-message-published-orderscreated"),
    )

    response = client.get("/")

    assert response.status_code == 405
    assert response.headers["allow"] == "POST"


# ---------------------------------------------------------------------------
# Emulator CORS
# ---------------------------------------------------------------------------


def test_debug_cors_answers_preflight(
    sample_module: ModuleType, runtime_settings: SettingsFactory
) -> None:
    settings = runtime_settings(FIREBASE_DEBUG_FEATURES=json.dumps({"enableCors": True}))
    client = _client(sample_module.firebase, settings)

    response = client.options(
        "/greet",
        headers={
            "origin": "http://localhost:5000",
            "access-control-request-method": "POST",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
