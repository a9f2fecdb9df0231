"""Trigger declarations used by the scan-vs-run tests.

This module is both scanned as source and imported, so every declaration here
must be resolvable statically.
"""

from cloud_triggers import (
    CallableRequest,
    CloudEvent,
    Firebase,
    FunctionsErrorCode,
    HttpsError,
    define_boolean,
    define_int,
    define_secret,
)
from cloud_triggers.options import (
    AlertOptions,
    CallableOptions,
    Cpu,
    DocumentOptions,
    GlobalOptions,
    HttpsOptions,
    Invoker,
    MaxAttempts,
    MaxConcurrentDispatches,
    MaxInstances,
    Memory,
    MemoryOption,
    MinInstances,
    Region,
    RetryConfig,
    RetryCount,
    ScheduleOptions,
    SupportedRegion,
    TaskQueueOptions,
    TaskQueueRateLimits,
    TaskQueueRetryConfig,
    TimeoutSeconds,
    TimeZone,
)

MIN_MEM = define_int("MIN_MEM", default=512, label="Minimum memory")
API_KEY = define_secret("API_KEY")
IS_PROD = define_boolean("IS_PROD", default=False)

firebase = Firebase()

SHARED_HTTPS = HttpsOptions(
    memory=Memory.param(MIN_MEM),
    region=Region(SupportedRegion.US_EAST1),
    invoker=Invoker.public(),
    cors=True,
)

calls: list[str] = []


@firebase.https.on_request("hello", options=SHARED_HTTPS)
def hello(request):
    calls.append("hello")
    return "Hello"


@firebase.https.on_call(
    "greet",
    options=CallableOptions(
        enforce_app_check=True,
        timeout_seconds=TimeoutSeconds(30),
        secrets=[API_KEY],
    ),
)
def greet(request: CallableRequest):
    name = (request.data or {}).get("name")
    if not name:
        raise HttpsError(FunctionsErrorCode.INVALID_ARGUMENT, "name is required")
    return {"message": f"Hello {name}"}


@firebase.pubsub.on_message_published(
    topic="orders-created",
    options=GlobalOptions(memory=Memory(MemoryOption.MB_512), cpu=Cpu.gcf_gen1()),
)
def on_order(event: CloudEvent):
    calls.append("orders")


@firebase.firestore.on_document_created(
    "users/{userId}/posts/{postId}",
    options=DocumentOptions(
        min_instances=MinInstances.expression(IS_PROD.then_else(2, 0)),
        max_instances=MaxInstances.reset(),
    ),
)
def on_post(event: CloudEvent):
    calls.append(f"post:{event.params['userId']}/{event.params['postId']}")


@firebase.database.on_value_written("/messages/{messageId}")
def on_message(event: CloudEvent):
    calls.append(f"message:{event.params['messageId']}")


@firebase.storage.on_object_finalized("my-bucket")
def on_upload(event: CloudEvent):
    calls.append("upload")


@firebase.alerts.crashlytics.on_new_fatal_issue_published(
    options=AlertOptions(app_id="1:123:android:abc"),
)
def on_fatal(event: CloudEvent):
    calls.append("fatal")


@firebase.identity.before_user_created()
def before_create(event):
    return {"customClaims": {"beta": True}}


@firebase.scheduler.on_schedule(
    "every 5 minutes",
    options=ScheduleOptions(
        time_zone=TimeZone("America/New_York"),
        retry_config=RetryConfig(retry_count=RetryCount(3)),
    ),
)
def cleanup(event):
    calls.append("cleanup")


@firebase.tasks.on_task_dispatched(
    "resizeImages",
    options=TaskQueueOptions(
        retry_config=TaskQueueRetryConfig(max_attempts=MaxAttempts(5)),
        rate_limits=TaskQueueRateLimits(max_concurrent_dispatches=MaxConcurrentDispatches(6)),
    ),
)
def resize(request):
    calls.append("resize")


@firebase.eventarc.on_custom_event_published("com.example.order.shipped")
def on_shipped(event: CloudEvent):
    calls.append("shipped")


@firebase.remote_config.on_config_updated()
def on_config(event: CloudEvent):
    calls.append("config")


@firebase.test_lab.on_test_matrix_completed()
def on_matrix(event: CloudEvent):
    calls.append("matrix")
