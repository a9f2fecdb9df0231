"""Naming rules shared by the source scanner and the runtime registry.

Everything that turns a declaration into a wire identifier lives here:

* the declaration table (which namespace methods declare triggers),
* the final-name rule for each trigger kind,
* the event-type lookup used by the manifest and by event matching,
* the Cloud Run identifier normalizer.

The scanner and the runtime must agree on all of these; both import this module
instead of keeping their own copies.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class TriggerKind(str, Enum):
    HTTPS = "https"
    CALLABLE = "callable"
    PUBSUB = "pubsub"
    FIRESTORE = "firestore"
    DATABASE = "database"
    STORAGE = "storage"
    ALERT = "alert"
    BLOCKING = "blocking"
    SCHEDULER = "scheduler"
    TASK_QUEUE = "task_queue"
    EVENTARC = "eventarc"
    REMOTE_CONFIG = "remote_config"
    TEST_LAB = "test_lab"


# Kinds that receive a CloudEvent; every other kind is invoked over plain HTTP.
CLOUD_EVENT_KINDS: frozenset[TriggerKind] = frozenset(
    {
        TriggerKind.PUBSUB,
        TriggerKind.FIRESTORE,
        TriggerKind.DATABASE,
        TriggerKind.STORAGE,
        TriggerKind.ALERT,
        TriggerKind.EVENTARC,
        TriggerKind.REMOTE_CONFIG,
        TriggerKind.TEST_LAB,
    }
)

# Kinds whose registrations are matched by path pattern rather than identifier.
WILDCARD_KINDS: frozenset[TriggerKind] = frozenset({TriggerKind.FIRESTORE, TriggerKind.DATABASE})


def signature_type(kind: TriggerKind) -> str:
    """Return the functions-framework signature type (``http`` or ``cloudevent``)."""

    return "cloudevent" if kind in CLOUD_EVENT_KINDS else "http"


@dataclass(frozen=True, slots=True)
class Declaration:
    """One entry of the declaration table.

    Attributes:
        kind: Trigger kind produced by the call.
        method: Wire method name (camelCase), used in final names and event types.
        subject_arg: Keyword carrying the identifying argument, or ``None`` when the
            subject is fixed.
        fixed_subject: Subject used when ``subject_arg`` is ``None``.
        external: Whether the trigger is callable by arbitrary HTTP clients.
    """

    kind: TriggerKind
    method: str
    subject_arg: str | None
    fixed_subject: str = ""
    external: bool = False


def _events(kind: TriggerKind, subject_arg: str, methods: dict[str, str]) -> dict[str, Declaration]:
    return {attr: Declaration(kind, method, subject_arg) for attr, method in methods.items()}


def _vendor_alerts(methods: dict[str, tuple[str, str]]) -> dict[str, Declaration]:
    return {
        attr: Declaration(TriggerKind.ALERT, method, None, fixed_subject=alert_type)
        for attr, (method, alert_type) in methods.items()
    }


DECLARATIONS: dict[tuple[str, ...], dict[str, Declaration]] = {
    ("https",): {
        "on_request": Declaration(TriggerKind.HTTPS, "onRequest", "name", external=True),
        "on_call": Declaration(TriggerKind.CALLABLE, "onCall", "name", external=True),
    },
    ("pubsub",): _events(
        TriggerKind.PUBSUB, "topic", {"on_message_published": "onMessagePublished"}
    ),
    ("firestore",): _events(
        TriggerKind.FIRESTORE,
        "document",
        {
            "on_document_created": "onDocumentCreated",
            "on_document_updated": "onDocumentUpdated",
            "on_document_deleted": "onDocumentDeleted",
            "on_document_written": "onDocumentWritten",
            "on_document_created_with_auth_context": "onDocumentCreatedWithAuthContext",
            "on_document_updated_with_auth_context": "onDocumentUpdatedWithAuthContext",
            "on_document_deleted_with_auth_context": "onDocumentDeletedWithAuthContext",
            "on_document_written_with_auth_context": "onDocumentWrittenWithAuthContext",
        },
    ),
    ("database",): _events(
        TriggerKind.DATABASE,
        "ref",
        {
            "on_value_created": "onValueCreated",
            "on_value_updated": "onValueUpdated",
            "on_value_deleted": "onValueDeleted",
            "on_value_written": "onValueWritten",
        },
    ),
    ("storage",): _events(
        TriggerKind.STORAGE,
        "bucket",
        {
            "on_object_archived": "onObjectArchived",
            "on_object_finalized": "onObjectFinalized",
            "on_object_deleted": "onObjectDeleted",
            "on_object_metadata_updated": "onObjectMetadataUpdated",
        },
    ),
    ("alerts",): _events(TriggerKind.ALERT, "alert_type", {"on_alert_published": "onAlertPublished"}),
    ("alerts", "crashlytics"): _vendor_alerts(
        {
            "on_new_fatal_issue_published": ("onNewFatalIssuePublished", "crashlytics.newFatalIssue"),
            "on_new_nonfatal_issue_published": (
                "onNewNonfatalIssuePublished",
                "crashlytics.newNonfatalIssue",
            ),
            "on_regression_alert_published": ("onRegressionAlertPublished", "crashlytics.regression"),
            "on_stability_digest_published": (
                "onStabilityDigestPublished",
                "crashlytics.stabilityDigest",
            ),
            "on_velocity_alert_published": ("onVelocityAlertPublished", "crashlytics.velocity"),
            "on_new_anr_issue_published": ("onNewAnrIssuePublished", "crashlytics.newAnrIssue"),
        }
    ),
    ("alerts", "billing"): _vendor_alerts(
        {
            "on_plan_update_published": ("onPlanUpdatePublished", "billing.planUpdate"),
            "on_plan_automated_update_published": (
                "onPlanAutomatedUpdatePublished",
                "billing.planAutomatedUpdate",
            ),
        }
    ),
    ("alerts", "app_distribution"): _vendor_alerts(
        {
            "on_new_tester_ios_device_published": (
                "onNewTesterIosDevicePublished",
                "appDistribution.newTesterIosDevice",
            ),
            "on_in_app_feedback_published": (
                "onInAppFeedbackPublished",
                "appDistribution.inAppFeedback",
            ),
        }
    ),
    ("alerts", "performance"): _vendor_alerts(
        {"on_threshold_alert_published": ("onThresholdAlertPublished", "performance.threshold")}
    ),
    ("identity",): {
        "before_user_created": Declaration(
            TriggerKind.BLOCKING, "beforeUserCreated", None, fixed_subject="beforeCreate"
        ),
        "before_user_signed_in": Declaration(
            TriggerKind.BLOCKING, "beforeUserSignedIn", None, fixed_subject="beforeSignIn"
        ),
        "before_email_sent": Declaration(
            TriggerKind.BLOCKING, "beforeEmailSent", None, fixed_subject="beforeSendEmail"
        ),
        "before_sms_sent": Declaration(
            TriggerKind.BLOCKING, "beforeSmsSent", None, fixed_subject="beforeSendSms"
        ),
    },
    ("scheduler",): _events(TriggerKind.SCHEDULER, "schedule", {"on_schedule": "onSchedule"}),
    ("tasks",): _events(TriggerKind.TASK_QUEUE, "name", {"on_task_dispatched": "onTaskDispatched"}),
    ("eventarc",): _events(
        TriggerKind.EVENTARC, "event_type", {"on_custom_event_published": "onCustomEventPublished"}
    ),
    ("remote_config",): {
        "on_config_updated": Declaration(TriggerKind.REMOTE_CONFIG, "onConfigUpdated", None),
    },
    ("test_lab",): {
        "on_test_matrix_completed": Declaration(
            TriggerKind.TEST_LAB, "onTestMatrixCompleted", None
        ),
    },
}


def find_declaration(chain: tuple[str, ...]) -> Declaration | None:
    """Look up an attribute chain such as ``("firebase", "alerts", "billing", "on_...")``.

    The receiver at the front of the chain is ignored; only the trailing namespace
    path and method name are significant.
    """

    if len(chain) < 2:
        return None
    method = chain[-1]
    # Longest namespace path first so ``alerts.billing`` wins over ``alerts``.
    for size in (2, 1):
        if len(chain) - 1 < size:
            continue
        methods = DECLARATIONS.get(chain[-1 - size : -1])
        if methods is not None and method in methods:
            return methods[method]
    return None


_PATH_DROP = re.compile(r"[{}\-]")
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_SCHEDULE_DROP = re.compile(r"[*/\-,]")


def _explicit(method: str, subject: str) -> str:
    return subject


def _path_name(method: str, subject: str) -> str:
    return f"{method}_{_PATH_DROP.sub('', subject.strip('/').replace('/', '_'))}"


FINAL_NAME_RULES: dict[TriggerKind, Callable[[str, str], str]] = {
    TriggerKind.HTTPS: _explicit,
    TriggerKind.CALLABLE: _explicit,
    TriggerKind.TASK_QUEUE: _explicit,
    TriggerKind.BLOCKING: _explicit,
    TriggerKind.PUBSUB: lambda method, topic: f"onMessagePublished_{topic.replace('-', '')}",
    TriggerKind.FIRESTORE: _path_name,
    TriggerKind.DATABASE: _path_name,
    TriggerKind.ALERT: lambda method, alert_type: (
        "onAlertPublished_" + alert_type.replace(".", "_").replace("-", "")
    ),
    TriggerKind.SCHEDULER: lambda method, schedule: (
        "onSchedule_" + _SCHEDULE_DROP.sub("", schedule.replace(" ", "_"))
    ),
    TriggerKind.STORAGE: lambda method, bucket: f"{method}_{_NON_ALNUM.sub('', bucket)}",
    TriggerKind.EVENTARC: lambda method, event_type: (
        "onCustomEventPublished_" + _NON_ALNUM.sub("", event_type)
    ),
    TriggerKind.REMOTE_CONFIG: lambda method, subject: "onConfigUpdated",
    TriggerKind.TEST_LAB: lambda method, subject: "onTestMatrixCompleted",
}


def final_name(kind: TriggerKind, method: str, subject: str) -> str:
    return FINAL_NAME_RULES[kind](method, subject)


ALERT_EVENT_TYPE = "google.firebase.firebasealerts.alerts.v1.published"

EVENT_TYPES: dict[tuple[TriggerKind, str], str] = {
    (TriggerKind.PUBSUB, "onMessagePublished"): "google.cloud.pubsub.topic.v1.messagePublished",
    (TriggerKind.FIRESTORE, "onDocumentCreated"): "google.cloud.firestore.document.v1.created",
    (TriggerKind.FIRESTORE, "onDocumentUpdated"): "google.cloud.firestore.document.v1.updated",
    (TriggerKind.FIRESTORE, "onDocumentDeleted"): "google.cloud.firestore.document.v1.deleted",
    (TriggerKind.FIRESTORE, "onDocumentWritten"): "google.cloud.firestore.document.v1.written",
    (
        TriggerKind.FIRESTORE,
        "onDocumentCreatedWithAuthContext",
    ): "google.cloud.firestore.document.v1.created.withAuthContext",
    (
        TriggerKind.FIRESTORE,
        "onDocumentUpdatedWithAuthContext",
    ): "google.cloud.firestore.document.v1.updated.withAuthContext",
    (
        TriggerKind.FIRESTORE,
        "onDocumentDeletedWithAuthContext",
    ): "google.cloud.firestore.document.v1.deleted.withAuthContext",
    (
        TriggerKind.FIRESTORE,
        "onDocumentWrittenWithAuthContext",
    ): "google.cloud.firestore.document.v1.written.withAuthContext",
    (TriggerKind.DATABASE, "onValueCreated"): "google.firebase.database.ref.v1.created",
    (TriggerKind.DATABASE, "onValueUpdated"): "google.firebase.database.ref.v1.updated",
    (TriggerKind.DATABASE, "onValueDeleted"): "google.firebase.database.ref.v1.deleted",
    (TriggerKind.DATABASE, "onValueWritten"): "google.firebase.database.ref.v1.written",
    (TriggerKind.STORAGE, "onObjectArchived"): "google.cloud.storage.object.v1.archived",
    (TriggerKind.STORAGE, "onObjectFinalized"): "google.cloud.storage.object.v1.finalized",
    (TriggerKind.STORAGE, "onObjectDeleted"): "google.cloud.storage.object.v1.deleted",
    (
        TriggerKind.STORAGE,
        "onObjectMetadataUpdated",
    ): "google.cloud.storage.object.v1.metadataUpdated",
    (TriggerKind.REMOTE_CONFIG, "onConfigUpdated"): "google.firebase.remoteconfig.remoteConfig.v1.updated",
    (TriggerKind.TEST_LAB, "onTestMatrixCompleted"): "google.firebase.testlab.testMatrix.v1.completed",
}

# Reverse index used when routing an inbound CloudEvent. Every alert method shares
# one event type, so alerts are resolved separately through ``alerttype``.
EVENT_TYPE_INDEX: dict[str, tuple[TriggerKind, str]] = {
    event_type: key for key, event_type in EVENT_TYPES.items()
}


def event_type_for(kind: TriggerKind, method: str, subject: str = "") -> str:
    """Return the CloudEvent type a trigger subscribes to.

    Raises:
        ValueError: if the kind/method pair has no entry. This means the tables in
            this module are incomplete and is never caused by user input.
    """

    if kind is TriggerKind.ALERT:
        return ALERT_EVENT_TYPE
    if kind is TriggerKind.EVENTARC:
        return subject
    try:
        return EVENT_TYPES[(kind, method)]
    except KeyError:
        raise ValueError(f"Unknown event type for {kind.value} trigger method {method!r}") from None


# ---------------------------------------------------------------------------
# Cloud Run identifiers
# ---------------------------------------------------------------------------

MAX_ID_LENGTH = 50
_TRUNCATED_LENGTH = 42
_HASH_LENGTH = 6

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"(?<=[A-Z])([A-Z][a-z])")
_INVALID_RUN = re.compile(r"[^a-z0-9]+")
_LEADING_NON_LETTER = re.compile(r"^[^a-z]+")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _djb2_base36(value: str) -> str:
    digest = 5381
    for char in value:
        digest = ((digest << 5) + digest + ord(char)) & 0x7FFFFFFF

    digits = ""
    while digest:
        digest, rem = divmod(digest, 36)
        digits = _BASE36[rem] + digits
    return (digits or "0").rjust(_HASH_LENGTH, "0")[:_HASH_LENGTH]


def to_cloud_run_id(name: str) -> str:
    """Convert a trigger name into a Cloud Run service identifier.

    ``onMessagePublished_orderscreated`` becomes ``on-message-published-orderscreated``.
    Identifiers of ``MAX_ID_LENGTH`` characters or more are truncated and suffixed with
    a hash of the *original* name, so two long names sharing a prefix stay distinct.

    Raises:
        ValueError: if ``name`` is blank.
    """

    if not name.strip():
        raise ValueError("Trigger name must not be blank")

    ident = _CAMEL_BOUNDARY.sub(r"-\1", name)
    ident = _ACRONYM_BOUNDARY.sub(r"-\1", ident)
    ident = _INVALID_RUN.sub("-", ident.lower())
    ident = _LEADING_NON_LETTER.sub("", ident).rstrip("-")

    if len(ident) >= MAX_ID_LENGTH:
        prefix = ident[:_TRUNCATED_LENGTH].rstrip("-")
        ident = f"{prefix}-{_djb2_base36(name)}"
    return ident
