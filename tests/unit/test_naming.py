"""Unit tests for trigger names and Cloud Run identifiers."""

from __future__ import annotations

import pytest

from cloud_triggers.naming import (
    ALERT_EVENT_TYPE,
    MAX_ID_LENGTH,
    TriggerKind,
    event_type_for,
    final_name,
    find_declaration,
    signature_type,
    to_cloud_run_id,
)

NAMES = [
    "hello",
    "onMessagePublished_orderscreated",
    "onDocumentCreated_users_userId_posts_postId",
    "onValueWritten_messages_messageId",
    "onAlertPublished_crashlytics_newFatalIssue",
    "onSchedule_every_5_minutes",
    "beforeCreate",
    "HTTPServerHandler",
    "123_starts_with_digits",
    "___leading_underscores__",
    "onDocumentCreated_" + "veryLongCollectionName_" * 5,
]


def test_orders_created_example() -> None:
    name = final_name(TriggerKind.PUBSUB, "onMessagePublished", "orders-created")

    assert name == "onMessagePublished_orderscreated"
    assert to_cloud_run_id(name) == "on-message-published-orderscreated"


@pytest.mark.parametrize("name", NAMES)
def test_identifier_is_idempotent(name: str) -> None:
    once = to_cloud_run_id(name)
    assert to_cloud_run_id(once) == once


@pytest.mark.parametrize("name", NAMES)
def test_identifier_shape(name: str) -> None:
    ident = to_cloud_run_id(name)

    assert 0 < len(ident) < MAX_ID_LENGTH
    assert ident[0].isalpha()
    assert not ident.endswith("-")
    assert ident == ident.lower()


def test_acronyms_are_split() -> None:
    assert to_cloud_run_id("HTTPServerHandler") == "http-server-handler"


def test_long_names_sharing_a_prefix_stay_distinct() -> None:
    prefix = "onDocumentCreated_" + "collection_" * 6
    a = to_cloud_run_id(prefix + "alpha")
    b = to_cloud_run_id(prefix + "beta")

    assert a != b
    assert a[:-7] == b[:-7]


def test_blank_name_is_rejected() -> None:
    with pytest.raises(ValueError):
        to_cloud_run_id("   ")


def test_final_name_rules_per_kind() -> None:
    assert final_name(TriggerKind.HTTPS, "onRequest", "hello") == "hello"
    assert (
        final_name(TriggerKind.FIRESTORE, "onDocumentCreated", "users/{userId}")
        == "onDocumentCreated_users_userId"
    )
    assert (
        final_name(TriggerKind.DATABASE, "onValueWritten", "messages/{message-id}")
        == "onValueWritten_messages_messageid"
    )
    assert (
        final_name(TriggerKind.ALERT, "onAlertPublished", "billing.planUpdate")
        == "onAlertPublished_billing_planUpdate"
    )
    assert (
        final_name(TriggerKind.SCHEDULER, "onSchedule", "*/5 * * * *")
        == "onSchedule_5____"
    )
    assert final_name(TriggerKind.STORAGE, "onObjectFinalized", "my-bucket.appspot.com") == (
        "onObjectFinalized_mybucketappspotcom"
    )
    assert final_name(TriggerKind.REMOTE_CONFIG, "onConfigUpdated", "") == "onConfigUpdated"


def test_find_declaration_ignores_the_receiver() -> None:
    declaration = find_declaration(("app", "pubsub", "on_message_published"))
    assert declaration is not None
    assert declaration.kind is TriggerKind.PUBSUB
    assert declaration.subject_arg == "topic"

    vendor = find_declaration(("fb", "alerts", "billing", "on_plan_update_published"))
    assert vendor is not None
    assert vendor.fixed_subject == "billing.planUpdate"

    assert find_declaration(("fb", "pubsub", "publish")) is None
    assert find_declaration(("on_request",)) is None


def test_event_types() -> None:
    assert (
        event_type_for(TriggerKind.FIRESTORE, "onDocumentWrittenWithAuthContext")
        == "google.cloud.firestore.document.v1.written.withAuthContext"
    )
    assert event_type_for(TriggerKind.ALERT, "onNewFatalIssuePublished") == ALERT_EVENT_TYPE
    assert event_type_for(TriggerKind.EVENTARC, "onCustomEventPublished", "a.b") == "a.b"
    with pytest.raises(ValueError):
        event_type_for(TriggerKind.PUBSUB, "onSomethingElse")


def test_signature_types() -> None:
    assert signature_type(TriggerKind.PUBSUB) == "cloudevent"
    assert signature_type(TriggerKind.HTTPS) == "http"
    assert signature_type(TriggerKind.TASK_QUEUE) == "http"
