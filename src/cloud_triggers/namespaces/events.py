"""Namespaces for triggers fed by CloudEvents.

Handlers receive a :class:`~cloud_triggers.events.CloudEvent`. For document and
ref triggers, ``event.params`` holds the values captured by ``{wildcards}``.
"""

from __future__ import annotations

from collections.abc import Callable

from cloud_triggers.namespaces.base import H, Namespace
from cloud_triggers.options import (
    DocumentOptions,
    EventarcTriggerOptions,
    GlobalOptions,
    ReferenceOptions,
)


class PubSubNamespace(Namespace):
    path = ("pubsub",)

    def on_message_published(
        self, topic: str, *, options: GlobalOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_message_published", topic, options)


class FirestoreNamespace(Namespace):
    path = ("firestore",)

    def on_document_created(
        self, document: str, *, options: DocumentOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_document_created", document, options)

    def on_document_updated(
        self, document: str, *, options: DocumentOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_document_updated", document, options)

    def on_document_deleted(
        self, document: str, *, options: DocumentOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_document_deleted", document, options)

    def on_document_written(
        self, document: str, *, options: DocumentOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_document_written", document, options)

    def on_document_created_with_auth_context(
        self, document: str, *, options: DocumentOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_document_created_with_auth_context", document, options)

    def on_document_updated_with_auth_context(
        self, document: str, *, options: DocumentOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_document_updated_with_auth_context", document, options)

    def on_document_deleted_with_auth_context(
        self, document: str, *, options: DocumentOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_document_deleted_with_auth_context", document, options)

    def on_document_written_with_auth_context(
        self, document: str, *, options: DocumentOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_document_written_with_auth_context", document, options)


class DatabaseNamespace(Namespace):
    path = ("database",)

    def on_value_created(
        self, ref: str, *, options: ReferenceOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_value_created", ref, options)

    def on_value_updated(
        self, ref: str, *, options: ReferenceOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_value_updated", ref, options)

    def on_value_deleted(
        self, ref: str, *, options: ReferenceOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_value_deleted", ref, options)

    def on_value_written(
        self, ref: str, *, options: ReferenceOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_value_written", ref, options)


class StorageNamespace(Namespace):
    path = ("storage",)

    def on_object_archived(
        self, bucket: str, *, options: GlobalOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_object_archived", bucket, options)

    def on_object_finalized(
        self, bucket: str, *, options: GlobalOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_object_finalized", bucket, options)

    def on_object_deleted(
        self, bucket: str, *, options: GlobalOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_object_deleted", bucket, options)

    def on_object_metadata_updated(
        self, bucket: str, *, options: GlobalOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_object_metadata_updated", bucket, options)


class EventarcNamespace(Namespace):
    path = ("eventarc",)

    def on_custom_event_published(
        self, event_type: str, *, options: EventarcTriggerOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_custom_event_published", event_type, options)


class RemoteConfigNamespace(Namespace):
    path = ("remote_config",)

    def on_config_updated(self, *, options: GlobalOptions | None = None) -> Callable[[H], H]:
        return self._trigger("on_config_updated", options=options)


class TestLabNamespace(Namespace):
    path = ("test_lab",)

    def on_test_matrix_completed(
        self, *, options: GlobalOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_test_matrix_completed", options=options)
