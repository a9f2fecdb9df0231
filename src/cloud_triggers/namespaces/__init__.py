"""Decorator API for declaring triggers.

Example::

    firebase = Firebase()

    @firebase.pubsub.on_message_published(topic="orders-created")
    def handle_order(event):
        ...

    app = firebase.create_app()
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cloud_triggers.manifest import runtime_manifest
from cloud_triggers.namespaces.alerts import AlertsNamespace
from cloud_triggers.namespaces.events import (
    DatabaseNamespace,
    EventarcNamespace,
    FirestoreNamespace,
    PubSubNamespace,
    RemoteConfigNamespace,
    StorageNamespace,
    TestLabNamespace,
)
from cloud_triggers.namespaces.https import HttpsNamespace
from cloud_triggers.namespaces.identity import IdentityNamespace
from cloud_triggers.namespaces.scheduling import SchedulerNamespace, TasksNamespace
from cloud_triggers.registry import FunctionsContext, InitCallback

if TYPE_CHECKING:
    from fastapi import FastAPI

    from cloud_triggers.server.config import RuntimeSettings


class Firebase:
    """Entry point of the decorator API; owns one :class:`FunctionsContext`."""

    def __init__(self, context: FunctionsContext | None = None) -> None:
        self.context = context if context is not None else FunctionsContext()

        self.https = HttpsNamespace(self.context)
        self.pubsub = PubSubNamespace(self.context)
        self.firestore = FirestoreNamespace(self.context)
        self.database = DatabaseNamespace(self.context)
        self.storage = StorageNamespace(self.context)
        self.alerts = AlertsNamespace(self.context)
        self.identity = IdentityNamespace(self.context)
        self.scheduler = SchedulerNamespace(self.context)
        self.tasks = TasksNamespace(self.context)
        self.eventarc = EventarcNamespace(self.context)
        self.remote_config = RemoteConfigNamespace(self.context)
        self.test_lab = TestLabNamespace(self.context)

    def on_init(self, callback: InitCallback) -> InitCallback:
        """Register a callback that runs once, before the first invocation."""

        self.context.set_init(callback)
        return callback

    def manifest(self) -> dict[str, Any]:
        """Manifest of everything registered so far, as served by the control API."""

        return runtime_manifest(self.context)

    def create_app(self, settings: RuntimeSettings | None = None) -> FastAPI:
        from cloud_triggers.server.app import create_app

        return create_app(self.context, settings)


__all__ = ["Firebase"]
