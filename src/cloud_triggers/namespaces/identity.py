"""Blocking functions for Firebase Authentication.

Handlers receive an :class:`~cloud_triggers.events.AuthBlockingEvent` and return a
dict (or ``None``) that is sent back as the JSON response.
"""

from __future__ import annotations

from collections.abc import Callable

from cloud_triggers.namespaces.base import H, Namespace
from cloud_triggers.options import BlockingOptions


class IdentityNamespace(Namespace):
    path = ("identity",)

    def before_user_created(self, *, options: BlockingOptions | None = None) -> Callable[[H], H]:
        return self._trigger("before_user_created", options=options)

    def before_user_signed_in(
        self, *, options: BlockingOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("before_user_signed_in", options=options)

    def before_email_sent(self, *, options: BlockingOptions | None = None) -> Callable[[H], H]:
        return self._trigger("before_email_sent", options=options)

    def before_sms_sent(self, *, options: BlockingOptions | None = None) -> Callable[[H], H]:
        return self._trigger("before_sms_sent", options=options)
