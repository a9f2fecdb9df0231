"""HTTP functions: plain requests and the callable protocol."""

from __future__ import annotations

from collections.abc import Callable

from cloud_triggers.namespaces.base import H, Namespace
from cloud_triggers.options import CallableOptions, HttpsOptions


class HttpsNamespace(Namespace):
    path = ("https",)

    def on_request(self, name: str, *, options: HttpsOptions | None = None) -> Callable[[H], H]:
        """Declare a plain HTTP function.

        The handler receives the :class:`starlette.requests.Request` and may return a
        response, a string, a JSON-serializable value or ``None``.
        """

        return self._trigger("on_request", name, options)

    def on_call(self, name: str, *, options: CallableOptions | None = None) -> Callable[[H], H]:
        """Declare a callable function.

        The handler receives a :class:`~cloud_triggers.events.CallableRequest`; its
        return value is sent back as ``{"result": ...}``. Raise
        :class:`~cloud_triggers.events.HttpsError` to return a structured error.
        """

        return self._trigger("on_call", name, options)
