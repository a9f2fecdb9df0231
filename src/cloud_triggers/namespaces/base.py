"""Shared base of the trigger namespaces: builds the spec and registers the handler."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, ClassVar, TypeVar

from cloud_triggers.naming import DECLARATIONS
from cloud_triggers.options import GlobalOptions, option_parts
from cloud_triggers.registry import FunctionsContext
from cloud_triggers.spec import build_trigger_spec

H = TypeVar("H", bound=Callable[..., Any])


class Namespace:
    """Base class for a group of trigger declarations (``firebase.pubsub`` ...).

    ``path`` is the key of this namespace in the declaration table; method names
    passed to :meth:`_trigger` must be keys of that table entry.
    """

    path: ClassVar[tuple[str, ...]] = ()

    def __init__(self, context: FunctionsContext) -> None:
        self._context = context

    def _trigger(
        self,
        method: str,
        subject: Any = None,
        options: GlobalOptions | None = None,
    ) -> Callable[[H], H]:
        declaration = DECLARATIONS[self.path][method]
        if declaration.subject_arg is not None:
            text = str(getattr(subject, "value", subject) or "")
            if not text.strip():
                raise ValueError(f"{method}() requires a non-empty {declaration.subject_arg}")

        parts = option_parts(options)
        spec = build_trigger_spec(declaration, subject, parts)

        def decorator(handler: H) -> H:
            self._context.register(
                spec.name,
                handler,
                external=declaration.external,
                spec=spec,
                path_pattern=spec.path_pattern,
                params=parts.params,
            )
            return handler

        return decorator
