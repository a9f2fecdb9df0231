"""Runtime registry of declared triggers.

A :class:`FunctionsContext` is created once per process (usually by
:class:`cloud_triggers.namespaces.Firebase`) and filled while the user's module is
imported. It is complete before the app serves traffic and is only read afterwards.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import Any

from cloud_triggers.naming import to_cloud_run_id
from cloud_triggers.params import Param
from cloud_triggers.spec import TriggerSpec

logger = logging.getLogger(__name__)

InitCallback = Callable[[], Awaitable[None] | None]


class DuplicateRegistrationError(RuntimeError):
    """Two triggers normalize to the same identifier."""


@dataclass(frozen=True, slots=True)
class RuntimeRegistration:
    name: str
    handler: Callable[..., Any]
    external: bool
    spec: TriggerSpec
    path_pattern: str | None = None


class FunctionsContext:
    """Owns the registration table and the one-shot init state."""

    def __init__(self) -> None:
        self._registrations: dict[str, RuntimeRegistration] = {}
        self._params: dict[str, Param] = {}
        self._init_callback: InitCallback | None = None
        self._init_done = False
        self._init_lock = asyncio.Lock()

    def register(
        self,
        raw_name: str,
        handler: Callable[..., Any],
        *,
        external: bool,
        spec: TriggerSpec,
        path_pattern: str | None = None,
        params: tuple[Param, ...] = (),
    ) -> RuntimeRegistration:
        name = to_cloud_run_id(raw_name)
        existing = self._registrations.get(name)
        if existing is not None:
            raise DuplicateRegistrationError(
                f"Trigger {raw_name!r} normalizes to {name!r}, which is already registered "
                f"by {existing.spec.name!r}"
            )

        registration = RuntimeRegistration(
            name=name,
            handler=handler,
            external=external,
            spec=spec,
            path_pattern=path_pattern,
        )
        self._registrations[name] = registration
        for param in params:
            self._params.setdefault(param.name, param)

        logger.debug(
            "Registered trigger",
            extra={"trigger": name, "kind": spec.kind.value, "external": external},
        )
        return registration

    @property
    def registrations(self) -> list[RuntimeRegistration]:
        """Registrations in declaration order."""

        return list(self._registrations.values())

    @property
    def params(self) -> list[Param]:
        """Parameters referenced by registered trigger options."""

        return list(self._params.values())

    @property
    def names(self) -> list[str]:
        return list(self._registrations)

    def __iter__(self) -> Iterator[RuntimeRegistration]:
        return iter(self.registrations)

    def __len__(self) -> int:
        return len(self._registrations)

    def get(self, name: str) -> RuntimeRegistration | None:
        """Find a registration by normalized identifier or raw trigger name."""

        if not name:
            return None
        registration = self._registrations.get(name)
        if registration is not None:
            return registration
        if not name.strip():
            return None
        return self._registrations.get(to_cloud_run_id(name))

    # -- init hook -----------------------------------------------------------

    def set_init(self, callback: InitCallback) -> None:
        if self._init_callback is not None:
            logger.warning("on_init called more than once; the last callback wins")
        self._init_callback = callback

    @property
    def init_done(self) -> bool:
        return self._init_done

    async def run_init_once(self) -> None:
        """Run the init callback before the first invocation, exactly once.

        A callback that raises leaves the hook pending, so the next request retries it.
        """

        if self._init_done:
            return
        async with self._init_lock:
            if self._init_done:
                return
            callback = self._init_callback
            if callback is not None:
                logger.info("Running init callback")
                result = callback()
                if inspect.isawaitable(result):
                    await result
            self._init_done = True
