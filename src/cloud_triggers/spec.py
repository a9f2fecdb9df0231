"""Trigger specifications.

A :class:`TriggerSpec` is the shared description of one declared trigger. The
source scanner builds it from syntax, the runtime namespaces build it from live
objects; both go through :func:`build_trigger_spec` so the derived fields (final
name, stored subject) cannot drift.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from cloud_triggers.naming import WILDCARD_KINDS, Declaration, TriggerKind, final_name, to_cloud_run_id
from cloud_triggers.options import OptionParts, OptionValue


@dataclass(frozen=True, slots=True)
class TriggerSpec:
    """One trigger, ready to be written to the manifest.

    Attributes:
        kind: Tag selecting the naming, manifest and routing behavior.
        method: Wire method name, e.g. ``onDocumentCreated``.
        name: Final trigger name, e.g. ``onDocumentCreated_users_userId``.
        subject: Identifying argument (topic, document path, schedule...).
        options: Generic endpoint options keyed by manifest key.
        settings: Trigger-specific settings (database, time zone, retry config...).
    """

    kind: TriggerKind
    method: str
    name: str
    subject: str = ""
    options: Mapping[str, OptionValue] = field(default_factory=dict)
    settings: Mapping[str, Any] = field(default_factory=dict)

    @property
    def identifier(self) -> str:
        """Normalized identifier; the manifest key and the runtime registration name."""

        return to_cloud_run_id(self.name)

    @property
    def path_pattern(self) -> str | None:
        if self.kind in WILDCARD_KINDS:
            return self.subject
        return None


def build_trigger_spec(declaration: Declaration, subject: Any, parts: OptionParts) -> TriggerSpec:
    """Build a spec from a declaration, its identifying argument and resolved options."""

    if declaration.subject_arg is None:
        text = declaration.fixed_subject
    else:
        text = str(getattr(subject, "value", subject))
    if declaration.kind in WILDCARD_KINDS:
        text = text.strip("/")

    return TriggerSpec(
        kind=declaration.kind,
        method=declaration.method,
        name=final_name(declaration.kind, declaration.method, text),
        subject=text,
        options=dict(parts.endpoint),
        settings=dict(parts.settings),
    )
