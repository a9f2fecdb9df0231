"""Deployment manifest (``functions.yaml``) assembly.

The manifest is built as a plain mapping first and serialized last, so the same
document can be written as YAML for the deploy tooling or as JSON for inspection.
Every key and value below is part of the external wire contract.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

import yaml

from cloud_triggers.naming import TriggerKind, event_type_for
from cloud_triggers.options import (
    Conditional,
    Literal,
    OptionValue,
    ParamReference,
    Reset,
    render_option,
)
from cloud_triggers.params import ParamSpec
from cloud_triggers.spec import TriggerSpec

if TYPE_CHECKING:
    from cloud_triggers.registry import FunctionsContext

logger = logging.getLogger(__name__)

SPEC_VERSION = "v1alpha1"
DEFAULT_REGION = "us-central1"
PLATFORM = "gcfv2"


class ManifestError(RuntimeError):
    pass


_REQUIRED_APIS: list[tuple[TriggerKind | None, str, str]] = [
    (None, "cloudfunctions.googleapis.com", "Required for Cloud Functions"),
    (TriggerKind.BLOCKING, "identitytoolkit.googleapis.com", "Needed for auth blocking functions"),
    (TriggerKind.SCHEDULER, "cloudscheduler.googleapis.com", "Needed for scheduled functions"),
    (TriggerKind.TASK_QUEUE, "cloudtasks.googleapis.com", "Needed for task queue functions"),
    (TriggerKind.EVENTARC, "eventarcpublishing.googleapis.com", "Needed for custom event functions"),
]

# Scalar endpoint fields, copied in this order when present.
_SCALAR_FIELDS = (
    "availableMemoryMb",
    "cpu",
    "timeoutSeconds",
    "concurrency",
    "minInstances",
    "maxInstances",
    "serviceAccountEmail",
)


def _value(raw: Any) -> Any:
    if isinstance(raw, (Literal, ParamReference, Conditional, Reset)):
        return render_option(raw)
    return raw


def _rendered(options: Mapping[str, OptionValue], key: str) -> Any:
    value = options.get(key)
    return None if value is None else render_option(value)


def _nested(values: Mapping[str, Any] | None, keys: Iterable[str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in keys:
        if values is not None and key in values:
            rendered = _value(values[key])
            if rendered is not None:
                out[key] = rendered
    return out


def param_entry(param: ParamSpec) -> dict[str, Any]:
    entry: dict[str, Any] = {"name": param.name, "type": param.type.value}
    if param.format is not None:
        entry["format"] = param.format
    if param.default is not None:
        entry["default"] = param.default
    if param.label is not None:
        entry["label"] = param.label
    if param.description is not None:
        entry["description"] = param.description
    return entry


def required_apis(triggers: Iterable[TriggerSpec]) -> list[dict[str, str]]:
    kinds = {trigger.kind for trigger in triggers}
    return [
        {"api": api, "reason": reason}
        for kind, api, reason in _REQUIRED_APIS
        if kind is None or kind in kinds
    ]


# ---------------------------------------------------------------------------
# Trigger blocks, one builder per trigger kind
# ---------------------------------------------------------------------------


def _https_trigger(spec: TriggerSpec) -> dict[str, Any]:
    invoker = _rendered(spec.options, "invoker")
    block: dict[str, Any] = {"invoker": invoker if invoker is not None else []}
    cors = spec.settings.get("cors")
    if cors is not None:
        block["cors"] = cors
    return {"httpsTrigger": block}


def _callable_trigger(spec: TriggerSpec) -> dict[str, Any]:
    out: dict[str, Any] = {"callableTrigger": {}}
    if spec.settings.get("enforceAppCheck") is not None:
        out["enforceAppCheck"] = bool(spec.settings["enforceAppCheck"])
    return out


def _event_trigger(
    spec: TriggerSpec,
    filters: dict[str, Any],
    path_patterns: dict[str, Any] | None = None,
) -> dict[str, Any]:
    try:
        event_type = event_type_for(spec.kind, spec.method, spec.subject)
    except ValueError as e:
        raise ManifestError(str(e)) from e

    trigger: dict[str, Any] = {"eventType": event_type, "eventFilters": filters}
    if path_patterns:
        trigger["eventFilterPathPatterns"] = path_patterns
    channel = spec.settings.get("channel")
    if channel is not None:
        trigger["channel"] = channel
    trigger["retry"] = False
    return {"eventTrigger": trigger}


def _pubsub_trigger(spec: TriggerSpec) -> dict[str, Any]:
    return _event_trigger(spec, {"topic": spec.subject})


def _firestore_trigger(spec: TriggerSpec) -> dict[str, Any]:
    filters: dict[str, Any] = {
        "database": spec.settings.get("database") or "(default)",
        "namespace": spec.settings.get("namespace") or "(default)",
    }
    if "{" in spec.subject:
        return _event_trigger(spec, filters, {"document": spec.subject})
    filters["document"] = spec.subject
    return _event_trigger(spec, filters)


def _database_trigger(spec: TriggerSpec) -> dict[str, Any]:
    return _event_trigger(
        spec,
        {},
        {"ref": spec.subject, "instance": spec.settings.get("instance") or "*"},
    )


def _storage_trigger(spec: TriggerSpec) -> dict[str, Any]:
    return _event_trigger(spec, {"bucket": spec.subject})


def _alert_trigger(spec: TriggerSpec) -> dict[str, Any]:
    filters: dict[str, Any] = {"alerttype": spec.subject}
    if spec.settings.get("appId") is not None:
        filters["appid"] = spec.settings["appId"]
    return _event_trigger(spec, filters)


def _eventarc_trigger(spec: TriggerSpec) -> dict[str, Any]:
    return _event_trigger(spec, dict(spec.settings.get("filters") or {}))


def _fixed_event_trigger(spec: TriggerSpec) -> dict[str, Any]:
    return _event_trigger(spec, {})


def _blocking_trigger(spec: TriggerSpec) -> dict[str, Any]:
    options: dict[str, Any] = {}
    # Token forwarding only applies to account creation and sign-in.
    if spec.subject in {"beforeCreate", "beforeSignIn"}:
        for key in ("idToken", "accessToken", "refreshToken"):
            if spec.settings.get(key):
                options[key] = True
    return {
        "blockingTrigger": {
            "eventType": f"providers/cloud.auth/eventTypes/user.{spec.subject}",
            "options": options,
        }
    }


def _schedule_trigger(spec: TriggerSpec) -> dict[str, Any]:
    trigger: dict[str, Any] = {"schedule": spec.subject}
    time_zone = spec.settings.get("timeZone")
    if time_zone is not None:
        rendered = _value(time_zone)
        if rendered is not None:
            trigger["timeZone"] = rendered
    retry = _nested(
        spec.settings.get("retryConfig"),
        ("retryCount", "maxRetrySeconds", "minBackoffSeconds", "maxBackoffSeconds", "maxDoublings"),
    )
    if retry:
        trigger["retryConfig"] = retry
    return {"scheduleTrigger": trigger}


def _task_queue_trigger(spec: TriggerSpec) -> dict[str, Any]:
    return {
        "taskQueueTrigger": {
            "retryConfig": _nested(
                spec.settings.get("retryConfig"),
                (
                    "maxAttempts",
                    "maxRetrySeconds",
                    "minBackoffSeconds",
                    "maxBackoffSeconds",
                    "maxDoublings",
                ),
            ),
            "rateLimits": _nested(
                spec.settings.get("rateLimits"),
                ("maxConcurrentDispatches", "maxDispatchesPerSecond"),
            ),
        }
    }


TRIGGER_BUILDERS: dict[TriggerKind, Callable[[TriggerSpec], dict[str, Any]]] = {
    TriggerKind.HTTPS: _https_trigger,
    TriggerKind.CALLABLE: _callable_trigger,
    TriggerKind.PUBSUB: _pubsub_trigger,
    TriggerKind.FIRESTORE: _firestore_trigger,
    TriggerKind.DATABASE: _database_trigger,
    TriggerKind.STORAGE: _storage_trigger,
    TriggerKind.ALERT: _alert_trigger,
    TriggerKind.BLOCKING: _blocking_trigger,
    TriggerKind.SCHEDULER: _schedule_trigger,
    TriggerKind.TASK_QUEUE: _task_queue_trigger,
    TriggerKind.EVENTARC: _eventarc_trigger,
    TriggerKind.REMOTE_CONFIG: _fixed_event_trigger,
    TriggerKind.TEST_LAB: _fixed_event_trigger,
}


def endpoint_entry(spec: TriggerSpec) -> dict[str, Any]:
    """Build the endpoint mapping for one trigger."""

    identifier = spec.identifier
    entry: dict[str, Any] = {"entryPoint": identifier, "platform": PLATFORM}

    region = _rendered(spec.options, "region")
    entry["region"] = region if region is not None else [DEFAULT_REGION]

    for key in _SCALAR_FIELDS:
        value = _rendered(spec.options, key)
        if value is not None:
            entry[key] = value

    connector = _rendered(spec.options, "vpcConnector")
    egress = _rendered(spec.options, "vpcConnectorEgressSettings")
    if connector is not None or egress is not None:
        vpc: dict[str, Any] = {}
        if connector is not None:
            vpc["connector"] = connector
        if egress is not None:
            vpc["egressSettings"] = egress
        entry["vpc"] = vpc

    for key in ("ingressSettings", "omit", "labels"):
        value = _rendered(spec.options, key)
        if value is not None:
            entry[key] = value

    secrets = _rendered(spec.options, "secretEnvironmentVariables")
    if secrets:
        entry["secretEnvironmentVariables"] = [{"key": s, "secret": s} for s in secrets]

    builder = TRIGGER_BUILDERS.get(spec.kind)
    if builder is None:
        raise ManifestError(f"No manifest builder for trigger kind {spec.kind.value!r}")
    entry.update(builder(spec))
    return entry


def build_manifest(
    params: Mapping[str, ParamSpec] | Iterable[ParamSpec],
    triggers: Mapping[str, TriggerSpec] | Iterable[TriggerSpec],
) -> dict[str, Any]:
    """Assemble the manifest document.

    Endpoints are keyed by the normalized identifier of each trigger name, which is
    also the name the runtime registry stores and the dispatcher routes by.
    """

    param_list = list(params.values()) if isinstance(params, Mapping) else list(params)
    trigger_list = list(triggers.values()) if isinstance(triggers, Mapping) else list(triggers)

    manifest: dict[str, Any] = {"specVersion": SPEC_VERSION}
    if param_list:
        manifest["params"] = [param_entry(param) for param in param_list]
    manifest["requiredAPIs"] = required_apis(trigger_list)

    endpoints: dict[str, Any] = {}
    for spec in trigger_list:
        identifier = spec.identifier
        if identifier in endpoints:
            logger.warning(
                "Two triggers normalize to the same identifier; keeping the last",
                extra={"identifier": identifier, "trigger": spec.name},
            )
        endpoints[identifier] = endpoint_entry(spec)
    manifest["endpoints"] = endpoints

    logger.debug(
        "Manifest assembled",
        extra={"params": len(param_list), "endpoints": len(endpoints)},
    )
    return manifest


def runtime_manifest(context: FunctionsContext) -> dict[str, Any]:
    """Manifest of everything registered in a live context.

    Only parameters referenced by trigger options are listed; the scanner lists every
    declared one.
    """

    return build_manifest(
        [param.spec for param in context.params],
        [registration.spec for registration in context],
    )


def render_manifest(manifest: Mapping[str, Any], fmt: str = "yaml") -> str:
    if fmt == "json":
        return json.dumps(manifest, indent=2, ensure_ascii=False) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(dict(manifest), sort_keys=False, default_flow_style=False)
    raise ManifestError(f"Unsupported manifest format: {fmt!r}")
