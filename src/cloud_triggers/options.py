"""Deployment options and their deferred values.

An option field holds one of four values (:data:`OptionValue`):

* :class:`Literal` - a concrete value known when the source is written;
* :class:`ParamReference` - resolved at deploy time from a declared parameter;
* :class:`Conditional` - ``{{ params.FLAG ? a : b }}`` over a boolean parameter;
* :class:`Reset` - explicitly fall back to the platform default.

Users build them through typed constructors (``Memory(512)``, ``Memory.param(MIN_MEM)``,
``Memory.reset()``...) grouped in option containers (``HttpsOptions``...). The source
scanner resolves the very same constructors from syntax, so the tables at the bottom
of this module describe the option shape for both sides.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Self, Union

if TYPE_CHECKING:
    from cloud_triggers.params import Param


@dataclass(frozen=True, slots=True)
class Literal:
    value: Any


@dataclass(frozen=True, slots=True)
class ParamReference:
    name: str
    # Runtime only; the scanner never has the object.
    param: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Conditional:
    test: str
    if_true: Any
    if_false: Any
    param: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Reset:
    pass


OptionValue = Union[Literal, ParamReference, Conditional, Reset]


def _expression_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


def render_option(value: OptionValue) -> Any:
    """Render an option value for the manifest; ``None`` means the field is omitted."""

    if isinstance(value, Literal):
        return value.value
    if isinstance(value, ParamReference):
        return f"{{{{ params.{value.name} }}}}"
    if isinstance(value, Conditional):
        return (
            f"{{{{ params.{value.test} ? {_expression_literal(value.if_true)} "
            f": {_expression_literal(value.if_false)} }}}}"
        )
    return None


class MemoryOption(int, Enum):
    MB_128 = 128
    MB_256 = 256
    MB_512 = 512
    GB_1 = 1024
    GB_2 = 2048
    GB_4 = 4096
    GB_8 = 8192
    GB_16 = 16384
    GB_32 = 32768


class SupportedRegion(str, Enum):
    ASIA_EAST1 = "asia-east1"
    ASIA_EAST2 = "asia-east2"
    ASIA_NORTHEAST1 = "asia-northeast1"
    ASIA_NORTHEAST2 = "asia-northeast2"
    ASIA_NORTHEAST3 = "asia-northeast3"
    ASIA_SOUTH1 = "asia-south1"
    ASIA_SOUTHEAST1 = "asia-southeast1"
    ASIA_SOUTHEAST2 = "asia-southeast2"
    AUSTRALIA_SOUTHEAST1 = "australia-southeast1"
    EUROPE_CENTRAL2 = "europe-central2"
    EUROPE_NORTH1 = "europe-north1"
    EUROPE_WEST1 = "europe-west1"
    EUROPE_WEST2 = "europe-west2"
    EUROPE_WEST3 = "europe-west3"
    EUROPE_WEST4 = "europe-west4"
    EUROPE_WEST6 = "europe-west6"
    NORTHAMERICA_NORTHEAST1 = "northamerica-northeast1"
    SOUTHAMERICA_EAST1 = "southamerica-east1"
    US_CENTRAL1 = "us-central1"
    US_EAST1 = "us-east1"
    US_EAST4 = "us-east4"
    US_WEST1 = "us-west1"
    US_WEST2 = "us-west2"
    US_WEST3 = "us-west3"
    US_WEST4 = "us-west4"


class IngressSetting(str, Enum):
    ALLOW_ALL = "ALLOW_ALL"
    ALLOW_INTERNAL_ONLY = "ALLOW_INTERNAL_ONLY"
    ALLOW_INTERNAL_AND_GCLB = "ALLOW_INTERNAL_AND_GCLB"


class VpcEgressSetting(str, Enum):
    PRIVATE_RANGES_ONLY = "PRIVATE_RANGES_ONLY"
    ALL_TRAFFIC = "ALL_TRAFFIC"


class AlertType(str, Enum):
    CRASHLYTICS_NEW_FATAL_ISSUE = "crashlytics.newFatalIssue"
    CRASHLYTICS_NEW_NONFATAL_ISSUE = "crashlytics.newNonfatalIssue"
    CRASHLYTICS_REGRESSION = "crashlytics.regression"
    CRASHLYTICS_STABILITY_DIGEST = "crashlytics.stabilityDigest"
    CRASHLYTICS_VELOCITY = "crashlytics.velocity"
    CRASHLYTICS_NEW_ANR_ISSUE = "crashlytics.newAnrIssue"
    BILLING_PLAN_UPDATE = "billing.planUpdate"
    BILLING_PLAN_AUTOMATED_UPDATE = "billing.planAutomatedUpdate"
    APP_DISTRIBUTION_NEW_TESTER_IOS_DEVICE = "appDistribution.newTesterIosDevice"
    APP_DISTRIBUTION_IN_APP_FEEDBACK = "appDistribution.inAppFeedback"
    PERFORMANCE_THRESHOLD = "performance.threshold"


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class Option:
    """Base class for a single option field."""

    __slots__ = ("value",)

    # Zero-argument constructors that produce literals, e.g. ``Invoker.public()``.
    CONSTANTS: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, value: Any) -> None:
        self.value: OptionValue = Literal(self._coerce(value))

    @classmethod
    def _wrap(cls, value: OptionValue) -> Self:
        obj = cls.__new__(cls)
        obj.value = value
        return obj

    @classmethod
    def param(cls, param: Param) -> Self:
        return cls._wrap(ParamReference(param.name, param=param))

    @classmethod
    def expression(cls, expression: Conditional) -> Self:
        return cls._wrap(expression)

    @classmethod
    def reset(cls) -> Self:
        return cls._wrap(Reset())

    @staticmethod
    def _coerce(value: Any) -> Any:
        return _plain(value)

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.value == other.value  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, repr(self.value)))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


class Memory(Option):
    """Memory in MB; accepts a :class:`MemoryOption` or a plain integer."""

    __slots__ = ()

    @staticmethod
    def _coerce(value: Any) -> int:
        return int(_plain(value))


class Cpu(Option):
    __slots__ = ()
    CONSTANTS = frozenset({"gcf_gen1"})

    @classmethod
    def gcf_gen1(cls) -> Cpu:
        """Use the CPU allotment of first generation functions."""

        return cls._wrap(Literal("gcf_gen1"))


class Region(Option):
    """One region or a list of regions; always rendered as a list."""

    __slots__ = ()

    @staticmethod
    def _coerce(value: Any) -> list[str]:
        if isinstance(value, (list, tuple)):
            return [str(_plain(item)) for item in value]
        return [str(_plain(value))]


class Invoker(Option):
    __slots__ = ()
    CONSTANTS = frozenset({"public", "private"})

    @staticmethod
    def _coerce(value: Any) -> list[str]:
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value]

    @classmethod
    def public(cls) -> Invoker:
        return cls._wrap(Literal(["public"]))

    @classmethod
    def private(cls) -> Invoker:
        return cls._wrap(Literal(["private"]))


class Ingress(Option):
    __slots__ = ()


class VpcConnectorEgressSettings(Option):
    __slots__ = ()


class Concurrency(Option):
    __slots__ = ()


class MinInstances(Option):
    __slots__ = ()


class MaxInstances(Option):
    __slots__ = ()


class TimeoutSeconds(Option):
    __slots__ = ()


class ServiceAccount(Option):
    __slots__ = ()


class VpcConnector(Option):
    __slots__ = ()


class Omit(Option):
    __slots__ = ()


class PreserveExternalChanges(Option):
    __slots__ = ()


class TimeZone(Option):
    __slots__ = ()


class RetryCount(Option):
    __slots__ = ()


class MaxRetrySeconds(Option):
    __slots__ = ()


class MinBackoffSeconds(Option):
    __slots__ = ()


class MaxBackoffSeconds(Option):
    __slots__ = ()


class MaxDoublings(Option):
    __slots__ = ()


class MaxAttempts(Option):
    __slots__ = ()


class MaxConcurrentDispatches(Option):
    __slots__ = ()


class MaxDispatchesPerSecond(Option):
    __slots__ = ()


# ---------------------------------------------------------------------------
# Option containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class GlobalOptions:
    """Options accepted by every trigger."""

    concurrency: Concurrency | None = None
    cpu: Cpu | None = None
    ingress_settings: Ingress | None = None
    labels: dict[str, str] | None = None
    min_instances: MinInstances | None = None
    max_instances: MaxInstances | None = None
    memory: Memory | None = None
    omit: Omit | None = None
    preserve_external_changes: PreserveExternalChanges | None = None
    region: Region | None = None
    secrets: list[Param] | None = None
    service_account: ServiceAccount | None = None
    timeout_seconds: TimeoutSeconds | None = None
    vpc_connector: VpcConnector | None = None
    vpc_connector_egress_settings: VpcConnectorEgressSettings | None = None


@dataclass(frozen=True, kw_only=True)
class HttpsOptions(GlobalOptions):
    invoker: Invoker | None = None
    # ``True``, one origin, or a list of allowed origins.
    cors: bool | str | list[str] | None = None


@dataclass(frozen=True, kw_only=True)
class CallableOptions(HttpsOptions):
    enforce_app_check: bool | None = None
    consume_app_check_token: bool | None = None
    heart_beat_interval_seconds: int | None = None


@dataclass(frozen=True, kw_only=True)
class DocumentOptions(GlobalOptions):
    database: str | None = None
    namespace: str | None = None


@dataclass(frozen=True, kw_only=True)
class ReferenceOptions(GlobalOptions):
    instance: str | None = None


@dataclass(frozen=True, kw_only=True)
class AlertOptions(GlobalOptions):
    app_id: str | None = None


@dataclass(frozen=True, kw_only=True)
class BlockingOptions(GlobalOptions):
    id_token: bool | None = None
    access_token: bool | None = None
    refresh_token: bool | None = None


@dataclass(frozen=True, kw_only=True)
class RetryConfig:
    retry_count: RetryCount | None = None
    max_retry_seconds: MaxRetrySeconds | None = None
    min_backoff_seconds: MinBackoffSeconds | None = None
    max_backoff_seconds: MaxBackoffSeconds | None = None
    max_doublings: MaxDoublings | None = None


@dataclass(frozen=True, kw_only=True)
class ScheduleOptions(GlobalOptions):
    time_zone: TimeZone | None = None
    retry_config: RetryConfig | None = None


@dataclass(frozen=True, kw_only=True)
class TaskQueueRetryConfig:
    max_attempts: MaxAttempts | None = None
    max_retry_seconds: MaxRetrySeconds | None = None
    max_backoff_seconds: MaxBackoffSeconds | None = None
    max_doublings: MaxDoublings | None = None
    min_backoff_seconds: MinBackoffSeconds | None = None


@dataclass(frozen=True, kw_only=True)
class TaskQueueRateLimits:
    max_concurrent_dispatches: MaxConcurrentDispatches | None = None
    max_dispatches_per_second: MaxDispatchesPerSecond | None = None


@dataclass(frozen=True, kw_only=True)
class TaskQueueOptions(GlobalOptions):
    retry_config: TaskQueueRetryConfig | None = None
    rate_limits: TaskQueueRateLimits | None = None


@dataclass(frozen=True, kw_only=True)
class EventarcTriggerOptions(GlobalOptions):
    channel: str | None = None
    filters: dict[str, str] | None = None


# ---------------------------------------------------------------------------
# Option shape tables (shared with the source scanner)
# ---------------------------------------------------------------------------

# Keyword -> manifest key for the generic endpoint fields.
ENDPOINT_OPTION_KEYS: dict[str, str] = {
    "region": "region",
    "memory": "availableMemoryMb",
    "cpu": "cpu",
    "timeout_seconds": "timeoutSeconds",
    "concurrency": "concurrency",
    "min_instances": "minInstances",
    "max_instances": "maxInstances",
    "service_account": "serviceAccountEmail",
    "vpc_connector": "vpcConnector",
    "vpc_connector_egress_settings": "vpcConnectorEgressSettings",
    "ingress_settings": "ingressSettings",
    "omit": "omit",
    "labels": "labels",
    "secrets": "secretEnvironmentVariables",
    "invoker": "invoker",
}

# Keyword -> key of trigger-specific settings.
TRIGGER_SETTING_KEYS: dict[str, str] = {
    "cors": "cors",
    "enforce_app_check": "enforceAppCheck",
    "database": "database",
    "namespace": "namespace",
    "instance": "instance",
    "app_id": "appId",
    "channel": "channel",
    "filters": "filters",
    "time_zone": "timeZone",
    "id_token": "idToken",
    "access_token": "accessToken",
    "refresh_token": "refreshToken",
    "retry_config": "retryConfig",
    "rate_limits": "rateLimits",
}

# Fields of RetryConfig / TaskQueueRetryConfig / TaskQueueRateLimits.
NESTED_OPTION_KEYS: dict[str, str] = {
    "retry_count": "retryCount",
    "max_attempts": "maxAttempts",
    "max_retry_seconds": "maxRetrySeconds",
    "min_backoff_seconds": "minBackoffSeconds",
    "max_backoff_seconds": "maxBackoffSeconds",
    "max_doublings": "maxDoublings",
    "max_concurrent_dispatches": "maxConcurrentDispatches",
    "max_dispatches_per_second": "maxDispatchesPerSecond",
}

# Affect runtime behavior or deploy tooling only; never written to the manifest.
RUNTIME_ONLY_OPTIONS: frozenset[str] = frozenset(
    {"consume_app_check_token", "heart_beat_interval_seconds", "preserve_external_changes"}
)

OPTION_TYPES: dict[str, type[Option]] = {
    cls.__name__: cls for cls in Option.__subclasses__()
}

ENUM_TYPES: dict[str, type[Enum]] = {
    cls.__name__: cls
    for cls in (MemoryOption, SupportedRegion, IngressSetting, VpcEgressSetting, AlertType)
}

NESTED_CONFIG_TYPES: frozenset[str] = frozenset(
    {"RetryConfig", "TaskQueueRetryConfig", "TaskQueueRateLimits"}
)

# Field -> option class, used to wrap plain values such as ``memory=512``.
FIELD_OPTION_TYPES: dict[str, type[Option]] = {
    "concurrency": Concurrency,
    "cpu": Cpu,
    "ingress_settings": Ingress,
    "min_instances": MinInstances,
    "max_instances": MaxInstances,
    "memory": Memory,
    "omit": Omit,
    "region": Region,
    "service_account": ServiceAccount,
    "timeout_seconds": TimeoutSeconds,
    "vpc_connector": VpcConnector,
    "vpc_connector_egress_settings": VpcConnectorEgressSettings,
    "invoker": Invoker,
    "time_zone": TimeZone,
    "retry_count": RetryCount,
    "max_attempts": MaxAttempts,
    "max_retry_seconds": MaxRetrySeconds,
    "min_backoff_seconds": MinBackoffSeconds,
    "max_backoff_seconds": MaxBackoffSeconds,
    "max_doublings": MaxDoublings,
    "max_concurrent_dispatches": MaxConcurrentDispatches,
    "max_dispatches_per_second": MaxDispatchesPerSecond,
}


def as_option(field_name: str, value: Any) -> Option:
    """Return ``value`` as the option class of ``field_name``.

    Raises:
        TypeError: if the field takes no option class or ``value`` does not fit it.
    """

    if isinstance(value, Option):
        return value
    option_type = FIELD_OPTION_TYPES.get(field_name)
    if option_type is None:
        raise TypeError(f"{field_name} does not accept {value!r}")
    try:
        return option_type(value)
    except (TypeError, ValueError) as e:
        raise TypeError(
            f"{field_name}={value!r} is not a valid {option_type.__name__}"
        ) from e


@dataclass(frozen=True, slots=True)
class OptionParts:
    """An option container split the way the manifest needs it."""

    endpoint: dict[str, OptionValue] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)
    params: tuple[Any, ...] = ()


def _nested_values(config: Any, params: list[Any]) -> dict[str, OptionValue]:
    out: dict[str, OptionValue] = {}
    for f in fields(config):
        value = getattr(config, f.name)
        if value is not None:
            option = as_option(f.name, value)
            out[NESTED_OPTION_KEYS[f.name]] = option.value
            params.extend(_params_of(option.value))
    return out


def _params_of(value: OptionValue) -> list[Any]:
    param = getattr(value, "param", None)
    return [param] if param is not None else []


def option_parts(options: GlobalOptions | None) -> OptionParts:
    """Split a runtime option container into endpoint options and trigger settings."""

    if options is None:
        return OptionParts()

    endpoint: dict[str, OptionValue] = {}
    settings: dict[str, Any] = {}
    params: list[Any] = []

    for f in fields(options):
        value = getattr(options, f.name)
        if value is None or f.name in RUNTIME_ONLY_OPTIONS:
            continue

        if f.name == "labels":
            endpoint["labels"] = Literal(dict(value))
        elif f.name == "secrets":
            endpoint["secretEnvironmentVariables"] = Literal([secret.name for secret in value])
            params.extend(value)
        elif f.name in ENDPOINT_OPTION_KEYS:
            option = as_option(f.name, value)
            endpoint[ENDPOINT_OPTION_KEYS[f.name]] = option.value
            params.extend(_params_of(option.value))
        elif f.name in TRIGGER_SETTING_KEYS:
            key = TRIGGER_SETTING_KEYS[f.name]
            if isinstance(value, Option) or f.name in FIELD_OPTION_TYPES:
                option = as_option(f.name, value)
                settings[key] = option.value
                params.extend(_params_of(option.value))
            elif is_dataclass(value):
                settings[key] = _nested_values(value, params)
            elif isinstance(value, dict):
                settings[key] = dict(value)
            elif isinstance(value, (list, tuple)):
                settings[key] = list(value)
            else:
                settings[key] = value

    return OptionParts(endpoint=endpoint, settings=settings, params=tuple(params))
