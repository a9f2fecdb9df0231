"""Deploy-time parameters.

Parameters are declared at module level with the ``define_*`` helpers::

    MIN_MEM = define_int("MIN_MEM", default=512, label="Minimum memory")

The source scanner reads those declarations to fill the ``params`` section of the
manifest and to map the program variable (``MIN_MEM`` above) to the declared name.
At runtime :meth:`Param.value` reads the environment variable of the same name.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from cloud_triggers.options import Conditional

logger = logging.getLogger(__name__)

CONTROL_API_ENV = "FUNCTIONS_CONTROL_API"


class ParamType(str, Enum):
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOLEAN = "boolean"
    LIST = "list"
    SECRET = "secret"


@dataclass(frozen=True, slots=True)
class ParamSpec:
    """Manifest description of a declared parameter."""

    name: str
    type: ParamType
    default: Any = None
    label: str | None = None
    description: str | None = None
    format: str | None = None


class ParamValueError(RuntimeError):
    pass


def _discovery_mode() -> bool:
    return os.environ.get(CONTROL_API_ENV) == "true"


class Param:
    """Base class for declared parameters."""

    param_type: ClassVar[ParamType] = ParamType.STRING
    param_format: ClassVar[str | None] = None

    def __init__(
        self,
        name: str,
        *,
        default: Any = None,
        label: str | None = None,
        description: str | None = None,
    ) -> None:
        if not name.strip():
            raise ValueError("Parameter name must not be blank")
        self.name = name
        self.default = default
        self.label = label
        self.description = description

    @property
    def spec(self) -> ParamSpec:
        return ParamSpec(
            name=self.name,
            type=self.param_type,
            default=self.default,
            label=self.label,
            description=self.description,
            format=self.param_format,
        )

    def value(self) -> Any:
        """Return the runtime value, read from the process environment."""

        if _discovery_mode():
            logger.warning(
                "Parameter value read during manifest discovery; the value is not final",
                extra={"param": self.name},
            )
        raw = os.environ.get(self.name)
        if raw is None:
            return self.default
        return self._convert(raw)

    def _convert(self, raw: str) -> Any:
        return raw

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class StringParam(Param):
    param_type = ParamType.STRING


class IntParam(Param):
    param_type = ParamType.INT

    def _convert(self, raw: str) -> int:
        return int(raw)


class FloatParam(Param):
    param_type = ParamType.FLOAT

    def _convert(self, raw: str) -> float:
        return float(raw)


class BooleanParam(Param):
    param_type = ParamType.BOOLEAN

    def _convert(self, raw: str) -> bool:
        return raw.strip().lower() in {"true", "1", "yes"}

    def then_else(self, if_true: Any, if_false: Any) -> Conditional:
        """Build a deferred ``{{ params.NAME ? a : b }}`` expression."""

        return Conditional(test=self.name, if_true=if_true, if_false=if_false, param=self)


class ListParam(Param):
    param_type = ParamType.LIST

    def _convert(self, raw: str) -> list[str]:
        text = raw.strip()
        if text.startswith("["):
            return [str(item) for item in json.loads(text)]
        return [item.strip() for item in text.split(",") if item.strip()]


class SecretParam(Param):
    param_type = ParamType.SECRET

    def value(self) -> Any:
        if _discovery_mode():
            raise ParamValueError(
                f"Secret {self.name!r} cannot be read during manifest discovery"
            )
        raw = os.environ.get(self.name)
        if raw is None:
            raise ParamValueError(f"Secret {self.name!r} is not bound in this environment")
        return self._convert(raw)


class JsonSecretParam(SecretParam):
    param_format = "json"

    def _convert(self, raw: str) -> Any:
        return json.loads(raw)


def define_string(
    name: str, *, default: str | None = None, label: str | None = None, description: str | None = None
) -> StringParam:
    return StringParam(name, default=default, label=label, description=description)


def define_int(
    name: str, *, default: int | None = None, label: str | None = None, description: str | None = None
) -> IntParam:
    return IntParam(name, default=default, label=label, description=description)


def define_float(
    name: str,
    *,
    default: float | None = None,
    label: str | None = None,
    description: str | None = None,
) -> FloatParam:
    return FloatParam(name, default=default, label=label, description=description)


def define_boolean(
    name: str,
    *,
    default: bool | None = None,
    label: str | None = None,
    description: str | None = None,
) -> BooleanParam:
    return BooleanParam(name, default=default, label=label, description=description)


def define_list(
    name: str,
    *,
    default: list[str] | None = None,
    label: str | None = None,
    description: str | None = None,
) -> ListParam:
    return ListParam(name, default=default, label=label, description=description)


def define_secret(name: str, *, label: str | None = None, description: str | None = None) -> SecretParam:
    return SecretParam(name, label=label, description=description)


def define_json_secret(
    name: str, *, label: str | None = None, description: str | None = None
) -> JsonSecretParam:
    return JsonSecretParam(name, label=label, description=description)


# Helper name -> param class; the scanner recognizes declarations through this table.
DEFINE_FUNCTIONS: dict[str, type[Param]] = {
    "define_string": StringParam,
    "define_int": IntParam,
    "define_float": FloatParam,
    "define_boolean": BooleanParam,
    "define_list": ListParam,
    "define_secret": SecretParam,
    "define_json_secret": JsonSecretParam,
}


def upper_snake(variable: str) -> str:
    """Fallback wire name for a parameter variable the scanner could not bind.

    ``minMemory`` becomes ``MIN_MEMORY``; an already upper-case name is unchanged.
    """

    out: list[str] = []
    previous = ""
    for char in variable:
        if char.isupper() and (previous.islower() or previous.isdigit()):
            out.append("_")
        out.append(char.upper())
        previous = char
    return "".join(out).lstrip("_")
