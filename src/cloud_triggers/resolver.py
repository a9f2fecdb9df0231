"""Static resolution of option expressions.

The resolver turns the syntax of an option expression into the same
:data:`~cloud_triggers.options.OptionValue` the runtime constructor would produce.
Literal constructors are resolved by evaluating their argument statically and then
calling the real option class, so coercion rules live in one place.

Anything the resolver does not recognize is absent, never an error: scanning must
survive code it does not understand.
"""

from __future__ import annotations

import ast
import logging
from collections.abc import Mapping
from typing import Any

from cloud_triggers.options import (
    ENDPOINT_OPTION_KEYS,
    ENUM_TYPES,
    FIELD_OPTION_TYPES,
    NESTED_CONFIG_TYPES,
    NESTED_OPTION_KEYS,
    OPTION_TYPES,
    RUNTIME_ONLY_OPTIONS,
    TRIGGER_SETTING_KEYS,
    Conditional,
    Literal,
    OptionParts,
    OptionValue,
    ParamReference,
    Reset,
)
from cloud_triggers.params import upper_snake

logger = logging.getLogger(__name__)

UNKNOWN_PARAM = "UNKNOWN"


class Unresolvable(Exception):
    """An expression has no static value."""


def dotted_name(node: ast.AST) -> tuple[str, ...] | None:
    """Return ``("a", "b", "c")`` for ``a.b.c``; ``None`` for any other shape."""

    parts: list[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        return None
    parts.append(node.id)
    return tuple(reversed(parts))


def literal_value(node: ast.AST | None) -> Any:
    """Evaluate constants, containers of constants and known enum members.

    Raises:
        Unresolvable: for every other expression.
    """

    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, (ast.List, ast.Tuple)):
        return [literal_value(item) for item in node.elts]
    if isinstance(node, ast.Dict):
        if any(key is None for key in node.keys):
            raise Unresolvable("dict unpacking")
        return {literal_value(k): literal_value(v) for k, v in zip(node.keys, node.values)}
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
        operand = literal_value(node.operand)
        if isinstance(operand, (int, float)) and not isinstance(operand, bool):
            return -operand
    if isinstance(node, ast.Attribute):
        chain = dotted_name(node)
        if chain is not None and len(chain) >= 2 and chain[-2] in ENUM_TYPES:
            member = ENUM_TYPES[chain[-2]].__members__.get(chain[-1])
            if member is not None:
                return member
    raise Unresolvable(type(node).__name__)


class OptionResolver:
    """Resolve option expressions against a parameter binding table.

    Args:
        bindings: Program variable -> declared parameter name.
        named_options: Module-level ``VAR = SomeOptions(...)`` calls, so that
            ``options=VAR`` can be followed.
    """

    def __init__(
        self,
        bindings: Mapping[str, str],
        named_options: Mapping[str, ast.Call] | None = None,
    ) -> None:
        self._bindings = bindings
        self._named_options = named_options or {}

    def param_name(self, node: ast.AST | None) -> str:
        if isinstance(node, ast.Name):
            return self._bindings.get(node.id) or upper_snake(node.id)
        return UNKNOWN_PARAM

    def resolve_option(self, node: ast.AST | None) -> OptionValue | None:
        if not isinstance(node, ast.Call):
            return None
        chain = dotted_name(node.func)
        if chain is None:
            return None
        try:
            return self._resolve_constructor(chain, node)
        except (Unresolvable, TypeError, ValueError) as e:
            logger.debug(
                "Unresolved option expression",
                extra={"expression": ".".join(chain), "line": node.lineno, "reason": str(e)},
            )
            return None

    def _resolve_constructor(self, chain: tuple[str, ...], call: ast.Call) -> OptionValue:
        first = call.args[0] if call.args else None

        # Memory(512), options.Region(SupportedRegion.US_EAST1), ...
        if chain[-1] in OPTION_TYPES:
            if len(call.args) != 1 or call.keywords:
                raise Unresolvable("literal constructor takes one argument")
            return OPTION_TYPES[chain[-1]](literal_value(first)).value

        # Memory.param(...), Memory.reset(), Invoker.public(), ...
        if len(chain) >= 2 and chain[-2] in OPTION_TYPES:
            option_type = OPTION_TYPES[chain[-2]]
            constructor = chain[-1]
            if constructor == "param":
                return ParamReference(self.param_name(first))
            if constructor == "reset":
                return Reset()
            if constructor == "expression":
                return self._conditional(first)
            if constructor in option_type.CONSTANTS:
                return getattr(option_type, constructor)().value

        raise Unresolvable(".".join(chain))

    def _conditional(self, node: ast.AST | None) -> Conditional:
        if not (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Attribute)
            and node.func.attr == "then_else"
            and len(node.args) == 2
        ):
            raise Unresolvable("expression() expects flag.then_else(a, b)")
        return Conditional(
            test=self.param_name(node.func.value),
            if_true=literal_value(node.args[0]),
            if_false=literal_value(node.args[1]),
        )

    def _field_value(self, name: str, node: ast.AST) -> OptionValue | None:
        """Resolve field ``name``; plain constants (``memory=512``) go through its class."""

        if isinstance(node, ast.Call):
            return self.resolve_option(node)
        option_type = FIELD_OPTION_TYPES.get(name)
        if option_type is None:
            return None
        try:
            return option_type(literal_value(node)).value
        except (Unresolvable, TypeError, ValueError) as e:
            logger.debug(
                "Unresolved option value",
                extra={"option": name, "line": getattr(node, "lineno", None), "reason": str(e)},
            )
            return None

    def _setting(self, name: str, node: ast.AST) -> Any:
        if name in FIELD_OPTION_TYPES:
            return self._field_value(name, node)
        if isinstance(node, ast.Call):
            chain = dotted_name(node.func)
            if chain is not None and chain[-1] in NESTED_CONFIG_TYPES:
                nested: dict[str, OptionValue] = {}
                for keyword in node.keywords:
                    if keyword.arg not in NESTED_OPTION_KEYS:
                        continue
                    value = self._field_value(keyword.arg, keyword.value)
                    if value is not None:
                        nested[NESTED_OPTION_KEYS[keyword.arg]] = value
                return nested
            return self.resolve_option(node)
        try:
            return literal_value(node)
        except Unresolvable:
            return None

    def resolve_parts(self, node: ast.AST | None) -> OptionParts:
        """Resolve an options container expression such as ``HttpsOptions(...)``."""

        if isinstance(node, ast.Name):
            node = self._named_options.get(node.id)
        if not isinstance(node, ast.Call):
            return OptionParts()

        endpoint: dict[str, OptionValue] = {}
        settings: dict[str, Any] = {}

        for keyword in node.keywords:
            name = keyword.arg
            if name is None or name in RUNTIME_ONLY_OPTIONS:
                continue

            if name == "labels":
                try:
                    endpoint["labels"] = Literal(dict(literal_value(keyword.value)))
                except (Unresolvable, TypeError, ValueError):
                    continue
            elif name == "secrets":
                if isinstance(keyword.value, (ast.List, ast.Tuple)):
                    endpoint["secretEnvironmentVariables"] = Literal(
                        [self.param_name(item) for item in keyword.value.elts]
                    )
            elif name in ENDPOINT_OPTION_KEYS:
                value = self._field_value(name, keyword.value)
                if value is not None:
                    endpoint[ENDPOINT_OPTION_KEYS[name]] = value
            elif name in TRIGGER_SETTING_KEYS:
                setting = self._setting(name, keyword.value)
                if setting is not None:
                    settings[TRIGGER_SETTING_KEYS[name]] = setting

        return OptionParts(endpoint=endpoint, settings=settings)
