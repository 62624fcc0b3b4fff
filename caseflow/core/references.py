"""
Reference Resolution.

Step input templates and checkpoint messages pull values from three
namespaces:

- ``$inputs.description``       -> collected workflow inputs
- ``$context.userId``           -> ambient caller context
- ``$create_signal.signalId``   -> output of the step ``create_signal``

Templates are compiled once into a small tree of typed nodes (literal,
reference, list, mapping) so that resolving them at run time is a plain
traversal. Checkpoint messages use the ``${namespace.path}`` form instead.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

INPUTS = "inputs"
CONTEXT = "context"

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


class _Missing:
    """Marker for a path that does not resolve to anything."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


@dataclass(frozen=True)
class Scope:
    """The three namespaces a reference can read from."""

    inputs: Mapping[str, Any]
    outputs: Mapping[str, Any]
    context: Mapping[str, Any]

    def root(self, namespace: str) -> Any:
        if namespace == INPUTS:
            return self.inputs
        if namespace == CONTEXT:
            return self.context
        return self.outputs.get(namespace, MISSING)


def navigate(value: Any, parts: Tuple[str, ...]) -> Any:
    """Walk ``parts`` into nested mappings and lists, or return MISSING."""
    for part in parts:
        if value is MISSING or value is None:
            return MISSING
        if isinstance(value, Mapping):
            value = value.get(part, MISSING)
        elif isinstance(value, (list, tuple)) and part.isdigit():
            index = int(part)
            value = value[index] if index < len(value) else MISSING
        else:
            return MISSING
    return value


# ============================================================================
# Template Nodes
# ============================================================================


@dataclass(frozen=True)
class Reference:
    """A ``$namespace.field.field`` pointer into a :class:`Scope`."""

    namespace: str
    path: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, dotted: str) -> "Reference":
        parts = dotted.split(".")
        return cls(namespace=parts[0], path=tuple(parts[1:]))

    def lookup(self, scope: Scope) -> Any:
        return navigate(scope.root(self.namespace), self.path)

    def materialize(self, scope: Scope) -> Any:
        return self.lookup(scope)

    def references(self) -> Iterator["Reference"]:
        yield self

    def __str__(self) -> str:
        return ".".join((self.namespace,) + self.path)


@dataclass(frozen=True)
class LiteralValue:
    value: Any

    def materialize(self, scope: Scope) -> Any:
        return self.value

    def references(self) -> Iterator[Reference]:
        return iter(())


@dataclass(frozen=True)
class ListTemplate:
    items: Tuple["TemplateNode", ...]

    def materialize(self, scope: Scope) -> List[Any]:
        values = []
        for item in self.items:
            value = item.materialize(scope)
            values.append(None if value is MISSING else value)
        return values

    def references(self) -> Iterator[Reference]:
        for item in self.items:
            yield from item.references()


@dataclass(frozen=True)
class MapTemplate:
    fields: Tuple[Tuple[str, "TemplateNode"], ...]

    def materialize(self, scope: Scope) -> Dict[str, Any]:
        # Keys whose reference does not resolve are left out entirely.
        resolved: Dict[str, Any] = {}
        for key, node in self.fields:
            value = node.materialize(scope)
            if value is not MISSING:
                resolved[key] = value
        return resolved

    def references(self) -> Iterator[Reference]:
        for _, node in self.fields:
            yield from node.references()


TemplateNode = Union[Reference, LiteralValue, ListTemplate, MapTemplate]


def is_reference(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 1 and value.startswith("$")


def compile_template(value: Any) -> TemplateNode:
    """Turn a raw JSON-like template into a tree of template nodes."""
    if is_reference(value):
        return Reference.parse(value[1:])
    if isinstance(value, Mapping):
        return MapTemplate(
            tuple((str(key), compile_template(item)) for key, item in value.items())
        )
    if isinstance(value, (list, tuple)):
        return ListTemplate(tuple(compile_template(item) for item in value))
    return LiteralValue(value)


# ============================================================================
# Message Templates
# ============================================================================


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(_stringify(item) for item in value)
    if isinstance(value, Mapping):
        return json.dumps(value, default=str)
    return str(value)


@dataclass(frozen=True)
class MessageTemplate:
    """A checkpoint message split into literal text and ``${...}`` placeholders."""

    parts: Tuple[Union[str, Reference], ...]

    @classmethod
    def parse(cls, message: str) -> "MessageTemplate":
        parts: List[Union[str, Reference]] = []
        position = 0
        for match in _PLACEHOLDER.finditer(message):
            if match.start() > position:
                parts.append(message[position : match.start()])
            parts.append(Reference.parse(match.group(1).strip()))
            position = match.end()
        if position < len(message):
            parts.append(message[position:])
        return cls(tuple(parts))

    def render(self, scope: Scope) -> str:
        rendered = []
        for part in self.parts:
            if isinstance(part, str):
                rendered.append(part)
                continue
            value = part.lookup(scope)
            if value is MISSING or value is None:
                rendered.append("${" + str(part) + "}")
            else:
                rendered.append(_stringify(value))
        return "".join(rendered)

    def references(self) -> Iterator[Reference]:
        for part in self.parts:
            if isinstance(part, Reference):
                yield part


# ============================================================================
# Public helpers
# ============================================================================


def _scope(
    inputs: Optional[Mapping[str, Any]],
    outputs: Optional[Mapping[str, Any]],
    context: Optional[Mapping[str, Any]],
) -> Scope:
    return Scope(inputs=inputs or {}, outputs=outputs or {}, context=context or {})


def resolve(
    ref: Any,
    inputs: Optional[Mapping[str, Any]] = None,
    outputs: Optional[Mapping[str, Any]] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> Any:
    """
    Resolve a single reference.

    Anything that is not a ``$``-prefixed string is returned unchanged.
    A reference that does not resolve returns ``None``.
    """
    if not is_reference(ref):
        return ref
    value = Reference.parse(ref[1:]).lookup(_scope(inputs, outputs, context))
    return None if value is MISSING else value


def resolve_all(
    template: Mapping[str, Any],
    inputs: Optional[Mapping[str, Any]] = None,
    outputs: Optional[Mapping[str, Any]] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Materialize every reference in an input template."""
    node = compile_template(template)
    return node.materialize(_scope(inputs, outputs, context))


def interpolate(
    message: str,
    inputs: Optional[Mapping[str, Any]] = None,
    outputs: Optional[Mapping[str, Any]] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> str:
    """Substitute ``${...}`` placeholders in a checkpoint message."""
    return MessageTemplate.parse(message).render(_scope(inputs, outputs, context))
