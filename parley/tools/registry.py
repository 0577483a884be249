"""Capability registry.

A capability is a named group of functions the model may call. Functions are
marked with :func:`capability` and a capability type (a class, or a plain
list of functions) is registered once with :class:`CapabilityRegistry`,
which reads the marked members a single time and freezes a
:class:`CapabilityDescriptor`.

Static capabilities (every marked member is a ``staticmethod``, or a plain
function list) are attached once per cached engine. Instance capabilities
are constructed for each turn, bound to the current thread.
"""

from __future__ import annotations

import collections.abc
import inspect
import logging
import typing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from parley.utils.errors import CapabilityConstructionError, ValidationError

logger = logging.getLogger(__name__)

_MARKER_ATTR = "__parley_capability__"

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    set: "array",
    dict: "object",
}


@dataclass(frozen=True)
class CapabilityMarker:
    description: str
    name: Optional[str] = None
    parameters: Dict[str, str] = field(default_factory=dict)


def capability(
    description: str,
    parameters: Optional[Dict[str, str]] = None,
    name: Optional[str] = None,
) -> Callable[[Any], Any]:
    """Mark a function as callable by the model.

    Args:
        description: What the function does, shown to the model.
        parameters: Optional per-parameter descriptions.
        name: Function name exposed to the model (defaults to ``__name__``).
    """
    marker = CapabilityMarker(description=description, name=name, parameters=dict(parameters or {}))

    def decorator(func):
        target = func.__func__ if isinstance(func, (staticmethod, classmethod)) else func
        setattr(target, _MARKER_ATTR, marker)
        return func

    return decorator


class CapabilityKind(str, Enum):
    STATIC = "static"
    INSTANCE = "instance"


@dataclass(frozen=True)
class CapabilityFunction:
    """A single function exposed to the model."""

    name: str
    description: str
    parameters: Dict[str, Any]
    handler: Callable[..., Any]
    needs_instance: bool = False

    def bind(self, instance: Any) -> "CapabilityFunction":
        if not self.needs_instance:
            return self
        return CapabilityFunction(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            handler=self.handler.__get__(instance, type(instance)),
            needs_instance=False,
        )


@dataclass(frozen=True)
class CapabilityDescriptor:
    """Frozen description of a registered capability."""

    name: str
    type_handle: Optional[type]
    kind: CapabilityKind
    functions: Tuple[CapabilityFunction, ...]

    @property
    def function_names(self) -> List[str]:
        return [f.name for f in self.functions]

    def instantiate(self, thread: Any) -> Any:
        """Construct an instance capability bound to ``thread``.

        The thread is passed as the single positional argument when the
        constructor accepts one; otherwise the type is default-constructed.
        """
        if self.kind is not CapabilityKind.INSTANCE or self.type_handle is None:
            raise CapabilityConstructionError(f"Capability {self.name} is not an instance capability")

        cls = self.type_handle
        try:
            signature = inspect.signature(cls)
        except (TypeError, ValueError) as e:
            raise CapabilityConstructionError(
                f"Cannot inspect constructor of capability type {cls.__name__}",
                details={"capability": self.name},
            ) from e

        positional = [
            p for p in signature.parameters.values()
            if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        ]
        required = [
            p for p in signature.parameters.values()
            if p.default is inspect.Parameter.empty
            and p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        ]
        has_var_positional = any(
            p.kind is inspect.Parameter.VAR_POSITIONAL for p in signature.parameters.values()
        )

        if positional and len(required) <= 1 and (not required or required[0] is positional[0]):
            args: Tuple[Any, ...] = (thread,)
        elif has_var_positional and not required:
            args = (thread,)
        elif not required:
            args = ()
        else:
            raise CapabilityConstructionError(
                f"Capability type {cls.__name__} must have a constructor taking the message thread "
                f"or no arguments",
                details={"capability": self.name, "signature": str(signature)},
            )

        try:
            return cls(*args)
        except Exception as e:
            raise CapabilityConstructionError(
                f"Failed to construct capability type {cls.__name__}: {e}",
                details={"capability": self.name},
            ) from e

    def bind(self, thread: Any) -> List[CapabilityFunction]:
        """Functions ready to call for this turn."""
        if self.kind is CapabilityKind.STATIC:
            return list(self.functions)
        instance = self.instantiate(thread)
        return [f.bind(instance) for f in self.functions]


def _json_type(annotation: Any) -> Dict[str, Any]:
    if annotation is inspect.Parameter.empty or annotation is Any:
        return {"type": "string"}
    if isinstance(annotation, str):
        # Unresolvable forward reference, match on the bare name
        names = {t.__name__: t for t in _JSON_TYPES}
        base = annotation.split("[", 1)[0].strip().lower()
        return {"type": _JSON_TYPES[names[base]]} if base in names else {"type": "string"}

    origin = typing.get_origin(annotation)
    if origin is Union:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        return _json_type(args[0]) if len(args) == 1 else {"type": "string"}
    if origin in (list, tuple, set, frozenset, collections.abc.Sequence, collections.abc.Iterable):
        args = typing.get_args(annotation)
        schema: Dict[str, Any] = {"type": "array"}
        if args and args[0] is not Ellipsis:
            schema["items"] = _json_type(args[0])
        return schema
    if origin in (dict, collections.abc.Mapping):
        return {"type": "object"}
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return {"type": "string", "enum": [m.value for m in annotation]}

    for py_type, json_type in _JSON_TYPES.items():
        if annotation is py_type:
            return {"type": json_type}
    return {"type": "string"}


def build_parameter_schema(
    func: Callable[..., Any],
    descriptions: Optional[Dict[str, str]] = None,
    skip_first: bool = False,
) -> Dict[str, Any]:
    """JSON schema for a handler's parameters, from its signature and hints."""
    descriptions = descriptions or {}
    signature = inspect.signature(func)
    try:
        hints = typing.get_type_hints(func)
    except Exception:
        logger.debug(f"Could not evaluate type hints for {getattr(func, '__name__', func)}")
        hints = {}

    properties: Dict[str, Any] = {}
    required: List[str] = []
    params = list(signature.parameters.values())
    if skip_first and params:
        params = params[1:]

    for param in params:
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        schema = _json_type(hints.get(param.name, param.annotation))
        if param.name in descriptions:
            schema["description"] = descriptions[param.name]
        properties[param.name] = schema
        if param.default is inspect.Parameter.empty:
            required.append(param.name)

    return {"type": "object", "properties": properties, "required": required}


def _marked_members(cls: type) -> List[Tuple[str, Any]]:
    """Marked members in definition order, subclasses overriding bases."""
    seen: Dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for attr_name, raw in vars(klass).items():
            target = raw.__func__ if isinstance(raw, (staticmethod, classmethod)) else raw
            if callable(target) and hasattr(target, _MARKER_ATTR):
                seen[attr_name] = raw
            elif attr_name in seen:
                del seen[attr_name]
    return list(seen.items())


class CapabilityRegistry:
    """Registered capabilities of one agent definition."""

    def __init__(self):
        self._descriptors: Dict[str, CapabilityDescriptor] = {}

    def register(
        self,
        capability_type: Union[type, Sequence[Callable[..., Any]]],
        name: Optional[str] = None,
        static: Optional[bool] = None,
    ) -> CapabilityDescriptor:
        """Register a capability type or a plain list of marked functions.

        Args:
            capability_type: Class with marked members, or a list of functions.
            name: Capability name (defaults to the class name).
            static: Force the kind. By default a class is static when every
                marked member is a ``staticmethod``.
        """
        if isinstance(capability_type, type):
            descriptor = self._describe_type(capability_type, name, static)
        else:
            descriptor = self._describe_functions(list(capability_type), name)

        if descriptor.name in self._descriptors:
            logger.warning(f"Capability {descriptor.name} registered twice, replacing previous registration")
        self._descriptors[descriptor.name] = descriptor
        logger.debug(
            f"Registered {descriptor.kind.value} capability {descriptor.name} "
            f"with functions {descriptor.function_names}"
        )
        return descriptor

    def _describe_type(self, cls: type, name: Optional[str], static: Optional[bool]) -> CapabilityDescriptor:
        members = _marked_members(cls)
        if not members:
            raise ValidationError(f"Capability type {cls.__name__} has no functions marked with @capability")

        all_static = all(isinstance(raw, (staticmethod, classmethod)) for _, raw in members)
        is_static = all_static if static is None else static
        if is_static and not all_static:
            raise ValidationError(f"Capability type {cls.__name__} has instance members and cannot be static")

        functions = []
        for attr_name, raw in members:
            target = raw.__func__ if isinstance(raw, (staticmethod, classmethod)) else raw
            marker: CapabilityMarker = getattr(target, _MARKER_ATTR)
            if isinstance(raw, staticmethod):
                handler, skip_first = target, False
            elif isinstance(raw, classmethod):
                handler, skip_first = target.__get__(cls, cls), True
            else:
                handler, skip_first = target, True
            functions.append(
                CapabilityFunction(
                    name=marker.name or attr_name,
                    description=marker.description,
                    parameters=build_parameter_schema(target, marker.parameters, skip_first=skip_first),
                    handler=handler,
                    needs_instance=not isinstance(raw, (staticmethod, classmethod)),
                )
            )

        return CapabilityDescriptor(
            name=name or cls.__name__,
            type_handle=cls,
            kind=CapabilityKind.STATIC if is_static else CapabilityKind.INSTANCE,
            functions=tuple(functions),
        )

    def _describe_functions(self, funcs: List[Callable[..., Any]], name: Optional[str]) -> CapabilityDescriptor:
        if not name:
            raise ValidationError("A name is required when registering a list of capability functions")
        functions = []
        for func in funcs:
            marker: Optional[CapabilityMarker] = getattr(func, _MARKER_ATTR, None)
            description = marker.description if marker else (inspect.getdoc(func) or "").strip()
            functions.append(
                CapabilityFunction(
                    name=(marker.name if marker and marker.name else func.__name__),
                    description=description,
                    parameters=build_parameter_schema(func, marker.parameters if marker else None),
                    handler=func,
                )
            )
        return CapabilityDescriptor(
            name=name,
            type_handle=None,
            kind=CapabilityKind.STATIC,
            functions=tuple(functions),
        )

    def get(self, name: str) -> Optional[CapabilityDescriptor]:
        return self._descriptors.get(name)

    @property
    def descriptors(self) -> List[CapabilityDescriptor]:
        return list(self._descriptors.values())

    def static_descriptors(self) -> List[CapabilityDescriptor]:
        return [d for d in self._descriptors.values() if d.kind is CapabilityKind.STATIC]

    def instance_descriptors(self) -> List[CapabilityDescriptor]:
        return [d for d in self._descriptors.values() if d.kind is CapabilityKind.INSTANCE]

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors
