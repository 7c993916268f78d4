from __future__ import annotations

import ast
import dataclasses
import inspect
import logging
import sys
import threading
import types
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Annotated,
    Any,
    ClassVar,
    Protocol,
    get_args,
    get_origin,
    get_type_hints,
    runtime_checkable,
)

from ._pending import PendingSet
from ._tags import TAG_KEY, FieldTag, Tag, parse_field_tag


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Iterator

_MISSING = object()


@runtime_checkable
class PostInjector(Protocol):
    def post_injection_callback(self) -> None:
        """Called once every tagged field of the target has been injected."""
        ...


class InjectionError(RuntimeError):
    pass


class InvalidTargetError(InjectionError):
    def __init__(self, target: object) -> None:
        self.target = target
        msg = f"Attempted to inject into {type(target).__name__!r}, which is not an object with fields"
        super().__init__(msg)


class MissingNamedDependencyError(InjectionError):
    def __init__(self, name: str, owner_type: type, field_name: str) -> None:
        self.name = name
        self.owner_type = owner_type
        self.field_name = field_name
        msg = f"Missing required dependency {name!r} for {owner_type.__qualname__}'s field {field_name!r}"
        super().__init__(msg)


class MissingTypedDependencyError(InjectionError):
    def __init__(self, field_type: Any, owner_type: type, field_name: str) -> None:
        self.field_type = field_type
        self.owner_type = owner_type
        self.field_name = field_name
        type_repr = getattr(field_type, "__qualname__", repr(field_type))
        msg = (
            f"Missing auto-injected dependency for {owner_type.__qualname__}'s field {field_name!r}, "
            f"searched for type {type_repr} (did you attempt to auto-inject an interface?)"
        )
        super().__init__(msg)


class UnresolvedAnnotationError(InjectionError):
    pass


@dataclass(frozen=True)
class InjectionPoint:
    owner_type: type
    field_name: str
    field_type: Any
    tag: FieldTag
    writable: bool


class Container:
    """Field injection container.

    - add named and/or typed dependencies
    - inject them into tagged fields of existing objects
    - bulk-inject every registered object, then run post-injection hooks.
    """

    def __init__(self, *, metadata_key: str = TAG_KEY) -> None:
        self._by_name: dict[str, object] = {}
        self._by_type: dict[type, object] = {}
        self._injectables = PendingSet()
        self._metadata_key = metadata_key
        self._lock = threading.RLock()

    def add(self, instance: object, name: str = "") -> None:
        """Register a dependency.

        An empty name means the dependency can only be auto-injected by type.
        The last instance added for an exact type takes precedence for auto
        injection. Anything injected into a field declared as an abstract
        class or protocol must be added with a name, since auto injection
        only matches exact types.

        Example:
          container.add(Database(), "primary-db")
          container.add(Cache())

        """
        with self._lock:
            if name:
                self._by_name[name] = instance

            self._by_type[type(instance)] = instance

            if _is_record(instance) and self._injectables.add(instance):
                logger.debug("Registered injectable %s", type(instance).__qualname__)

    def get(self, name: str) -> tuple[object | None, bool]:
        """Return ``(dependency, True)`` for a named dependency, ``(None, False)`` when missing."""
        with self._lock:
            dependency = self._by_name.get(name, _MISSING)

        if dependency is _MISSING:
            return None, False
        return dependency, True

    def inject_into(self, target: object) -> None:
        """Inject dependencies into the tagged fields of ``target``.

        Fields are processed in declaration order and the first failure is
        raised; fields set before it keep their values. On success, the
        target's post-injection hook runs if it implements PostInjector.
        """
        self._inject_into(target, run_hook=True)

    def perform_injections(self) -> None:
        """Inject every registered object, then run all post-injection hooks.

        Behaves as if inject_into were called for each object added to the
        container, except that hooks only run once every object has been
        injected successfully. Raises the same errors as inject_into.
        """
        with self._lock:
            targets = list(self._injectables)

        logger.debug("Performing injections for %d objects", len(targets))

        pending = PendingSet()
        for target in targets:
            if pending.add(target):
                self._inject_into(target, run_hook=False)

        for target in pending:
            _run_post_injection_hook(target)

    def _inject_into(self, target: object, *, run_hook: bool) -> None:
        if not _is_record(target):
            raise InvalidTargetError(target)

        for point in self._injection_points(target):
            if not point.writable:
                logger.debug(
                    "Skipping read-only field %s.%s", point.owner_type.__qualname__, point.field_name
                )
                continue
            setattr(target, point.field_name, self._resolve(point))

        if run_hook:
            _run_post_injection_hook(target)

    def _resolve(self, point: InjectionPoint) -> object:
        if point.tag.auto_inject:
            return self._resolve_by_type(point)
        return self._resolve_by_name(point)

    def _resolve_by_name(self, point: InjectionPoint) -> object:
        name = point.tag.dependency_name
        with self._lock:
            dependency = self._by_name.get(name, _MISSING)

        if dependency is _MISSING:
            raise MissingNamedDependencyError(name, point.owner_type, point.field_name)
        return dependency

    def _resolve_by_type(self, point: InjectionPoint) -> object:
        if isinstance(point.field_type, UnresolvedType):
            msg = (
                f"Cannot auto-inject {point.owner_type.__qualname__}'s field {point.field_name!r}: "
                f"its type {point.field_type.source!r} cannot be evaluated ({point.field_type.error})"
            )
            raise UnresolvedAnnotationError(msg) from point.field_type.error

        with self._lock:
            dependency = self._by_type.get(point.field_type, _MISSING)

        if dependency is _MISSING:
            raise MissingTypedDependencyError(point.field_type, point.owner_type, point.field_name)
        return dependency

    def _injection_points(self, target: object) -> Iterator[InjectionPoint]:
        owner = type(target)
        metadata = _dataclass_metadata(owner)

        for name, annotation in _get_field_type_hints(owner).items():
            if isinstance(annotation, UnresolvedType):
                field_type, raw_tag = annotation, annotation.raw_tag
            elif get_origin(annotation) is ClassVar:
                continue
            else:
                field_type, raw_tag = _split_annotation(annotation)

            if raw_tag is None:
                raw_tag = metadata.get(name, {}).get(self._metadata_key)

            tag = parse_field_tag(raw_tag)
            if tag is None:
                continue

            yield InjectionPoint(
                owner_type=owner,
                field_name=name,
                field_type=field_type,
                tag=tag,
                writable=_is_writable(target, name),
            )


@dataclass(frozen=True)
class UnresolvedType:
    """Field annotation that could not be evaluated.

    Named injection does not need the field's type, so such a field is only
    an error when it asks for auto injection.
    """

    source: Any
    error: Exception
    raw_tag: str | None


def _run_post_injection_hook(target: object) -> None:
    if isinstance(target, PostInjector):
        target.post_injection_callback()


def _is_record(target: object) -> bool:
    """Whether ``target`` is an instance with attribute storage (``__dict__`` or slots)."""
    if inspect.isclass(target) or inspect.ismodule(target) or inspect.isroutine(target):
        return False
    if hasattr(target, "__dict__"):
        return True
    return any("__slots__" in vars(base) for base in type(target).__mro__[:-1])


def _is_writable(target: object, name: str) -> bool:
    if name.startswith("_"):
        return False

    owner = type(target)
    params = getattr(owner, "__dataclass_params__", None)
    if params is not None and params.frozen:
        return False

    # NamedTuple fields
    if isinstance(target, tuple):
        return False

    attr = inspect.getattr_static(owner, name, None)
    if isinstance(attr, property):
        return attr.fset is not None
    if isinstance(attr, types.MemberDescriptorType):
        return True
    return hasattr(target, "__dict__")


def _split_annotation(annotation: Any) -> tuple[Any, str | None]:
    """Strip ``Annotated`` from a field annotation, returning its type and Tag (if any)."""
    if get_origin(annotation) is not Annotated:
        return annotation, None

    field_type, *extras = get_args(annotation)
    raw_tag = next((extra.raw for extra in extras if isinstance(extra, Tag)), None)
    return field_type, raw_tag


def _dataclass_metadata(owner: type) -> dict[str, Any]:
    if not dataclasses.is_dataclass(owner):
        return {}
    return {f.name: f.metadata for f in dataclasses.fields(owner)}


def _get_field_type_hints(owner: type) -> dict[str, Any]:
    """Evaluate the field annotations of ``owner``, base classes first.

    When the class as a whole cannot be evaluated (e.g. an untagged field uses
    a name only imported under TYPE_CHECKING), fields are evaluated one at a
    time and the ones that fail become UnresolvedType.
    """
    try:
        return get_type_hints(owner, include_extras=True)
    except (NameError, TypeError) as exc:
        logger.warning(
            "%s retrieving %s (%s) type hints (%s), evaluating fields one by one",
            type(exc).__name__,
            owner.__name__,
            owner.__qualname__,
            exc,
        )

    hints: dict[str, Any] = {}
    for cls in reversed(owner.__mro__):
        globalns = getattr(sys.modules.get(cls.__module__), "__dict__", {})
        localns = dict(vars(cls))
        for name, annotation in _raw_annotations(cls).items():
            hints[name] = _evaluate_annotation(name, annotation, globalns, localns)

    return hints


def _evaluate_annotation(name: str, annotation: Any, globalns: dict[str, Any], localns: dict[str, Any]) -> Any:
    holder = type("_FieldHolder", (), {"__annotations__": {name: annotation}})
    try:
        return get_type_hints(holder, globalns, localns, include_extras=True)[name]
    except (NameError, TypeError) as exc:
        if isinstance(annotation, str):
            raw_tag = _tag_from_source(annotation, globalns, localns)
        else:
            raw_tag = _split_annotation(annotation)[1]
        return UnresolvedType(source=annotation, error=exc, raw_tag=raw_tag)


def _tag_from_source(source: str, globalns: dict[str, Any], localns: dict[str, Any]) -> str | None:
    """Find a Tag in ``Annotated[...]`` source whose type part cannot be evaluated."""
    try:
        node = ast.parse(source, mode="eval").body
    except SyntaxError:
        return None

    if not isinstance(node, ast.Subscript) or not isinstance(node.slice, ast.Tuple):
        return None

    try:
        if _eval_node(node.value, globalns, localns) is not Annotated:
            return None
        extras = [_eval_node(extra, globalns, localns) for extra in node.slice.elts[1:]]
    except NameError:
        return None

    return next((extra.raw for extra in extras if isinstance(extra, Tag)), None)


def _eval_node(node: ast.expr, globalns: dict[str, Any], localns: dict[str, Any]) -> Any:
    code = compile(ast.Expression(body=node), "<annotation>", "eval")
    return eval(code, globalns, localns)  # noqa: S307


if sys.version_info >= (3, 14):
    import annotationlib

    def _raw_annotations(cls: type) -> dict[str, Any]:
        try:
            return inspect.get_annotations(cls)
        except NameError:
            return annotationlib.get_annotations(cls, format=annotationlib.Format.STRING)

else:

    def _raw_annotations(cls: type) -> dict[str, Any]:
        return inspect.get_annotations(cls)
