"""Minimal field injection library.

This package injects registered dependencies into the fields of objects that
already exist. Fields opt in with a tag of the form ``"<name>[,auto]"``: a
plain name injects the dependency added under that name, ``auto`` injects the
dependency whose exact type matches the field's declared type.

Exports:
- `Container`: Registry of named/typed dependencies and the injection engine.
- `Tag`: Marker used inside `typing.Annotated` to tag a field.
- `PostInjector`: Protocol for objects that want a callback after injection.
- `InjectionError` and its subclasses: raised when injection cannot complete.
"""

from ._container import (
    Container,
    InjectionError,
    InvalidTargetError,
    MissingNamedDependencyError,
    MissingTypedDependencyError,
    PostInjector,
    UnresolvedAnnotationError,
)
from ._tags import AUTO_INJECT, TAG_KEY, FieldTag, Tag, parse_field_tag


__all__ = [
    "AUTO_INJECT",
    "TAG_KEY",
    "Container",
    "FieldTag",
    "InjectionError",
    "InvalidTargetError",
    "MissingNamedDependencyError",
    "MissingTypedDependencyError",
    "PostInjector",
    "Tag",
    "UnresolvedAnnotationError",
    "parse_field_tag",
]
