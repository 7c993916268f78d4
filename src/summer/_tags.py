from __future__ import annotations

from dataclasses import dataclass


TAG_KEY = "summer"
AUTO_INJECT = "auto"
SEPARATOR = ","


@dataclass(frozen=True)
class Tag:
    """Marker carrying a raw injection tag inside ``typing.Annotated``.

    Example:
      class Service:
          db: Annotated[Database, Tag("primary-db")]
          cache: Annotated[Cache, Tag(",auto")]

    """

    raw: str


@dataclass(frozen=True)
class FieldTag:
    dependency_name: str
    auto_inject: bool


def parse_field_tag(raw: str | None) -> FieldTag | None:
    """Parse ``"<dependencyName>[,auto]"`` into a FieldTag.

    An empty or missing tag means the field is not an injection request.
    Anything after the separator other than ``auto`` is ignored.
    """
    if not raw:
        return None

    components = raw.split(SEPARATOR, 1)
    auto_inject = len(components) > 1 and components[1] == AUTO_INJECT

    return FieldTag(dependency_name=components[0], auto_inject=auto_inject)
