from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Annotated, Optional

import pytest

from summer import Container, Tag, UnresolvedAnnotationError


if TYPE_CHECKING:
    from decimal import Decimal


class Service:
    name: Annotated[str, Tag("name")]
    price: Decimal


@dataclass
class Order:
    total: Decimal = field(default=None, metadata={"summer": "total"})
    region: str = field(default="", metadata={"summer": ",auto"})
    note: Decimal = None


class PricedByName:
    price: Annotated[Decimal, Tag("price")]


class PricedByType:
    price: Annotated[Decimal, Tag(",auto")]


class Malformed:
    name: Annotated[str, Tag("name")]
    weird: Optional[5]


class Base:
    price: Decimal


class Child(Base):
    name: Annotated[str, Tag("name")]


def test_untagged_field_with_type_checking_import_is_ignored():
    c = Container()
    c.add("billing", "name")
    s = Service()
    c.inject_into(s)

    assert s.name == "billing"
    assert not hasattr(s, "price")


def test_bulk_injection_ignores_unresolvable_untagged_fields():
    c = Container()
    s = Service()
    c.add(s)
    c.add("billing", "name")
    c.perform_injections()

    assert s.name == "billing"


def test_dataclass_metadata_tags_do_not_need_evaluated_types():
    c = Container()
    c.add("eu")
    c.add(12, "total")
    order = Order()
    c.inject_into(order)

    assert order.total == 12
    assert order.region == "eu"
    assert order.note is None


def test_named_injection_does_not_need_the_field_type():
    c = Container()
    c.add("9.99", "price")
    p = PricedByName()
    c.inject_into(p)

    assert p.price == "9.99"


def test_auto_injection_into_unresolvable_type_raises():
    c = Container()

    with pytest.raises(UnresolvedAnnotationError) as ctx:
        c.inject_into(PricedByType())

    assert "price" in str(ctx.value)
    assert isinstance(ctx.value.__cause__, NameError)


def test_malformed_untagged_annotation_is_logged_and_ignored(caplog):
    c = Container()
    c.add("billing", "name")
    m = Malformed()

    with caplog.at_level(logging.WARNING, logger="summer._container"):
        c.inject_into(m)

    assert m.name == "billing"
    assert "Malformed" in caplog.text


def test_inherited_unresolvable_fields_are_ignored():
    c = Container()
    c.add("billing", "name")
    child = Child()
    c.inject_into(child)

    assert child.name == "billing"
