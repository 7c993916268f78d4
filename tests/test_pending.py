from summer._pending import PendingSet


def test_add_reports_whether_object_is_new():
    s = PendingSet()
    obj = object()

    assert s.add(obj) is True
    assert s.add(obj) is False
    assert len(s) == 1
    assert obj in s


def test_equal_but_distinct_objects_are_kept_apart():
    s = PendingSet()
    a = [1, 2]
    b = [1, 2]

    assert s.add(a)
    assert s.add(b)
    assert len(s) == 2
    assert [1, 2] not in s


def test_iterates_over_every_added_object():
    s = PendingSet()
    items = [object(), object(), object()]
    for item in items:
        s.add(item)

    assert {id(x) for x in s} == {id(x) for x in items}
