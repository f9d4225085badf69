"""Tests for project and build identifiers."""

import random

from brigade_store.ids import ENCODING, ID_LENGTH, IDGenerator, project_id


def test_project_id() -> None:
    """Project ids are derived from a hash of the name."""
    pid = project_id("deis/empty-testbed")
    assert pid.startswith("brigade-")
    assert len(pid) == len("brigade-") + 54
    assert pid == project_id("deis/empty-testbed")
    assert pid != project_id("deis/other-testbed")


def test_project_id_passthrough() -> None:
    """A value that is already an id is returned unchanged."""
    pid = project_id("deis/empty-testbed")
    assert project_id(pid) == pid


def test_build_id_format() -> None:
    new_id = IDGenerator().new_id()
    assert len(new_id) == ID_LENGTH
    assert all(c in ENCODING for c in new_id)
    assert new_id == new_id.lower()


def test_build_ids_sort_by_time() -> None:
    now = [1700000000.0]
    gen = IDGenerator(rand=random.Random(5), clock=lambda: now[0])
    first = gen.new_id()
    now[0] += 1.0
    second = gen.new_id()
    assert first < second
    assert first[:10] != second[:10]


def test_build_ids_monotonic_within_millisecond() -> None:
    """Ids created within the same millisecond still increase."""
    gen = IDGenerator(rand=random.Random(5), clock=lambda: 1700000000.0)
    ids = [gen.new_id() for _ in range(100)]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)
    assert len({i[:10] for i in ids}) == 1


def test_clock_moving_backwards() -> None:
    times = iter([1700000001.0, 1700000000.0])
    gen = IDGenerator(rand=random.Random(5), clock=lambda: next(times))
    first = gen.new_id()
    second = gen.new_id()
    assert first < second


def test_seeded_generators_agree() -> None:
    clock = lambda: 1700000000.0  # noqa: E731
    assert (
        IDGenerator(rand=random.Random(42), clock=clock).new_id()
        == IDGenerator(rand=random.Random(42), clock=clock).new_id()
    )
