from __future__ import annotations

import pytest

from piggybank.state import Journal


def test_writes_without_checkpoint_hit_the_base():
    base = {}
    j = Journal(base)
    j.set(("a",), 1)
    assert base == {("a",): 1}
    j.delete(("a",))
    assert base == {}


def test_revert_discards_top_layer():
    j = Journal({("a",): 1})
    j.begin()
    j.set(("a",), 2)
    j.set(("b",), 3)
    j.delete(("a",))
    assert j.get(("a",)) is None
    j.revert()
    assert j.get(("a",)) == 1
    assert j.get(("b",)) is None
    assert j.depth() == 0


def test_nested_commit_then_outer_revert():
    j = Journal()
    j.begin()
    j.set(("x",), 1)
    j.begin()
    j.set(("x",), 2)
    j.commit()
    assert j.get(("x",)) == 2
    j.revert()
    assert j.contains(("x",)) is False


def test_inner_revert_keeps_outer_writes():
    j = Journal()
    j.begin()
    j.set(("x",), 1)
    j.begin()
    j.set(("y",), 2)
    j.revert()
    j.commit()
    assert j.get(("x",)) == 1
    assert j.get(("y",)) is None


def test_atomic_commits_on_success_and_reverts_on_error():
    base = {}
    j = Journal(base)
    with j.atomic():
        j.set(("ok",), True)
    assert base == {("ok",): True}

    with pytest.raises(KeyError):
        with j.atomic():
            j.set(("ok",), False)
            with j.atomic():
                j.set(("nested",), 1)
            raise KeyError("boom")
    assert base == {("ok",): True}
    assert j.depth() == 0


def test_scan_respects_overlays_and_deletions():
    j = Journal({("p", 1): "a", ("p", 2): "b", ("q", 1): "z"})
    j.begin()
    j.delete(("p", 1))
    j.set(("p", 3), "c")
    assert dict(j.scan(("p",))) == {("p", 2): "b", ("p", 3): "c"}
    assert j.pending_keys() == {("p", 1), ("p", 3)}


def test_commit_or_revert_without_checkpoint_is_an_error():
    j = Journal()
    with pytest.raises(RuntimeError):
        j.commit()
    with pytest.raises(RuntimeError):
        j.revert()


def test_markers():
    j = Journal()
    m = j.checkpoint()
    j.begin()
    j.set(("k",), 1)
    j.commit_to(m)
    assert j.depth() == m
    j.revert_to(0)
    assert j.get(("k",)) is None
