from dataclasses import dataclass

import pytest

from taskboard import ordering


@dataclass
class Item:
    id: str
    position: int = -1


def items(*ids):
    seq = []
    for item_id in ids:
        ordering.append(seq, Item(item_id))
    return seq


def ids(seq):
    return [i.id for i in seq]


def test_append_assigns_position_from_length():
    seq = items("a", "b", "c", "d")
    assert [i.position for i in seq] == [0, 1, 2, 3]
    assert ordering.is_dense(seq)


def test_move_within_renumbers_every_sibling():
    seq = items("a", "b", "c", "d")
    moved = ordering.move_within(seq, 0, 2)
    assert moved.id == "a"
    assert ids(seq) == ["b", "c", "a", "d"]
    assert ordering.is_dense(seq)


def test_move_within_rejects_out_of_range_without_mutating():
    seq = items("a", "b")
    with pytest.raises(ordering.PositionError):
        ordering.move_within(seq, 0, 2)
    with pytest.raises(ordering.PositionError):
        ordering.move_within(seq, 5, 0)
    assert ids(seq) == ["a", "b"]


def test_move_across_removes_from_source_and_inserts_at_index():
    source = items("a", "b", "c")
    target = items("x", "y")
    ordering.move_across(source, target, "b", 1)
    assert ids(source) == ["a", "c"]
    assert ids(target) == ["x", "b", "y"]
    assert ordering.is_dense(source) and ordering.is_dense(target)


def test_move_across_to_end_of_target():
    source = items("a")
    target = items("x", "y")
    ordering.move_across(source, target, "a", 2)
    assert ids(source) == []
    assert ids(target) == ["x", "y", "a"]
    assert target[-1].position == 2


def test_failed_move_across_leaves_both_sequences_intact():
    source = items("a", "b")
    target = items("x")
    with pytest.raises(ordering.PositionError):
        ordering.move_across(source, target, "a", 5)
    with pytest.raises(ordering.PositionError):
        ordering.move_across(source, target, "missing", 0)
    assert ids(source) == ["a", "b"]
    assert ids(target) == ["x"]


def test_move_across_same_parent_is_a_reorder():
    seq = items("a", "b", "c")
    ordering.move_across(seq, seq, "c", 0)
    assert ids(seq) == ["c", "a", "b"]
    assert ordering.is_dense(seq)


def test_remove_closes_the_gap():
    seq = items("a", "b", "c")
    ordering.remove(seq, "a")
    assert ids(seq) == ["b", "c"]
    assert [i.position for i in seq] == [0, 1]


def test_find_and_index_of():
    seq = items("a", "b")
    assert ordering.find(seq, "b").id == "b"
    assert ordering.find(seq, "z") is None
    assert ordering.index_of(seq, "z") == -1


def test_clamp_index():
    seq = items("a", "b", "c")
    assert ordering.clamp_index(seq, 10) == 2
    assert ordering.clamp_index(seq, -3) == 0
