from __future__ import annotations

from lumps.geom import Point, Rect


def test_rect_edges_and_containment() -> None:
    outer = Rect(0, 0, 10, 10)
    inner = Rect(2, 3, 4, 5)

    assert (inner.right, inner.bottom) == (6, 8)
    assert outer.contains_rect(inner)
    assert outer.contains_rect(outer)
    assert not outer.strictly_contains(outer)
    assert outer.strictly_contains(inner)
    assert not inner.contains_rect(outer)


def test_rect_inset_outset() -> None:
    rect = Rect(10, 10, 20, 30)
    assert rect.inset(3) == Rect(13, 13, 14, 24)
    assert rect.outset(3) == Rect(7, 7, 26, 36)
    assert Rect(0, 0, 2, 2).inset(5) == Rect(5, 5, 0, 0)


def test_rect_intersects_excludes_touching_edges() -> None:
    a = Rect(0, 0, 10, 10)
    assert a.intersects(Rect(9, 9, 5, 5))
    assert not a.intersects(Rect(10, 0, 5, 5))


def test_contains_point_includes_far_edge() -> None:
    rect = Rect(0, 0, 4, 4)
    assert rect.contains_point(Point(4, 4))
    assert not rect.contains_point(Point(5, 0))


def test_rect_serialization_helpers() -> None:
    rect = Rect(1, 2, 3, 4)
    assert rect.box() == (1, 2, 4, 6)
    assert rect.describe() == "(1, 2) 3x4"
    assert rect.to_dict() == {"x": 1, "y": 2, "width": 3, "height": 4}
    assert Point(1, 1).offset(dx=2) == Point(3, 1)
