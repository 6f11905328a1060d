from __future__ import annotations

import pytest

from services.registry import ClientRegistry, coerce_zoom


def test_register_starts_at_zoom_zero() -> None:
    registry = ClientRegistry()

    session = registry.register("sid-1")

    assert session.zoom_level == 0
    assert registry.zoom_for("sid-1") == 0
    assert "sid-1" in registry


def test_register_is_idempotent() -> None:
    registry = ClientRegistry()
    registry.update_zoom("sid-1", 15)

    registry.register("sid-1")

    assert registry.zoom_for("sid-1") == 15
    assert len(registry) == 1


def test_update_zoom_registers_unknown_client() -> None:
    registry = ClientRegistry()

    registry.update_zoom("sid-2", 12)

    assert registry.get("sid-2") is not None
    assert registry.zoom_for("sid-2") == 12


def test_unregister_forgets_client() -> None:
    registry = ClientRegistry()
    registry.update_zoom("sid-1", 16)

    registry.unregister("sid-1")
    registry.unregister("never-seen")

    assert registry.get("sid-1") is None
    assert registry.zoom_for("sid-1") == 0
    assert len(registry) == 0


def test_client_ids_is_a_copy() -> None:
    registry = ClientRegistry()
    registry.register("a")
    registry.register("b")

    ids = registry.client_ids()
    registry.unregister("a")

    assert ids == ["a", "b"]
    assert registry.client_ids() == ["b"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(14, 14), (14.7, 14), ("15", 15), (" 13.2 ", 13), (-1, -1)],
)
def test_coerce_zoom_accepts_numbers(raw, expected) -> None:
    assert coerce_zoom(raw) == expected


@pytest.mark.parametrize("raw", [None, True, "far", float("nan"), [14], {"zoom": 14}])
def test_coerce_zoom_rejects_garbage(raw) -> None:
    with pytest.raises(ValueError):
        coerce_zoom(raw)
