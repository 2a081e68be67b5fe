"""Unit tests for uproxy.storage.layout — StorageLayout and StateView."""
from __future__ import annotations

import pytest

from uproxy.errors import InvalidArgument
from uproxy.identity import Address
from uproxy.storage.layout import (
    Field,
    FieldKind,
    StateView,
    StorageLayout,
    string_data_slot,
)
from uproxy.storage.store import PersistentStore

_LAYOUT = StorageLayout.of(
    ("count", "uint256"),
    ("keeper", "address"),
    ("ready", "bool"),
    ("note", "string"),
)


class TestStorageLayout:
    def test_slots_follow_declaration_order(self) -> None:
        assert [_LAYOUT.slot_of(name) for name in _LAYOUT.names] == [0, 1, 2, 3]

    def test_of_accepts_fields(self) -> None:
        layout = StorageLayout.of(Field("a", FieldKind.BOOL))
        assert layout.field("a").kind is FieldKind.BOOL

    def test_extend_appends(self) -> None:
        extended = _LAYOUT.extend(("extra", "uint256"))
        assert extended.names[:4] == _LAYOUT.names
        assert extended.slot_of("extra") == 4
        assert len(_LAYOUT) == 4

    def test_duplicate_names_rejected(self) -> None:
        with pytest.raises(ValueError):
            _LAYOUT.extend(("count", "uint256"))

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValueError):
            StorageLayout.of(("x", "int8"))

    def test_missing_field(self) -> None:
        with pytest.raises(KeyError):
            _LAYOUT.slot_of("nope")

    def test_contains(self) -> None:
        assert "note" in _LAYOUT
        assert "nope" not in _LAYOUT


class TestStateView:
    def test_defaults_are_zero_values(self) -> None:
        view = StateView(_LAYOUT, PersistentStore())
        assert view["count"] == 0
        assert view["keeper"].is_null
        assert view["ready"] is False
        assert view["note"] == ""

    def test_scalar_round_trip(self) -> None:
        store = PersistentStore()
        view = StateView(_LAYOUT, store)
        keeper = Address.from_label("keeper")
        view["count"] = 12
        view["keeper"] = keeper
        view["ready"] = True
        assert (view["count"], view["keeper"], view["ready"]) == (12, keeper, True)
        assert store.read(0) == (12).to_bytes(32, "big")

    def test_short_string(self) -> None:
        store = PersistentStore()
        view = StateView(_LAYOUT, store)
        view["note"] = "hello"
        assert view["note"] == "hello"
        assert store.read(3) == (5).to_bytes(32, "big")
        assert store.read(string_data_slot(3)) == b"hello".ljust(32, b"\x00")

    def test_long_string_spans_words(self) -> None:
        view = StateView(_LAYOUT, PersistentStore())
        text = "x" * 70
        view["note"] = text
        assert view["note"] == text

    def test_shrinking_string_clears_old_words(self) -> None:
        store = PersistentStore()
        view = StateView(_LAYOUT, store)
        view["note"] = "y" * 70
        view["note"] = "short"
        assert view["note"] == "short"
        assert store.read(string_data_slot(3) + 1) == bytes(32)
        assert store.read(string_data_slot(3) + 2) == bytes(32)

    def test_empty_string_clears_everything(self) -> None:
        store = PersistentStore()
        view = StateView(_LAYOUT, store)
        view["note"] = "temporary"
        view["note"] = ""
        assert len(store) == 0

    def test_uint_overflow(self) -> None:
        view = StateView(_LAYOUT, PersistentStore())
        with pytest.raises(InvalidArgument):
            view["count"] = 2**256

    def test_shared_store_seen_by_extended_layout(self) -> None:
        store = PersistentStore()
        StateView(_LAYOUT, store)["count"] = 5
        extended = StateView(_LAYOUT.extend(("extra", "string")), store)
        assert extended["count"] == 5
        assert extended["extra"] == ""
