"""
Tests for CartStore local operations
"""

import json
import pytest
from decimal import Decimal

from storefront.cart import CART_STORAGE_KEY, CartStore, ItemDescriptor, MemoryLocalStore
from tests.conftest import FailingLocalStore


A = ItemDescriptor(id="A", name="X", price=100)
B = ItemDescriptor(id="B", name="Y", price=50)


def _quantities(store):
    return [(item.id, item.qty) for item in store.items]


class TestAdd:
    """Tests for adding items."""

    def test_add_new_item(self, store):
        store.add(A, 2)

        assert _quantities(store) == [("A", 2)]
        assert store.total() == 200

    def test_add_defaults_to_one(self, store):
        store.add(B)
        assert _quantities(store) == [("B", 1)]

    def test_add_existing_increments(self, store, ipa):
        store.add(ipa, 1)
        assert store.total() == 3490

        store.add(ipa, 2)
        assert _quantities(store) == [("ipa-1", 3)]
        assert store.total() == 10470

    def test_add_existing_keeps_metadata(self, store):
        store.add(A, 1)
        store.add(ItemDescriptor(id="A", name="Renamed", price=999), 1)

        item = store.get("A")
        assert item.name == "X"
        assert item.price == 100
        assert item.qty == 2

    def test_add_preserves_insertion_order(self, store, stout):
        store.add(A)
        store.add(stout)
        store.add(B)
        store.add(A)
        assert [item.id for item in store.items] == ["A", "cz-stout-002", "B"]

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
    def test_add_rejects_invalid_quantity(self, store, quantity):
        with pytest.raises(ValueError):
            store.add(A, quantity)
        assert store.items == ()

    def test_add_persists_locally(self, store, local_store, stout):
        store.add(stout, 2)

        stored = json.loads(local_store.read(CART_STORAGE_KEY))
        assert stored == [{
            "id": "cz-stout-002",
            "name": "Stout Andina 330ml",
            "price": 3290,
            "qty": 2,
            "image": "/images/scout330.jpg.jpg",
        }]

    def test_add_does_not_touch_remote(self, store, remote_store):
        store.attach("user1")
        store.add(A)
        assert remote_store.records == {}


class TestSetQuantityAndRemove:
    """Tests for quantity updates and removal."""

    def test_set_quantity_replaces(self, store):
        store.add(A, 2)
        store.set_quantity("A", 7)
        assert _quantities(store) == [("A", 7)]

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_set_quantity_non_positive_removes(self, store, quantity):
        store.add(A, 2)
        store.add(B, 1)
        store.set_quantity("A", quantity)
        assert _quantities(store) == [("B", 1)]

    @pytest.mark.parametrize("quantity", [1.5, True, "2"])
    def test_set_quantity_rejects_non_integer(self, store, local_store, quantity):
        store.add(A, 2)

        with pytest.raises(ValueError):
            store.set_quantity("A", quantity)

        assert _quantities(store) == [("A", 2)]
        reloaded = CartStore(local_store=local_store)
        assert [(item.id, item.qty) for item in reloaded.hydrate()] == [("A", 2)]

    def test_set_quantity_unknown_is_noop(self, store):
        store.add(A, 2)
        store.set_quantity("missing", 5)
        assert _quantities(store) == [("A", 2)]

    def test_remove(self, store):
        store.add(A)
        store.add(B)
        store.remove("A")
        assert _quantities(store) == [("B", 1)]

    def test_remove_unknown_is_noop(self, store):
        store.add(A)
        store.remove("missing")
        assert _quantities(store) == [("A", 1)]

    def test_set_quantity_zero_equals_remove(self):
        first = CartStore(local_store=MemoryLocalStore())
        second = CartStore(local_store=MemoryLocalStore())
        for cart in (first, second):
            cart.add(A, 2)
            cart.add(B, 3)

        first.set_quantity("A", 0)
        second.remove("A")

        assert first.items == second.items
        assert first.local_store.read(CART_STORAGE_KEY) == second.local_store.read(CART_STORAGE_KEY)


class TestTotal:
    """Tests for total()."""

    def test_empty_total(self, store):
        assert store.total() == 0
        assert isinstance(store.total(), Decimal)

    def test_total_not_rounded(self, store):
        store.add(ItemDescriptor(id="c", name="Chapa", price="0.333"), 3)
        assert store.total() == Decimal("0.999")

    def test_total_matches_items_after_mixed_operations(self, store, ipa, stout):
        store.add(ipa, 2)
        store.add(stout, 1)
        store.add(A, 4)
        store.set_quantity("cz-stout-002", 5)
        store.remove("A")
        store.add(ipa)

        assert store.total() == 3490 * 3 + 3290 * 5
        assert store.total() == sum(item.price * item.qty for item in store.items)

    def test_total_items(self, store):
        store.add(A, 2)
        store.add(B, 3)
        assert store.total_items == 5


class TestClearAndHydrate:
    """Tests for clear() and hydrate()."""

    def test_scenario_clear_then_hydrate_is_empty(self, store, local_store, ipa):
        store.add(ipa, 1)
        store.add(ipa, 2)
        assert store.total() == 10470

        store.clear()
        assert store.total() == 0
        assert local_store.read(CART_STORAGE_KEY) is None

        assert store.hydrate() == ()

    def test_hydrate_restores_after_reload(self, local_store, ipa):
        CartStore(local_store=local_store).add(ipa, 4)

        reloaded = CartStore(local_store=local_store)
        reloaded.hydrate()

        assert _quantities(reloaded) == [("ipa-1", 4)]
        assert reloaded.get("ipa-1").name == "IPA"

    def test_hydrate_is_idempotent(self, store):
        store.add(A, 2)
        store.add(B, 1)

        first = store.hydrate()
        second = store.hydrate()
        assert first == second

    def test_hydrate_replaces_memory(self, store, local_store):
        store.add(A)

        local_store.write(CART_STORAGE_KEY, b'[{"id": "B", "name": "Y", "price": 50, "qty": 2}]')
        store.hydrate()
        assert _quantities(store) == [("B", 2)]

    @pytest.mark.parametrize(
        "payload",
        [b"{corrupt", b'{"id": "A"}', b"\xff\xfe", b"null", b"[" * 200000 + b"]" * 200000],
    )
    def test_hydrate_corrupt_payload_yields_empty(self, local_store, payload):
        local_store.write(CART_STORAGE_KEY, payload)
        store = CartStore(local_store=local_store)
        assert store.hydrate() == ()

    def test_hydrate_without_local_store(self):
        store = CartStore()
        assert store.hydrate() == ()
        store.add(A)
        assert store.total() == 100

    def test_custom_storage_key(self, local_store):
        store = CartStore(local_store=local_store, storage_key="cart:tab-2")
        store.add(A)
        assert local_store.read("cart:tab-2") is not None
        assert local_store.read(CART_STORAGE_KEY) is None


class TestStorageFailures:
    """Local storage failures never reach the caller."""

    def test_mutations_survive_failing_storage(self):
        failing = FailingLocalStore()
        store = CartStore(local_store=failing)
        received = []
        store.subscribe(received.append)

        assert store.hydrate() == ()
        store.add(A, 2)
        store.set_quantity("A", 3)
        store.clear()

        assert failing.calls == ["read", "write", "write", "delete"]
        assert len(received) == 4
        assert store.items == ()

    def test_memory_state_kept_when_write_fails(self):
        store = CartStore(local_store=FailingLocalStore())
        store.add(A, 2)
        assert store.total() == 200


class TestNotifications:
    """Subscribers are told about every mutating call."""

    def test_one_notification_per_mutation(self, store, notifications):
        store.hydrate()
        store.add(A, 2)
        store.add(B)
        store.total()
        store.set_quantity("A", 0)
        store.remove("missing")
        store.total()
        store.clear()

        assert len(notifications) == 6

    def test_notification_carries_new_snapshot(self, store, notifications):
        store.add(A, 2)
        store.add(B)

        assert notifications[0] == store.items[:1]
        assert notifications[1] == store.items
        assert isinstance(notifications[1], tuple)

    def test_notified_after_local_write(self, store, local_store):
        seen = []
        store.subscribe(lambda items: seen.append(local_store.read(CART_STORAGE_KEY)))
        store.add(A)
        assert json.loads(seen[0])[0]["id"] == "A"

    def test_registration_order(self, store):
        calls = []
        store.subscribe(lambda items: calls.append("first"))
        store.subscribe(lambda items: calls.append("second"))
        store.add(A)
        assert calls == ["first", "second"]

    def test_subscriber_added_during_notification_waits(self, store):
        late = []

        def register_late(items):
            store.subscribe(late.append)

        store.subscribe(register_late)
        store.add(A)
        assert late == []

        store.add(B)
        assert len(late) == 1

    def test_unsubscribe(self, store):
        received = []
        unsubscribe = store.subscribe(received.append)
        store.add(A)
        unsubscribe()
        unsubscribe()
        store.add(B)
        assert len(received) == 1

    def test_failing_subscriber_does_not_block_others(self, store):
        received = []

        def broken(items):
            raise RuntimeError("ui crashed")

        store.subscribe(broken)
        store.subscribe(received.append)
        store.add(A)

        assert len(received) == 1
        assert store.total() == 100

    def test_attach_and_total_do_not_notify(self, store, notifications):
        store.attach("user1")
        store.total()
        store.attach(None)
        assert notifications == []
