"""Cart store: the buyer's cart as an owned, observable state object.

Every mutation is applied to the in-memory lines immediately and then pushed
to the cart backend by a background task. Syncs touching the same line run in
the order they were issued. When a sync fails, the lines it touched are put
back the way they were before it, and any later queued syncs for those lines
are dropped because their local effects were discarded with the rollback.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from bazaar.middleware.metrics import record_cart_sync_failure
from bazaar.schemas.cart import (
    CartView,
    LineItem,
    ProductSnapshot,
    SelectionState,
    SellerGroup,
    VariantSnapshot,
)
from bazaar.schemas.pricing import PricingRules
from bazaar.services import cart_aggregator, selection
from bazaar.services.ports import CartBackend

logger = logging.getLogger(__name__)

LineKey = tuple[str, str | None]
Listener = Callable[["CartStore"], Any]


class CartSyncError(Exception):
    """A background sync could not be sent to the cart backend."""


@dataclass
class _PendingSync:
    seq: int
    operation: str
    keys: tuple[LineKey, ...]
    snapshot: list[LineItem]


class CartStore:
    """Single source of truth for one buyer's cart lines."""

    def __init__(
        self,
        backend: CartBackend,
        buyer_id: str,
        rules: PricingRules | None = None,
    ):
        self.backend = backend
        self.buyer_id = buyer_id
        self.rules = rules or PricingRules.from_settings()
        self.cart_id: str | None = None
        self._items: list[LineItem] = []
        self._item_ids: dict[LineKey, str] = {}
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()
        self._tails: dict[LineKey, asyncio.Task] = {}
        self._dropped_through: dict[LineKey, int] = {}
        self._seq = 0

    # ==================== Reads ====================

    @property
    def items(self) -> list[LineItem]:
        return list(self._items)

    @property
    def has_pending_sync(self) -> bool:
        return bool(self._tasks)

    def groups(self) -> dict[str, SellerGroup]:
        return cart_aggregator.group_by_seller(self._items, self.rules)

    def groups_by_activity(self) -> list[SellerGroup]:
        return cart_aggregator.order_groups_by_activity(self.groups().values())

    def selection_state(self, seller_id: str | None = None) -> SelectionState:
        if seller_id is None:
            return selection.selection_state(self._items)
        return selection.seller_selection(self._items, seller_id)

    def selected_items(self) -> list[LineItem]:
        return selection.selected_lines(self._items)

    def find(self, product_id: str, variant_id: str | None = None) -> LineItem | None:
        return cart_aggregator.find_line(self._items, product_id, variant_id)

    def view(self) -> CartView:
        return CartView(
            cart_id=self.cart_id or "",
            groups=self.groups_by_activity(),
            selection=self.selection_state(),
            item_count=sum(item.quantity for item in self._items),
            selected_count=sum(item.quantity for item in self._items if item.included),
        )

    # ==================== Observers ====================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback fired after every local change; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.warning(f"Cart listener {listener!r} failed: {e}")

    # ==================== Loading ====================

    async def load(self, preselect: Iterable[str] = ()) -> list[LineItem]:
        """Replace local state with the backend's cart.

        Hydrated lines start unselected unless their item id is in preselect.
        Pending syncs are drained first so a stale list cannot overwrite them.
        """
        await self.wait_for_sync()
        chosen = set(preselect)
        self.cart_id = await self.backend.get_or_create_cart(self.buyer_id)
        records = await self.backend.list_items(self.cart_id)

        self._items = [
            record.model_copy(update={"included": record.item_id in chosen})
            for record in records
        ]
        self._item_ids = {item.key: item.item_id for item in self._items if item.item_id}
        self._tails.clear()
        self._dropped_through.clear()
        logger.info(f"Loaded cart {self.cart_id} with {len(self._items)} lines")
        self._notify()
        return self.items

    # ==================== Mutations ====================

    def add(
        self,
        product: ProductSnapshot,
        quantity: int = 1,
        variant: VariantSnapshot | None = None,
        registry_item_id: str | None = None,
    ) -> LineItem | None:
        """Add to the cart, merging with an existing line for the same variant.

        New lines are selected. Returns the resulting line, or None when
        nothing is in stock.
        """
        new_line = LineItem(
            product=product,
            variant=variant,
            quantity=quantity,
            included=True,
            registry_item_id=registry_item_id,
        )
        snapshot = list(self._items)
        self._items = cart_aggregator.merge_line(self._items, new_line)
        line = self.find(new_line.product_id, new_line.variant_id)
        if line is None or line == cart_aggregator.find_line(snapshot, *new_line.key):
            return line

        key = line.key
        self._notify()

        async def push() -> None:
            stored = await self.backend.add_item(
                self._require_cart_id(),
                key[0],
                quantity,
                variant_id=key[1],
                registry_item_id=registry_item_id,
            )
            if stored.item_id:
                self._remember_item_id(key, stored.item_id)

        self._schedule("add", (key,), snapshot, push)
        return line

    def update_quantity(
        self, product_id: str, variant_id: str | None, quantity: int
    ) -> int:
        """Set a line's quantity; returns the clamped value actually recorded.

        A result of 0 removes the line. Unknown lines record 0 and do nothing.
        """
        key = (product_id, variant_id)
        current = self.find(product_id, variant_id)
        if current is None:
            return 0

        snapshot = list(self._items)
        self._items, recorded = cart_aggregator.set_quantity(self._items, key, quantity)
        if recorded == current.quantity:
            return recorded
        self._notify()

        async def push() -> None:
            item_id = self._item_id_for(key)
            if recorded == 0:
                await self.backend.remove_items([item_id])
                self._item_ids.pop(key, None)
            else:
                await self.backend.update_quantity(item_id, recorded)

        self._schedule("update_quantity", (key,), snapshot, push)
        return recorded

    def change_variant(
        self,
        product_id: str,
        variant_id: str | None,
        variant: VariantSnapshot,
        quantity: int | None = None,
    ) -> LineItem | None:
        """Point a line at another variant, merging into an existing line for it."""
        source_key = (product_id, variant_id)
        source = self.find(product_id, variant_id)
        if source is None:
            return None
        target_key = (product_id, variant.variant_id)
        if target_key == source_key:
            return source

        moved = source.quantity if quantity is None else quantity
        merged = self.find(*target_key) is not None
        snapshot = list(self._items)
        self._items, line = cart_aggregator.change_variant(
            self._items, source_key, variant, quantity
        )
        self._notify()

        async def push() -> None:
            item_id = self._item_id_for(source_key)
            await self.backend.update_variant(item_id, variant.variant_id, moved)
            self._item_ids.pop(source_key, None)
            if not merged:
                self._remember_item_id(target_key, item_id)

        self._schedule("change_variant", (source_key, target_key), snapshot, push)
        return line

    def remove(self, keys: Iterable[LineKey]) -> None:
        doomed = [key for key in dict.fromkeys(keys) if self.find(*key) is not None]
        if not doomed:
            return
        snapshot = list(self._items)
        self._items = cart_aggregator.remove_lines(self._items, doomed)
        self._notify()

        async def push() -> None:
            item_ids = [self._item_id_for(key) for key in doomed]
            await self.backend.remove_items(item_ids)
            for key in doomed:
                self._item_ids.pop(key, None)

        self._schedule("remove", tuple(doomed), snapshot, push)

    # ==================== Selection ====================

    def toggle(self, product_id: str, variant_id: str | None = None) -> None:
        self._items = selection.toggle(self._items, product_id, variant_id)
        self._notify()

    def toggle_seller(self, seller_id: str, included: bool) -> None:
        self._items = selection.toggle_seller(self._items, seller_id, included)
        self._notify()

    def select_all(self, included: bool) -> None:
        self._items = selection.select_all(self._items, included)
        self._notify()

    def select_only(self, item_ids: Iterable[str]) -> None:
        """Include exactly the given item ids, as a "buy again" flow does."""
        chosen = set(item_ids)
        self._items = [
            item.model_copy(update={"included": item.item_id in chosen}) for item in self._items
        ]
        self._notify()

    # ==================== Reconciliation ====================

    def apply_checkout(self, consumed: Iterable[LineKey]) -> None:
        """Drop lines consumed by a placed order.

        The backend already deleted them as part of the order transaction, so
        no sync is scheduled.
        """
        consumed_keys = set(consumed)
        self._items = cart_aggregator.remove_lines(self._items, consumed_keys)
        for key in consumed_keys:
            self._item_ids.pop(key, None)
        self._notify()

    async def wait_for_sync(self) -> None:
        """Wait until every background sync issued so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # ==================== Sync internals ====================

    def _require_cart_id(self) -> str:
        if self.cart_id is None:
            raise CartSyncError("Cart has not been loaded")
        return self.cart_id

    def _remember_item_id(self, key: LineKey, item_id: str) -> None:
        self._item_ids[key] = item_id
        line = self.find(*key)
        if line is not None and line.item_id is None:
            self._items = [
                item.model_copy(update={"item_id": item_id}) if item is line else item
                for item in self._items
            ]

    def _item_id_for(self, key: LineKey) -> str:
        line = self.find(*key)
        if line is not None and line.item_id:
            return line.item_id
        item_id = self._item_ids.get(key)
        if item_id is None:
            raise CartSyncError(f"No stored cart item for product {key[0]} variant {key[1]}")
        return item_id

    def _schedule(
        self,
        operation: str,
        keys: tuple[LineKey, ...],
        snapshot: list[LineItem],
        push: Callable[[], Awaitable[None]],
    ) -> asyncio.Task:
        self._seq += 1
        pending = _PendingSync(self._seq, operation, keys, snapshot)
        previous = {self._tails[key] for key in keys if key in self._tails}

        task = asyncio.create_task(self._run_sync(pending, previous, push))
        for key in keys:
            self._tails[key] = task
        self._tasks.add(task)
        task.add_done_callback(self._sync_finished)
        return task

    def _sync_finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        for key, tail in list(self._tails.items()):
            if tail is task:
                del self._tails[key]

    def _is_dropped(self, key: LineKey, seq: int) -> bool:
        return self._dropped_through.get(key, 0) >= seq

    async def _run_sync(
        self,
        pending: _PendingSync,
        previous: set[asyncio.Task],
        push: Callable[[], Awaitable[None]],
    ) -> bool:
        if previous:
            await asyncio.wait(previous)

        stale = [key for key in pending.keys if self._is_dropped(key, pending.seq)]
        if stale:
            # An earlier sync on one of these lines failed; undo the rest too.
            fresh = [key for key in pending.keys if key not in stale]
            logger.debug(f"Dropping queued cart sync '{pending.operation}' #{pending.seq}")
            if fresh:
                self._rollback(pending, fresh)
            return False

        try:
            await push()
        except Exception as e:
            logger.warning(
                f"Cart sync '{pending.operation}' #{pending.seq} failed, rolling back: {e}"
            )
            record_cart_sync_failure(pending.operation)
            self._rollback(pending, list(pending.keys))
            return False
        return True

    def _rollback(self, pending: _PendingSync, keys: list[LineKey]) -> None:
        """Restore the given lines to their state in the pending sync's snapshot.

        Lines that still exist keep their current selection.
        """
        restore = set(keys)
        before = {item.key: (index, item) for index, item in enumerate(pending.snapshot)}
        current = {item.key: item for item in self._items}

        items = [item for item in self._items if item.key not in restore]
        for key in sorted(restore, key=lambda k: before.get(k, (len(items), None))[0]):
            if key not in before:
                continue
            index, line = before[key]
            if line.item_id is None and key in self._item_ids:
                line = line.model_copy(update={"item_id": self._item_ids[key]})
            if key in current and current[key].included != line.included:
                # Selection is local only and never rolled back
                line = line.model_copy(update={"included": current[key].included})
            items.insert(min(index, len(items)), line)

        self._items = items
        for key in restore:
            self._dropped_through[key] = self._seq
        self._notify()
