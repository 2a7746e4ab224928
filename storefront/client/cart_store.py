# storefront/client/cart_store.py
"""
Client-side cart state with optimistic updates.

Each mutation applies its change locally first, then calls the server. On
success the store resyncs silently from the server; on failure it puts the
previous items and total back exactly as they were and sets `error`.

Identical operations issued while one is still in flight (double clicks,
retries from several threads) share that one request and its result.
"""
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable, List, Optional

from storefront.client.cart_api import CartApiClient
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

SYNC_ERROR = "Failed to sync cart. Please refresh the page."


class CartActionFailed(Exception):
    pass


@dataclass(frozen=True)
class CartItem:
    id: int | str
    product_id: Optional[int]
    product_variant_id: Optional[int]
    quantity: int
    name: str = "Loading..."
    price: Decimal = Decimal("0")
    sale_price: Optional[Decimal] = None
    sku: str = ""
    in_stock: int = 0
    is_simple_product: bool = False
    color_name: Optional[str] = None
    color_hex: Optional[str] = None
    size_name: Optional[str] = None
    is_optimistic: bool = False

    @property
    def unit_price(self) -> Decimal:
        return self.sale_price if self.sale_price else self.price

    @classmethod
    def from_server(cls, data: dict) -> "CartItem":
        sale = data.get("sale_price")
        return cls(
            id=data["id"],
            product_id=data.get("product_id"),
            product_variant_id=data.get("product_variant_id"),
            quantity=data["quantity"],
            name=data.get("name", ""),
            price=Decimal(str(data.get("price", "0"))),
            sale_price=Decimal(str(sale)) if sale is not None else None,
            sku=data.get("sku") or "",
            in_stock=data.get("in_stock", 0),
            is_simple_product=data.get("is_simple_product", False),
            color_name=data.get("color_name"),
            color_hex=data.get("color_hex"),
            size_name=data.get("size_name"),
        )


def calculate_total(items: List[CartItem]) -> Decimal:
    return sum((i.unit_price * i.quantity for i in items), Decimal("0"))


class CartStore:
    def __init__(self, api: CartApiClient):
        self.api = api
        self.items: List[CartItem] = []
        self.total: Decimal = Decimal("0")
        self.error: Optional[str] = None
        self.is_loading = False

        self._lock = threading.RLock()
        self._pending: dict[str, Future] = {}

    # helpers
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    def get_item_by_variant_id(self, product_variant_id: int) -> Optional[CartItem]:
        return next((i for i in self.items if i.product_variant_id == product_variant_id), None)

    def clear_error(self):
        self.error = None

    def pending_operations(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def sync_with_server(self, silent: bool = False) -> bool:
        if not silent:
            self.is_loading = True
        try:
            result = self.api.get_cart()
            if not result.get("success"):
                raise CartActionFailed(result.get("error") or SYNC_ERROR)
            data = result.get("data") or {}
            items = [CartItem.from_server(i) for i in data.get("items", [])]
            with self._lock:
                self.items = items
                self.total = Decimal(str(data.get("total", "0")))
                self.error = None
            return True
        except Exception as e:
            logger.error(f"Failed to sync cart with server: {e}")
            self.error = SYNC_ERROR
            return False
        finally:
            self.is_loading = False

    # in-flight dedup
    def _dedupe(self, key: str, operation: Callable[[], bool]) -> bool:
        with self._lock:
            future = self._pending.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._pending[key] = future

        if not owner:
            logger.info(f"Cart operation {key} already in flight, joining it")
            return future.result()

        try:
            result = operation()
            future.set_result(result)
            return result
        except BaseException as e:
            future.set_exception(e)
            raise
        finally:
            with self._lock:
                self._pending.pop(key, None)

    def _mutate(
        self,
        key: str,
        apply_local: Callable[[List[CartItem]], Optional[List[CartItem]]],
        call_server: Callable[[], dict],
        error_message: str,
    ) -> bool:
        def attempt() -> bool:
            with self._lock:
                previous_items, previous_total = self.items, self.total
                new_items = apply_local(previous_items)
                if new_items is None:
                    return False
                self.items = new_items
                self.total = calculate_total(new_items)
                self.error = None

            try:
                result = call_server()
                if not result.get("success"):
                    raise CartActionFailed(result.get("error") or error_message)
            except Exception as e:
                logger.warning(f"Cart operation {key} failed, rolling back: {e}")
                with self._lock:
                    self.items = previous_items
                    self.total = previous_total
                    self.error = error_message
                return False

            self.sync_with_server(silent=True)
            return True

        return self._dedupe(key, attempt)

    # mutations
    def add_item(
        self,
        product_id: int,
        product_variant_id: int | None = None,
        quantity: int = 1,
        details: dict | None = None,
    ) -> bool:
        """`details` prefill the optimistic line (name, price, sku, ...) until the server answers."""
        is_simple = product_variant_id is None
        key = f"add:simple:{product_id}" if is_simple else f"add:variant:{product_variant_id}"

        def apply_local(items: List[CartItem]) -> List[CartItem]:
            for index, item in enumerate(items):
                same = item.product_id == product_id if is_simple else item.product_variant_id == product_variant_id
                if same and item.is_simple_product == is_simple:
                    updated = list(items)
                    updated[index] = replace(item, quantity=item.quantity + quantity, is_optimistic=True)
                    return updated

            extra = dict(details or {})
            for field in ("price", "sale_price"):
                if extra.get(field) is not None:
                    extra[field] = Decimal(str(extra[field]))
            optimistic = CartItem(
                id=f"temp-{int(time.time() * 1000)}",
                product_id=product_id,
                product_variant_id=product_variant_id,
                quantity=quantity,
                is_simple_product=is_simple,
                is_optimistic=True,
                **extra,
            )
            return [*items, optimistic]

        return self._mutate(
            key,
            apply_local,
            lambda: self.api.add_item(product_id, product_variant_id, quantity, is_simple),
            "Failed to add item to cart. Please try again.",
        )

    def update_quantity(self, cart_item_id: int, quantity: int) -> bool:
        if quantity <= 0:
            return self.remove_item(cart_item_id)

        def apply_local(items: List[CartItem]) -> Optional[List[CartItem]]:
            for index, item in enumerate(items):
                if item.id == cart_item_id:
                    updated = list(items)
                    updated[index] = replace(item, quantity=quantity, is_optimistic=True)
                    return updated
            return None

        return self._mutate(
            f"update:{cart_item_id}",
            apply_local,
            lambda: self.api.update_item(cart_item_id, quantity),
            "Failed to update quantity. Please try again.",
        )

    def remove_item(self, cart_item_id: int) -> bool:
        def apply_local(items: List[CartItem]) -> Optional[List[CartItem]]:
            if not any(i.id == cart_item_id for i in items):
                return None
            return [i for i in items if i.id != cart_item_id]

        return self._mutate(
            f"remove:{cart_item_id}",
            apply_local,
            lambda: self.api.remove_item(cart_item_id),
            "Failed to remove item. Please try again.",
        )

    def clear_cart(self) -> bool:
        return self._mutate(
            "clear",
            lambda items: [],
            self.api.clear_cart,
            "Failed to clear cart. Please try again.",
        )
