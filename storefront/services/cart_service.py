# storefront/services/cart_service.py
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import NotFound, ValidationFailed
from storefront.domain.pricing import can_add_to_cart, inventory_status
from storefront.domain.schemas import CartItemIn, CartLine, CartOut
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CartOwner:
    """Who the cart belongs to: a signed-in user or a guest token."""

    user_id: int | None = None
    guest_token: str | None = None

    @property
    def label(self) -> str:
        return f"user {self.user_id}" if self.user_id else f"guest {self.guest_token}"


def to_cart_line(item: CartItemModel) -> CartLine | None:
    if item.is_simple_product and item.product is not None:
        p = item.product
        return CartLine(
            id=item.id,
            cart_id=item.cart_id,
            product_id=p.id,
            product_variant_id=None,
            is_simple_product=True,
            quantity=item.quantity,
            name=p.name,
            sku=p.sku or "",
            price=p.price or Decimal("0"),
            sale_price=p.sale_price,
            in_stock=p.in_stock or 0,
            stock_status=inventory_status(p.in_stock or 0)["status"],
        )

    if not item.is_simple_product and item.variant is not None:
        v = item.variant
        return CartLine(
            id=item.id,
            cart_id=item.cart_id,
            product_id=v.product_id,
            product_variant_id=v.id,
            is_simple_product=False,
            quantity=item.quantity,
            name=v.product.name,
            sku=v.sku,
            price=v.price,
            sale_price=v.sale_price,
            in_stock=v.in_stock or 0,
            stock_status=inventory_status(v.in_stock or 0)["status"],
            color_name=v.color_name,
            color_hex=v.color_hex,
            size_name=v.size_name,
        )

    # product or variant was deleted underneath the cart
    return None


class CartService:
    """
    Server side of the cart.
    commands (add, update, remove, clear, merge) change state,
    get_cart only reads (but creates the cart lazily).
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)

    def _get_or_create_cart(self, owner: CartOwner) -> CartModel:
        if owner.user_id:
            cart = self.repo.get_cart_by_user(owner.user_id)
            if not cart:
                cart = self.repo.create_cart(CartModel(user_id=owner.user_id))
                logger.info(f"Created cart {cart.id} for user {owner.user_id}")
            return cart

        if not owner.guest_token:
            owner.guest_token = uuid.uuid4().hex

        cart = self.repo.get_cart_by_guest(owner.guest_token)
        if not cart:
            cart = self.repo.create_cart(CartModel(guest_token=owner.guest_token))
            logger.info(f"Created guest cart {cart.id}")
        return cart

    def cart_lines(self, cart_id: int) -> List[CartLine]:
        lines = []
        for item in self.repo.get_cart_items(cart_id):
            line = to_cart_line(item)
            if line is not None:
                lines.append(line)
        return lines

    # query
    def get_cart(self, owner: CartOwner) -> CartOut:
        cart = self._get_or_create_cart(owner)
        lines = self.cart_lines(cart.id)
        total = sum((line.unit_price * line.quantity for line in lines), Decimal("0.00"))
        return CartOut(
            items=lines,
            total=total,
            guest_token=None if owner.user_id else owner.guest_token,
        )

    # commands
    def add_item(self, owner: CartOwner, payload: CartItemIn) -> CartOut:
        cart = self._get_or_create_cart(owner)

        if payload.is_simple_product:
            product = self.products.get_product(payload.product_id)
            if not product:
                raise NotFound("Product not found.")
            existing = self.repo.find_simple_item(cart.id, payload.product_id)
            in_stock = product.in_stock or 0
        else:
            variant = self.products.get_variant(payload.product_variant_id)
            if not variant:
                raise NotFound("Product variant not found.")
            if variant.product_id != payload.product_id:
                raise ValidationFailed("Variant does not belong to the given product.")
            existing = self.repo.find_variant_item(cart.id, payload.product_variant_id)
            in_stock = variant.in_stock or 0

        check = can_add_to_cart(payload.quantity, in_stock, existing.quantity if existing else 0)
        if not check["can_add"]:
            raise ValidationFailed(check["error"], {"quantity": [check["error"]]})

        if existing:
            logger.info(
                f"Item {existing.id} already in cart {cart.id}, quantity "
                f"{existing.quantity} -> {existing.quantity + payload.quantity}"
            )
            existing.quantity += payload.quantity
        else:
            self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart.id,
                    product_id=payload.product_id,
                    product_variant_id=None if payload.is_simple_product else payload.product_variant_id,
                    is_simple_product=payload.is_simple_product,
                    quantity=payload.quantity,
                )
            )
            logger.info(f"Added new line to cart {cart.id} ({owner.label})")

        self.repo.commit()
        return self.get_cart(owner)

    def update_item(self, owner: CartOwner, cart_item_id: int, quantity: int) -> CartOut:
        if quantity < 1:
            raise ValidationFailed("Quantity must be at least 1", {"quantity": ["Quantity must be at least 1"]})

        cart = self._get_or_create_cart(owner)
        item = self.repo.get_cart_item(cart.id, cart_item_id)
        if not item:
            raise NotFound("Cart item not found")

        item.quantity = quantity
        self.repo.commit()
        return self.get_cart(owner)

    def remove_item(self, owner: CartOwner, cart_item_id: int) -> CartOut:
        cart = self._get_or_create_cart(owner)
        item = self.repo.get_cart_item(cart.id, cart_item_id)
        if not item:
            raise NotFound("Cart item not found")

        self.repo.delete_cart_item(item)
        self.repo.commit()
        logger.info(f"Removed item {cart_item_id} from cart {cart.id}")
        return self.get_cart(owner)

    def clear_cart(self, owner: CartOwner) -> CartOut:
        cart = self._get_or_create_cart(owner)
        removed = self.repo.clear_cart(cart.id)
        self.repo.commit()
        logger.info(f"Cleared cart {cart.id}, {removed} lines removed")
        return self.get_cart(owner)

    def merge_guest_cart(self, user_id: int, guest_token: str) -> CartOut:
        """
        Moves guest lines into the user's cart, summing quantities of matching
        lines, then deletes the guest cart. Called after sign-in.
        """
        owner = CartOwner(user_id=user_id)
        guest_cart = self.repo.get_cart_by_guest(guest_token)
        if not guest_cart:
            return self.get_cart(owner)

        user_cart = self._get_or_create_cart(owner)
        guest_items = self.repo.get_cart_items(guest_cart.id)

        for g in guest_items:
            if g.is_simple_product:
                existing = self.repo.find_simple_item(user_cart.id, g.product_id)
            else:
                existing = self.repo.find_variant_item(user_cart.id, g.product_variant_id)

            if existing:
                existing.quantity += g.quantity
            else:
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=user_cart.id,
                        product_id=g.product_id,
                        product_variant_id=g.product_variant_id,
                        is_simple_product=g.is_simple_product,
                        quantity=g.quantity,
                    )
                )

        self.repo.clear_cart(guest_cart.id)
        self.repo.delete_cart(guest_cart)
        self.repo.commit()

        logger.info(f"Merged {len(guest_items)} guest lines into cart {user_cart.id}")
        return self.get_cart(owner)
