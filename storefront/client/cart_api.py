# storefront/client/cart_api.py
import requests

from storefront.utils.logging import get_logger
from storefront.utils.settings import CART_API_URL

logger = get_logger(__name__)


class CartApiClient:
    """
    Thin requests client over the /cart endpoints.

    Every call returns the {success, data, error} envelope as a dict. Failed
    calls are not retried: a cart action either lands or is reported back.
    Network errors propagate as requests exceptions.
    """

    def __init__(
        self,
        base_url: str | None = None,
        user_id: int | None = None,
        guest_token: str | None = None,
        timeout: int = 5,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or CART_API_URL).rstrip("/")
        self.user_id = user_id
        self.guest_token = guest_token
        self.timeout = timeout
        self.http = session or requests.Session()

    def _headers(self) -> dict:
        headers = {}
        if self.user_id is not None:
            headers["X-User-Id"] = str(self.user_id)
        if self.guest_token:
            headers["X-Guest-Token"] = self.guest_token
        return headers

    def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        logger.info(f"CartApiClient {method} {url}")

        resp = self.http.request(method, url, json=payload, headers=self._headers(), timeout=self.timeout)
        try:
            body = resp.json()
        except ValueError:
            resp.raise_for_status()
            return {"success": False, "error": f"Unexpected response from {url}"}

        # guests get their token with the first cart response
        data = body.get("data")
        if isinstance(data, dict) and data.get("guest_token") and self.user_id is None:
            self.guest_token = data["guest_token"]
        return body

    def get_cart(self) -> dict:
        return self._request("GET", "/cart")

    def add_item(
        self,
        product_id: int,
        product_variant_id: int | None = None,
        quantity: int = 1,
        is_simple_product: bool | None = None,
    ) -> dict:
        if is_simple_product is None:
            is_simple_product = product_variant_id is None
        return self._request(
            "POST",
            "/cart/items",
            {
                "product_id": product_id,
                "product_variant_id": product_variant_id,
                "is_simple_product": is_simple_product,
                "quantity": quantity,
            },
        )

    def update_item(self, cart_item_id: int, quantity: int) -> dict:
        return self._request("PATCH", f"/cart/items/{cart_item_id}", {"quantity": quantity})

    def remove_item(self, cart_item_id: int) -> dict:
        return self._request("DELETE", f"/cart/items/{cart_item_id}")

    def clear_cart(self) -> dict:
        return self._request("DELETE", "/cart")
