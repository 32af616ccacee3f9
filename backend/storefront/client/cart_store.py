"""
Device-local cart for signed-out browsing.

Items live under the `cart` key of a small key/value storage namespace as a
JSON list, so the same cart survives restarts when a file storage is used.
"""
import json
import logging
import os
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from storefront.client.config import client_settings

logger = logging.getLogger(__name__)

CART_KEY = "cart"


class CartItem(BaseModel):
    """One cart line. `id` is the listing id."""
    id: str
    title: str
    price: float
    currency: str = "USD"
    image: Optional[str] = None
    is_locked: bool = False
    offer_id: Optional[str] = None


class MemoryStorage:
    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """Key/value namespace persisted as one JSON object on disk."""

    def __init__(self, path: Optional[str] = None):
        self.path = os.path.expanduser(path or client_settings.CART_PATH)

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable cart storage {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class LocalCartStore:
    def __init__(self, storage=None, key: str = CART_KEY):
        self.storage = storage if storage is not None else MemoryStorage()
        self.key = key

    def list(self) -> List[CartItem]:
        raw = self.storage.get(self.key)
        if not raw:
            return []
        try:
            return [CartItem.model_validate(item) for item in json.loads(raw)]
        except (ValueError, TypeError) as e:
            # pydantic's ValidationError is a ValueError
            logger.warning(f"Discarding corrupt local cart: {e}")
            return []

    def _save(self, items: List[CartItem]) -> None:
        self.storage.set(self.key, json.dumps([item.model_dump() for item in items]))

    def contains(self, item_id: str) -> bool:
        return any(item.id == item_id for item in self.list())

    def add(self, item: CartItem) -> bool:
        """Add an item; an id already in the cart is left alone. Returns True if added."""
        items = self.list()
        if any(existing.id == item.id for existing in items):
            return False
        # Local entries never carry a reservation lock
        items.append(item.model_copy(update={"is_locked": False, "offer_id": None}))
        self._save(items)
        return True

    def remove(self, item_id: str, is_locked: Optional[Callable[[str], bool]] = None) -> bool:
        """
        Remove an item. Returns False, leaving the cart untouched, when
        `is_locked` reports the id as reserved at the time of the call.
        """
        if is_locked is not None and is_locked(item_id):
            logger.info(f"Refusing to remove reserved item {item_id}")
            return False

        items = self.list()
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) != len(items):
            self._save(remaining)
        return True

    def clear(self) -> None:
        self.storage.delete(self.key)

    def count(self) -> int:
        return len(self.list())

    def total(self):
        """(sum of prices, currency of the first item); USD for an empty cart."""
        items = self.list()
        if not items:
            return 0.0, "USD"
        return sum(item.price for item in items), items[0].currency or "USD"
