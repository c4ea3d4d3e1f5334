"""Data access layer for Glow ERP.

This module provides low-level helpers that read from and write to the
key-value store holding the shop's JSON documents. Business logic belongs
elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Store lifecycle: loading and persisting named JSON blobs, with seed
   fallback and recovery from corrupt documents.
3. Record mapping: converting stored JSON objects into typed dataclasses and
   back.
"""


from __future__ import annotations

import configparser
import copy
import json
import os
import tempfile
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from . import log
from .constants import SEEDED_KEYS, PaymentMethod, StockPolicy


CONFIG_FILE_NAME = "config.ini"
DEFAULT_LOW_STOCK_THRESHOLD = 10
DEFAULT_PLACEHOLDER_IMAGE = "https://placehold.co/400x400.png"


class StorageReadError(ValueError):
    """Raised when a persisted blob cannot be decoded as UTF-8 JSON."""


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_dir: Path
    shop_name: str
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD
    placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE
    stock_policy: StockPolicy = StockPolicy.DEFER


@dataclass(frozen=True)
class Product:
    """In-memory view of a catalog entry."""

    id: str
    name: str
    description: str
    price: Decimal
    stock: int
    low_stock_threshold: int
    image: str
    category: str


@dataclass(frozen=True)
class SaleItem:
    """One line of a manual sale, holding snapshots taken at sale time."""

    product_id: str
    product_name: str
    quantity: int
    price: Decimal
    category: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class Sale:
    """A committed manual sale. Immutable once created."""

    id: str
    customer_id: str
    seller_id: str
    cashier_id: str
    date: str
    items: Tuple[SaleItem, ...]
    total: Decimal


@dataclass(frozen=True)
class OrderItem:
    """One line of a point-of-sale order."""

    product_id: str
    product_name: str
    quantity: int
    price: Decimal
    category: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class Order:
    """A point-of-sale order owned by the external order collaborator."""

    id: str
    customer_name: str
    customer_avatar: str
    date: str
    status: str
    items: Tuple[OrderItem, ...]
    total: Decimal
    payment_method: Optional[str] = None
    seller_name: Optional[str] = None


@dataclass(frozen=True)
class Customer:
    """Directory entry for a shop customer."""

    id: str
    name: str
    email: str = ""
    phone: str = ""
    avatar_url: str = ""
    last_order_date: str = ""
    total_spent: Decimal = Decimal("0")


@dataclass(frozen=True)
class StaffMember:
    """Directory entry for a seller or a cashier."""

    id: str
    name: str
    password: Optional[str] = None


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match is considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If no parent directory holds ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Validation of required entries happens in :func:`parse_settings`.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System] DataDir`` and ``[System] ShopName`` are required. The
    ``[Defaults]`` and ``[Sales]`` sections are optional and fall back to the
    module defaults. Relative data directories are anchored at ``base_path``,
    or at the current working directory when it is omitted.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to resolve a relative
            ``DataDir`` entry.

    Returns:
        ConfigSettings: Immutable settings with a resolved data directory.

    Raises:
        KeyError: If a required section or option is missing.
        ValueError: If an optional entry holds a value of the wrong type.
    """

    try:
        data_dir_raw = parser.get("System", "DataDir")
        shop_name = parser.get("System", "ShopName")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    threshold = parser.getint(
        "Defaults", "LowStockThreshold", fallback=DEFAULT_LOW_STOCK_THRESHOLD)
    if threshold < 0:
        raise ValueError("LowStockThreshold must be zero or positive")
    placeholder = parser.get(
        "Defaults", "PlaceholderImage", fallback=DEFAULT_PLACEHOLDER_IMAGE)
    decrement = parser.getboolean(
        "Sales", "DecrementStockOnCommit", fallback=False)

    data_dir = Path(data_dir_raw).expanduser()
    if not data_dir.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_dir = (base_path / data_dir).resolve()

    return ConfigSettings(
        data_dir=data_dir,
        shop_name=shop_name,
        low_stock_threshold=threshold,
        placeholder_image=placeholder,
        stock_policy=StockPolicy.DECREMENT_ON_COMMIT if decrement else StockPolicy.DEFER,
    )


class KeyValueStore:
    """Load and save whole JSON documents by key.

    Subclasses only provide raw string access through :meth:`read_raw` and
    :meth:`write_raw`; encoding, seeding and corruption recovery live here so
    every backend behaves the same way.
    """

    def read_raw(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def write_raw(self, key: str, payload: str) -> None:
        raise NotImplementedError

    def load(self, key: str, default: Any, *, seed: Optional[bool] = None) -> Any:
        """Return the decoded document stored under ``key``.

        When nothing is stored the caller receives a copy of ``default``; for
        seeded keys (see :data:`~glow_erp.constants.SEEDED_KEYS`, overridable
        through ``seed``) the default is also written back so the first-run
        seed becomes durable. A blob that fails to decode is logged, replaced
        by ``default`` on disk, and never reported as an error.
        """

        if seed is None:
            seed = key in SEEDED_KEYS

        try:
            raw = self.read_raw(key)
            if raw is not None:
                return decode_document(key, raw)
        except StorageReadError as exc:
            log.warning("%s; restoring default document", exc)
            self.save(key, default)
            return copy.deepcopy(default)

        log.debug("No stored document for key '%s'; using default", key)
        if seed:
            self.save(key, default)
        return copy.deepcopy(default)

    def save(self, key: str, value: Any) -> None:
        """Overwrite the document stored under ``key`` with ``value``."""

        self.write_raw(key, json.dumps(value, ensure_ascii=False))
        log.debug("Saved document for key '%s'", key)

    def keys(self) -> List[str]:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """Key-value store kept in a dictionary of raw JSON strings."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._blobs: Dict[str, str] = dict(initial or {})

    def read_raw(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def write_raw(self, key: str, payload: str) -> None:
        self._blobs[key] = payload

    def keys(self) -> List[str]:
        return sorted(self._blobs)


class JsonDirectoryStore(KeyValueStore):
    """Key-value store persisting each key as ``<key>.json`` in a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory).expanduser().resolve()

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read_raw(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise StorageReadError(
                f"Malformed document stored under '{key}': not valid UTF-8") from exc

    def write_raw(self, key: str, payload: str) -> None:
        """Write ``payload`` through a temporary file so readers never see half a document."""

        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{key}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, target)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def keys(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(path.stem for path in self.directory.glob("*.json"))


def decode_document(key: str, raw: str) -> Any:
    """Decode a raw JSON blob, translating parse errors to :class:`StorageReadError`."""

    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageReadError(
            f"Malformed document stored under '{key}': {exc}") from exc


def _to_decimal(raw: object, default: str = "0") -> Decimal:
    return Decimal(str(raw)) if raw is not None else Decimal(default)


def _money(value: Decimal) -> float:
    return float(value)


def _optional_str(raw: object) -> Optional[str]:
    return str(raw) if raw is not None else None


def serialize_product(record: Product) -> Dict[str, Any]:
    """Convert a product dataclass into its stored JSON shape."""

    return {
        "id": record.id,
        "name": record.name,
        "description": record.description,
        "price": _money(record.price),
        "stock": record.stock,
        "lowStockThreshold": record.low_stock_threshold,
        "image": record.image,
        "category": record.category,
    }


def deserialize_product(raw: Mapping[str, Any]) -> Product:
    """Convert a stored JSON object into a :class:`Product`.

    Numeric columns are coerced so that hand-edited documents holding strings
    still load: prices become :class:`~decimal.Decimal`, stock and thresholds
    become ``int``.
    """

    return Product(
        id=str(raw["id"]),
        name=str(raw.get("name", "")),
        description=str(raw.get("description") or ""),
        price=_to_decimal(raw.get("price"), "0.00"),
        stock=int(raw.get("stock") or 0),
        low_stock_threshold=int(raw.get("lowStockThreshold") or 0),
        image=str(raw.get("image") or ""),
        category=str(raw.get("category") or ""),
    )


def serialize_sale_item(record: SaleItem) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "productId": record.product_id,
        "productName": record.product_name,
        "quantity": record.quantity,
        "price": _money(record.price),
    }
    if record.category is not None:
        payload["category"] = record.category
    return payload


def deserialize_sale_item(raw: Mapping[str, Any]) -> SaleItem:
    return SaleItem(
        product_id=str(raw["productId"]),
        product_name=str(raw.get("productName", "")),
        quantity=int(raw.get("quantity") or 0),
        price=_to_decimal(raw.get("price"), "0.00"),
        category=_optional_str(raw.get("category")),
    )


def serialize_sale(record: Sale) -> Dict[str, Any]:
    """Convert a sale into its stored JSON shape, preserving item order."""

    return {
        "id": record.id,
        "customerId": record.customer_id,
        "sellerId": record.seller_id,
        "cashierId": record.cashier_id,
        "date": record.date,
        "items": [serialize_sale_item(item) for item in record.items],
        "total": _money(record.total),
    }


def deserialize_sale(raw: Mapping[str, Any]) -> Sale:
    """Convert a stored JSON object into a :class:`Sale`.

    The stored ``total`` is trusted as-is; it is computed from the lines when
    the sale is built, not again on load.
    """

    return Sale(
        id=str(raw["id"]),
        customer_id=str(raw.get("customerId", "")),
        seller_id=str(raw.get("sellerId", "")),
        cashier_id=str(raw.get("cashierId", "")),
        date=str(raw.get("date", "")),
        items=tuple(deserialize_sale_item(item) for item in raw.get("items") or []),
        total=_to_decimal(raw.get("total"), "0.00"),
    )


def deserialize_order_item(raw: Mapping[str, Any]) -> OrderItem:
    return OrderItem(
        product_id=str(raw["productId"]),
        product_name=str(raw.get("productName", "")),
        quantity=int(raw.get("quantity") or 0),
        price=_to_decimal(raw.get("price"), "0.00"),
        category=_optional_str(raw.get("category")),
    )


def _payment_method(raw: object, order_id: str) -> Optional[str]:
    """Return ``raw`` when it names a :class:`PaymentMethod`, else ``None``."""

    if raw is None:
        return None
    try:
        return PaymentMethod(str(raw)).value
    except ValueError:
        log.warning("Order '%s' has unknown payment method %r; ignoring it", order_id, raw)
        return None


def deserialize_order(raw: Mapping[str, Any]) -> Order:
    return Order(
        id=str(raw["id"]),
        customer_name=str(raw.get("customerName", "")),
        customer_avatar=str(raw.get("customerAvatar") or ""),
        date=str(raw.get("date", "")),
        status=str(raw.get("status", "")),
        items=tuple(deserialize_order_item(item) for item in raw.get("items") or []),
        total=_to_decimal(raw.get("total"), "0.00"),
        payment_method=_payment_method(raw.get("paymentMethod"), str(raw["id"])),
        seller_name=_optional_str(raw.get("sellerName")),
    )


def deserialize_customer(raw: Mapping[str, Any]) -> Customer:
    return Customer(
        id=str(raw["id"]),
        name=str(raw.get("name", "")),
        email=str(raw.get("email") or ""),
        phone=str(raw.get("phone") or ""),
        avatar_url=str(raw.get("avatarUrl") or ""),
        last_order_date=str(raw.get("lastOrderDate") or ""),
        total_spent=_to_decimal(raw.get("totalSpent")),
    )


def deserialize_staff(raw: Mapping[str, Any]) -> StaffMember:
    return StaffMember(
        id=str(raw["id"]),
        name=str(raw.get("name", "")),
        password=_optional_str(raw.get("password")),
    )


def iter_records(documents: Iterable[Any], deserializer, *, key: str) -> Iterable[Any]:
    """Deserialize stored objects, skipping entries that are not usable records.

    Entries that are not JSON objects or lack an ``id`` cannot be addressed
    by any operation, so they are logged and dropped instead of failing the
    whole document.
    """

    for position, raw in enumerate(documents):
        if not isinstance(raw, Mapping):
            log.warning("Skipping non-object entry %d in '%s'", position, key)
            continue
        try:
            yield deserializer(raw)
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            log.warning("Skipping unreadable entry %d in '%s': %s", position, key, exc)
