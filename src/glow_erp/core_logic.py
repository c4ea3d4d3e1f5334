"""Business logic layer for Glow ERP.

This module owns the catalog, the append-only sale repository and the
read-only view of point-of-sale orders. It consumes the Data Access Layer
(DAL) for all I/O while ensuring every mutation passes through the domain
rules: stock never goes negative, catalog writes are validated before they
reach the store, and committed sales are never edited.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple

from . import data_manager, log, seed_data
from .constants import (
    NOT_AVAILABLE,
    ProductCategory,
    StockPolicy,
    StockStatus,
    StorageKey,
)

if TYPE_CHECKING:
    from .transaction_builder import TransactionBuilder


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class ValidationError(BusinessRuleViolation):
    """Raised when a required field is missing or holds an invalid value."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class DuplicateItemError(BusinessRuleViolation):
    """Raised when a product is added twice to the same in-progress sale."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when a referenced product or sale line is unknown."""


class BuilderStateError(BusinessRuleViolation):
    """Raised when a committed sale builder is used without being reset."""


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or, when ``None``, the current UTC time."""

    return candidate if candidate is not None else datetime.now(UTC)


def generate_record_id(prefix: str, *, when: Optional[datetime] = None) -> str:
    """Generate a sortable record identifier from a UTC timestamp.

    Args:
        prefix (str): Record family designator such as ``"sale"`` or
            ``"prod"``.
        when (datetime | None): Timestamp used for deterministically producing
            the identifier. When ``None`` the current UTC time is used.

    Returns:
        str: Identifier formed as ``{prefix}-{YYYYMMDDHHMMSSffffff}``.

    Microseconds are packed in to avoid collisions when several records are
    created within the same second, and the fixed width keeps lexical order
    equal to chronological order.
    """
    when = _resolve_timestamp(when)
    return f"{prefix}-{when.strftime('%Y%m%d%H%M%S%f')}"


def require_text(value: Any, field: str) -> str:
    """Validate that ``value`` is a non-blank string and return it stripped."""

    if value is None or not str(value).strip():
        log.error("Validation failed: '%s' is required", field)
        raise ValidationError(f"'{field}' is required", field=field)
    return str(value).strip()


def require_non_negative_money(value: Any, field: str) -> Decimal:
    """Validate that ``value`` is a present, non-negative decimal amount."""

    if value is None or (isinstance(value, str) and not value.strip()):
        log.error("Validation failed: '%s' is required", field)
        raise ValidationError(f"'{field}' is required", field=field)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        log.error("Validation failed: '%s' is not a number (%r)", field, value)
        raise ValidationError(f"'{field}' must be a number", field=field) from exc
    if not amount.is_finite() or amount < Decimal("0"):
        log.error("Validation failed: '%s' must be zero or positive (%s)", field, amount)
        raise ValidationError(f"'{field}' must be zero or positive", field=field)
    return amount


def require_non_negative_count(value: Any, field: str) -> int:
    """Validate that ``value`` is a present, non-negative whole number."""

    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        log.error("Validation failed: '%s' is required", field)
        raise ValidationError(f"'{field}' is required", field=field)
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        log.error("Validation failed: '%s' is not a whole number (%r)", field, value)
        raise ValidationError(f"'{field}' must be a whole number", field=field) from exc
    if count != value and not isinstance(value, str):
        log.error("Validation failed: '%s' is not a whole number (%r)", field, value)
        raise ValidationError(f"'{field}' must be a whole number", field=field)
    if count < 0:
        log.error("Validation failed: '%s' must be zero or positive (%s)", field, count)
        raise ValidationError(f"'{field}' must be zero or positive", field=field)
    return count


def classify_stock(stock: int, threshold: int) -> StockStatus:
    """Derive the stock status shown next to a product.

    An empty shelf always wins over the threshold, so ``classify_stock(0, t)``
    is :attr:`StockStatus.OUT_OF_STOCK` for every ``t``. Otherwise stock at or
    below the threshold is :attr:`StockStatus.LOW`.
    """

    if stock == 0:
        return StockStatus.OUT_OF_STOCK
    if stock <= threshold:
        return StockStatus.LOW
    return StockStatus.IN_STOCK


def load_collection(store: data_manager.KeyValueStore, key: StorageKey, default: List[Any]) -> List[Any]:
    """Load a JSON array stored under ``key``.

    A document that decodes to something other than a list is treated like a
    corrupt blob: it is logged and the default is restored.
    """

    documents = store.load(key.value, default)
    if not isinstance(documents, list):
        log.warning("Document '%s' is not a list; restoring default", key.value)
        store.save(key.value, default)
        return list(default)
    return documents


class Catalog:
    """Product catalog backed by the ``PRODUCTS`` document.

    The catalog is loaded once on construction and every successful mutation
    writes the whole snapshot back before returning, so readers in the same
    session always observe the latest write.
    """

    def __init__(
        self,
        store: data_manager.KeyValueStore,
        *,
        seed: Optional[List[Dict[str, Any]]] = None,
        default_threshold: int = data_manager.DEFAULT_LOW_STOCK_THRESHOLD,
        placeholder_image: str = data_manager.DEFAULT_PLACEHOLDER_IMAGE,
    ) -> None:
        self._store = store
        self.default_threshold = default_threshold
        self.placeholder_image = placeholder_image
        documents = load_collection(
            store,
            StorageKey.PRODUCTS,
            seed_data.PRODUCTS if seed is None else seed,
        )
        self._products: List[data_manager.Product] = list(
            data_manager.iter_records(
                documents, data_manager.deserialize_product, key=StorageKey.PRODUCTS.value)
        )
        log.debug("Loaded catalog with %d products", len(self._products))

    def list(self) -> List[data_manager.Product]:
        """Return the products in persisted order."""

        return list(self._products)

    def find(self, product_id: str) -> Optional[data_manager.Product]:
        for product in self._products:
            if product.id == product_id:
                return product
        return None

    def get(self, product_id: str) -> data_manager.Product:
        """Resolve a product by id.

        Raises:
            MissingReferenceError: If the catalog holds no such product.
        """

        product = self.find(product_id)
        if product is None:
            log.warning("Product lookup failed for id '%s'", product_id)
            raise MissingReferenceError(f"Unknown product id: {product_id}")
        return product

    def category_of(self, product_id: str) -> str:
        """Return the live category of a product, or ``"N/A"`` when it is gone."""

        product = self.find(product_id)
        return product.category if product is not None else NOT_AVAILABLE

    def status_of(self, product: data_manager.Product) -> StockStatus:
        return classify_stock(product.stock, product.low_stock_threshold)

    def stock_report(self) -> List[Tuple[data_manager.Product, StockStatus]]:
        """Pair each product with its derived stock status."""

        return [(product, self.status_of(product)) for product in self._products]

    def upsert(self, product: data_manager.Product) -> data_manager.Product:
        """Insert a new product or replace an existing one by id.

        New products are placed at the front of the catalog; existing ones
        keep their position. The record is validated first and nothing is
        written when validation fails.

        Args:
            product (data_manager.Product): Candidate record.

        Returns:
            data_manager.Product: The normalized record that was stored.

        Raises:
            ValidationError: If a required field is missing or invalid.
        """

        record = validate_product(product)
        updated = list(self._products)
        for index, existing in enumerate(updated):
            if existing.id == record.id:
                updated[index] = record
                action = "Updated"
                break
        else:
            updated.insert(0, record)
            action = "Added"

        self._write(updated)
        log.info("%s product '%s' (%s)", action, record.id, record.name)
        return record

    def create_product(
        self,
        *,
        name: Any,
        price: Any,
        stock: Any,
        description: str = "",
        image: Optional[str] = None,
        category: str = ProductCategory.SKIN_CARE.value,
        low_stock_threshold: Optional[int] = None,
        when: Optional[datetime] = None,
    ) -> data_manager.Product:
        """Build a new product with a fresh id and catalog defaults, then store it."""

        product = data_manager.Product(
            id=generate_record_id("prod", when=when),
            name=name,
            description=description or "",
            price=price,
            stock=stock,
            low_stock_threshold=self.default_threshold if low_stock_threshold is None else low_stock_threshold,
            image=image or self.placeholder_image,
            category=category,
        )
        return self.upsert(product)

    def remove(self, product_id: str) -> None:
        """Remove a product by id.

        Raises:
            MissingReferenceError: If no product has ``product_id``.
        """

        updated = [product for product in self._products if product.id != product_id]
        if len(updated) == len(self._products):
            log.warning("Attempted to remove unknown product '%s'", product_id)
            raise MissingReferenceError(f"Unknown product id: {product_id}")
        self._write(updated)
        log.info("Removed product '%s'", product_id)

    def adjust_stock(self, product_id: str, delta: int) -> data_manager.Product:
        """Apply a signed stock change to one product."""

        return self.apply_stock_changes({product_id: delta})[0]

    def apply_stock_changes(self, deltas: Dict[str, int]) -> List[data_manager.Product]:
        """Apply several signed stock changes in a single catalog write.

        Every change is checked before anything is written, so either all of
        them land or none does.

        Raises:
            MissingReferenceError: If a product id is unknown.
            ValidationError: If a change would leave stock below zero.
        """

        changed: Dict[str, data_manager.Product] = {}
        for product_id, delta in deltas.items():
            product = self.get(product_id)
            new_stock = product.stock + delta
            if new_stock < 0:
                log.error(
                    "Stock change rejected for '%s': %d %+d would be negative",
                    product_id,
                    product.stock,
                    delta,
                )
                raise ValidationError(
                    f"Insufficient stock for '{product.name}': {product.stock} available",
                    field="stock",
                )
            changed[product_id] = replace(product, stock=new_stock)

        self._write([changed.get(product.id, product) for product in self._products])
        log.info("Applied stock changes to %d products", len(changed))
        return list(changed.values())

    def _write(self, products: List[data_manager.Product]) -> None:
        self._store.save(
            StorageKey.PRODUCTS.value,
            [data_manager.serialize_product(product) for product in products],
        )
        self._products = products


def validate_product(product: data_manager.Product) -> data_manager.Product:
    """Check the catalog rules for ``product`` and return a normalized copy.

    ``name``, ``price`` and ``stock`` are required; money and counts must be
    non-negative and the category must be one of :class:`ProductCategory`.
    """

    product_id = require_text(product.id, "id")
    name = require_text(product.name, "name")
    price = require_non_negative_money(product.price, "price")
    stock = require_non_negative_count(product.stock, "stock")
    threshold = require_non_negative_count(product.low_stock_threshold, "lowStockThreshold")
    allowed = {member.value for member in ProductCategory}
    if product.category not in allowed:
        log.error("Validation failed: unknown category %r", product.category)
        raise ValidationError(f"Unknown category: {product.category}", field="category")
    return replace(
        product,
        id=product_id,
        name=name,
        price=price,
        stock=stock,
        low_stock_threshold=threshold,
        description=product.description or "",
        image=product.image or "",
    )


class Directory:
    """Name lookups for customers, sellers and cashiers.

    Lookups favour availability: an unknown id resolves to ``"N/A"``.
    """

    def __init__(self, store: data_manager.KeyValueStore) -> None:
        self.customers = list(data_manager.iter_records(
            load_collection(store, StorageKey.CUSTOMERS, seed_data.CUSTOMERS),
            data_manager.deserialize_customer,
            key=StorageKey.CUSTOMERS.value,
        ))
        self.sellers = list(data_manager.iter_records(
            load_collection(store, StorageKey.SELLERS, seed_data.SELLERS),
            data_manager.deserialize_staff,
            key=StorageKey.SELLERS.value,
        ))
        self.cashiers = list(data_manager.iter_records(
            load_collection(store, StorageKey.CASHIERS, seed_data.CASHIERS),
            data_manager.deserialize_staff,
            key=StorageKey.CASHIERS.value,
        ))

    def customer_name(self, customer_id: str) -> str:
        return name_by_id(self.customers, customer_id)

    def seller_name(self, seller_id: str) -> str:
        return name_by_id(self.sellers, seller_id)

    def cashier_name(self, cashier_id: str) -> str:
        return name_by_id(self.cashiers, cashier_id)


def name_by_id(entries: Iterable[Any], record_id: str) -> str:
    for entry in entries:
        if entry.id == record_id:
            return entry.name
    return NOT_AVAILABLE


class SaleRepository:
    """Append-only store of committed manual sales, most recent first."""

    def __init__(self, store: data_manager.KeyValueStore) -> None:
        self._store = store

    def list(self) -> List[data_manager.Sale]:
        """Return the persisted sales in stored order."""

        documents = load_collection(self._store, StorageKey.SALES, [])
        return list(data_manager.iter_records(
            documents, data_manager.deserialize_sale, key=StorageKey.SALES.value))

    def append(self, sale: data_manager.Sale) -> None:
        """Prepend ``sale`` to the persisted list and write the list back."""

        documents = load_collection(self._store, StorageKey.SALES, [])
        documents.insert(0, data_manager.serialize_sale(sale))
        self._store.save(StorageKey.SALES.value, documents)
        log.info(
            "Recorded sale '%s' (%d items, total=%s)",
            sale.id,
            len(sale.items),
            sale.total,
        )


class OrderSource:
    """Read-only access to orders produced by the point-of-sale checkout."""

    def __init__(self, store: data_manager.KeyValueStore) -> None:
        self._store = store

    def list(self) -> List[data_manager.Order]:
        documents = load_collection(self._store, StorageKey.ORDERS, [])
        return list(data_manager.iter_records(
            documents, data_manager.deserialize_order, key=StorageKey.ORDERS.value))


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and the services built on the store."""

    settings: data_manager.ConfigSettings
    store: data_manager.KeyValueStore
    catalog: Catalog
    directory: Directory
    sales: SaleRepository
    orders: OrderSource


def build_context(settings: data_manager.ConfigSettings, store: data_manager.KeyValueStore) -> RuntimeContext:
    """Wire the services for ``store`` using the options in ``settings``."""

    return RuntimeContext(
        settings=settings,
        store=store,
        catalog=Catalog(
            store,
            default_threshold=settings.low_stock_threshold,
            placeholder_image=settings.placeholder_image,
        ),
        directory=Directory(store),
        sales=SaleRepository(store),
        orders=OrderSource(store),
    )


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and open the JSON store they point at.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer searches upward from the current
            working directory.

    Returns:
        RuntimeContext: Fully wired context ready for orchestration functions.

    Raises:
        FileNotFoundError: If the configuration file cannot be located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    store = data_manager.JsonDirectoryStore(settings.data_dir)
    log.info("Loaded runtime context for data directory '%s'", settings.data_dir)
    return build_context(settings, store)


def record_sale(
    context: RuntimeContext,
    builder: "TransactionBuilder",
    *,
    customer_id: Optional[str] = None,
    seller_id: Optional[str] = None,
    cashier_id: Optional[str] = None,
    date: Optional[str] = None,
) -> data_manager.Sale:
    """Commit ``builder`` and persist the resulting sale.

    With :attr:`StockPolicy.DECREMENT_ON_COMMIT` the lines are checked against
    live stock before the commit, and the catalog is decremented once the
    sale is stored. Under :attr:`StockPolicy.DEFER` the catalog is untouched.

    Raises:
        ValidationError: If the sale is incomplete or, when decrementing,
            a line exceeds the stock on hand.
        BuilderStateError: If the builder was already committed.
    """

    decrement = context.settings.stock_policy is StockPolicy.DECREMENT_ON_COMMIT
    if decrement:
        for item in builder.items():
            available = context.catalog.get(item.product_id).stock
            if item.quantity > available:
                log.error(
                    "Sale rejected: '%s' needs %d but only %d in stock",
                    item.product_id,
                    item.quantity,
                    available,
                )
                raise ValidationError(
                    f"Insufficient stock for '{item.product_name}': {available} available",
                    field="quantity",
                )

    sale = builder.commit(
        customer_id=customer_id,
        seller_id=seller_id,
        cashier_id=cashier_id,
        date=date,
    )
    context.sales.append(sale)
    if decrement:
        context.catalog.apply_stock_changes(
            {item.product_id: -item.quantity for item in sale.items})
    return sale
