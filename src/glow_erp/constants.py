"""Enumerations shared across Glow ERP modules.

Centralises domain constants so that the data access layer (DAL), business
logic layer (BLL), and the CLI can rely on a single source of truth for
storage keys, categories, and status values.
"""

from __future__ import annotations

from enum import Enum


# Sentinel shown wherever a lookup by id finds nothing.
NOT_AVAILABLE = "N/A"

CURRENCY_SYMBOL = "S/"


class StorageKey(str, Enum):
    """Enumerate the named JSON blobs managed by the key-value store."""

    PRODUCTS = "divine-glow-products"
    CUSTOMERS = "divine-glow-customers"
    SELLERS = "divine-glow-sellers"
    CASHIERS = "divine-glow-cashiers"
    SALES = "divine-glow-sales"
    ORDERS = "divine-glow-orders"


# Keys whose seed is persisted on first load.
SEEDED_KEYS: frozenset[str] = frozenset(
    {
        StorageKey.PRODUCTS.value,
        StorageKey.CUSTOMERS.value,
        StorageKey.SELLERS.value,
        StorageKey.CASHIERS.value,
    }
)


class ProductCategory(str, Enum):
    """Enumerate the catalog categories offered by the shop."""

    PERFUMES = "Perfumes"
    MAKEUP = "Maquillaje"
    SKIN_CARE = "Cuidado de la piel"
    ACCESSORIES = "Accesorios y herramientas"


class OrderStatus(str, Enum):
    """Enumerate the lifecycle states of a point-of-sale order."""

    PENDING = "Pendiente"
    PAID = "Pagado"
    SHIPPED = "Enviado"
    DELIVERED = "Entregado"
    CANCELLED = "Cancelado"


class PaymentMethod(str, Enum):
    """Enumerate the payment methods accepted at the point of sale."""

    CASH = "Efectivo"
    CARD = "Tarjeta"
    YAPE = "Yape"
    PLIN = "Plin"


class StockStatus(str, Enum):
    """Enumerate the derived stock classifications shown in the catalog."""

    OUT_OF_STOCK = "Agotado"
    LOW = "Stock bajo"
    IN_STOCK = "En stock"


class SourceType(str, Enum):
    """Enumerate the origins of a ledger entry."""

    MANUAL = "Manual"
    POS = "POS"


class StockPolicy(str, Enum):
    """Enumerate how committed sales affect catalog stock."""

    DEFER = "defer"
    DECREMENT_ON_COMMIT = "decrement"


class BuilderState(str, Enum):
    """Enumerate the lifecycle states of an in-progress sale."""

    EMPTY = "empty"
    BUILDING = "building"
    READY = "ready"
    COMMITTED = "committed"


__all__ = [
    "NOT_AVAILABLE",
    "CURRENCY_SYMBOL",
    "StorageKey",
    "SEEDED_KEYS",
    "ProductCategory",
    "OrderStatus",
    "PaymentMethod",
    "StockStatus",
    "SourceType",
    "StockPolicy",
    "BuilderState",
]
