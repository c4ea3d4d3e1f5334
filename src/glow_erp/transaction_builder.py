"""Incremental construction of a single manual sale.

A :class:`TransactionBuilder` collects line items against the live catalog,
keeps the buyer/seller/cashier selections, and finally emits an immutable
:class:`~glow_erp.data_manager.Sale`. The builder never writes to the store;
persisting the committed sale is :func:`glow_erp.core_logic.record_sale`'s job.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from . import core_logic, data_manager, log
from .constants import BuilderState


class StockExceeded(UserWarning):
    """Non-fatal notice that a requested quantity was clamped to live stock."""

    def __init__(self, product_id: str, requested: int, available: int) -> None:
        super().__init__(
            f"Requested {requested} of '{product_id}' but only {available} in stock"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


@dataclass(frozen=True)
class QuantityAdjustment:
    """Outcome of :meth:`TransactionBuilder.set_quantity`.

    ``quantity`` is what the line now holds (``0`` means the line was
    removed) and ``warning`` is set when the request had to be clamped.
    """

    product_id: str
    requested: int
    quantity: int
    warning: Optional[StockExceeded] = None

    @property
    def removed(self) -> bool:
        return self.quantity == 0


class TransactionBuilder:
    """State machine over one in-progress sale.

    States move ``EMPTY -> BUILDING -> READY -> COMMITTED``. Removing the
    last line keeps the builder in ``BUILDING`` because the party selections
    survive independently of the items. A committed builder rejects every
    mutation until :meth:`reset` is called.
    """

    def __init__(self, catalog: core_logic.Catalog) -> None:
        self._catalog = catalog
        self.reset()

    def reset(self) -> None:
        """Discard all lines and selections and return to ``EMPTY``."""

        self._items: List[data_manager.SaleItem] = []
        self._customer_id: Optional[str] = None
        self._seller_id: Optional[str] = None
        self._cashier_id: Optional[str] = None
        self._touched = False
        self._committed: Optional[data_manager.Sale] = None

    @property
    def state(self) -> BuilderState:
        if self._committed is not None:
            return BuilderState.COMMITTED
        if self._items and all((self._customer_id, self._seller_id, self._cashier_id)):
            return BuilderState.READY
        if self._touched:
            return BuilderState.BUILDING
        return BuilderState.EMPTY

    @property
    def committed_sale(self) -> Optional[data_manager.Sale]:
        return self._committed

    def items(self) -> Tuple[data_manager.SaleItem, ...]:
        return tuple(self._items)

    def total(self) -> Decimal:
        """Sum of ``price * quantity`` over the current lines."""

        return sum((item.price * item.quantity for item in self._items), Decimal("0"))

    def select_parties(
        self,
        *,
        customer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        cashier_id: Optional[str] = None,
    ) -> None:
        """Record buyer, seller and cashier selections; ``None`` leaves a slot unchanged."""

        self._ensure_open()
        if customer_id is not None:
            self._customer_id = customer_id
        if seller_id is not None:
            self._seller_id = seller_id
        if cashier_id is not None:
            self._cashier_id = cashier_id
        self._touched = True

    def add_item(self, product: data_manager.Product) -> data_manager.SaleItem:
        """Add one unit of ``product`` as a new line.

        Name, price and category are copied from ``product`` and never
        refreshed afterwards.

        Raises:
            DuplicateItemError: If the product already has a line; adjust its
                quantity instead.
            ValidationError: If the product has no stock left.
        """

        self._ensure_open()
        if self._line_index(product.id) is not None:
            log.warning("Product '%s' is already part of the sale", product.id)
            raise core_logic.DuplicateItemError(
                f"Product '{product.id}' is already in the sale")

        live = self._catalog.find(product.id)
        stock = live.stock if live is not None else product.stock
        if stock <= 0:
            log.warning("Product '%s' is out of stock", product.id)
            raise core_logic.ValidationError(
                f"Product '{product.name}' is out of stock", field="stock")

        item = data_manager.SaleItem(
            product_id=product.id,
            product_name=product.name,
            quantity=1,
            price=product.price,
            category=product.category or None,
        )
        self._items.append(item)
        self._touched = True
        log.debug("Added '%s' to the sale at %s", product.id, product.price)
        return item

    def set_quantity(self, product_id: str, quantity: int) -> QuantityAdjustment:
        """Set a line's quantity, clamped to ``[0, live stock]``.

        Stock is read from the catalog at call time. A request above stock is
        satisfied with the available amount and reported through the
        returned warning; a result of zero removes the line.

        Raises:
            MissingReferenceError: If the sale has no such line or the product
                left the catalog.
        """

        self._ensure_open()
        index = self._line_index(product_id)
        if index is None:
            log.warning("Quantity change for '%s' which is not in the sale", product_id)
            raise core_logic.MissingReferenceError(
                f"Product '{product_id}' is not in the sale")

        available = self._catalog.get(product_id).stock
        requested = int(quantity)
        clamped = max(0, min(requested, available))
        warning = None
        if requested > available:
            warning = StockExceeded(product_id, requested, available)
            log.warning("%s; clamped to %d", warning, clamped)

        if clamped == 0:
            del self._items[index]
            log.debug("Removed '%s' from the sale (quantity 0)", product_id)
        else:
            self._items[index] = replace(self._items[index], quantity=clamped)
        return QuantityAdjustment(
            product_id=product_id,
            requested=requested,
            quantity=clamped,
            warning=warning,
        )

    def remove_item(self, product_id: str) -> None:
        """Delete the line for ``product_id``.

        Raises:
            MissingReferenceError: If the sale has no such line.
        """

        self._ensure_open()
        index = self._line_index(product_id)
        if index is None:
            raise core_logic.MissingReferenceError(
                f"Product '{product_id}' is not in the sale")
        del self._items[index]
        log.debug("Removed '%s' from the sale", product_id)

    def commit(
        self,
        *,
        customer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        cashier_id: Optional[str] = None,
        date: Optional[str] = None,
        when: Optional[datetime] = None,
    ) -> data_manager.Sale:
        """Freeze the current lines into an immutable :class:`Sale`.

        Arguments left as ``None`` fall back to the selections made through
        :meth:`select_parties`. ``date`` defaults to the commit day.

        Raises:
            ValidationError: If a party is missing, there are no lines, or
                ``date`` is not ``YYYY-MM-DD``.
            BuilderStateError: If the builder was already committed.
        """

        self._ensure_open()
        parties = {
            "customerId": customer_id if customer_id is not None else self._customer_id,
            "sellerId": seller_id if seller_id is not None else self._seller_id,
            "cashierId": cashier_id if cashier_id is not None else self._cashier_id,
        }
        for field, value in parties.items():
            if value is None or not str(value).strip():
                log.error("Incomplete sale: '%s' is missing", field)
                raise core_logic.ValidationError(
                    f"Incomplete sale: '{field}' is required", field=field)
        if not self._items:
            log.error("Incomplete sale: no items")
            raise core_logic.ValidationError(
                "Incomplete sale: add at least one item", field="items")

        timestamp = core_logic._resolve_timestamp(when)
        if date is None:
            sale_date = timestamp.date().isoformat()
        else:
            try:
                sale_date = datetime.strptime(str(date), "%Y-%m-%d").date().isoformat()
            except ValueError as exc:
                log.error("Invalid sale date %r", date)
                raise core_logic.ValidationError(
                    f"Invalid sale date: {date}", field="date") from exc

        sale = data_manager.Sale(
            id=core_logic.generate_record_id("sale", when=timestamp),
            customer_id=str(parties["customerId"]),
            seller_id=str(parties["sellerId"]),
            cashier_id=str(parties["cashierId"]),
            date=sale_date,
            items=tuple(self._items),
            total=self.total(),
        )
        self._committed = sale
        log.info("Committed sale '%s' with total %s", sale.id, sale.total)
        return sale

    def _ensure_open(self) -> None:
        if self._committed is not None:
            raise core_logic.BuilderStateError(
                f"Sale '{self._committed.id}' is already committed; reset the builder first")

    def _line_index(self, product_id: str) -> Optional[int]:
        for index, item in enumerate(self._items):
            if item.product_id == product_id:
                return index
        return None
