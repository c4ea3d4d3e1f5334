"""Command-line entry points for the Glow ERP back office.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the requests consumed by the business layer,
and printing results. Every write goes straight to the store inside the
business layer, so there is no separate save step here.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence, Tuple

from . import core_logic, ledger, log, set_log_level
from .constants import ProductCategory
from .transaction_builder import TransactionBuilder


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


@dataclass(frozen=True)
class SaleRequest:
    """Parsed ``sale`` arguments: parties, date and ``(product_id, quantity)`` lines."""

    customer_id: str
    seller_id: str
    cashier_id: str
    items: Tuple[Tuple[str, int], ...]
    date: Optional[str] = None


def parse_item_spec(raw: str) -> Tuple[str, int]:
    """Parse ``PRODUCT_ID[:QTY]`` into a product id and a positive quantity."""

    product_id, sep, quantity_raw = raw.rpartition(":")
    if not sep:
        product_id, quantity_raw = raw, "1"
    if not product_id:
        raise argparse.ArgumentTypeError(f"Missing product id in '{raw}'")
    try:
        quantity = int(quantity_raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid quantity in '{raw}'") from exc
    if quantity < 1:
        raise argparse.ArgumentTypeError(f"Quantity must be at least 1 in '{raw}'")
    return product_id, quantity


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="glow-cli",
        description="Back-office tools for the Glow shop catalog and sales ledger.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to ./config.ini).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug details to the console.",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as catalog edits and sales."""
    specs = {
        "add-product": register_add_product_command(subparsers),
        "update-product": register_update_product_command(subparsers),
        "remove-product": register_remove_product_command(subparsers),
        "sale": register_sale_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as reports."""
    specs = {
        "products": register_products_command(subparsers),
        "ledger": register_ledger_command(subparsers),
        "export-ledger": register_export_ledger_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _add_product_fields(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument("--name", required=required)
    parser.add_argument("--price", required=required)
    parser.add_argument("--stock", required=required)
    parser.add_argument("--description", default=None)
    parser.add_argument("--image", default=None)
    parser.add_argument(
        "--category",
        choices=[member.value for member in ProductCategory],
        default=None,
    )
    parser.add_argument("--low-stock-threshold", dest="low_stock_threshold", default=None)


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""
    name = "add-product"
    help_text = "Add a new product to the catalog."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_product_fields(parser, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_product)


def register_update_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-product``."""
    name = "update-product"
    help_text = "Edit fields of an existing product."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        _add_product_fields(parser, required=False)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_update_product)


def register_remove_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``remove-product``."""
    name = "remove-product"
    help_text = "Remove a product from the catalog."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_remove_product)


def register_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sale``."""
    name = "sale"
    help_text = "Register a manual sale."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--seller-id", required=True)
        parser.add_argument("--cashier-id", required=True)
        parser.add_argument(
            "--item",
            dest="items",
            action="append",
            type=parse_item_spec,
            required=True,
            metavar="PRODUCT_ID[:QTY]",
            help="Line item; repeat for each product.",
        )
        parser.add_argument("--date", default=None, help="Sale date as YYYY-MM-DD (defaults to today).")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sale)


def register_products_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``products``."""
    name = "products"
    help_text = "Display the catalog with stock status."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_products_report)


def register_ledger_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``ledger``."""
    name = "ledger"
    help_text = "Display manual sales and paid orders, newest first."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--details", action="store_true", help="Also list each entry's line items.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_ledger_report)


def register_export_ledger_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``export-ledger``."""
    name = "export-ledger"
    help_text = "Export the ledger to an Excel workbook."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--output", type=Path, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export_ledger)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    return core_logic.load_runtime_context(target)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def translate_add_product(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into keyword arguments for ``Catalog.create_product``."""
    payload: Dict[str, Any] = {
        "name": args.name,
        "price": args.price,
        "stock": args.stock,
        "description": args.description or "",
        "image": args.image,
    }
    if args.category is not None:
        payload["category"] = args.category
    if args.low_stock_threshold is not None:
        payload["low_stock_threshold"] = args.low_stock_threshold
    return payload


def translate_update_product(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into the product fields that should change."""
    candidates = {
        "name": args.name,
        "price": args.price,
        "stock": args.stock,
        "description": args.description,
        "image": args.image,
        "category": args.category,
        "low_stock_threshold": args.low_stock_threshold,
    }
    return {field: value for field, value in candidates.items() if value is not None}


def translate_sale(args: argparse.Namespace) -> SaleRequest:
    """Translate CLI args into a sale request."""
    return SaleRequest(
        customer_id=args.customer_id,
        seller_id=args.seller_id,
        cashier_id=args.cashier_id,
        items=tuple(args.items),
        date=args.date,
    )


def run_add_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-product workflow in the BLL."""
    payload = translate_add_product(args)
    product = context.catalog.create_product(**payload)
    print(f"Added product {product.id}: {product.name}")
    return 0


def run_update_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the update-product workflow in the BLL."""
    changes = translate_update_product(args)
    current = context.catalog.get(args.product_id)
    product = context.catalog.upsert(replace(current, **changes))
    print(f"Updated product {product.id}: {product.name}")
    return 0


def run_remove_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the remove-product workflow in the BLL."""
    context.catalog.remove(args.product_id)
    print(f"Removed product {args.product_id}")
    return 0


def run_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Build the sale line by line, then record it through the BLL."""
    request = translate_sale(args)
    builder = TransactionBuilder(context.catalog)
    for product_id, quantity in request.items:
        builder.add_item(context.catalog.get(product_id))
        if quantity != 1:
            adjustment = builder.set_quantity(product_id, quantity)
            if adjustment.warning is not None:
                print(f"Warning: {adjustment.warning}; using {adjustment.quantity}")
    sale = core_logic.record_sale(
        context,
        builder,
        customer_id=request.customer_id,
        seller_id=request.seller_id,
        cashier_id=request.cashier_id,
        date=request.date,
    )
    print(f"Recorded sale {sale.id} on {sale.date}: {ledger.format_money(sale.total)}")
    return 0


def run_products_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print every product with its price, stock and derived status."""
    for product, status in context.catalog.stock_report():
        print(
            f"{product.id:<28} {product.name:<36} {ledger.format_money(product.price):>10} "
            f"{product.stock:>5}  {status.value}"
        )
    return 0


def run_ledger_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the merged ledger and its totals."""
    entries = ledger.load_ledger(context)
    rows = ledger.describe_ledger(entries, context.catalog, context.directory)
    if not rows:
        print("No completed sales to show.")
        return 0
    for row in rows:
        print(
            f"#{row.short_id:<22} {row.date}  {row.source_type.value:<6} "
            f"{row.customer:<24} {row.staff:<24} {row.total_display:>10}"
        )
        if getattr(args, "details", False):
            for line in row.lines:
                print(
                    f"    {line.product_name:<36} {line.category:<26} "
                    f"{line.quantity:>3} x {ledger.format_money(line.price)} = {ledger.format_money(line.subtotal)}"
                )
    summary = ledger.summarize_ledger(entries)
    print(
        f"{summary.entries} entries: manual {ledger.format_money(summary.manual_total)}, "
        f"POS {ledger.format_money(summary.pos_total)}, total {ledger.format_money(summary.total)}"
    )
    return 0


def run_export_ledger(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Write the merged ledger to the requested workbook."""
    rows = ledger.describe_ledger(ledger.load_ledger(context), context.catalog, context.directory)
    destination = ledger.export_ledger_workbook(rows, args.output)
    print(f"Exported {len(rows)} entries to {destination}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, core_logic.BusinessRuleViolation):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    if getattr(args, "verbose", False):
        set_log_level(logging.DEBUG)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        return dispatch_command(context, args, command_table)
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
