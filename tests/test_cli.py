"""Unit tests describing the CLI presentation layer contract."""

from __future__ import annotations

import argparse
import logging
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock

import pytest

from glow_erp import cli, core_logic


WRITE_COMMANDS = {
    "add-product",
    "update-product",
    "remove-product",
    "sale",
}

READ_COMMANDS = {
    "products",
    "ledger",
    "export-ledger",
}


def _registered_choices(parser: argparse.ArgumentParser):
    for action in parser._actions:
        if isinstance(action, argparse._SubParsersAction):
            return action.choices
    return {}


def _parse(argv):
    parser = cli.build_parser()
    cli.configure_subcommands(parser)
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def test_build_parser_sets_program_metadata():
    """build_parser should set user-facing program metadata."""

    parser = cli.build_parser()
    assert parser.prog == "glow-cli"
    assert "Glow" in (parser.description or "")


def test_build_parser_accepts_global_options():
    parser = cli.build_parser()
    namespace = parser.parse_args(["--config", "x.ini", "--verbose"])

    assert namespace.config == Path("x.ini")
    assert namespace.verbose is True


def test_configure_subcommands_registers_every_command(cli_parser):
    """configure_subcommands should wire mutating and reporting sub-commands."""

    command_table = cli.configure_subcommands(cli_parser)

    assert set(command_table) == WRITE_COMMANDS | READ_COMMANDS
    assert set(_registered_choices(cli_parser)) == WRITE_COMMANDS | READ_COMMANDS


def test_register_write_commands_returns_command_specs(subparsers_action):
    specs = cli.register_write_commands(subparsers_action)

    assert set(specs) == WRITE_COMMANDS
    for spec in specs.values():
        assert isinstance(spec, cli.CommandSpec)
        assert spec.help_text


def test_register_read_commands_returns_command_specs(subparsers_action):
    specs = cli.register_read_commands(subparsers_action)

    assert set(specs) == READ_COMMANDS
    assert set(subparsers_action.choices) == READ_COMMANDS


def test_build_command_table_rejects_duplicates(command_table_entry):
    _, spec = command_table_entry

    with pytest.raises(ValueError):
        cli.build_command_table([spec, spec])


# ---------------------------------------------------------------------------
# Argument translation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [("prod-001", ("prod-001", 1)), ("prod-001:3", ("prod-001", 3)), ("a:b:2", ("a:b", 2))],
)
def test_parse_item_spec_accepts_ids_and_quantities(raw, expected):
    assert cli.parse_item_spec(raw) == expected


@pytest.mark.parametrize("raw", [":2", "prod-001:zero", "prod-001:0", "prod-001:-1"])
def test_parse_item_spec_rejects_bad_values(raw):
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_item_spec(raw)


def test_translate_add_product_only_passes_supplied_options():
    args = _parse(["add-product", "--name", "Labial", "--price", "25", "--stock", "4"])

    payload = cli.translate_add_product(args)

    assert payload == {"name": "Labial", "price": "25", "stock": "4", "description": "", "image": None}


def test_translate_add_product_includes_category_and_threshold():
    args = _parse([
        "add-product", "--name", "Labial", "--price", "25", "--stock", "4",
        "--category", "Maquillaje", "--low-stock-threshold", "2",
    ])

    payload = cli.translate_add_product(args)

    assert payload["category"] == "Maquillaje"
    assert payload["low_stock_threshold"] == "2"


def test_add_product_rejects_unknown_category():
    with pytest.raises(SystemExit):
        _parse(["add-product", "--name", "x", "--price", "1", "--stock", "1", "--category", "Zapatos"])


def test_translate_update_product_keeps_changed_fields_only():
    args = _parse(["update-product", "--product-id", "prod-001", "--stock", "9"])

    assert cli.translate_update_product(args) == {"stock": "9"}


def test_translate_sale_collects_repeated_items():
    args = _parse([
        "sale", "--customer-id", "cust-001", "--seller-id", "seller-1", "--cashier-id", "cashier-1",
        "--item", "prod-001:2", "--item", "prod-003", "--date", "2024-05-01",
    ])

    request = cli.translate_sale(args)

    assert request == cli.SaleRequest(
        customer_id="cust-001",
        seller_id="seller-1",
        cashier_id="cashier-1",
        items=(("prod-001", 2), ("prod-003", 1)),
        date="2024-05-01",
    )


# ---------------------------------------------------------------------------
# Dispatch and error handling
# ---------------------------------------------------------------------------


def test_dispatch_command_invokes_executor(command_table_entry):
    name, spec = command_table_entry
    args = argparse.Namespace(command=name)

    assert cli.dispatch_command(Mock(), args, {name: spec}) == 0
    assert spec.execute.called


def test_dispatch_command_unknown_raises():
    with pytest.raises(KeyError):
        cli.dispatch_command(Mock(), argparse.Namespace(command="nope"), {})


@pytest.mark.parametrize(
    "error, code",
    [
        (core_logic.ValidationError("bad", field="name"), 2),
        (core_logic.DuplicateItemError("dup"), 2),
        (core_logic.MissingReferenceError("gone"), 2),
        (FileNotFoundError("config.ini"), 3),
        (KeyError("System"), 1),
        (RuntimeError("boom"), 1),
    ],
)
def test_handle_cli_error_maps_exit_codes(error, code, caplog):
    caplog.set_level(logging.ERROR)

    assert cli.handle_cli_error(error) == code
    assert caplog.records


def test_load_runtime_context_defaults_to_working_directory(monkeypatch, tmp_path):
    loader = Mock(return_value="context")
    monkeypatch.setattr(core_logic, "load_runtime_context", loader)
    monkeypatch.chdir(tmp_path)

    assert cli.load_runtime_context() == "context"
    loader.assert_called_once_with(tmp_path / "config.ini")


# ---------------------------------------------------------------------------
# Executors over an in-memory context
# ---------------------------------------------------------------------------


def test_run_add_product_creates_catalog_entry(context, capsys):
    args = _parse(["add-product", "--name", "Labial", "--price", "25.90", "--stock", "4", "--category", "Maquillaje"])

    assert cli.run_add_product(context, args) == 0

    product = context.catalog.list()[0]
    assert product.name == "Labial"
    assert product.price == Decimal("25.90")
    assert product.category == "Maquillaje"
    assert product.id.startswith("prod-")
    assert "Added product" in capsys.readouterr().out


def test_run_update_product_changes_only_given_fields(context):
    args = _parse(["update-product", "--product-id", "prod-002", "--stock", "30"])

    cli.run_update_product(context, args)

    product = context.catalog.get("prod-002")
    assert product.stock == 30
    assert product.name == "Crema Hidratante de Día"


def test_run_update_product_with_invalid_value_raises(context):
    args = _parse(["update-product", "--product-id", "prod-002", "--price", "-5"])

    with pytest.raises(core_logic.ValidationError):
        cli.run_update_product(context, args)


def test_run_remove_product_unknown_id_raises(context):
    args = _parse(["remove-product", "--product-id", "nope"])

    with pytest.raises(core_logic.MissingReferenceError):
        cli.run_remove_product(context, args)


def test_run_sale_records_sale_and_reports_clamp(context, capsys):
    args = _parse([
        "sale", "--customer-id", "cust-001", "--seller-id", "seller-1", "--cashier-id", "cashier-1",
        "--item", "prod-005:8", "--item", "prod-003", "--date", "2024-05-01",
    ])

    assert cli.run_sale(context, args) == 0

    out = capsys.readouterr().out
    assert "Warning: Requested 8" in out
    sale = context.sales.list()[0]
    assert [(item.product_id, item.quantity) for item in sale.items] == [("prod-005", 5), ("prod-003", 1)]
    assert sale.total == Decimal("330.0")
    assert "S/330.00" in out


def test_run_products_report_shows_status(context, capsys):
    cli.run_products_report(context, argparse.Namespace())

    out = capsys.readouterr().out
    assert "prod-002" in out
    assert "Stock bajo" in out
    assert "En stock" in out


def test_run_ledger_report_without_entries(context, capsys):
    cli.run_ledger_report(context, argparse.Namespace(details=False))

    assert "No completed sales" in capsys.readouterr().out


def test_run_ledger_report_prints_rows_and_summary(context, capsys):
    builder_args = _parse([
        "sale", "--customer-id", "cust-002", "--seller-id", "seller-2", "--cashier-id", "cashier-1",
        "--item", "prod-001", "--date", "2024-05-01",
    ])
    cli.run_sale(context, builder_args)
    capsys.readouterr()

    cli.run_ledger_report(context, argparse.Namespace(details=True))

    out = capsys.readouterr().out
    assert "Carlos García" in out
    assert "Vendedor 2 / Cajero 1" in out
    assert "Cuidado de la piel" in out
    assert "1 entries" in out


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


def test_main_returns_validation_exit_code(config_file, capsys):
    exit_code = cli.main([
        "--config", str(config_file), "sale",
        "--customer-id", "cust-001", "--seller-id", "", "--cashier-id", "cashier-1",
        "--item", "prod-001",
    ])

    assert exit_code == 2


def test_main_missing_config_returns_three(tmp_path):
    assert cli.main(["--config", str(tmp_path / "none.ini"), "products"]) == 3


def test_main_verbose_lowers_log_level(config_file, monkeypatch):
    set_level = Mock()
    monkeypatch.setattr(cli, "set_log_level", set_level)

    assert cli.main(["--config", str(config_file), "--verbose", "products"]) == 0
    set_level.assert_called_once_with(logging.DEBUG)
