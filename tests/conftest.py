"""Shared pytest fixtures and utilities for Glow ERP tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from glow_erp import cli, core_logic, data_manager  # noqa: E402
from glow_erp.constants import ProductCategory  # noqa: E402
from glow_erp.setup_store import create_data_store, write_config  # noqa: E402


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    data_dir: Path
    shop_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def config_factory(tmp_path: Path) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates seeded config/data bundles on demand."""

    def _create_config(
        *,
        shop_name: str = "Test Shop",
        decrement_stock_on_commit: bool = False,
        seed: bool = True,
    ) -> ConfigBundle:
        bundle_dir = tmp_path / f"bundle_{uuid.uuid4().hex}"
        config_path = write_config(
            bundle_dir / "config.ini",
            data_dir="data",
            shop_name=shop_name,
            decrement_stock_on_commit=decrement_stock_on_commit,
        )
        data_dir = (bundle_dir / "data").resolve()
        if seed:
            create_data_store(data_dir)
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            data_dir=data_dir,
            shop_name=shop_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    return core_logic.load_runtime_context(config_file)


# ---------------------------------------------------------------------------
# In-memory fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for in-memory contexts."""

    return data_manager.ConfigSettings(data_dir=tmp_path / "data", shop_name="Test Shop")


@pytest.fixture
def memory_store() -> data_manager.MemoryStore:
    return data_manager.MemoryStore()


@pytest.fixture
def context(settings: data_manager.ConfigSettings, memory_store: data_manager.MemoryStore) -> core_logic.RuntimeContext:
    """Assemble a runtime context over an empty in-memory store (seeded on load)."""

    return core_logic.build_context(settings, memory_store)


@pytest.fixture
def product_factory() -> Callable[..., data_manager.Product]:
    """Build valid products with overridable fields."""

    def _make(
        product_id: str = "p1",
        *,
        name: str = "Sérum",
        price: str = "10.00",
        stock: int = 5,
        low_stock_threshold: int = 10,
        category: str = ProductCategory.SKIN_CARE.value,
    ) -> data_manager.Product:
        return data_manager.Product(
            id=product_id,
            name=name,
            description="",
            price=Decimal(price),
            stock=stock,
            low_stock_threshold=low_stock_threshold,
            image="https://placehold.co/400x400.png",
            category=category,
        )

    return _make


@pytest.fixture
def catalog_factory(memory_store: data_manager.MemoryStore) -> Callable[..., core_logic.Catalog]:
    """Create a catalog over ``memory_store`` holding exactly the given products."""

    def _make(*products: data_manager.Product) -> core_logic.Catalog:
        return core_logic.Catalog(
            memory_store,
            seed=[data_manager.serialize_product(product) for product in products],
        )

    return _make


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` to return a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            @staticmethod
            def now(tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="glow-cli", description="Glow CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_table_entry() -> tuple[str, cli.CommandSpec]:
    """Provide a placeholder command table entry for dispatch tests."""

    def execute(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
        execute.__dict__["called"] = True
        return 0

    def register(
        subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    ) -> argparse.ArgumentParser:
        return subparsers.add_parser("catalog-test")

    spec = cli.CommandSpec(
        name="catalog-test",
        help_text="help",
        register=register,
        execute=execute,
    )
    return "catalog-test", spec
