"""Utility for initializing the Glow ERP data directory.

The module doubles as a script (``glow-setup``) and as a library used by
tests or other tooling. It writes one JSON document per storage key, taken
from :mod:`glow_erp.seed_data`, so a fresh install starts with the demo
catalog, staff, customers and orders.
"""

from __future__ import annotations

import argparse
import configparser
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Sequence

from .data_manager import JsonDirectoryStore
from .seed_data import SEED_DOCUMENTS

CONFIG_FILE = "config.ini"

CONFIG_TEMPLATE = (
    "[System]\n"
    "DataDir = {data_dir}\n"
    "ShopName = {shop_name}\n\n"
    "[Defaults]\n"
    "LowStockThreshold = {low_stock_threshold}\n\n"
    "[Sales]\n"
    "DecrementStockOnCommit = {decrement}\n"
)


@dataclass(frozen=True)
class SetupSettings:
    """Type-safe representation of configuration values used during setup."""

    data_dir: Path


def load_settings(config_path: Path) -> SetupSettings:
    """Read ``config.ini`` and produce :class:`SetupSettings`.

    Relative paths inside the config file are resolved against the config
    file's directory.
    """

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")

    try:
        data_dir_raw = parser.get("System", "DataDir")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    data_dir = Path(data_dir_raw).expanduser()
    if not data_dir.is_absolute():
        data_dir = (config_path.parent / data_dir).resolve()
    return SetupSettings(data_dir=data_dir)


def write_config(
    destination: Path,
    *,
    data_dir: str = "data",
    shop_name: str = "Divine Glow",
    low_stock_threshold: int = 10,
    decrement_stock_on_commit: bool = False,
) -> Path:
    """Write a ``config.ini`` populated from :data:`CONFIG_TEMPLATE`."""

    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(
        CONFIG_TEMPLATE.format(
            data_dir=data_dir,
            shop_name=shop_name,
            low_stock_threshold=low_stock_threshold,
            decrement="true" if decrement_stock_on_commit else "false",
        ),
        encoding="utf-8",
    )
    return destination


def create_data_store(
    data_dir: Path,
    *,
    documents: Mapping[str, list] = SEED_DOCUMENTS,
    overwrite: bool = False,
) -> List[Path]:
    """Write every seed document into ``data_dir``.

    Parameters are overridable to facilitate testing. When ``overwrite`` is
    ``False`` (the default) this function raises ``FileExistsError`` if any
    target document already exists, and nothing is written.
    """

    store = JsonDirectoryStore(data_dir)
    targets = [store.path_for(key) for key in documents]
    existing = [path for path in targets if path.exists()]
    if existing and not overwrite:
        raise FileExistsError(
            f"Refusing to overwrite existing data files: {', '.join(str(p) for p in existing)}"
        )

    for key, document in documents.items():
        store.save(key, document)
    return targets


def run_from_config(config_path: Path, *, overwrite: bool = False) -> List[Path]:
    settings = load_settings(config_path)
    return create_data_store(settings.data_dir, overwrite=overwrite)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize the Glow ERP data directory")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a default config.ini first when none exists.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing data files.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the setup script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- Glow ERP Setup ---")
    if args.init_config and not config_path.exists():
        write_config(config_path)
        print(f"Wrote default configuration: {config_path}")
    print(f"Using configuration: {config_path}")

    try:
        written = run_from_config(config_path, overwrite=args.force)
    except (FileNotFoundError, KeyError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing files if appropriate.")
        return 1
    except (PermissionError, OSError) as exc:
        print(f"\n[ERROR] Unable to write data files: {exc}")
        return 1

    print(f"\n[SUCCESS] Wrote {len(written)} documents to '{written[0].parent}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
