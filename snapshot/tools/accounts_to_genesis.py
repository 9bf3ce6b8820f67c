#!/usr/bin/env python3
"""
Build a genesis document from the accounts and balances of a running node.

Usage:
    python accounts_to_genesis.py -g <genesis.json> -o <output.json> \
        [-s ws://127.0.0.1:8090] [-u user] [-p password] [--append] [--debug]
"""

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import yaml
from loguru import logger

import genesis_store
from genesis_builder import BuildConfig, GenesisBuilder
from genesis_store import GenesisNotFoundError, GenesisToolError
from graphene_keys import DEFAULT_PREFIX
from graphene_rpc import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT, FULL_ACCOUNTS_BATCH_SIZE, GrapheneRPCReader


@dataclass(frozen=True)
class Config:
    genesis_json_path: Path
    output_json_path: Path
    server_rpc_endpoint: str = DEFAULT_ENDPOINT
    server_rpc_user: str = ""
    server_rpc_password: str = ""
    address_prefix: str = DEFAULT_PREFIX
    append: bool = False
    debug: bool = False
    pretty_logs: bool = True
    rpc_timeout: float = DEFAULT_TIMEOUT
    full_accounts_batch_size: int = FULL_ACCOUNTS_BATCH_SIZE

    @property
    def build(self) -> BuildConfig:
        return BuildConfig(append=self.append, debug=self.debug, address_prefix=self.address_prefix)


# Settings a config file may provide; command line flags take precedence
FILE_SETTINGS = (
    "server_rpc_endpoint",
    "server_rpc_user",
    "server_rpc_password",
    "address_prefix",
    "pretty_logs",
    "rpc_timeout",
    "full_accounts_batch_size",
)


def load_logger(pretty_logs: bool):
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level> | "
        "<level>{extra}</level>",
        colorize=pretty_logs,
        serialize=not pretty_logs,
    )


def load_config_file(config_path: Optional[Path]) -> dict:
    """Read the optional YAML config file, keeping only known settings."""
    if config_path is None:
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise GenesisToolError(f"Config file {config_path} must contain a mapping")

    unknown = sorted(set(data) - set(FILE_SETTINGS))
    if unknown:
        logger.warning(f"Ignoring unknown settings in {config_path}: {', '.join(unknown)}")
    return {key: data[key] for key in FILE_SETTINGS if key in data}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build a genesis document from the accounts of a running node."
    )
    parser.add_argument("-s", "--server-rpc-endpoint", help=f"Server RPC endpoint (default: {DEFAULT_ENDPOINT})")
    parser.add_argument("-g", "--genesis-json-path", type=Path, required=True, help="Seed genesis json path")
    parser.add_argument("-o", "--output-json-path", type=Path, required=True, help="Output json path")
    parser.add_argument("-u", "--server-rpc-user", help="Server username")
    parser.add_argument("-p", "--server-rpc-password", help="Server password")
    parser.add_argument("-a", "--append", action="store_true", help="Keep the seed's accounts and balances")
    parser.add_argument("-d", "--debug", action="store_true", help="Print all account info")
    parser.add_argument("-c", "--config", type=Path, help="YAML file with default settings")
    parser.add_argument("--address-prefix", help=f"Public key and address prefix (default: {DEFAULT_PREFIX})")
    parser.add_argument(
        "--pretty-logs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Colorized log lines instead of JSON (default: on)",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> Config:
    settings = load_config_file(args.config)
    for key in FILE_SETTINGS:
        value = getattr(args, key, None)
        if value is not None:
            settings[key] = value
    return Config(
        genesis_json_path=args.genesis_json_path,
        output_json_path=args.output_json_path,
        append=args.append,
        debug=args.debug,
        **settings,
    )


def run(config: Config, reader_factory=GrapheneRPCReader) -> int:
    """Load the seed, rebuild its accounts from the node and save the result."""
    document = genesis_store.load(config.genesis_json_path)
    genesis_store.prepare_for_rebuild(document, config.append)
    logger.bind(path=str(config.genesis_json_path), append=config.append).info("Seed genesis loaded")

    with reader_factory(
        config.server_rpc_endpoint,
        timeout=config.rpc_timeout,
        full_accounts_batch_size=config.full_accounts_batch_size,
    ) as reader:
        reader.login(config.server_rpc_user, config.server_rpc_password)

        account_count = reader.account_count()
        names = list(reader.lookup_account_names("", account_count))
        logger.bind(count=account_count, listed=len(names)).info("Account names listed")

        records = reader.fetch_full_accounts(names, False)
        logger.bind(count=len(records)).info("Full accounts fetched")

        summary = GenesisBuilder(reader, config.build).build(document, records)

    genesis_store.save(document, config.output_json_path)
    logger.bind(path=str(config.output_json_path)).info(
        f"Wrote {summary.accounts} accounts and {summary.balances} balances"
    )
    return 0


def main(argv: Optional[List[str]] = None, reader_factory=GrapheneRPCReader) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0

    args = parser.parse_args(argv)
    try:
        config = resolve_config(args)
    except (OSError, UnicodeDecodeError, yaml.YAMLError, TypeError, GenesisToolError) as e:
        logger.error(f"Invalid configuration: {e}")
        return -1
    load_logger(config.pretty_logs)

    try:
        return run(config, reader_factory)
    except GenesisNotFoundError as e:
        logger.bind(path=str(e.path)).error(f"Seed genesis {e}")
        return -1
    except GenesisToolError as e:
        logger.error(str(e))
        return -1


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
