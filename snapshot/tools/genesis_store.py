#!/usr/bin/env python3
"""
Load, reset and save genesis documents.

Only the initial_accounts and initial_balances lists are ever touched; every
other field of the document is carried through as loaded.
"""

import json
from pathlib import Path

from loguru import logger

ACCOUNTS_KEY = "initial_accounts"
BALANCES_KEY = "initial_balances"


class GenesisToolError(Exception):
    """Base class for errors that abort a genesis build run."""


class GenesisNotFoundError(GenesisToolError):
    def __init__(self, path):
        self.path = Path(path)
        super().__init__(f"{self.path} does not exist")


class GenesisFormatError(GenesisToolError):
    pass


class GenesisWriteError(GenesisToolError):
    pass


def load(path) -> dict:
    """Load the genesis document at path."""
    path = Path(path)
    if not path.exists():
        raise GenesisNotFoundError(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise GenesisFormatError(f"Invalid JSON in {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise GenesisFormatError(f"{path} is not UTF-8 text: {e}") from e
    except OSError as e:
        raise GenesisFormatError(f"Cannot read {path}: {e}") from e

    if not isinstance(document, dict):
        raise GenesisFormatError(f"Genesis document {path} must be a JSON object")

    logger.bind(path=str(path)).debug("Loaded genesis document")
    return document


def prepare_for_rebuild(document: dict, append: bool) -> dict:
    """
    Reset the account and balance lists unless appending.

    In append mode existing entries are kept so new ones land after them.
    Missing lists are created empty in both modes.
    """
    for key in (ACCOUNTS_KEY, BALANCES_KEY):
        entries = document.setdefault(key, [])
        if not isinstance(entries, list):
            raise GenesisFormatError(f"{key} must be a list, got {type(entries).__name__}")
        if not append:
            entries.clear()
    return document


def save(document: dict, path):
    """Write the document to path, overwriting any existing file."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
            f.write("\n")
    except OSError as e:
        raise GenesisWriteError(f"Cannot write {path}: {e}") from e
