#!/usr/bin/env python3
"""
Translate remote account records into genesis initial accounts and balances.

The builder appends to the document it is given; resetting the lists before a
fresh rebuild is the store's job (see genesis_store.prepare_for_rebuild).
"""

import sys
from dataclasses import asdict, dataclass
from typing import Dict, Optional, Sequence, Tuple

from loguru import logger

from genesis_store import ACCOUNTS_KEY, BALANCES_KEY, GenesisToolError
from graphene_keys import DEFAULT_PREFIX, InvalidKeyError, key_to_address

# Instances 0-5 are the chain's reserved special accounts
# (committee, witness, relaxed committee, null, temp, proxy-to-self).
RESERVED_ACCOUNT_CUTOFF = 6


class MalformedAccountError(GenesisToolError):
    """Raised when an eligible account cannot be represented in genesis."""


@dataclass(frozen=True)
class BuildConfig:
    append: bool = False
    debug: bool = False
    address_prefix: str = DEFAULT_PREFIX


@dataclass(frozen=True)
class InitialAccount:
    name: str
    owner_key: str
    active_key: str
    is_lifetime_member: bool


@dataclass(frozen=True)
class InitialBalance:
    owner: str
    asset_symbol: str
    amount: int


@dataclass
class BuildSummary:
    accounts: int = 0
    balances: int = 0
    reserved_skipped: int = 0
    zero_balances_skipped: int = 0


def extract_representative_key(authority: Sequence[Tuple[str, int]]) -> Optional[str]:
    """
    Return the first key of an authority's (key, weight) pairs.

    Supports only single-key authorities faithfully; degrades silently
    otherwise, since the weight threshold and every other key are dropped.
    Returns None for an authority without keys.
    """
    for key, _weight in authority:
        return key
    return None


class GenesisBuilder:
    """Appends genesis entries for every eligible remote account."""

    def __init__(self, reader, config: BuildConfig = BuildConfig(), out=None):
        self.reader = reader
        self.config = config
        self.out = out or sys.stdout
        self._symbols: Dict[str, str] = {}

    def build(self, document: dict, records) -> BuildSummary:
        """
        Append one initial account per eligible record and one initial
        balance per non-zero balance it holds.

        Args:
            document: Genesis document already prepared for rebuild
            records: Mapping of account name to RemoteAccountRecord, in the
                order the node listed the names

        Returns:
            Counts of what was emitted and skipped
        """
        accounts = document.setdefault(ACCOUNTS_KEY, [])
        balances = document.setdefault(BALANCES_KEY, [])
        summary = BuildSummary()

        for name, record in records.items():
            if record.instance < RESERVED_ACCOUNT_CUTOFF:
                summary.reserved_skipped += 1
                continue

            account = self._initial_account(name, record)
            accounts.append(asdict(account))
            summary.accounts += 1
            self._trace_account(account)

            owner_address = None
            for asset_id, amount in record.balances:
                if amount == 0:
                    summary.zero_balances_skipped += 1
                    continue
                if owner_address is None:
                    owner_address = self._address(name, account.owner_key)
                balance = InitialBalance(
                    owner=owner_address,
                    asset_symbol=self._asset_symbol(name, asset_id),
                    amount=amount,
                )
                balances.append(asdict(balance))
                summary.balances += 1
                self._trace_balance(balance)

            if self.config.debug:
                print("\n\n", file=self.out)

        logger.bind(**asdict(summary)).info("Genesis entries built")
        return summary

    def _initial_account(self, name: str, record) -> InitialAccount:
        owner_key = extract_representative_key(record.owner)
        active_key = extract_representative_key(record.active)
        if owner_key is None:
            raise MalformedAccountError(f"Account {name} ({record.id}) has no owner key")
        if active_key is None:
            raise MalformedAccountError(f"Account {name} ({record.id}) has no active key")
        return InitialAccount(
            name=name,
            owner_key=owner_key,
            active_key=active_key,
            is_lifetime_member=record.is_lifetime_member,
        )

    def _address(self, name: str, key_text: str) -> str:
        try:
            return key_to_address(key_text, self.config.address_prefix)
        except InvalidKeyError as e:
            raise MalformedAccountError(f"Account {name}: {e}") from e

    def _asset_symbol(self, name: str, asset_id: str) -> str:
        if asset_id not in self._symbols:
            assets = self.reader.fetch_assets([asset_id])
            if not assets or assets[0] is None:
                raise MalformedAccountError(f"Account {name} holds unknown asset {asset_id}")
            self._symbols[asset_id] = assets[0].symbol
        return self._symbols[asset_id]

    def _trace_account(self, account: InitialAccount):
        if not self.config.debug:
            return
        print(account.name, file=self.out)
        print(f"owner_key: {account.owner_key}", file=self.out)
        print(f"active_key: {account.active_key}", file=self.out)
        print(f"is life member: {int(account.is_lifetime_member)}", file=self.out)

    def _trace_balance(self, balance: InitialBalance):
        if not self.config.debug:
            return
        print(f"address: {balance.owner}", file=self.out)
        print(f"asset_symbol: {balance.asset_symbol}", file=self.out)
        print(f"amount: {balance.amount}", file=self.out)
