"""
In-memory stand-in for the remote account reader used by the tests.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'tools'))
from graphene_keys import CHECKSUM_SIZE, base58_encode, ripemd160
from graphene_rpc import AssetRecord, RemoteAccountRecord, RemoteError


def key_text(key_data, prefix='BTS'):
    """Prefixed text form of compressed public key bytes, as a node reports it."""
    return prefix + base58_encode(key_data + ripemd160(key_data)[:CHECKSUM_SIZE])


def make_key(seed, prefix='BTS'):
    """Deterministic public key text for tests."""
    return key_text(bytes([2]) + bytes([seed]) * 32, prefix)


def make_account(name, instance, owner=None, active=None, lifetime=False, balances=()):
    return RemoteAccountRecord(
        name=name,
        id=f'1.2.{instance}',
        owner=tuple(owner if owner is not None else [(make_key(instance), 1)]),
        active=tuple(active if active is not None else [(make_key(instance + 100), 1)]),
        is_lifetime_member=lifetime,
        balances=tuple(balances),
    )


class FakeReader:
    """Serves a fixed set of accounts and assets, recording every call."""

    def __init__(self, accounts=(), assets=None, login_ok=True):
        self.accounts = {account.name: account for account in accounts}
        self.assets = assets if assets is not None else {'1.3.0': 'CORE'}
        self.login_ok = login_ok
        self.calls = []
        self.closed = False

    def factory(self, endpoint, timeout=None, full_accounts_batch_size=None):
        self.calls.append(('connect', endpoint))
        return self

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True

    def login(self, user='', password=''):
        self.calls.append(('login', user, password))
        if not self.login_ok:
            raise RemoteError(f'Login as {user or "anonymous"} was rejected')

    def account_count(self):
        return len(self.accounts)

    def lookup_account_names(self, prefix, limit):
        self.calls.append(('lookup_account_names', prefix, limit))
        names = [name for name in self.accounts if name >= prefix]
        return {name: self.accounts[name].id for name in names[:limit]}

    def fetch_full_accounts(self, names, subscribe=False):
        self.calls.append(('fetch_full_accounts', tuple(names), subscribe))
        return {name: self.accounts[name] for name in names}

    def fetch_assets(self, ids):
        self.calls.append(('fetch_assets', tuple(ids)))
        return [
            AssetRecord(id=asset_id, symbol=self.assets[asset_id]) if asset_id in self.assets else None
            for asset_id in ids
        ]
