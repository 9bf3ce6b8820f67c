#!/usr/bin/env python3
"""
JSON-RPC reader for the login and database APIs of a graphene node.

All calls share one websocket connection: the node keys API access to the
connection, so the database API id obtained after login is only valid on the
socket that logged in.
"""

import json
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from loguru import logger
from websocket import WebSocketException, create_connection

from genesis_store import GenesisToolError

DEFAULT_ENDPOINT = "ws://127.0.0.1:8090"
DEFAULT_TIMEOUT = 30

LOGIN_API_ID = 1
# Node side caps for lookup_accounts and get_full_accounts
LOOKUP_ACCOUNTS_LIMIT = 1000
FULL_ACCOUNTS_BATCH_SIZE = 10

LIFETIME_EXPIRATION = "2106-02-07T06:28:15"


class RemoteError(GenesisToolError):
    """Raised on any transport, protocol or authentication failure."""


@dataclass(frozen=True)
class RemoteAccountRecord:
    """Account as returned by get_full_accounts, reduced to what genesis needs."""
    name: str
    id: str
    owner: Tuple[Tuple[str, int], ...]
    active: Tuple[Tuple[str, int], ...]
    is_lifetime_member: bool
    balances: Tuple[Tuple[str, int], ...] = ()

    @property
    def instance(self) -> int:
        return object_instance(self.id)


@dataclass(frozen=True)
class AssetRecord:
    id: str
    symbol: str


def object_instance(object_id: str) -> int:
    """Return N from a graphene object id "space.type.N"."""
    try:
        return int(object_id.split(".")[2])
    except (AttributeError, IndexError, ValueError):
        raise RemoteError(f"Malformed object id: {object_id!r}")


def expect_list(result, method: str) -> list:
    if not isinstance(result, list):
        raise RemoteError(f"{method} returned {result!r}, expected a list")
    return result


def parse_authority(authority: dict) -> Tuple[Tuple[str, int], ...]:
    """Return the (key, weight) pairs of an authority in node order."""
    return tuple((key, int(weight)) for key, weight in authority.get("key_auths", []))


def parse_full_account(name: str, full_account: dict) -> RemoteAccountRecord:
    try:
        account = full_account["account"]
        return RemoteAccountRecord(
            name=name,
            id=account["id"],
            owner=parse_authority(account["owner"]),
            active=parse_authority(account["active"]),
            is_lifetime_member=account.get("membership_expiration_date") == LIFETIME_EXPIRATION,
            balances=tuple(
                (balance["asset_type"], int(balance["balance"]))
                for balance in full_account.get("balances", [])
            ),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise RemoteError(f"Malformed full account record for {name}: {e!r}") from e


def parse_asset(asset: dict) -> AssetRecord:
    try:
        return AssetRecord(id=asset["id"], symbol=asset["symbol"])
    except (KeyError, TypeError) as e:
        raise RemoteError(f"Malformed asset record {asset!r}: {e!r}") from e


class GrapheneRPCReader:
    """Remote account reader backed by a node's websocket JSON-RPC endpoint."""

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        full_accounts_batch_size: int = FULL_ACCOUNTS_BATCH_SIZE,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.full_accounts_batch_size = full_accounts_batch_size
        self.connection = None
        self.request_id = 0
        self.database_api = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def connect(self):
        try:
            self.connection = create_connection(self.endpoint, timeout=self.timeout)
        except (WebSocketException, OSError) as e:
            raise RemoteError(f"Connection to {self.endpoint} failed: {e}") from e
        logger.bind(endpoint=self.endpoint).debug("Connected")

    def close(self):
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    def call(self, api, method: str, params: Optional[List] = None):
        """Invoke method on the given API and return the JSON-RPC result."""
        if self.connection is None:
            raise RemoteError(f"Not connected to {self.endpoint}")

        self.request_id += 1
        request_id = self.request_id
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "call",
            "params": [api, method, params or []],
        }
        logger.bind(api=api, id=request_id).debug(f"-> {method}")

        try:
            self.connection.send(json.dumps(payload))
            # Notices carry no id; skip anything that is not our reply
            while True:
                reply = json.loads(self.connection.recv())
                if not isinstance(reply, dict):
                    raise RemoteError(f"Unexpected response to {method}: {reply!r}")
                if reply.get("id") == request_id:
                    break
        except (WebSocketException, OSError) as e:
            raise RemoteError(f"{method} on {self.endpoint} failed: {e}") from e
        except ValueError as e:
            raise RemoteError(f"Invalid JSON response to {method}: {e}") from e

        if "error" in reply:
            error = reply["error"]
            detail = error.get("message", error) if isinstance(error, dict) else error
            raise RemoteError(f"{method} failed: {detail}")
        if "result" not in reply:
            raise RemoteError(f"Response to {method} has no result: {reply!r}")
        return reply["result"]

    def login(self, user: str = "", password: str = ""):
        """Log in and resolve the database API id on this connection."""
        if self.call(LOGIN_API_ID, "login", [user, password]) is not True:
            raise RemoteError(f"Login as {user or 'anonymous'} was rejected by {self.endpoint}")
        api_id = self.call(LOGIN_API_ID, "database", [])
        if not isinstance(api_id, int) or isinstance(api_id, bool):
            raise RemoteError(f"database API is not available: {api_id!r}")
        self.database_api = api_id

    def _database(self, method: str, params: Optional[List] = None):
        if self.database_api is None:
            raise RemoteError(f"{method} called before login")
        return self.call(self.database_api, method, params)

    def account_count(self) -> int:
        result = self._database("get_account_count")
        if not isinstance(result, int) or isinstance(result, bool) or result < 0:
            raise RemoteError(f"get_account_count returned {result!r}")
        return result

    def lookup_account_names(self, prefix: str, limit: int) -> Dict[str, str]:
        """
        Map account names to ids, starting at prefix, up to limit entries.

        The node answers at most LOOKUP_ACCOUNTS_LIMIT names per call and
        treats the lower bound as inclusive, so each following page starts at
        the last name seen and drops it.
        """
        names: Dict[str, str] = {}
        lower_bound = prefix
        while len(names) < limit:
            page_limit = min(LOOKUP_ACCOUNTS_LIMIT, limit - len(names) + (1 if names else 0))
            page = expect_list(self._database("lookup_accounts", [lower_bound, page_limit]), "lookup_accounts")
            try:
                new_entries = [(name, account_id) for name, account_id in page if name not in names]
            except (TypeError, ValueError) as e:
                raise RemoteError(f"Malformed lookup_accounts page: {e!r}") from e
            if not new_entries:
                break
            for name, account_id in new_entries[:limit - len(names)]:
                names[name] = account_id
            if len(page) < page_limit:
                break
            lower_bound = page[-1][0]
        return names

    def fetch_full_accounts(self, names: List[str], subscribe: bool = False) -> Dict[str, RemoteAccountRecord]:
        """Fetch full account records, batching requests to the node limit."""
        records: Dict[str, RemoteAccountRecord] = {}
        batch_size = max(1, self.full_accounts_batch_size)
        for start in range(0, len(names), batch_size):
            batch = list(names[start:start + batch_size])
            result = expect_list(self._database("get_full_accounts", [batch, subscribe]), "get_full_accounts")
            for entry in result:
                if not isinstance(entry, list) or len(entry) != 2:
                    raise RemoteError(f"Malformed get_full_accounts entry: {entry!r}")
                name, full_account = entry
                records[name] = parse_full_account(name, full_account)
        return records

    def fetch_assets(self, ids: List[str]) -> List[Optional[AssetRecord]]:
        result = expect_list(self._database("get_assets", [list(ids)]), "get_assets")
        return [None if asset is None else parse_asset(asset) for asset in result]
