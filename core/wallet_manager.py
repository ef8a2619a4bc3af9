import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Optional

import aiohttp
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from core.config import BotSettings
from core.http_client import ApiError, read_payload
from core.utils import read_list_file

logger = logging.getLogger(__name__)


class RpcError(ApiError):
    """JSON-RPC call answered with an ``error`` member."""


class KeyFileError(Exception):
    """The private-key list is missing, unreadable or empty."""


@dataclass(frozen=True)
class Wallet:
    """A wallet derived from a private key.

    The key is excluded from ``repr`` so a wallet can be logged safely;
    ``address`` is the correlation key for every call in a run.
    """

    address: str
    private_key: str = field(repr=False)


def normalize_private_key(private_key: str) -> str:
    private_key = private_key.strip()
    if not private_key.startswith("0x"):
        private_key = "0x" + private_key
    return private_key


def load_private_keys(filepath: str) -> List[str]:
    """Read the private-key list, one key per line.

    Raises:
        KeyFileError: If the file cannot be read or holds no keys.
    """
    try:
        keys = read_list_file(filepath)
    except OSError as e:
        raise KeyFileError(
            f"Error reading private keys file {filepath}: {e}"
        ) from e
    if not keys:
        raise KeyFileError(f"No private keys found in {filepath}")
    return keys


class ChainGateway:
    """
    Interface to the Helios chain.
    Key derivation and message signing are local (eth-account); balance
    reads go to the RPC endpoint over JSON-RPC through the bound proxy.
    """

    def __init__(self, settings: BotSettings, proxy: Optional[str] = None):
        """
        Initialize the ChainGateway.

        Args:
            settings: Bot-wide configuration (RPC URL, timeout, message template).
            proxy: Initial proxy URI, or None for a direct connection.
        """
        self.settings = settings
        self.rpc_url = settings.rpc_url
        self.proxy = proxy
        self.timeout = aiohttp.ClientTimeout(total=settings.request_timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None
        self._request_id = 0

    def bind_proxy(self, proxy: Optional[str]) -> None:
        """Route subsequent RPC calls through *proxy* (None = direct).

        The proxy is attached per request, so pooled connections keyed
        on the previous proxy are never reused for the new one.
        """
        self.proxy = proxy

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    @staticmethod
    def derive_wallet(private_key: str) -> Wallet:
        """Derive the checksummed address for *private_key*.

        Raises:
            Exception: eth-account validation error if the key is not
                valid hex or not 32 bytes long.
        """
        key = normalize_private_key(private_key)
        account = Account.from_key(key)
        return Wallet(address=account.address, private_key=key)

    def sign_verification_message(self, wallet: Wallet) -> str:
        """Personal-sign (EIP-191) the login challenge for *wallet*.

        Returns:
            The 0x-prefixed 65-byte signature hex string.
        """
        message = encode_defunct(
            text=self.settings.format_verification_message(wallet.address)
        )
        signed = Account.sign_message(message, private_key=wallet.private_key)
        return Web3.to_hex(signed.signature)

    async def _rpc_call(self, method: str, params: Optional[list] = None) -> Any:
        """
        Execute a JSON-RPC call against the configured endpoint.

        Raises:
            ApiError: On HTTP status >= 400 or transport failure.
            RpcError: If the response carries an ``error`` member.
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        session = await self._get_session()
        try:
            async with session.post(self.rpc_url, json=payload, proxy=self.proxy) as response:
                data = await read_payload(response)
                if response.status >= 400:
                    raise ApiError(
                        f"RPC {method} failed with status code {response.status}",
                        status=response.status,
                        payload=data,
                        method="POST",
                        url=self.rpc_url,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ApiError(f"RPC {method} failed: {e or type(e).__name__}",
                           method="POST", url=self.rpc_url) from e

        if not isinstance(data, dict):
            raise RpcError(f"RPC {method} returned a non-JSON body", payload=data)
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise RpcError(f"RPC {method} error: {message}", payload=data)
        return data.get("result")

    async def get_balance_wei(self, address: str) -> int:
        """Native balance of *address* in wei at the latest block."""
        result = await self._rpc_call("eth_getBalance", [address, "latest"])
        return int(result, 16)

    async def get_balance(self, address: str) -> Decimal:
        """Native balance of *address* in display units (ether)."""
        wei = await self.get_balance_wei(address)
        return Decimal(Web3.from_wei(wei, "ether"))

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
