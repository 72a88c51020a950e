"""
Solana JSON-RPC client

The only layer that retries. Transport failures (timeouts, connection
errors, HTTP 429/5xx, unparseable bodies) are retried with backoff on each
endpoint before falling over to the next one. A JSON-RPC error object from
the node is final and raised on the first occurrence.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union
from dataclasses import dataclass

import httpx

from ..errors import RpcError, ConfigurationError, ErrorCode
from ..config import config as global_config

logger = logging.getLogger(__name__)

# getMultipleAccounts accepts at most this many keys per request
MAX_MULTIPLE_ACCOUNTS = 100

_SPL_TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

# Confirmation levels that satisfy a requested commitment
_SATISFIES = {
    "processed": ("processed", "confirmed", "finalized"),
    "confirmed": ("confirmed", "finalized"),
    "finalized": ("finalized",),
}


@dataclass
class RpcClientConfig:
    """
    Per-client RPC settings; unset fields fall back to RpcConfig from the environment.

    Usage:
        rpc = RpcClient(url, config=RpcClientConfig(max_retries=5))
    """
    timeout_seconds: float = None
    max_retries: int = None
    retry_delay_seconds: float = None
    commitment: str = None

    def __post_init__(self):
        defaults = global_config.rpc
        for name in ("timeout_seconds", "max_retries", "retry_delay_seconds", "commitment"):
            if getattr(self, name) is None:
                setattr(self, name, getattr(defaults, name))
        if self.max_retries < 1:
            self.max_retries = 1


def decode_account_data(account_info: Optional[Dict[str, Any]]) -> Optional[bytes]:
    """
    Raw bytes of a base64-encoded account, or None for an absent account.

    Accepts the ["<base64>", "base64"] pair RPC returns as well as a bare string.
    """
    if account_info is None:
        return None
    data = account_info.get("data")
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, str):
        return base64.b64decode(data)
    raise RpcError(
        f"Account data is not base64 (got {type(data).__name__}); request encoding=base64",
        ErrorCode.RPC_INVALID_RESPONSE,
    )


def _chunks(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


class RpcClient:
    """
    Synchronous Solana RPC client over httpx

    Usage:
        rpc = RpcClient(["https://primary.example", "https://backup.example"])
        raw = rpc.get_account_data(pool_address)
        raws = rpc.get_multiple_account_data([pool_address, extension_address])
        slot = rpc.call("getSlot", [])
    """

    def __init__(
        self,
        endpoint: Union[str, List[str]],
        config: Optional[RpcClientConfig] = None,
    ):
        endpoints = [endpoint] if isinstance(endpoint, str) else list(endpoint or [])
        self._endpoints = [e for e in endpoints if e]
        if not self._endpoints:
            raise ConfigurationError.missing("SOLANA_RPC_URL")

        self._config = config or RpcClientConfig()
        self._active = 0
        self._request_id = 0
        self._http = httpx.Client(
            timeout=self._config.timeout_seconds,
            headers={"Content-Type": "application/json"},
        )

    @property
    def endpoint(self) -> str:
        """Endpoint requests currently go to"""
        return self._endpoints[self._active]

    @property
    def commitment(self) -> str:
        return self._config.commitment

    def _options(self, commitment: Optional[str], **extra) -> Dict[str, Any]:
        options = {"commitment": commitment or self.commitment}
        options.update(extra)
        return options

    def _backoff(self, attempt: int) -> float:
        return self._config.retry_delay_seconds * (2 ** attempt)

    def _post(self, endpoint: str, body: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        """
        One HTTP round trip.

        Raises:
            RpcError: For any transport-level failure (all retryable)
        """
        try:
            response = self._http.post(endpoint, json=body, timeout=timeout)
            if response.status_code == 429:
                raise RpcError.rate_limited(endpoint)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise RpcError.timeout(endpoint, timeout) from e
        except httpx.HTTPStatusError as e:
            raise RpcError(
                f"HTTP {e.response.status_code} from {endpoint}", endpoint=endpoint, original_error=e
            ) from e
        except httpx.RequestError as e:
            raise RpcError.connection_failed(endpoint, e) from e
        except ValueError as e:
            raise RpcError(
                f"Response from {endpoint} is not JSON: {e}",
                ErrorCode.RPC_INVALID_RESPONSE,
                original_error=e,
                endpoint=endpoint,
            ) from e

    @staticmethod
    def _node_error(method: str, endpoint: str, error: Any) -> RpcError:
        if not isinstance(error, dict):
            error = {"message": str(error)}
        rpc_error = RpcError(
            f"{method} rejected by node: {error.get('message', error)}",
            ErrorCode.RPC_INVALID_RESPONSE,
            endpoint=endpoint,
        )
        rpc_error.details["rpc_error_code"] = error.get("code")
        rpc_error.details["rpc_error_data"] = error.get("data")
        return rpc_error

    def call(self, method: str, params: List[Any], timeout: Optional[float] = None) -> Any:
        """
        JSON-RPC call with retries and endpoint fallback

        Returns:
            The "result" member of the response

        Raises:
            RpcError: Node error (not retried) or the last transport error
                once every endpoint has used up its retries
        """
        self._request_id += 1
        body = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        timeout = timeout or self._config.timeout_seconds
        retries = self._config.max_retries
        last_error: Optional[RpcError] = None

        for _ in range(len(self._endpoints)):
            endpoint = self.endpoint
            for attempt in range(retries):
                try:
                    payload = self._post(endpoint, body, timeout)
                except RpcError as e:
                    last_error = e
                    logger.warning(f"{method} attempt {attempt + 1}/{retries} on {endpoint} failed: {e.message}")
                    if attempt + 1 < retries:
                        time.sleep(self._backoff(attempt))
                    continue

                if "error" in payload:
                    raise self._node_error(method, endpoint, payload["error"])
                return payload.get("result")

            if len(self._endpoints) > 1:
                self._active = (self._active + 1) % len(self._endpoints)
                logger.info(f"Switching RPC endpoint to {self.endpoint}")

        raise last_error or RpcError(f"{method} failed on every RPC endpoint")

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def get_account_info(
        self,
        address: str,
        encoding: str = "base64",
        commitment: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Account info dict, or None if the account does not exist"""
        result = self.call("getAccountInfo", [str(address), self._options(commitment, encoding=encoding)])
        return result.get("value") if result else None

    def get_account_data(self, address: str) -> Optional[bytes]:
        """Raw account bytes, or None if the account does not exist"""
        return decode_account_data(self.get_account_info(address))

    def get_multiple_accounts(
        self,
        addresses: Sequence[str],
        encoding: str = "base64",
        commitment: Optional[str] = None,
    ) -> List[Optional[Dict[str, Any]]]:
        """
        Account infos in request order, None where absent.

        More than MAX_MULTIPLE_ACCOUNTS addresses are split over several calls.

        Raises:
            RpcError: If the node returns a different number of entries
        """
        addresses = [str(a) for a in addresses]
        accounts: List[Optional[Dict[str, Any]]] = []
        for chunk in _chunks(addresses, MAX_MULTIPLE_ACCOUNTS):
            result = self.call("getMultipleAccounts", [list(chunk), self._options(commitment, encoding=encoding)])
            value = (result or {}).get("value") or []
            if len(value) != len(chunk):
                raise RpcError(
                    f"getMultipleAccounts returned {len(value)} entries for {len(chunk)} addresses",
                    ErrorCode.RPC_INVALID_RESPONSE,
                    endpoint=self.endpoint,
                )
            accounts.extend(value)
        return accounts

    def get_multiple_account_data(self, addresses: Sequence[str]) -> List[Optional[bytes]]:
        """Raw bytes per address (None where absent)"""
        return [decode_account_data(info) for info in self.get_multiple_accounts(addresses)]

    def get_program_accounts(
        self,
        program_id: str,
        filters: Optional[List[Dict[str, Any]]] = None,
        encoding: str = "base64",
        commitment: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Accounts owned by a program as {"pubkey", "account"} dicts.

        filters take the RPC form, e.g.
        [{"dataSize": 281}, {"memcmp": {"offset": 41, "bytes": "<pool>"}}]
        """
        options = self._options(commitment, encoding=encoding)
        if filters:
            options["filters"] = filters
        return self.call("getProgramAccounts", [str(program_id), options]) or []

    def get_token_accounts_by_owner(
        self,
        owner: str,
        mint: Optional[str] = None,
        program_id: Optional[str] = None,
        encoding: str = "jsonParsed",
        commitment: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Token accounts of owner, filtered by mint or else by token program (SPL Token by default)"""
        if mint:
            account_filter = {"mint": str(mint)}
        else:
            account_filter = {"programId": str(program_id or _SPL_TOKEN_PROGRAM)}
        result = self.call(
            "getTokenAccountsByOwner",
            [str(owner), account_filter, self._options(commitment, encoding=encoding)],
        )
        return result.get("value", []) if result else []

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def get_latest_blockhash(self, commitment: Optional[str] = None) -> Dict[str, Any]:
        """{"blockhash": ..., "lastValidBlockHeight": ...}"""
        result = self.call("getLatestBlockhash", [self._options(commitment)])
        return (result or {}).get("value", {})

    def get_transaction(self, signature: str, commitment: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Confirmed transaction with meta.logMessages, or None if unknown"""
        options = self._options(commitment, encoding="json", maxSupportedTransactionVersion=0)
        return self.call("getTransaction", [signature, options])

    def send_transaction(
        self,
        transaction: bytes,
        skip_preflight: bool = False,
        preflight_commitment: Optional[str] = None,
        max_retries: Optional[int] = None,
    ) -> str:
        """Submit a signed transaction and return its signature"""
        options: Dict[str, Any] = {
            "encoding": "base64",
            "skipPreflight": skip_preflight,
            "preflightCommitment": preflight_commitment or self.commitment,
        }
        if max_retries is not None:
            options["maxRetries"] = max_retries
        return self.call("sendTransaction", [base64.b64encode(transaction).decode("ascii"), options])

    def simulate_transaction(self, transaction: bytes, commitment: Optional[str] = None) -> Dict[str, Any]:
        """
        Simulate without signature verification against a fresh blockhash.

        Returns:
            The RPC result; result["value"] carries err, logs and unitsConsumed
        """
        options = self._options(commitment, encoding="base64", sigVerify=False, replaceRecentBlockhash=True)
        return self.call("simulateTransaction", [base64.b64encode(transaction).decode("ascii"), options])

    def get_signature_status(self, signature: str) -> Optional[Dict[str, Any]]:
        result = self.call("getSignatureStatuses", [[signature]])
        value = (result or {}).get("value") or [None]
        return value[0]

    def confirm_transaction(
        self,
        signature: str,
        commitment: Optional[str] = None,
        timeout_seconds: float = 60.0,
        poll_interval: float = 1.0,
    ) -> Optional[bool]:
        """
        Poll until the transaction reaches commitment or fails.

        Returns:
            True when confirmed, False when it failed on-chain,
            None on timeout (dropped, expired or still unconfirmed)
        """
        accepted = _SATISFIES.get(commitment or self.commitment, _SATISFIES["confirmed"])
        deadline = time.monotonic() + timeout_seconds
        seen: Optional[str] = None

        while time.monotonic() < deadline:
            try:
                status = self.get_signature_status(signature)
            except RpcError as e:
                logger.debug(f"Status check for {signature} failed: {e}")
                status = None

            if status:
                if status.get("err"):
                    logger.warning(f"Transaction {signature} failed on-chain: {status['err']}")
                    return False
                seen = status.get("confirmationStatus")
                if seen in accepted:
                    return True
            time.sleep(poll_interval)

        if seen is None:
            logger.warning(f"Transaction {signature} not seen within {timeout_seconds}s (dropped or expired)")
        else:
            logger.warning(f"Transaction {signature} still {seen} after {timeout_seconds}s")
        return None

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
