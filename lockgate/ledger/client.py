"""Ledger explorer client."""

from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from lockgate.core.logging import get_logger
from lockgate.ledger.models import LedgerTransaction

logger = get_logger(__name__)


class LedgerUnavailableError(Exception):
    """Explorer unreachable, timed out, or returned an unusable payload."""


class TransactionNotFoundError(Exception):
    """Explorer does not know the requested transaction."""


class LedgerClient:
    """Fetches full transaction details from the explorer's ``/ext/gettx`` API.

    Nothing is cached; every call goes to the explorer.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize ledger client.

        Args:
            endpoint: Explorer base URL
            timeout: Per-call timeout in seconds
            client: Optional preconfigured client (used by tests)
        """
        self.endpoint = endpoint.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.endpoint,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_transaction(self, reference: str) -> LedgerTransaction:
        """Fetch a transaction by reference.

        Args:
            reference: Transaction id

        Returns:
            Parsed transaction

        Raises:
            TransactionNotFoundError: Explorer has no such transaction
            LedgerUnavailableError: Transport failure or malformed payload
        """
        path = f"/ext/gettx/{quote(reference, safe='')}"
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as e:
            logger.warning(
                "ledger_request_failed",
                transaction_reference=reference,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            raise LedgerUnavailableError(
                f"Failed to get info of transaction {reference}: {e.__class__.__name__}"
            ) from e

        if response.status_code == 404:
            raise TransactionNotFoundError(f"Transaction {reference} was not found")
        if response.status_code != 200:
            raise LedgerUnavailableError(
                f"Explorer answered HTTP {response.status_code} for transaction {reference}"
            )

        try:
            payload: Any = response.json()
        except ValueError as e:
            raise LedgerUnavailableError(
                f"Explorer returned invalid JSON for transaction {reference}"
            ) from e

        if not isinstance(payload, dict):
            raise LedgerUnavailableError(
                f"Explorer returned an unexpected payload for transaction {reference}"
            )
        # The explorer answers unknown ids with {"error": "tx not found.", ...}
        if payload.get("error") or not payload.get("tx"):
            raise TransactionNotFoundError(f"Transaction {reference} was not found")

        try:
            return LedgerTransaction.model_validate(payload["tx"])
        except ValidationError as e:
            logger.warning(
                "ledger_payload_invalid",
                transaction_reference=reference,
                errors=e.error_count(),
            )
            raise LedgerUnavailableError(
                f"Explorer returned a malformed transaction {reference}"
            ) from e
