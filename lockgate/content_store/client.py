"""Content store client backed by the Kubo (IPFS) HTTP RPC API."""

import json
from typing import Any, BinaryIO, Optional

import httpx

from lockgate.content_store.models import ContentIdentifier
from lockgate.core.logging import get_logger

logger = get_logger(__name__)


class ContentStoreError(Exception):
    """Raised when the content store cannot be reached or rejects a call."""


class ContentStoreClient:
    """Computes, stores and checks content identifiers on a Kubo node.

    Every RPC call is a POST under ``/api/v0``. Identifiers are always
    computed as CIDv0 and formatted to CIDv1 by the node itself so both
    encodings share one multihash.
    """

    _NOT_PINNED_MARKER = "not pinned"

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize content store client.

        Args:
            base_url: Kubo RPC address (e.g. http://127.0.0.1:5001)
            timeout: Per-call timeout in seconds
            client: Optional preconfigured client (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def hash_only(self, stream: BinaryIO, filename: str = "upload") -> ContentIdentifier:
        """Compute the identifier of ``stream`` without storing it.

        Args:
            stream: Readable binary stream positioned at the start
            filename: Name sent with the multipart part

        Returns:
            ContentIdentifier for the stream's bytes
        """
        cid_v0 = await self._add(stream, filename, only_hash=True)
        return ContentIdentifier(v0=cid_v0, v1=await self.to_v1(cid_v0))

    async def store(self, stream: BinaryIO, filename: str = "upload") -> ContentIdentifier:
        """Add and pin ``stream``.

        Args:
            stream: Readable binary stream positioned at the start
            filename: Name sent with the multipart part

        Returns:
            ContentIdentifier of the stored content
        """
        cid_v0 = await self._add(stream, filename, only_hash=False)
        identifier = ContentIdentifier(v0=cid_v0, v1=await self.to_v1(cid_v0))
        logger.info("content_stored", cid_v0=identifier.v0, cid_v1=identifier.v1)
        return identifier

    async def is_pinned(self, cid: str) -> bool:
        """Check whether ``cid`` is pinned on the node.

        Args:
            cid: Content identifier in either encoding

        Returns:
            True if pinned (directly or indirectly)
        """
        try:
            await self._rpc("pin/ls", {"arg": cid})
        except ContentStoreError as e:
            if self._NOT_PINNED_MARKER in str(e):
                return False
            raise
        return True

    async def unpin(self, cid: str) -> None:
        """Remove the recursive pin for ``cid``; unpinned content is ignored."""
        try:
            await self._rpc("pin/rm", {"arg": cid})
        except ContentStoreError as e:
            if self._NOT_PINNED_MARKER in str(e):
                return
            raise
        logger.info("content_unpinned", cid=cid)

    async def to_v1(self, cid: str) -> str:
        """Format ``cid`` as a base32 CIDv1."""
        data = await self._rpc("cid/format", {"arg": cid, "v": "1", "b": "base32"})
        formatted = str(data.get("Formatted") or "").strip()
        if not formatted or data.get("ErrorMsg"):
            raise ContentStoreError(
                f"cid_format_failed:{cid}:{data.get('ErrorMsg') or 'empty'}"
            )
        return formatted

    async def _add(self, stream: BinaryIO, filename: str, only_hash: bool) -> str:
        params = {
            "only-hash": "true" if only_hash else "false",
            "pin": "false" if only_hash else "true",
            "cid-version": "0",
            "progress": "false",
            "wrap-with-directory": "false",
        }
        files = {"file": (filename or "upload", stream, "application/octet-stream")}
        try:
            response = await self._client.post("/api/v0/add", params=params, files=files)
        except httpx.HTTPError as e:
            raise ContentStoreError(f"ipfs_add_failed:{e.__class__.__name__}:{e}") from e

        if response.status_code != 200:
            raise ContentStoreError(
                f"ipfs_add_failed:http_{response.status_code}:{_error_message(response)}"
            )
        return _parse_add_response(response.text)

    async def _rpc(self, command: str, params: dict[str, str]) -> dict[str, Any]:
        try:
            response = await self._client.post(f"/api/v0/{command}", params=params)
        except httpx.HTTPError as e:
            raise ContentStoreError(
                f"ipfs_{command}_failed:{e.__class__.__name__}:{e}"
            ) from e

        if response.status_code != 200:
            raise ContentStoreError(
                f"ipfs_{command}_failed:http_{response.status_code}:{_error_message(response)}"
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ContentStoreError(f"ipfs_{command}_failed:bad_json") from e
        return data if isinstance(data, dict) else {}


def _error_message(response: httpx.Response) -> str:
    """Extract Kubo's error message, falling back to the raw body."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:300]
    if isinstance(data, dict) and data.get("Message"):
        return str(data["Message"])
    return response.text[:300]


def _parse_add_response(raw: str) -> str:
    """Take the hash from the last object of the NDJSON add response."""
    last_obj: Optional[dict[str, Any]] = None
    for line in raw.strip().splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except ValueError:
            continue
        if isinstance(obj, dict):
            last_obj = obj

    if last_obj is None:
        raise ContentStoreError(f"ipfs_add_failed:bad_response:{raw[:200]}")

    cid = str(last_obj.get("Hash") or "").strip()
    if not cid:
        raise ContentStoreError(f"ipfs_add_failed:missing_hash:{last_obj!r}")
    return cid
