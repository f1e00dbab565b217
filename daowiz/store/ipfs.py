"""Remote content store reached through the IPFS HTTP API."""

import socket
import uuid
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urljoin, urlparse
from urllib.request import Request, urlopen

import orjson
import structlog

from ..errors import ContentNotFound, ContentStoreError, TransientRPCError, ValidationError
from ..ledger.retry import RetryPolicy
from ..utils.cancellation import CancellationToken
from .base import ContentStore

logger = structlog.get_logger(__name__)

ADD_PARAMS = "cid-version=1&raw-leaves=true&pin=true"


class IpfsContentStore(ContentStore):
    """ContentStore backed by an IPFS node's RPC API (`/api/v0`)."""

    def __init__(
        self,
        api_url: str,
        retry: Optional[RetryPolicy] = None,
        timeout_seconds: float = 30.0,
        cancel: Optional[CancellationToken] = None,
        name: str = "ipfs",
    ):
        super().__init__(name)

        parsed = urlparse(api_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"Invalid IPFS API URL: {api_url}",
                                  field="metadata_endpoint", value=api_url)

        self.api_url = api_url if api_url.endswith("/") else api_url + "/"
        self.retry = retry or RetryPolicy()
        self.timeout_seconds = timeout_seconds
        self.cancel = cancel or CancellationToken()

    def _endpoint(self, command: str, query: str) -> str:
        return urljoin(self.api_url, f"api/v0/{command}?{query}")

    def _post(self, url: str, body: bytes, content_type: str, command: str) -> bytes:
        req = Request(
            url,
            data=body,
            headers={
                "Content-Type": content_type,
                "User-Agent": "daowiz/0.1",
            },
            method="POST",
        )

        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                return response.read()

        except HTTPError as e:
            detail = e.read().decode("utf-8", "replace")[:200] if e.fp else ""
            if e.code >= 500 and "not found" in detail.lower():
                raise ContentNotFound(f"{command}: {detail}", store=self.name) from e
            if e.code >= 500 or e.code == 429:
                raise TransientRPCError(f"HTTP {e.code}: {detail or e.reason}",
                                        method=command) from e
            raise ContentStoreError(f"HTTP {e.code}: {detail or e.reason}",
                                    store=self.name) from e

        except (OSError, URLError, socket.timeout) as e:
            raise TransientRPCError(f"Network error: {e}", method=command) from e

    def publish(self, data: bytes) -> str:
        boundary = uuid.uuid4().hex
        body = (
            f"--{boundary}\r\n"
            'Content-Disposition: form-data; name="file"; filename="blob"\r\n'
            "Content-Type: application/octet-stream\r\n\r\n"
        ).encode("utf-8") + data + f"\r\n--{boundary}--\r\n".encode("utf-8")

        raw = self.retry.call(
            lambda: self._post(
                self._endpoint("add", ADD_PARAMS),
                body,
                f"multipart/form-data; boundary={boundary}",
                "add",
            ),
            description="ipfs.add",
            cancel=self.cancel,
        )

        try:
            address = orjson.loads(raw)["Hash"]
        except (orjson.JSONDecodeError, KeyError, TypeError) as e:
            raise ContentStoreError(f"unexpected add response: {raw[:200]!r}",
                                    store=self.name) from e

        logger.debug("Published content to IPFS", address=address, size=len(data))
        return address

    def fetch(self, address: str) -> bytes:
        return self.retry.call(
            lambda: self._post(
                self._endpoint("cat", f"arg={quote(address)}"),
                b"",
                "application/octet-stream",
                "cat",
            ),
            description="ipfs.cat",
            cancel=self.cancel,
        )
