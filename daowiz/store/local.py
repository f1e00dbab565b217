"""In-process fallback content store."""

import threading
from pathlib import Path
from typing import Optional

import structlog

from ..errors import ContentNotFound, ContentStoreError
from .base import ContentStore, content_address

logger = structlog.get_logger(__name__)


class LocalContentStore(ContentStore):
    """Content store living inside the daowiz process.

    Content is kept in memory, and additionally written to `directory`
    (one file per address) when one is given so that it survives the
    invocation.
    """

    def __init__(self, directory: Optional[Path] = None, name: str = "local"):
        super().__init__(name)
        self.directory = Path(directory) if directory else None
        self._blocks: dict[str, bytes] = {}
        self._lock = threading.Lock()

        if self.directory is not None:
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ContentStoreError(
                    f"cannot create local store directory {self.directory}: {e}",
                    store=self.name,
                ) from e

    def publish(self, data: bytes) -> str:
        address = content_address(data)

        with self._lock:
            if address in self._blocks:
                return address
            self._blocks[address] = bytes(data)

        if self.directory is not None:
            target = self.directory / address
            if not target.exists():
                try:
                    target.write_bytes(data)
                except OSError as e:
                    raise ContentStoreError(
                        f"cannot write {target}: {e}", store=self.name
                    ) from e

        logger.debug("Published content locally", address=address, size=len(data))
        return address

    def fetch(self, address: str) -> bytes:
        with self._lock:
            if address in self._blocks:
                return self._blocks[address]

        if self.directory is not None:
            target = self.directory / address
            if target.is_file():
                data = target.read_bytes()
                if content_address(data) != address:
                    raise ContentStoreError(
                        f"{target} does not hold the content addressed by its name",
                        store=self.name,
                    )
                return data

        raise ContentNotFound(f"no content stored under {address}",
                              store=self.name, address=address)
