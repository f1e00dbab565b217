"""
Instance discovery over ledger history.

The requested block range is read in bounded windows on a small worker pool.
Each window yields the contract creations of the scanned account; every
candidate's footprint is tested against the factory template and the
survivors are merged into one result keyed by address. The merge is the
only shared state and is guarded by a single lock.

A window that still fails after the ledger's retries fails the whole scan
with ScanIncomplete. A partial list is never returned.
"""

import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, Optional

from eth_utils import is_address

from ..config.defaults import ScanParams
from ..errors import Cancelled, DaowizError, ScanIncomplete, ValidationError
from ..ledger.client import LedgerClient
from ..logging.config import get_scan_logger
from ..models.plan import ScanQuery
from ..models.records import InstanceRecord
from ..models.template import Footprint
from ..utils.cancellation import CancellationToken
from .matching import matches_template

logger = get_scan_logger(__name__)

MetadataReader = Callable[[str], Optional[str]]


class InstanceScanner:
    """Finds every instance of a template created by an account."""

    def __init__(
        self,
        ledger: LedgerClient,
        params: Optional[ScanParams] = None,
        cancel: Optional[CancellationToken] = None,
        metadata_reader: Optional[MetadataReader] = None,
    ):
        self.ledger = ledger
        self.params = params or ScanParams()
        self.cancel = cancel or CancellationToken()
        self.metadata_reader = metadata_reader
        self.logger = logger

    def _validate(self, query: ScanQuery) -> None:
        if not is_address(query.account):
            raise ValidationError(f"not an account address: {query.account}",
                                  field="account", value=query.account)
        if query.from_block < 0 or query.to_block < query.from_block:
            raise ValidationError(
                f"invalid block range [{query.from_block}, {query.to_block})",
                field="block_range", value=(query.from_block, query.to_block),
            )

    def _scan_window(
        self,
        query: ScanQuery,
        start: int,
        end: int,
        found: dict[str, InstanceRecord],
        lock: threading.Lock,
    ) -> int:
        """Scan one window, merging matches into `found`. Returns the match count."""
        self.cancel.raise_if_cancelled(step=f"scan[{start},{end})")

        matches = []
        for event in self.ledger.query_logs(query.account, start, end):
            self.cancel.raise_if_cancelled(step=f"scan[{start},{end})")
            footprint = Footprint(
                address=event.address,
                creation_input=event.creation_input,
                runtime_code=self.ledger.read_code(event.address),
            )
            if matches_template(query.template, footprint):
                matches.append(InstanceRecord(
                    address=event.address,
                    deployer=event.deployer,
                    block_number=event.block_number,
                    tx_hash=event.tx_hash,
                ))

        with lock:
            for record in matches:
                key = record.address.lower()
                existing = found.get(key)
                if existing is None or record.block_number < existing.block_number:
                    found[key] = record

        self.logger.debug("Scanned window", start=start, end=end, matches=len(matches))
        return len(matches)

    def scan(self, query: ScanQuery, resolve_metadata: Optional[bool] = None) -> frozenset[InstanceRecord]:
        """
        Scan the query's block range for instances of its template.

        Args:
            query: Template, account and half-open block range
            resolve_metadata: Read each instance's metadata link
                (defaults to the scan configuration)

        Returns:
            Instances found, deduplicated by address

        Raises:
            ValidationError: Malformed query
            ScanIncomplete: A window could not be read
            Cancelled: The scan was cancelled
        """
        self._validate(query)
        windows = query.windows(self.params.window_size)

        self.logger.info(
            "Starting instance scan",
            template=query.template.name,
            account=query.account,
            from_block=query.from_block,
            to_block=query.to_block,
            windows=len(windows),
        )

        found: dict[str, InstanceRecord] = {}
        lock = threading.Lock()
        failures: dict[int, BaseException] = {}
        completed: set[int] = set()

        with ThreadPoolExecutor(max_workers=self.params.max_workers,
                                thread_name_prefix="daowiz-scan") as pool:
            futures = {
                pool.submit(self._scan_window, query, start, end, found, lock): index
                for index, (start, end) in enumerate(windows)
            }
            wait(futures, return_when=FIRST_EXCEPTION)

            # Stop handing out windows once one has failed
            for future in futures:
                future.cancel()

        for future, index in futures.items():
            if future.cancelled():
                continue
            error = future.exception()
            if error is None:
                completed.add(index)
            else:
                failures[index] = error

        if failures:
            first_index = min(failures)
            cause = failures[first_index]

            cancelled = [e for e in failures.values() if isinstance(e, Cancelled)]
            if cancelled:
                raise cancelled[0]
            if not isinstance(cause, DaowizError):
                raise cause

            through_block = query.from_block - 1
            for index, (_, end) in enumerate(windows):
                if index not in completed:
                    break
                through_block = end - 1

            self.logger.warning(
                "Instance scan incomplete",
                failed_window=windows[first_index],
                through_block=through_block,
                error=str(cause),
            )
            raise ScanIncomplete(
                f"could not read blocks [{windows[first_index][0]}, {windows[first_index][1]}): {cause}",
                through_block=through_block,
                cause=cause,
            ) from cause

        records = list(found.values())

        if resolve_metadata is None:
            resolve_metadata = self.params.resolve_metadata
        if resolve_metadata:
            if self.metadata_reader is None:
                raise ValidationError("metadata resolution requested without a metadata reader",
                                      field="resolve_metadata", value=True)
            resolved = []
            for record in records:
                self.cancel.raise_if_cancelled(step="resolve_metadata")
                resolved.append(record.with_metadata(self.metadata_reader(record.address)))
            records = resolved

        self.logger.info("Instance scan complete", instances=len(records))
        return frozenset(records)
