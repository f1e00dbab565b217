"""Default configuration parameters for deployment and discovery."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryParams:
    """Backoff policy shared by every ledger and content store call."""
    max_attempts: int = 5                 # Total attempts, first call included
    base_delay_seconds: float = 0.5       # Delay before the first retry
    multiplier: float = 2.0               # Exponential growth factor
    max_delay_seconds: float = 8.0        # Cap for a single backoff sleep


@dataclass(frozen=True)
class ConfirmationParams:
    """Transaction confirmation parameters."""
    timeout_seconds: float = 180.0        # Deadline for a single confirmation wait
    poll_interval_seconds: float = 1.0    # Receipt polling interval
    confirmations: int = 2                # Blocks on top of the inclusion block
    request_timeout_seconds: float = 30.0 # Per HTTP request to the node


@dataclass(frozen=True)
class ScanParams:
    """Instance scanner parameters."""
    window_size: int = 500                # Blocks per ledger read window
    max_workers: int = 4                  # Concurrent window reads
    resolve_metadata: bool = False        # Read each instance's metadata link


@dataclass(frozen=True)
class ContentStoreParams:
    """Content-addressed store parameters."""
    default_api_url: str = "http://127.0.0.1:5001/"
    fallback_enabled: bool = True         # Use the in-process store if remote fails
    fallback_dir: str = ""                # Empty keeps fallback content in memory
    request_timeout_seconds: float = 30.0


@dataclass(frozen=True)
class InstanceParams:
    """Details of the Beacon DAO written into every new instance."""
    title: str = "Vision DAO"
    description: str = (
        "The Vision DAO is a DAO that governs the Beacon DAO layer of the "
        "Vision ecosystem."
    )
    symbol: str = "VIS"
    supply: int = 1_000_000 * 10**18
    schema_version: int = 1


@dataclass(frozen=True)
class ContractParams:
    """Contract artifact location and the call surface of an instance."""
    artifact_path: str = "contracts/Idea.sol/Idea.json"
    install_method: str = "installModule(string,string,string)"
    set_metadata_method: str = "setMetadata(string)"
    metadata_getter: str = "metadata()"
    gas_limit: int = 4_000_000
    gas_price_wei: int = 2_000_000_000    # 0 asks the node for its gas price


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    retry: RetryParams
    confirmation: ConfirmationParams
    scan: ScanParams
    content_store: ContentStoreParams
    instance: InstanceParams
    contract: ContractParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        retry=RetryParams(),
        confirmation=ConfirmationParams(),
        scan=ScanParams(),
        content_store=ContentStoreParams(),
        instance=InstanceParams(),
        contract=ContractParams(),
    )
