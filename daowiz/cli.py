"""
daowiz command line.

    daowiz new  --eth-rpc-uri URI --eth-chain-id ID --contracts-dir DIR
                [--ipfs-rpc-uri URI] [--reuse-existing] a.wasm a.js ...
    daowiz list --eth-rpc-uri URI --eth-chain-id ID --contracts-dir DIR
                [--from-block N] [--to-block N] [--account ADDRESS]

The deployment key is read from DEPLOYMENT_PRIVATE_KEY and handed to the
engine as a Signer. Command output goes to stdout, logs to stderr.
"""

import os
import signal
import sys
import threading
from typing import Optional

import click

from . import __version__
from .engine import DaoEngine
from .errors import (
    Cancelled,
    ConfirmationTimeout,
    DaowizError,
    DeployFailed,
    MetadataLinkFailed,
    PartialInstall,
    PublishUnavailable,
    ScanIncomplete,
    ValidationError,
)
from .ledger.signer import LocalKeySigner, Signer
from .logging.config import configure_logging
from .models.plan import DeployMode
from .utils.cancellation import CancellationToken

PRIVATE_KEY_ENV = "DEPLOYMENT_PRIVATE_KEY"

EXIT_FAILURE = 1
EXIT_CANCELLED = 130

FAILED_STEPS = {
    ValidationError: "validate",
    DeployFailed: "create_instance",
    PartialInstall: "install_modules",
    PublishUnavailable: "publish_metadata",
    MetadataLinkFailed: "link_metadata",
    ConfirmationTimeout: "confirm",
    ScanIncomplete: "scan",
}


def load_signer() -> Signer:
    """Build the deployment signer from the environment."""
    key = os.environ.get(PRIVATE_KEY_ENV)
    if not key:
        raise ValidationError(f"{PRIVATE_KEY_ENV} is not set", field=PRIVATE_KEY_ENV)
    return LocalKeySigner(key)


def describe_failure(error: DaowizError) -> str:
    """One-line report naming the failed step."""
    parts = [f"{type(error).__name__}: {error}"]
    step = getattr(error, "step", None) or FAILED_STEPS.get(type(error))
    if step:
        parts.append(f"step={step}")
    instance = getattr(error, "instance", None)
    if instance is not None:
        parts.append(f"instance={instance.address}")
    return " ".join(parts)


def run_guarded(fn, cancel: CancellationToken):
    """
    Run `fn`, mapping daowiz errors to an error line and exit code.

    While `fn` runs on the main thread, SIGINT fires `cancel` instead of
    raising KeyboardInterrupt, so in-flight work stops at its next check.
    """
    previous = None
    if threading.current_thread() is threading.main_thread():
        previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.cancel("interrupted"))
    try:
        return fn()
    except Cancelled as e:
        click.echo(f"error: {describe_failure(e)}", err=True)
        sys.exit(EXIT_CANCELLED)
    except DaowizError as e:
        click.echo(f"error: {describe_failure(e)}", err=True)
        sys.exit(EXIT_FAILURE)
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)


def ledger_options(fn):
    fn = click.option("--contracts-dir", required=True,
                      type=click.Path(file_okay=False),
                      help="Directory holding the built contracts")(fn)
    fn = click.option("--eth-chain-id", required=True, type=int,
                      help="Chain id signed into every transaction")(fn)
    fn = click.option("--eth-rpc-uri", required=True,
                      help="Ethereum JSON-RPC endpoint")(fn)
    return fn


@click.group()
@click.version_option(version=__version__, prog_name="daowiz")
@click.option("--config-dir", default=None, type=click.Path(file_okay=False),
              help="Directory containing daowiz.yaml (default: current directory)")
@click.option("--log-level", default="INFO",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Log verbosity")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.pass_context
def cli(ctx, config_dir, log_level, json_logs):
    """Provision and discover Beacon DAO instances."""
    configure_logging(level=log_level, format_json=json_logs)

    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir
    ctx.obj["cancel"] = CancellationToken()


def _engine(ctx) -> DaoEngine:
    return DaoEngine(config_dir=ctx.obj["config_dir"], cancel=ctx.obj["cancel"])


@cli.command()
@ledger_options
@click.option("--ipfs-rpc-uri", default=None, help="IPFS API endpoint for metadata")
@click.option("--reuse-existing", is_flag=True,
              help="Return an identical earlier deployment instead of creating one")
@click.argument("files", nargs=-1, required=True)
@click.pass_context
def new(ctx, eth_rpc_uri, eth_chain_id, contracts_dir, ipfs_rpc_uri, reuse_existing, files):
    """Create a Beacon DAO with the given modules and loaders, in order."""
    mode = DeployMode.REUSE_EXISTING if reuse_existing else DeployMode.FRESH

    def create():
        engine = _engine(ctx)
        return engine.create(
            files,
            network_endpoint=eth_rpc_uri,
            chain_id=eth_chain_id,
            contracts_dir=contracts_dir,
            signer=load_signer(),
            metadata_endpoint=ipfs_rpc_uri,
            mode=mode,
        )

    record = run_guarded(create, ctx.obj["cancel"])
    click.echo(record.address)


@cli.command(name="list")
@ledger_options
@click.option("--from-block", default=None, type=click.IntRange(min=0),
              help="First block to scan (default: 0)")
@click.option("--to-block", default=None, type=click.IntRange(min=0),
              help="Block to stop before (default: latest + 1)")
@click.option("--account", default=None,
              help="Deployer to scan (default: the deployment account)")
@click.pass_context
def list_instances(ctx, eth_rpc_uri, eth_chain_id, contracts_dir, from_block, to_block,
                   account):
    """List every Beacon DAO created by the deployment account."""
    def scan():
        engine = _engine(ctx)
        return engine.list(
            network_endpoint=eth_rpc_uri,
            chain_id=eth_chain_id,
            contracts_dir=contracts_dir,
            signer=load_signer(),
            from_block=from_block,
            to_block=to_block,
            account=account,
        )

    for record in run_guarded(scan, ctx.obj["cancel"]):
        click.echo(f"{record.address} {record.block_number}")


def main(argv: Optional[list[str]] = None) -> None:
    cli.main(args=argv, prog_name="daowiz")


if __name__ == "__main__":
    main()
