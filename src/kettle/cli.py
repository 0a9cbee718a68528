"""
Kettle CLI

Thin driver over the kettle Framework for deploying contracts and
submitting confidential compute requests from the shell.

Commands:
  whoami   - Show the signing account
  info     - Show the active network configuration
  balance  - Query an account balance
  fund     - Transfer wei from the funded account
  deploy   - Deploy a compiled contract artifact
  call     - Read-only contract call
  send     - Submit a confidential compute request
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn, Optional

import click

from .errors import KettleError, PeekerRejectedError, TransactionRevertedError
from .framework import Config, Framework


# ============ Constants ============

VERSION = "0.1.0"


# ============ Helpers ============


def _parse_args(args_json: str) -> list[Any]:
    try:
        args = json.loads(args_json)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"Invalid JSON: {exc}", param_hint="--args") from exc
    if not isinstance(args, list):
        raise click.BadParameter("Args must be a JSON array", param_hint="--args")
    return args


def _parse_confidential(value: Optional[str]) -> bytes:
    """0x-prefixed hex is decoded, anything else is sent as UTF-8 text."""
    if not value:
        return b""
    if value.startswith("0x"):
        try:
            return bytes.fromhex(value[2:])
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--confidential") from exc
    return value.encode("utf-8")


def _format(value: Any) -> str:
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_format(v) for v in value) + "]"
    return str(value)


def _framework(ctx: click.Context) -> Framework:
    return Framework(ctx.obj["config"])


def _fail(message: str) -> NoReturn:
    click.secho(f"ERROR: {message}", fg="red")
    sys.exit(1)


# ============ Main CLI Group ============


@click.group()
@click.version_option(version=VERSION, prog_name="kettle")
@click.option("--rpc-url", envvar="KETTLE_RPC", default=None, help="Kettle JSON-RPC URL")
@click.option("--kettle-address", envvar="KETTLE_ADDRESS", default=None, help="Kettle address")
@click.option(
    "--artifacts-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Foundry out/ directory",
)
@click.option("--env-file", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    rpc_url: Optional[str],
    kettle_address: Optional[str],
    artifacts_dir: Optional[Path],
    env_file: Optional[Path],
    verbose: bool,
) -> None:
    """Kettle - confidential compute contract framework."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = Config.from_env(env_file).with_overrides(
            kettle_rpc=rpc_url,
            kettle_address=kettle_address,
            artifacts_dir=artifacts_dir,
        )
    except (KettleError, ValueError) as exc:
        _fail(str(exc))
    ctx.obj = {"config": config}


# ============ Identity / Network ============


@cli.command()
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Show the signing account."""
    click.echo(f"Address: {ctx.obj['config'].funded_account.address}")


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Show the active network configuration."""
    config: Config = ctx.obj["config"]
    click.echo(f"Kettle v{VERSION}")
    click.echo(f"  RPC:            {config.kettle_rpc}")
    click.echo(f"  Kettle address: {config.kettle_address}")
    click.echo(f"  Signer:         {config.funded_account.address}")
    click.echo(f"  Artifacts:      {config.artifacts_dir or '(auto)'}")


@cli.command()
@click.argument("address")
@click.pass_context
def balance(ctx: click.Context, address: str) -> None:
    """Query the balance of ADDRESS in wei."""
    with _framework(ctx) as fr:
        try:
            click.echo(str(fr.ledger.balance_at(address)))
        except KettleError as exc:
            _fail(str(exc))


@cli.command()
@click.argument("address")
@click.argument("amount", type=int)
@click.pass_context
def fund(ctx: click.Context, address: str, amount: int) -> None:
    """Send AMOUNT wei from the funded account to ADDRESS."""
    with _framework(ctx) as fr:
        try:
            fr.fund_account(address, amount)
        except KettleError as exc:
            _fail(str(exc))
    click.secho(f"SUCCESS: funded {address} with {amount} wei", fg="green")


# ============ Contracts ============


@cli.command()
@click.argument("artifact")
@click.option("--args", "args_json", default="[]", help="Constructor args as JSON array")
@click.pass_context
def deploy(ctx: click.Context, artifact: str, args_json: str) -> None:
    """Deploy ARTIFACT (e.g. Store.sol/Store.json)."""
    args = _parse_args(args_json)
    with _framework(ctx) as fr:
        try:
            contract = fr.deploy_contract(artifact, args or None)
        except KettleError as exc:
            _fail(str(exc))
    click.secho("SUCCESS: Contract deployed!", fg="green")
    click.echo(f"  Address: {contract.address}")


@cli.command()
@click.argument("address")
@click.argument("artifact")
@click.argument("method")
@click.option("--args", "args_json", default="[]", help="Function args as JSON array")
@click.pass_context
def call(ctx: click.Context, address: str, artifact: str, method: str, args_json: str) -> None:
    """Read-only call of METHOD on the contract at ADDRESS."""
    args = _parse_args(args_json)
    with _framework(ctx) as fr:
        try:
            results = fr.contract_at(address, artifact).call(method, args)
        except KettleError as exc:
            _fail(str(exc))
    for value in results:
        click.echo(_format(value))


@cli.command()
@click.argument("address")
@click.argument("artifact")
@click.argument("method")
@click.option("--args", "args_json", default="[]", help="Function args as JSON array")
@click.option(
    "--confidential",
    default=None,
    help="Confidential inputs (0x-hex, otherwise UTF-8 text)",
)
@click.pass_context
def send(
    ctx: click.Context,
    address: str,
    artifact: str,
    method: str,
    args_json: str,
    confidential: Optional[str],
) -> None:
    """Submit METHOD on the contract at ADDRESS as a confidential compute request."""
    args = _parse_args(args_json)
    inputs = _parse_confidential(confidential)
    with _framework(ctx) as fr:
        try:
            contract = fr.contract_at(address, artifact)
            receipt = contract.send_transaction(method, args, inputs)
        except PeekerRejectedError as exc:
            _fail(f"Peeker {exc.address} rejected the request: {_format(exc.payload)}")
        except TransactionRevertedError as exc:
            _fail(f"Transaction reverted: {exc.receipt.tx_hash}")
        except KettleError as exc:
            _fail(str(exc))

    click.secho("SUCCESS: Transaction confirmed!", fg="green")
    click.echo(f"  TX: {receipt.tx_hash}")
    for log in receipt.logs:
        try:
            event = contract.decode_event(log)
        except KettleError:
            click.echo(f"  Log: {log.address} ({len(log.topics)} topics)")
            continue
        rendered = ", ".join(f"{k}={_format(v)}" for k, v in event.args.items())
        click.echo(f"  Event: {event.name}({rendered})")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
