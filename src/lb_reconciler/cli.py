"""Load balancer reconciler CLI (lbctl).

Usage:
    lbctl apply lb.yaml       # Create, or refresh and update, from a spec
    lbctl read my-lb          # Refresh persisted state from the control plane
    lbctl destroy my-lb       # Delete and wait until gone
    lbctl show my-lb          # Print persisted state

State is persisted after every call, including failed ones, so rerunning a
command after a timeout resumes the in-flight work request.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
from azure.core.exceptions import AzureError
from pydantic import ValidationError

from .client import create_client_from_config
from .config import Config, ConfigurationError
from .errors import ImmutableFieldError, InvalidStateError, ReconcileError
from .identity import OperationIdentity, parse_identity
from .main import setup_logging
from .reconciler import LoadBalancerReconciler
from .resource_data import ResourceData, Timeouts
from .schema import MUTABLE_FIELDS, SchemaValidationError
from .spec_loader import SpecLoadError, load_spec
from .state_store import StateStore, StateStoreError

# Errors reported to the user as a failed command rather than a traceback
COMMAND_ERRORS = (
    AzureError,
    ConfigurationError,
    ReconcileError,
    SchemaValidationError,
    SpecLoadError,
    StateStoreError,
    ValidationError,
)


@dataclass
class CliContext:
    """Shared objects for all commands."""

    config: Config
    store: StateStore
    reconciler: LoadBalancerReconciler

    def timeouts(self, create: int | None, delete: int | None) -> Timeouts:
        return Timeouts(
            create=create or self.config.create_timeout_seconds,
            delete=delete or self.config.delete_timeout_seconds,
        )


pass_cli_context = click.make_pass_decorator(CliContext)


def timeout_options(func: Any) -> Any:
    """Add --create-timeout and --delete-timeout overrides to a command."""
    func = click.option(
        "--delete-timeout",
        type=click.IntRange(min=1),
        default=None,
        help="Seconds to wait for deletion (default: LB_DELETE_TIMEOUT)",
    )(func)
    func = click.option(
        "--create-timeout",
        type=click.IntRange(min=1),
        default=None,
        help="Seconds to wait for creation (default: LB_CREATE_TIMEOUT)",
    )(func)
    return func


def load_existing(obj: CliContext, name: str, timeouts: Timeouts) -> ResourceData:
    """Load persisted state or fail the command."""
    data = obj.store.load(name, timeouts=timeouts)
    if data is None:
        raise click.ClickException(f"No state stored for '{name}' in {obj.store.state_dir}")
    return data


def echo_state(name: str, data: ResourceData) -> None:
    click.echo(json.dumps({"name": name, **data.to_dict()}, indent=2, sort_keys=True))


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="lbctl")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Load balancer reconciler (lbctl).

    Reconciles declared load balancers against the control plane, waiting
    on asynchronous work requests until each reaches a terminal state.
    Configuration comes from LB_* environment variables.
    """
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    setup_logging(config.log_level, config.json_logs)
    client = create_client_from_config(config)
    ctx.call_on_close(client.close)
    ctx.obj = CliContext(
        config=config,
        store=StateStore(config.state_dir),
        reconciler=LoadBalancerReconciler(
            client,
            poll_interval_seconds=config.poll_interval_seconds,
        ),
    )


@cli.command()
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@timeout_options
@pass_cli_context
def apply(
    obj: CliContext,
    spec_file: Path,
    create_timeout: int | None,
    delete_timeout: int | None,
) -> None:
    """Create or update the load balancer declared in SPEC_FILE."""
    timeouts = obj.timeouts(create_timeout, delete_timeout)
    try:
        loaded = load_spec(spec_file)
        existing = obj.store.load(loaded.name, timeouts=timeouts)

        if existing is not None and existing.id:
            obj.reconciler.read(existing)
            obj.store.save(loaded.name, existing)

        if existing is None or not existing.id:
            data = ResourceData(fields=loaded.spec.to_fields(), timeouts=timeouts)
            try:
                obj.reconciler.create(data)
            finally:
                obj.store.save(loaded.name, data)
            click.secho(f"Created '{loaded.name}': {data.id}", fg="green")
            echo_state(loaded.name, data)
            return

        if isinstance(parse_identity(existing.id), OperationIdentity):
            click.secho(
                f"'{loaded.name}' is still being created (state: {existing.get('state')}). "
                "Run apply again later.",
                fg="yellow",
            )
            return

        desired = {**existing.to_dict()["fields"], **loaded.spec.to_fields()}
        data = ResourceData(
            fields=desired,
            resource_id=existing.id,
            timeouts=timeouts,
            prior=existing.to_dict()["fields"],
        )
        if not any(data.has_change(name) for name in desired):
            click.echo(f"'{loaded.name}' is up to date ({existing.get('state')})")
            return

        try:
            obj.reconciler.update(data)
        except (ImmutableFieldError, InvalidStateError, SchemaValidationError, ValidationError):
            # Rejected before anything was sent; keep the stored fields as they are
            raise
        except Exception:
            obj.store.save(loaded.name, data)
            raise
        obj.store.save(loaded.name, data)
        changed = [name for name in MUTABLE_FIELDS if data.has_change(name)]
        click.secho(f"Update requested for '{loaded.name}': {', '.join(changed)}", fg="green")
        echo_state(loaded.name, data)
    except COMMAND_ERRORS as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.argument("name")
@pass_cli_context
def read(obj: CliContext, name: str) -> None:
    """Refresh the persisted state of NAME from the control plane."""
    try:
        data = load_existing(obj, name, obj.timeouts(None, None))
        if not data.id:
            raise click.ClickException(f"'{name}' has no identifier; nothing to read")
        obj.reconciler.read(data)
        obj.store.save(name, data)
    except COMMAND_ERRORS as e:
        raise click.ClickException(str(e)) from e

    if not data.id:
        click.secho(f"'{name}' no longer exists", fg="yellow")
    echo_state(name, data)


@cli.command()
@click.argument("name")
@timeout_options
@pass_cli_context
def destroy(
    obj: CliContext,
    name: str,
    create_timeout: int | None,
    delete_timeout: int | None,
) -> None:
    """Delete NAME and wait until it is gone."""
    try:
        data = load_existing(obj, name, obj.timeouts(create_timeout, delete_timeout))
        if data.id:
            try:
                obj.reconciler.delete(data)
            except Exception:
                obj.store.save(name, data)
                raise
        obj.store.delete(name)
    except COMMAND_ERRORS as e:
        raise click.ClickException(str(e)) from e

    click.secho(f"Deleted '{name}'", fg="green")


@cli.command()
@click.argument("name")
@pass_cli_context
def show(obj: CliContext, name: str) -> None:
    """Print the persisted state of NAME without contacting the control plane."""
    try:
        data = load_existing(obj, name, obj.timeouts(None, None))
    except COMMAND_ERRORS as e:
        raise click.ClickException(str(e)) from e
    echo_state(name, data)
