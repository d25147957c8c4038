#!/usr/bin/env python3
"""
CLI tool for the event broker service reconciler.
Provides a kubectl-like interface for managing Mission Control services
"""

import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Any, Dict, Optional

import click
import uvicorn
import yaml
from tabulate import tabulate

from client import MissionControlClient
from config import ProviderConfig, get_config
from errors import ConfigError, ReconcileError
from fakeserver import DEFAULT_THRESHOLD, FakeBackend, create_app
from models import ServiceDescriptor
from poller import Poller
from reconciler import PlanAction, ServiceReconciler
from validation import descriptor_from_document

logger = logging.getLogger(__name__)

# Optional attributes the server fills in when they are left unset
SERVER_DEFAULTED_FIELDS = (
    "msg_vpn_name",
    "cluster_name",
    "custom_router_name",
    "max_spool_usage",
)


def descriptor_to_dict(service: ServiceDescriptor) -> Dict[str, Any]:
    """Flatten a descriptor for display"""
    return {
        "id": service.id,
        "name": service.name,
        "serviceclass_id": service.service_class_id,
        "datacenter_id": service.datacenter_id,
        "msg_vpn_name": service.msg_vpn_name,
        "cluster_name": service.cluster_name,
        "custom_router_name": service.custom_router_name,
        "event_broker_version": service.event_broker_version,
        "max_spool_usage": service.max_spool_usage,
        "status": service.status.value,
        "created_time": (
            service.created_time.isoformat() if service.created_time else None
        ),
        "updated_time": (
            service.updated_time.isoformat() if service.updated_time else None
        ),
        "username": service.credentials.username if service.credentials else None,
    }


def print_service(service: ServiceDescriptor, output: str) -> None:
    data = descriptor_to_dict(service)
    if output == "json":
        click.echo(json.dumps(data, indent=2))
    elif output == "yaml":
        click.echo(yaml.dump(data, default_flow_style=False))
    else:
        click.echo(tabulate(list(data.items()), headers=["Field", "Value"]))


def load_document(filename: str) -> Any:
    """Read a desired-state file in YAML or JSON"""
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def carry_forward(
    desired: ServiceDescriptor, current: ServiceDescriptor
) -> ServiceDescriptor:
    """Fill unset server-defaulted attributes from the current state"""
    values = {
        name: getattr(current, name)
        for name in SERVER_DEFAULTED_FIELDS
        if getattr(desired, name) is None
    }
    return replace(desired, **values)


class ReconcilerCLI:
    """Builds the reconciler from configuration and runs its operations"""

    def __init__(self, provider_config: ProviderConfig):
        self.config = provider_config

    def _run(self, operation):
        async def runner():
            async with MissionControlClient(
                self.config.host, self.config.bearer_token
            ) as client:
                poller = Poller(
                    interval=self.config.polling_interval_seconds,
                    timeout=self.config.polling_timeout_seconds,
                )
                return await operation(ServiceReconciler(client, poller))

        return asyncio.run(runner())

    def create(self, desired: ServiceDescriptor) -> ServiceDescriptor:
        return self._run(lambda r: r.create(desired))

    def read(self, service_id: str) -> Optional[ServiceDescriptor]:
        return self._run(lambda r: r.read(service_id))

    def apply(
        self, desired: ServiceDescriptor, service_id: str, assume_yes: bool
    ) -> Optional[ServiceDescriptor]:
        async def operation(reconciler: ServiceReconciler):
            current = await reconciler.read(service_id)
            if current is None:
                raise click.ClickException(f"Service {service_id} not found")

            target = carry_forward(desired, current)
            plan = reconciler.plan(target, current)
            click.echo(f"Plan: {plan.action.value}")
            for name in plan.replace_fields:
                click.echo(f"  ~ {name} (forces replacement)")
            for name in plan.mutable_fields:
                click.echo(f"  ~ {name}")

            if plan.action == PlanAction.REPLACE and not assume_yes:
                if not click.confirm(
                    "This destroys the service and creates a new one. Continue?"
                ):
                    return None
            return await reconciler.update(target, current)

        return self._run(operation)

    def delete(self, service_id: str) -> None:
        self._run(lambda r: r.delete(service_id))


@click.group()
@click.option("--host", envvar="MISSIONCONTROL_HOST", help="Mission Control API host")
@click.option(
    "--token", envvar="MISSIONCONTROL_TOKEN", help="Mission Control API bearer token"
)
@click.option("--polling-interval", help="Status check interval, e.g. 20s")
@click.option("--polling-timeout", help="Provisioning timeout, e.g. 30m")
@click.pass_context
def cli(ctx, host, token, polling_interval, polling_timeout):
    """Event broker service CLI - kubectl-like interface for Mission Control services"""
    app_config = get_config()
    logging.basicConfig(
        level=app_config.logging.level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj = app_config.provider.with_overrides(
        host=host,
        bearer_token=token,
        polling_interval=polling_interval,
        polling_timeout=polling_timeout,
    )


def _client(ctx) -> ReconcilerCLI:
    provider_config = ctx.obj
    try:
        provider_config.validate()
    except ConfigError as e:
        raise click.ClickException(e.message)
    return ReconcilerCLI(provider_config)


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option("--id", "service_id", help="Update this existing service")
@click.option("--yes", is_flag=True, help="Do not ask before replacing a service")
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
@click.pass_context
def apply(ctx, filename, service_id, yes, output):
    """Create or update a service from a YAML/JSON file"""
    client = _client(ctx)
    try:
        document = load_document(filename)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise click.ClickException(f"Cannot parse {filename}: {e}")

    try:
        desired = descriptor_from_document(document)
        if service_id:
            result = client.apply(desired, service_id, yes)
            if result is None:
                click.echo("Aborted")
                return
        else:
            result = client.create(desired)
    except ReconcileError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    click.echo("Service applied successfully!")
    print_service(result, output)


@cli.command()
@click.argument("service_id")
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
@click.pass_context
def describe(ctx, service_id, output):
    """Describe a specific service"""
    client = _client(ctx)
    try:
        result = client.read(service_id)
    except ReconcileError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    if result is None:
        click.echo(f"Service {service_id} not found", err=True)
        sys.exit(1)
    print_service(result, output)


@cli.command()
@click.argument("service_id")
@click.confirmation_option(prompt="Are you sure you want to delete this service?")
@click.pass_context
def delete(ctx, service_id):
    """Delete a service"""
    client = _client(ctx)
    try:
        client.delete(service_id)
    except ReconcileError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    click.echo(f"Service {service_id} deleted")


@cli.command()
@click.option("--port", default=8080, help="Port to listen on")
@click.option(
    "--threshold",
    default=DEFAULT_THRESHOLD,
    help="Seconds before a pending service completes",
)
def fakeserver(port, threshold):
    """Serve a fake Mission Control API for local testing"""
    app = create_app(FakeBackend(threshold=threshold))
    click.echo(f"Fake Mission Control API listening on 127.0.0.1:{port}")
    uvicorn.run(app, host="127.0.0.1", port=port)


if __name__ == "__main__":
    cli()
