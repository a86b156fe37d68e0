#!/usr/bin/python3

from typing import List

import click

from equation_deploy.errors import UndefinedNetworkError
from equation_deploy.ledger import Ledger, list_ledgers
from equation_deploy.networks import NetworkRegistry, load_registry
from equation_deploy.options import deployments_dir_option


def _chain_name(registry: NetworkRegistry, chain_id: int) -> str:
    try:
        return registry.for_chain_id(chain_id).name
    except UndefinedNetworkError:
        return f"chain {chain_id}"


def _display_ledgers(registry: NetworkRegistry, ledgers: List[Ledger]) -> None:
    """Display ledger entries grouped by chain ID."""
    for ledger in ledgers:
        click.secho(f"\n{_chain_name(registry, ledger.chain_id)} ({ledger.chain_id})", fg="green")
        if "block" in ledger.metadata:
            click.secho(f"    First block: {ledger.metadata['block']}", fg="yellow")
        if ledger.pool_bytecode_hash:
            click.secho(f"    Pool bytecode hash: {ledger.pool_bytecode_hash}", fg="yellow")

        for index, (name, address) in enumerate(ledger.deployments.items(), start=1):
            click.secho(f"        {index}. {name} {address}", fg="cyan")

        entities = ledger.registered_entities
        if entities:
            click.secho("    Registered", fg="yellow")
        for entity in entities:
            click.secho(
                f"        {entity.kind} {entity.name} {entity.address} (owner {entity.owner})",
                fg="cyan",
            )


@click.command(name="list-deployments")
@deployments_dir_option
def cli(deployments_dir):
    """List all deployments recorded in the ledgers."""
    _display_ledgers(load_registry(), list_ledgers(deployments_dir))


if __name__ == "__main__":
    cli()
