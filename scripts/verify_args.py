#!/usr/bin/python3

import json

import click

from equation_deploy.errors import DeploymentError
from equation_deploy.ledger import Ledger
from equation_deploy.networks import load_registry
from equation_deploy.options import (
    contract_names_option,
    deployments_dir_option,
    protocol_network_option,
)
from equation_deploy.types import ChecksumAddress
from equation_deploy.verify import constructor_arguments


@click.command()
@protocol_network_option
@contract_names_option
@deployments_dir_option
@click.option(
    "--deployer",
    help="Account that deployed the contracts, for contracts that take it as a parameter",
    type=ChecksumAddress(),
    required=False,
)
def cli(protocol_network, contract_names, deployments_dir, deployer):
    """Print the constructor arguments of deployed contracts, for explorer verification."""
    try:
        config = load_registry().resolve(protocol_network)
        ledger = Ledger.load(config.chain_id, deployments_dir)
        arguments = {
            name: constructor_arguments(name, ledger, config, deployer=deployer)
            for name in contract_names
        }
    except DeploymentError as e:
        raise click.ClickException(str(e))

    print(json.dumps(arguments, indent=4))


if __name__ == "__main__":
    cli()
