#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from equation_deploy.errors import DeploymentError
from equation_deploy.ledger import Ledger
from equation_deploy.networks import load_registry
from equation_deploy.options import (
    contract_names_option,
    deployments_dir_option,
    protocol_network_option,
)
from equation_deploy.steps import find_deploy_step
from equation_deploy.transactor import get_contract_container, verify_contracts


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@protocol_network_option
@contract_names_option
@deployments_dir_option
def cli(network, protocol_network, contract_names, deployments_dir):
    """Verify deployed contracts on the block explorer."""
    chain_id = networks.active_provider.chain_id
    try:
        config = load_registry().resolve(protocol_network)
        ledger = Ledger.load(chain_id, deployments_dir)
        contract_instances = []
        for contract_name in contract_names:
            address = ledger.get(contract_name)
            # ledger names can differ from contract types (e.g. mock tokens)
            step = find_deploy_step(contract_name, config)
            contract_type = step.contract if step else contract_name
            contract_instances.append(get_contract_container(contract_type).at(address))
    except DeploymentError as e:
        raise click.ClickException(str(e))

    verify_contracts(contract_instances)


if __name__ == "__main__":
    cli()
