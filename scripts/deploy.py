#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, account_option, network_option

from equation_deploy.confirm import _confirm_pipeline
from equation_deploy.errors import DeploymentError
from equation_deploy.networks import load_registry
from equation_deploy.options import (
    autosign_option,
    deployments_dir_option,
    pipeline_option,
    protocol_network_option,
    publish_option,
)
from equation_deploy.pipeline import StepRunner
from equation_deploy.steps import build_pipeline, open_ledger
from equation_deploy.transactor import ApeExecutor, check_plugins


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@protocol_network_option
@pipeline_option
@deployments_dir_option
@autosign_option
@publish_option
def cli(
    network, account, protocol_network, pipeline_names, deployments_dir, autosign, publish
):
    """
    Run deployment pipelines against the ledger of the connected chain.

    ape run deploy --network arbitrum:goerli:infura -p arbitrum-goerli --pipeline core
    """
    check_plugins()
    chain_id = networks.provider.network.chain_id
    try:
        config = load_registry().resolve(protocol_network)
        executor = ApeExecutor(account=account, autosign=autosign, publish=publish)
        for pipeline_name in pipeline_names:
            ledger = open_ledger(pipeline_name, chain_id, deployments_dir)
            steps = build_pipeline(pipeline_name, config)
            executor.print_info(pipeline=pipeline_name, ledger_filepath=ledger.filepath)
            if not autosign:
                _confirm_pipeline(pipeline_name, [step.name for step in steps])

            result = StepRunner(executor=executor, ledger=ledger, network=config).run(steps)
            for name, address in result.deployed.items():
                click.secho(f"'{name}' deployed to: {address}", fg="green")
            print(f"deployments output to {ledger.filepath}")
    except DeploymentError as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    cli()
