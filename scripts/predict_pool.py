#!/usr/bin/python3

import click

from equation_deploy.address import PoolAddressPredictor
from equation_deploy.errors import DeploymentError
from equation_deploy.ledger import Ledger
from equation_deploy.networks import load_registry
from equation_deploy.options import deployments_dir_option, protocol_network_option, token_option
from equation_deploy.steps import TOKEN_PREFIX


@click.command()
@protocol_network_option
@deployments_dir_option
@token_option
def cli(protocol_network, deployments_dir, tokens):
    """Predict the pool address of tokens from the recorded pool bytecode hash."""
    try:
        config = load_registry().resolve(protocol_network)
        ledger = Ledger.load(config.chain_id, deployments_dir)
        predictor = PoolAddressPredictor.from_ledger(ledger)
        pool_factory = ledger.get("PoolFactory")

        if tokens:
            targets = [(token, token) for token in tokens]
        else:
            targets = [
                (t.name, t.address or ledger.get(f"{TOKEN_PREFIX}{t.name}")) for t in config.tokens
            ]
        for label, token in targets:
            pool = predictor.predict(pool_factory, token, config.usd)
            click.secho(f"{label}: {pool}", fg="cyan")
    except DeploymentError as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    cli()
