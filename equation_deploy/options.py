from pathlib import Path

import click

from equation_deploy.constants import DEPLOYMENTS_DIR, SUPPORTED_NETWORKS
from equation_deploy.steps import PIPELINES
from equation_deploy.types import ChecksumAddress

protocol_network_option = click.option(
    "--protocol-network",
    "-p",
    help="Network parameters to deploy with",
    type=click.Choice(SUPPORTED_NETWORKS),
    required=True,
)

pipeline_option = click.option(
    "--pipeline",
    "pipeline_names",
    help="Pipeline to run; repeat to run several in order",
    type=click.Choice(list(PIPELINES)),
    required=True,
    multiple=True,
)

deployments_dir_option = click.option(
    "--deployments-dir",
    help="Directory holding the <chain_id>.json deployment ledgers",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEPLOYMENTS_DIR,
    show_default=True,
)

autosign_option = click.option(
    "--autosign",
    help="Sign every deployment and transaction without asking",
    is_flag=True,
    default=False,
)

publish_option = click.option(
    "--publish",
    help="Publish deployed contracts to the block explorer",
    is_flag=True,
    default=False,
)

contract_names_option = click.option(
    "--contract-name",
    "-c",
    "contract_names",
    help="Name of a deployed contract, as recorded in the ledger",
    type=click.STRING,
    required=True,
    multiple=True,
)

token_option = click.option(
    "--token",
    "-t",
    "tokens",
    help="Token address to predict the pool of; defaults to every configured token",
    type=ChecksumAddress(),
    multiple=True,
)
