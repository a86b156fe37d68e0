from collections import OrderedDict
from typing import Any, List, Optional

from equation_deploy.errors import AbsentError
from equation_deploy.ledger import Ledger
from equation_deploy.networks import NetworkConfig
from equation_deploy.pipeline import StepContext
from equation_deploy.steps import find_deploy_step


def _verification_context(
    ledger: Ledger, network: NetworkConfig, deployer: Optional[str]
) -> StepContext:
    context = StepContext(executor=None, ledger=ledger, network=network, deployer=deployer)
    # predicted addresses were checked at deploy time, so the ledger holds them
    context.predictions.update(ledger.deployments)
    return context


def constructor_parameters(
    contract: str,
    ledger: Ledger,
    network: NetworkConfig,
    deployer: Optional[str] = None,
) -> "OrderedDict[str, Any]":
    """
    Resolves the named constructor parameters a deployed contract was created with.
    Read-only: only the ledger and the network parameters are consulted.
    """
    step = find_deploy_step(contract, network)
    if step is None:
        raise AbsentError(f"No deployment step is known for '{contract}'")
    if contract not in ledger:
        raise AbsentError(f"'{contract}' is not deployed on chain_id {ledger.chain_id}")

    context = _verification_context(ledger, network, deployer)
    return OrderedDict(
        (name, context.resolve(value)) for name, value in step.constructor.items()
    )


def constructor_arguments(
    contract: str,
    ledger: Ledger,
    network: NetworkConfig,
    deployer: Optional[str] = None,
) -> List[Any]:
    """Ordered constructor arguments of a deployed contract, for explorer verification."""
    return list(constructor_parameters(contract, ledger, network, deployer).values())
