import sys
from collections import OrderedDict
from typing import List

from equation_deploy.networks import ZERO_ADDRESS


def _answered_no(question: str) -> bool:
    answer = input(question)
    return answer.lower().strip() == "n"


def _abort() -> None:
    print("Aborting deployment!")
    sys.exit(-1)


def _confirm_deployment(contract_name: str) -> None:
    """Asks the user to confirm the deployment of a single contract."""
    if _answered_no(f"Deploy {contract_name} Y/N? "):
        _abort()


def _continue() -> None:
    """Asks the user to continue."""
    if _answered_no("Continue Y/N? "):
        _abort()


def _confirm_zero_address() -> None:
    if _answered_no("Zero Address detected for deployment parameter; Continue? Y/N? "):
        _abort()


def _has_zero_address(value) -> bool:
    if isinstance(value, (list, tuple)):
        return any(_has_zero_address(v) for v in value)
    return value == ZERO_ADDRESS


def _confirm_resolution(resolved_params: OrderedDict, contract_name: str) -> None:
    """Shows the resolved constructor arguments of a contract and asks to deploy it."""
    if not resolved_params:
        print(f"\n(i) No constructor parameters for {contract_name}")
    else:
        print(f"\nConstructor parameters for {contract_name}")
        for name, resolved_value in resolved_params.items():
            print(f"\t{name}={resolved_value}")

    _confirm_deployment(contract_name)
    if any(_has_zero_address(value) for value in resolved_params.values()):
        # e.g. an unset usd_price_feed
        _confirm_zero_address()


def _confirm_pipeline(pipeline: str, step_names: List[str]) -> None:
    """Shows the steps of a pipeline and asks the user to start it."""
    print(f"\nPipeline {pipeline} runs {len(step_names)} step(s):")
    for index, name in enumerate(step_names, start=1):
        print(f"\t{index}. {name}")
    _continue()
