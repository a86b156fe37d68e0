"""
Ape implementation of the remote execution boundary.

Everything that talks to a live chain lives here; the rest of the package
only sees the Executor interface.
"""

import os
import typing
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from ape import chain, networks, project
from ape.api import AccountAPI
from ape.api.networks import LOCAL_NETWORK_NAME
from ape.cli.choices import select_account
from ape.contracts import ContractContainer, ContractInstance
from ape.exceptions import ApeException
from eth_typing import ChecksumAddress
from eth_utils import to_canonical_address, to_checksum_address
from ethpm_types import MethodABI
from hexbytes import HexBytes
from web3.auto import w3

from equation_deploy.confirm import _confirm_resolution, _continue
from equation_deploy.errors import ConfigurationError, InvalidConfigurationError, RemoteCallError
from equation_deploy.executor import Executor


def is_local_network() -> bool:
    return networks.provider.network.name == LOCAL_NETWORK_NAME


def check_etherscan_plugin() -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the appropriate API key environment variable is set.
    """
    if is_local_network():
        # unnecessary for local deployment
        return
    try:
        from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to use this script.")
    ecosystem_name = networks.provider.network.ecosystem.name
    explorer_envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    api_key = os.environ.get(explorer_envvar) if explorer_envvar else None
    if not api_key:
        raise ValueError(f"{explorer_envvar or 'Explorer API key'} is not set.")


def check_plugins() -> None:
    print("Checking plugins...")
    check_etherscan_plugin()


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    for instance in contracts:
        print(f"(i) Verifying {instance.contract_type.name}...")
        explorer.publish_contract(instance.address)


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise InvalidConfigurationError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _validate_constructor_args(
    container: ContractContainer, args: typing.Sequence[Any]
) -> "OrderedDict[str, Any]":
    """Validates the constructor arguments against the constructor ABI, naming them."""
    contract_name = container.contract_type.name
    abi_inputs = container.contract_type.constructor.inputs
    if len(args) != len(abi_inputs):
        raise InvalidConfigurationError(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(args)}."
        )

    named_args = OrderedDict()
    for position, (abi_input, value) in enumerate(zip(abi_inputs, args)):
        if not w3.is_encodable(abi_input.type, value):
            raise InvalidConfigurationError(
                f"{contract_name} constructor param '{abi_input.name}' at position {position} "
                f"has a value '{value}' whose type does not match expected ABI type "
                f"'{abi_input.type}'"
            )
        named_args[abi_input.name or f"arg{position}"] = value
    return named_args


def link_bytecode(
    contract_name: str, bytecode: str, link_references, libraries: Dict[str, str]
) -> bytes:
    """Writes library addresses over the link placeholders of unlinked bytecode."""
    code = bytecode[2:] if bytecode.startswith("0x") else bytecode
    for reference in link_references or []:
        try:
            address = libraries[reference.name]
        except KeyError:
            raise ConfigurationError(
                f"{contract_name} needs library {reference.name}, which has no address"
            )
        linked = to_canonical_address(address).hex()
        for offset in reference.offsets:
            start = offset * 2
            code = code[:start] + linked + code[start + reference.length * 2 :]
    try:
        return bytes(HexBytes(code))
    except ValueError:
        raise ConfigurationError(f"{contract_name} bytecode still has unlinked libraries")


class ApeExecutor(Executor):
    """
    Represents an ape account plus validated/annotated deployment and transaction execution.
    """

    def __init__(
        self,
        account: Optional[AccountAPI] = None,
        autosign: bool = False,
        publish: bool = False,
    ):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)
        self.publish = publish

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account

    @property
    def deployer_address(self) -> ChecksumAddress:
        return to_checksum_address(self._account.address)

    def nonce(self) -> int:
        return self._account.nonce

    def block_number(self) -> int:
        return chain.blocks.head.number

    def _instance(self, contract: str, address: str) -> ContractInstance:
        return get_contract_container(contract).at(address)

    def deploy(self, contract: str, *args) -> ChecksumAddress:
        try:
            container = get_contract_container(contract)
        except ValueError as e:
            raise RemoteCallError(f"deployment of {contract} failed: {e}")
        resolved_params = _validate_constructor_args(container, args)
        if not self._autosign:
            _confirm_resolution(resolved_params, contract)
        try:
            instance = self._account.deploy(container, *args, publish=self.publish)
        except ApeException as e:
            raise RemoteCallError(f"deployment of {contract} failed: {e}")
        return to_checksum_address(instance.address)

    def _handler(self, contract: str, address: str, method: str):
        try:
            return getattr(self._instance(contract, address), method)
        except (ApeException, AttributeError, ValueError) as e:
            raise RemoteCallError(f"{contract}.{method} is not available at {address}: {e}")

    def transact(self, contract: str, address: str, method: str, *args) -> Any:
        handler = self._handler(contract, address, method)
        named_args = _validate_method_args(method_abis=handler.abis, args=args)
        base_message = f"\nTransacting {contract}[{address[:10]}].{method}"
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        try:
            return handler(*args, sender=self._account)
        except ApeException as e:
            raise RemoteCallError(f"{contract}.{method} failed: {e}")

    def call(self, contract: str, address: str, method: str, *args) -> Any:
        handler = self._handler(contract, address, method)
        try:
            return handler(*args)
        except ApeException as e:
            raise RemoteCallError(f"{contract}.{method} call failed: {e}")

    def encode(self, contract: str, address: str, method: str, *args) -> bytes:
        handler = self._handler(contract, address, method)
        try:
            return bytes(HexBytes(handler.encode_input(*args)))
        except (ApeException, ValueError) as e:
            raise RemoteCallError(f"encoding {contract}.{method} failed: {e}")

    def creation_code(self, contract: str, libraries: Optional[Dict[str, str]] = None) -> bytes:
        deployment_bytecode = get_contract_container(contract).contract_type.deployment_bytecode
        if deployment_bytecode is None or not deployment_bytecode.bytecode:
            raise ConfigurationError(f"No creation code compiled for {contract}")
        return link_bytecode(
            contract_name=contract,
            bytecode=deployment_bytecode.bytecode,
            link_references=deployment_bytecode.link_references,
            libraries=libraries or {},
        )

    def print_info(self, pipeline: str, ledger_filepath) -> None:
        print(
            f"Account: {self.deployer_address}",
            f"Pipeline: {pipeline}",
            f"Ledger: {ledger_filepath}",
            f"Publish: {self.publish}",
            f"Ecosystem: {networks.provider.network.ecosystem.name}",
            f"Network: {networks.provider.network.name}",
            f"Chain ID: {networks.provider.network.chain_id}",
            f"Gas Price: {networks.provider.gas_price}",
            sep="\n",
        )
