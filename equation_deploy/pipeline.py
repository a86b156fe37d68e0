import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from equation_deploy.errors import (
    AddressMismatchError,
    BatchError,
    ChainMismatchError,
    ConfigurationError,
    InvalidConfigurationError,
    MissingDependencyError,
    PipelineError,
    WiringError,
)
from equation_deploy.executor import Executor
from equation_deploy.ledger import Ledger
from equation_deploy.networks import NETWORK_CONSTANTS, NetworkConfig


class StepContext:
    """Everything a step needs while it runs: the remote boundary, the ledger and the network."""

    def __init__(
        self,
        executor: Optional[Executor],
        ledger: Ledger,
        network: NetworkConfig,
        deployer: Optional[str] = None,
    ):
        self.executor = executor
        self.ledger = ledger
        self.network = network
        self._deployer = to_checksum_address(deployer) if deployer else None
        # addresses computed ahead of deployment during this run only
        self.predictions: Dict[str, ChecksumAddress] = OrderedDict()

    @property
    def deployer_address(self) -> ChecksumAddress:
        if self._deployer:
            return self._deployer
        if self.executor is None:
            raise ConfigurationError("No deployer account is known in this context.")
        return self.executor.deployer_address

    def resolve(self, value: Any) -> Any:
        return _resolve_param(value, self)

    def deploy(self, contract: str, args: Sequence[Any]) -> ChecksumAddress:
        address = self.executor.deploy(contract, *args)
        print(f"{contract} deployed to: {address}")
        return to_checksum_address(address)

    def commit(self, name: str, address: str) -> None:
        """Records an address and makes it durable before anything else happens."""
        self.ledger.set(name, address)
        self.ledger.persist()

    def wire(self, calls: Sequence["WiringCall"]) -> int:
        for index, call in enumerate(calls):
            try:
                call.execute(self)
            except Exception as e:
                # executors may fail with errors of their own library
                raise WiringError(call_index=index, call=call.describe(), cause=e) from e
        return len(calls)


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, context: StepContext) -> Any:
        raise NotImplementedError

    def dependencies(self) -> List[str]:
        """Ledger names this variable reads."""
        return []

    def constants(self) -> List[str]:
        return []

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        return isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self, context: StepContext) -> Any:
        return context.deployer_address

    def __repr__(self) -> str:
        return f"${self.DEPLOYER_INDICATOR}"


class Constant(Variable):
    def __init__(self, constant_name: str):
        self.constant_name = constant_name

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a network constant."""
        return value in NETWORK_CONSTANTS

    def constants(self) -> List[str]:
        return [self.constant_name]

    def resolve(self, context: StepContext) -> Any:
        value = context.network.constants()[self.constant_name]
        if value is None:
            raise InvalidConfigurationError(
                f"Constant '{self.constant_name}' is not set for network {context.network.name}."
            )
        return value

    def __repr__(self) -> str:
        return f"${self.constant_name}"


class Predicted(Variable):
    PREDICTED_PREFIX = "predicted:"

    def __init__(self, variable: str):
        self.contract_name = variable[len(self.PREDICTED_PREFIX) :]

    @classmethod
    def is_predicted(cls, value: str) -> bool:
        return value.startswith(cls.PREDICTED_PREFIX)

    def resolve(self, context: StepContext) -> Any:
        try:
            return context.predictions[self.contract_name]
        except KeyError:
            raise ConfigurationError(f"No address was predicted for {self.contract_name}.")

    def __repr__(self) -> str:
        return f"${self.PREDICTED_PREFIX}{self.contract_name}"


class Encode(Variable):
    ENCODE_PREFIX = "encode:"

    def __init__(self, variable: str):
        variable = variable[len(self.ENCODE_PREFIX) :]
        variable_elements = variable.split(",")
        try:
            self.contract_name, self.method_name = variable_elements[0].split(".")
        except ValueError:
            raise InvalidConfigurationError(
                f"Malformed encode variable '{variable}'; expected 'Contract.method[,arg...]'"
            )
        self.method_args = [_process_raw_value(arg) for arg in variable_elements[1:]]

    @classmethod
    def is_encode(cls, value: str) -> bool:
        """Returns True if the variable is a variable that needs encoding to bytes"""
        return value.startswith(cls.ENCODE_PREFIX)

    def dependencies(self) -> List[str]:
        return [self.contract_name] + _collect(self.method_args, "dependencies")

    def constants(self) -> List[str]:
        return _collect(self.method_args, "constants")

    def resolve(self, context: StepContext) -> Any:
        address = context.ledger.get(self.contract_name)
        resolved_method_args = [_resolve_param(arg, context) for arg in self.method_args]
        return context.executor.encode(
            self.contract_name, address, self.method_name, *resolved_method_args
        )

    def __repr__(self) -> str:
        args = "".join(f",{arg!r}" for arg in self.method_args)
        return f"${self.ENCODE_PREFIX}{self.contract_name}.{self.method_name}{args}"


class ContractName(Variable):
    def __init__(self, contract_name: str):
        self.contract_name = contract_name

    def dependencies(self) -> List[str]:
        return [self.contract_name]

    def resolve(self, context: StepContext) -> Any:
        """Resolves a contract address from the ledger."""
        return context.ledger.get(self.contract_name)

    def __repr__(self) -> str:
        return f"${self.contract_name}"


def _variable_from_value(variable: str) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Encode.is_encode(variable):
        return Encode(variable)
    elif Predicted.is_predicted(variable):
        return Predicted(variable)
    elif Constant.is_constant(variable):
        return Constant(variable)
    else:
        return ContractName(variable)


def _process_raw_value(value: Any) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value)

    return value


def _process_raw_values(values: typing.Mapping[str, Any]) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value)

    return processed_parameters


def _resolve_param(value: Any, context: StepContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, context) for v in value]

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def _collect(values: Iterable[Any], attribute: str) -> List[str]:
    collected = list()
    for value in values:
        if isinstance(value, list):
            collected.extend(_collect(value, attribute))
        elif isinstance(value, Variable):
            collected.extend(getattr(value, attribute)())
    return collected


def _unique(names: Iterable[str]) -> List[str]:
    return list(OrderedDict.fromkeys(names))


# Steps


class StepOutcome(NamedTuple):
    name: str
    address: Optional[ChecksumAddress] = None
    deployed: bool = False
    calls: int = 0


class WiringCall:
    """A post-deploy call granting a permission or registering one component with another."""

    def __init__(
        self,
        target: str,
        method: str,
        *args,
        contract: Optional[str] = None,
        repeat_on_reuse: bool = True,
    ):
        if not Variable.is_variable(target):
            raise InvalidConfigurationError(f"Wiring target '{target}' must be a $variable.")
        self.target = _process_raw_value(target)
        self.method = method
        self.args = [_process_raw_value(arg) for arg in args]
        self.contract = contract or target[len(Variable.VARIABLE_PREFIX) :]
        self.repeat_on_reuse = repeat_on_reuse

    def dependencies(self) -> List[str]:
        return _collect([self.target, *self.args], "dependencies")

    def constants(self) -> List[str]:
        return _collect([self.target, *self.args], "constants")

    def describe(self) -> str:
        args = ", ".join(_describe(arg) for arg in self.args)
        return f"{self.contract}.{self.method}({args})"

    def execute(self, context: StepContext) -> Any:
        address = context.resolve(self.target)
        args = context.resolve(self.args)
        print(f"Calling {self.describe()} on {address}")
        return context.executor.transact(self.contract, address, self.method, *args)


def _describe(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return f"0x{bytes(value).hex()}"
    return repr(value) if not isinstance(value, Variable) else str(value)


class Step(ABC):
    """One unit of orchestration work, executed once per run."""

    def __init__(self, name: str):
        self.name = name

    def prerequisites(self) -> List[str]:
        """Ledger names that must be present before the step starts."""
        return []

    def constants(self) -> List[str]:
        return []

    @abstractmethod
    def execute(self, context: StepContext) -> StepOutcome:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"


class Deploy(Step):
    """
    Deploys a component, or reuses the ledger entry of a previous run, then wires it.

    Constructor values may be literals or variables:
        $Name                   address of `Name` in the ledger
        $CONSTANT               network constant (see NETWORK_CONSTANTS)
        $deployer               deployer account
        $predicted:Name         address predicted earlier in this run
        $encode:Name.method,... calldata for `method` on `Name`
    """

    def __init__(
        self,
        name: str,
        contract: Optional[str] = None,
        constructor: Optional[typing.Mapping[str, Any]] = None,
        wiring: Sequence[WiringCall] = (),
        skip_if_present: bool = True,
        expect: Optional[str] = None,
    ):
        super().__init__(name)
        self.contract = contract or name
        self.constructor = _process_raw_values(constructor or OrderedDict())
        self.wiring = list(wiring)
        self.skip_if_present = skip_if_present
        self.expect = _process_raw_value(expect) if expect else None

    def prerequisites(self) -> List[str]:
        names = _collect(self.constructor.values(), "dependencies")
        for call in self.wiring:
            names.extend(call.dependencies())
        # the step's own entry is written before wiring
        return [n for n in _unique(names) if n != self.name]

    def constants(self) -> List[str]:
        names = _collect(self.constructor.values(), "constants")
        for call in self.wiring:
            names.extend(call.constants())
        return _unique(names)

    def constructor_arguments(self, context: StepContext) -> List[Any]:
        return [context.resolve(value) for value in self.constructor.values()]

    def after_deploy(self, context: StepContext, address: ChecksumAddress) -> None:
        """Hook for steps that record more than the address."""

    def execute(self, context: StepContext) -> StepOutcome:
        existing = context.ledger.get_optional(self.name)
        reused = existing is not None and self.skip_if_present
        if reused:
            print(f"(i) {self.name} already deployed at {existing}; skipping deployment")
            address = existing
        else:
            arguments = self.constructor_arguments(context)
            address = context.deploy(self.contract, arguments)
            context.commit(self.name, address)
            self._check_expected(context, address)
            self.after_deploy(context, address)

        calls = [call for call in self.wiring if not reused or call.repeat_on_reuse]
        performed = context.wire(calls)
        return StepOutcome(name=self.name, address=address, deployed=not reused, calls=performed)

    def _check_expected(self, context: StepContext, address: ChecksumAddress) -> None:
        if self.expect is None:
            return
        expected = to_checksum_address(context.resolve(self.expect))
        if expected != address:
            raise AddressMismatchError(
                f"actual address {address} is not equal to expected address {expected}"
            )


class Wire(Step):
    """A step made only of wiring calls against components already in the ledger."""

    def __init__(self, name: str, calls: Sequence[WiringCall]):
        super().__init__(name)
        self.calls = list(calls)

    def prerequisites(self) -> List[str]:
        names = list()
        for call in self.calls:
            names.extend(call.dependencies())
        return _unique(names)

    def constants(self) -> List[str]:
        names = list()
        for call in self.calls:
            names.extend(call.constants())
        return _unique(names)

    def execute(self, context: StepContext) -> StepOutcome:
        performed = context.wire(self.calls)
        return StepOutcome(name=self.name, calls=performed)


class Batch(Step):
    """
    Runs independent items one after the other.
    A failed item does not stop the others; the step fails once all of them ran.
    """

    def __init__(self, name: str, items: Sequence[Step]):
        super().__init__(name)
        self.items = list(items)

    def prerequisites(self) -> List[str]:
        names = list()
        for item in self.items:
            names.extend(item.prerequisites())
        return _unique(names)

    def constants(self) -> List[str]:
        names = list()
        for item in self.items:
            names.extend(item.constants())
        return _unique(names)

    def execute(self, context: StepContext) -> StepOutcome:
        failures: Dict[int, Exception] = OrderedDict()
        performed = 0
        for index, item in enumerate(self.items):
            try:
                outcome = item.execute(context)
            except Exception as e:
                print(f"(!) {self.name}[{index}] {item.name} failed: {e}")
                failures[index] = e
                continue
            performed += outcome.calls + int(outcome.deployed)

        if failures:
            raise BatchError(failures=failures)
        return StepOutcome(name=self.name, calls=performed)


# Runner


class RunResult(NamedTuple):
    chain_id: int
    network: str
    outcomes: List[StepOutcome]

    @property
    def deployed(self) -> Dict[str, ChecksumAddress]:
        return OrderedDict((o.name, o.address) for o in self.outcomes if o.deployed)


class StepRunner:
    """
    Executes steps strictly in order against one ledger.

    The runner is the only writer of the ledger during a run. A failure aborts the
    run; whatever was persisted before it stays, so the run can be resumed.
    """

    def __init__(self, executor: Executor, ledger: Ledger, network: NetworkConfig):
        self.executor = executor
        self.ledger = ledger
        self.network = network

    def _check_network(self) -> None:
        if self.ledger.chain_id != self.network.chain_id:
            raise ChainMismatchError(
                f"ledger is for chain_id {self.ledger.chain_id} but network "
                f"{self.network.name} has chain_id {self.network.chain_id}",
                chain_id=self.ledger.chain_id,
            )

    def _check_constants(self, steps: Sequence[Step]) -> None:
        """Fails before any remote call when a step needs a constant the network lacks."""
        constants = self.network.constants()
        for step in steps:
            for name in step.constants():
                if constants.get(name) is None:
                    raise InvalidConfigurationError(
                        f"step '{step.name}' needs constant '{name}', "
                        f"which is not set for network {self.network.name}"
                    )

    def _check_prerequisites(self, step: Step) -> None:
        for name in step.prerequisites():
            if name not in self.ledger:
                raise MissingDependencyError(key=name)

    def run(self, steps: Iterable[Step]) -> RunResult:
        steps = list(steps)
        self._check_network()
        self._check_constants(steps)

        context = StepContext(executor=self.executor, ledger=self.ledger, network=self.network)
        outcomes = list()
        for index, step in enumerate(steps, start=1):
            print(f"\n[{index}/{len(steps)}] {step.name}")
            try:
                self._check_prerequisites(step)
                outcome = step.execute(context)
            except PipelineError as e:
                if e.chain_id is None:
                    e.chain_id = self.ledger.chain_id
                if e.step is None:
                    e.step = step.name
                raise
            outcomes.append(outcome)

        print(f"\n(i) {len(outcomes)} step(s) completed on chain_id {self.ledger.chain_id}")
        return RunResult(chain_id=self.ledger.chain_id, network=self.network.name, outcomes=outcomes)
