from collections import OrderedDict
from typing import Any, Callable, List, NamedTuple, Optional

import pytest
from eth_utils import keccak, to_canonical_address, to_checksum_address

from equation_deploy.address import get_create_address
from equation_deploy.constants import ARBITRUM_GOERLI
from equation_deploy.errors import RemoteCallError
from equation_deploy.executor import Executor
from equation_deploy.ledger import MemoryLedger
from equation_deploy.networks import load_registry

DEPLOYER = to_checksum_address("0x6ac7ea33f8831ea9dcc53393aaa88b25a785dbf0")
OPERATOR = to_checksum_address("0x0000000000000000000000000000000000c0ffee")
DISTRIBUTOR_SIGNER = to_checksum_address("0x00000000000000000000000000000000005167e7")

POOL_CREATION_CODE = bytes(range(256)) * 3
FIRST_BLOCK = 1_234_567


class Request(NamedTuple):
    kind: str
    contract: str
    address: Optional[str]
    method: Optional[str]
    args: tuple


class FakeExecutor(Executor):
    """Records every remote request and answers them with deterministic results."""

    def __init__(self, deployer: str = DEPLOYER, nonce: int = 0):
        self._deployer = to_checksum_address(deployer)
        self._nonce = nonce
        self.requests: List[Request] = list()
        self.failures: List[Callable[[Request], bool]] = list()
        self.enabled_tokens = set()
        self.indexed_tokens = set()

    def fail_when(self, predicate: Callable[[Request], bool]) -> None:
        self.failures.append(predicate)

    def _record(self, request: Request) -> None:
        self.requests.append(request)
        for predicate in self.failures:
            if predicate(request):
                raise RemoteCallError(f"execution reverted: {request.contract}.{request.method}")

    def requests_of(self, kind: str) -> List[Request]:
        return [request for request in self.requests if request.kind == kind]

    def transactions(self, method: Optional[str] = None) -> List[Request]:
        return [
            r for r in self.requests_of("transact") if method is None or r.method == method
        ]

    @property
    def deployer_address(self):
        return self._deployer

    def nonce(self) -> int:
        return self._nonce

    def block_number(self) -> int:
        return FIRST_BLOCK

    def deploy(self, contract: str, *args):
        self._record(Request("deploy", contract, None, None, args))
        address = get_create_address(self._deployer, self._nonce)
        self._nonce += 1
        return address

    def transact(self, contract: str, address: str, method: str, *args) -> Any:
        self._record(Request("transact", contract, address, method, args))
        self._nonce += 1
        if method == "enableToken":
            self.enabled_tokens.add(args[0])
        return {"method": method, "status": 1}

    def call(self, contract: str, address: str, method: str, *args) -> Any:
        self._record(Request("call", contract, address, method, args))
        if method == "isEnabledToken":
            return args[0] in self.enabled_tokens
        if method == "tokenIndexes":
            return 1 if args[0] in self.indexed_tokens else 0
        raise AssertionError(f"unexpected call {contract}.{method}")

    def encode(self, contract: str, address: str, method: str, *args) -> bytes:
        self._record(Request("encode", contract, address, method, args))
        return keccak(text=f"{method}()")[:4]

    def creation_code(self, contract: str, libraries=None) -> bytes:
        linked = b"".join(to_canonical_address(a) for a in (libraries or {}).values())
        return POOL_CREATION_CODE + linked


def component_address(index: int) -> str:
    return get_create_address(OPERATOR, index)


@pytest.fixture(scope="session")
def registry():
    return load_registry()


@pytest.fixture
def network(registry):
    return registry.resolve(ARBITRUM_GOERLI)


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def ledger(network):
    return MemoryLedger(chain_id=network.chain_id)


@pytest.fixture
def deployed_ledger(network):
    """A ledger holding a bootstrapped network, as left by the core pipeline."""
    names = [
        "EQU",
        "veEQU",
        "EFC",
        "Router",
        "RewardCollector",
        "OrderBook",
        "PositionRouter",
        "PriceFeed",
        "RewardFarm",
        "FeeDistributor",
        "PoolFactory",
        "MixedExecutor",
        "ExecutorAssistant",
        "Liquidator",
    ]
    deployments = OrderedDict((name, component_address(i)) for i, name in enumerate(names))
    document = {
        "block": FIRST_BLOCK,
        "usd": network.usd,
        "poolBytecodeHash": "0x" + keccak(POOL_CREATION_CODE).hex(),
        "deployments": deployments,
    }
    return MemoryLedger(chain_id=network.chain_id, document=document)
