from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from eth_typing import ChecksumAddress


class Executor(ABC):
    """
    Boundary to the remote execution environment.

    Implementations issue deploy and call requests and block until each one
    succeeds or fails; failures are raised as RemoteCallError. Nothing is retried.
    """

    @property
    @abstractmethod
    def deployer_address(self) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def nonce(self) -> int:
        """Next transaction nonce of the deployer account."""
        raise NotImplementedError

    @abstractmethod
    def block_number(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def deploy(self, contract: str, *args) -> ChecksumAddress:
        """Deploys `contract` with constructor arguments `args` and returns its address."""
        raise NotImplementedError

    @abstractmethod
    def transact(self, contract: str, address: str, method: str, *args) -> Any:
        """Sends a state-changing call to the component at `address`."""
        raise NotImplementedError

    @abstractmethod
    def call(self, contract: str, address: str, method: str, *args) -> Any:
        """Read-only call to the component at `address`."""
        raise NotImplementedError

    @abstractmethod
    def encode(self, contract: str, address: str, method: str, *args) -> bytes:
        """Returns the calldata of `method(*args)` on `contract`."""
        raise NotImplementedError

    @abstractmethod
    def creation_code(self, contract: str, libraries: Optional[Dict[str, str]] = None) -> bytes:
        """Returns the creation code of `contract`, linked against `libraries` (name to address)."""
        raise NotImplementedError
