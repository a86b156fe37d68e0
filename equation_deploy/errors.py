from typing import Dict, Optional


class DeploymentError(Exception):
    """Base class for every error raised while orchestrating a deployment."""


#
# Static configuration (fatal before any remote call)
#


class FormatError(DeploymentError, ValueError):
    """Raised when a percent string cannot be decoded."""


class InvalidConfigurationError(DeploymentError, ValueError):
    """Raised when static network parameters violate an invariant."""


class UndefinedNetworkError(DeploymentError, KeyError):
    """Raised when a network name is not present in the registry."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ConfigurationError(DeploymentError, ValueError):
    """Raised when an address prediction is attempted without a usable fingerprint."""


#
# Ledger
#


class NotFoundError(DeploymentError, FileNotFoundError):
    """Raised when no ledger document exists for a chain id."""


class LedgerExistsError(DeploymentError, FileExistsError):
    """Raised when creating a ledger for a chain id that already has one."""


class AbsentError(DeploymentError, KeyError):
    """Raised when a name has no entry in the ledger."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


#
# Pipeline
#


class PipelineError(DeploymentError):
    """
    Raised when a pipeline run aborts.
    Carries the chain id and the failing step so that the operator
    knows where to resume.
    """

    def __init__(self, message: str, chain_id: Optional[int] = None, step: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.chain_id = chain_id
        self.step = step

    def __str__(self) -> str:
        location = []
        if self.chain_id is not None:
            location.append(f"chain {self.chain_id}")
        if self.step is not None:
            location.append(f"step '{self.step}'")
        if not location:
            return self.message
        return f"[{', '.join(location)}] {self.message}"


class ChainMismatchError(PipelineError):
    """Raised when the ledger and the network configuration describe different chains."""


class MissingDependencyError(PipelineError):
    def __init__(self, key: str, chain_id: Optional[int] = None, step: Optional[str] = None):
        super().__init__(f"unresolved prerequisite '{key}'", chain_id=chain_id, step=step)
        self.key = key


class RemoteCallError(PipelineError):
    """Raised when the execution environment rejects or fails a deploy or call request."""


class AddressMismatchError(PipelineError):
    """Raised when a deployed address differs from the address predicted for it."""


class WiringError(PipelineError):
    def __init__(
        self,
        call_index: int,
        call: str,
        cause: Exception,
        chain_id: Optional[int] = None,
        step: Optional[str] = None,
    ):
        super().__init__(
            f"wiring call #{call_index} ({call}) failed: {cause}", chain_id=chain_id, step=step
        )
        self.call_index = call_index
        self.call = call
        self.cause = cause


class BatchError(PipelineError):
    def __init__(
        self,
        failures: Dict[int, Exception],
        chain_id: Optional[int] = None,
        step: Optional[str] = None,
    ):
        indexes = ", ".join(str(index) for index in sorted(failures))
        super().__init__(f"batch item(s) {indexes} failed", chain_id=chain_id, step=step)
        self.failures = failures
