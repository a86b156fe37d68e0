import json
import os
import tempfile
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, Iterator, List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from equation_deploy.constants import DEPLOYMENTS_DIR, STANDARD_LEDGER_JSON_FORMAT
from equation_deploy.errors import AbsentError, LedgerExistsError, NotFoundError
from equation_deploy.utils import _load_json

ChainId = int
ContractName = str

DEPLOYMENTS_KEY = "deployments"
POOL_BYTECODE_HASH_KEY = "poolBytecodeHash"
REGISTERED_ENTITIES_KEY = "registeredEntities"
# older documents keep registered pools inside the deployments mapping
LEGACY_REGISTERED_POOLS_KEY = "registerPools"


class RegisteredEntity(NamedTuple):
    """A sub-resource created by a deployed component (a pool, a minted connector...)."""

    kind: str
    name: str
    address: ChecksumAddress
    owner: ChecksumAddress

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "name": self.name, "address": self.address, "owner": self.owner}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "RegisteredEntity":
        return cls(
            kind=data["kind"],
            name=data["name"],
            address=to_checksum_address(data["address"]),
            owner=to_checksum_address(data["owner"]),
        )

    def to_legacy_dict(self) -> Dict[str, str]:
        return {"name": self.name, "token": self.owner, "pool": self.address}

    @classmethod
    def from_legacy_dict(cls, data: Dict[str, str]) -> "RegisteredEntity":
        return cls(
            kind="pool",
            name=data["name"],
            address=to_checksum_address(data["pool"]),
            owner=to_checksum_address(data["token"]),
        )


def ledger_filepath(chain_id: ChainId, directory: Optional[Path] = None) -> Path:
    directory = Path(directory) if directory else DEPLOYMENTS_DIR
    return directory / f"{chain_id}.json"


class Ledger:
    """
    Persisted record of the components deployed on one chain.

    The document maps component names to addresses and is the single source of truth
    for every address used by a pipeline. Addresses are opaque: they are only compared
    for equality and passed through to remote calls.
    """

    def __init__(
        self,
        chain_id: ChainId,
        filepath: Optional[Path] = None,
        document: Optional[Dict[str, Any]] = None,
    ):
        self.chain_id = int(chain_id)
        self.filepath = filepath
        document = OrderedDict(document or {})

        deployments = OrderedDict(document.pop(DEPLOYMENTS_KEY, None) or {})
        legacy_pools = deployments.pop(LEGACY_REGISTERED_POOLS_KEY, None)
        self._legacy_entities = legacy_pools is not None

        self._deployments: Dict[ContractName, ChecksumAddress] = OrderedDict(
            (name, to_checksum_address(address)) for name, address in deployments.items()
        )
        self.pool_bytecode_hash: Optional[str] = document.pop(POOL_BYTECODE_HASH_KEY, None)

        entities = [RegisteredEntity.from_legacy_dict(e) for e in legacy_pools or []]
        entities.extend(
            RegisteredEntity.from_dict(e) for e in document.pop(REGISTERED_ENTITIES_KEY, None) or []
        )
        self._entities: List[RegisteredEntity] = entities

        # anything else (block, usd, ...) is carried over untouched
        self.metadata: Dict[str, Any] = document

    #
    # Loading
    #

    @classmethod
    def load(cls, chain_id: ChainId, directory: Optional[Path] = None) -> "Ledger":
        filepath = ledger_filepath(chain_id, directory)
        if not filepath.exists():
            raise NotFoundError(f"No deployments found for chain_id {chain_id} at {filepath}")
        return cls(chain_id=chain_id, filepath=filepath, document=_load_json(filepath))

    @classmethod
    def create(cls, chain_id: ChainId, directory: Optional[Path] = None) -> "Ledger":
        filepath = ledger_filepath(chain_id, directory)
        if filepath.exists():
            raise LedgerExistsError(f"Deployment is already published for chain_id {chain_id}.")
        return cls(chain_id=chain_id, filepath=filepath)

    @classmethod
    def open(cls, chain_id: ChainId, directory: Optional[Path] = None) -> "Ledger":
        """Loads the ledger of a chain, or starts an empty one if the chain has none yet."""
        try:
            return cls.load(chain_id, directory)
        except NotFoundError:
            return cls.create(chain_id, directory)

    #
    # Entries
    #

    def get(self, name: ContractName) -> ChecksumAddress:
        try:
            return self._deployments[name]
        except KeyError:
            raise AbsentError(f"'{name}' is not deployed on chain_id {self.chain_id}")

    def get_optional(self, name: ContractName) -> Optional[ChecksumAddress]:
        return self._deployments.get(name)

    def set(self, name: ContractName, address: str) -> None:
        address = to_checksum_address(address)
        previous = self._deployments.get(name)
        if previous and previous != address:
            print(f"(i) Upgrading {name} from {previous} to {address}")
        self._deployments[name] = address

    def __contains__(self, name: ContractName) -> bool:
        return name in self._deployments

    def __iter__(self) -> Iterator[ContractName]:
        return iter(self._deployments)

    def __len__(self) -> int:
        return len(self._deployments)

    @property
    def deployments(self) -> Dict[ContractName, ChecksumAddress]:
        return OrderedDict(self._deployments)

    @property
    def registered_entities(self) -> List[RegisteredEntity]:
        return list(self._entities)

    def entities(self, kind: str) -> List[RegisteredEntity]:
        return [entity for entity in self._entities if entity.kind == kind]

    def register_entity(self, entity: RegisteredEntity) -> None:
        self._entities.append(entity)

    #
    # Persistence
    #

    def to_document(self) -> Dict[str, Any]:
        document = OrderedDict(self.metadata)
        if self.pool_bytecode_hash:
            document[POOL_BYTECODE_HASH_KEY] = self.pool_bytecode_hash

        deployments = OrderedDict(self._deployments)
        if self._legacy_entities:
            deployments[LEGACY_REGISTERED_POOLS_KEY] = [
                entity.to_legacy_dict() for entity in self.entities("pool")
            ]
            others = [entity for entity in self._entities if entity.kind != "pool"]
        else:
            others = self._entities
        document[DEPLOYMENTS_KEY] = deployments

        if others:
            document[REGISTERED_ENTITIES_KEY] = [entity.to_dict() for entity in others]
        return document

    def persist(self) -> Path:
        """
        Atomically replaces the backing document with the current state.
        The document is written next to its final location and renamed over it,
        so a crash leaves either the old or the new document, never a partial one.
        """
        if self.filepath is None:
            raise ValueError(f"Ledger for chain_id {self.chain_id} has no backing file.")

        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        descriptor, temp_filepath = tempfile.mkstemp(
            dir=self.filepath.parent, prefix=f".{self.filepath.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(descriptor, "w") as file:
                json.dump(self.to_document(), file, **STANDARD_LEDGER_JSON_FORMAT)
                file.flush()
                os.fsync(file.fileno())
            os.replace(temp_filepath, self.filepath)
        except BaseException:
            if os.path.exists(temp_filepath):
                os.unlink(temp_filepath)
            raise
        return self.filepath


class MemoryLedger(Ledger):
    """A ledger without a backing file; persists are counted instead of written."""

    def __init__(self, chain_id: ChainId, document: Optional[Dict[str, Any]] = None):
        super().__init__(chain_id=chain_id, filepath=None, document=document)
        self.persist_count = 0
        self.snapshots: List[Dict[str, Any]] = list()

    def persist(self) -> Optional[Path]:
        self.persist_count += 1
        self.snapshots.append(json.loads(json.dumps(self.to_document())))
        return None


def read_ledger(filepath: Path) -> Ledger:
    chain_id = int(Path(filepath).stem)
    return Ledger(chain_id=chain_id, filepath=Path(filepath), document=_load_json(filepath))


def list_ledgers(directory: Optional[Path] = None) -> List[Ledger]:
    directory = Path(directory) if directory else DEPLOYMENTS_DIR
    ledgers = list()
    for filepath in sorted(directory.glob("*.json")):
        if not filepath.stem.isdigit():
            continue
        ledgers.append(read_ledger(filepath))
    return ledgers
