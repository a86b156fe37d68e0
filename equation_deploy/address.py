from collections import OrderedDict
from typing import Iterable, Optional, Union

import rlp
from eth_abi import encode
from eth_typing import ChecksumAddress
from eth_utils import keccak, to_canonical_address, to_checksum_address
from hexbytes import HexBytes

from equation_deploy.errors import ConfigurationError

CREATE2_PREFIX = b"\xff"
HASH_LENGTH = 32

Digest = Union[bytes, str]


def _to_digest(value: Digest, label: str) -> bytes:
    try:
        digest = bytes(HexBytes(value))
    except (TypeError, ValueError):
        raise ConfigurationError(f"{label} '{value}' is not a hex string")
    if len(digest) != HASH_LENGTH:
        raise ConfigurationError(f"{label} must be {HASH_LENGTH} bytes long, got {len(digest)}")
    return digest


def pool_bytecode_hash(creation_code: Union[bytes, str]) -> str:
    """Returns the fingerprint of the pool creation code, as stored in the ledger."""
    return "0x" + keccak(bytes(HexBytes(creation_code))).hex()


def get_create2_address(deployer: str, salt: Digest, init_code_hash: Digest) -> ChecksumAddress:
    """keccak256(0xff ++ deployer ++ salt ++ keccak256(init_code))[12:]"""
    preimage = (
        CREATE2_PREFIX
        + to_canonical_address(deployer)
        + _to_digest(salt, "salt")
        + _to_digest(init_code_hash, "init code hash")
    )
    return to_checksum_address(keccak(preimage)[12:])


def get_create_address(sender: str, nonce: int) -> ChecksumAddress:
    """keccak256(rlp([sender, nonce]))[12:]"""
    encoded = rlp.encode([to_canonical_address(sender), nonce])
    return to_checksum_address(keccak(encoded)[12:])


def predict_create_addresses(
    sender: str, nonce: int, names: Iterable[str]
) -> "OrderedDict[str, ChecksumAddress]":
    """Predicts the addresses of contracts deployed back to back starting at `nonce`."""
    predictions = OrderedDict()
    for offset, name in enumerate(names):
        predictions[name] = get_create_address(sender, nonce + offset)
    return predictions


def pool_salt(token: str, usd: str) -> bytes:
    return keccak(encode(["address", "address"], [token, usd]))


def compute_pool_address(
    pool_factory: str, token: str, usd: str, bytecode_hash: Optional[Digest]
) -> ChecksumAddress:
    if not bytecode_hash:
        raise ConfigurationError("pool bytecode hash is not set")
    return get_create2_address(pool_factory, pool_salt(token, usd), bytecode_hash)


class PoolAddressPredictor:
    """Predicts pool addresses for a pool factory from a pinned creation code fingerprint."""

    def __init__(self, bytecode_hash: Optional[Digest]):
        if not bytecode_hash:
            raise ConfigurationError(
                "pool bytecode hash is not set; deploy the core contracts first"
            )
        self.bytecode_hash = _to_digest(bytecode_hash, "pool bytecode hash")

    @classmethod
    def from_ledger(cls, ledger) -> "PoolAddressPredictor":
        return cls(bytecode_hash=ledger.pool_bytecode_hash)

    def predict(self, pool_factory: str, token: str, usd: str) -> ChecksumAddress:
        return compute_pool_address(pool_factory, token, usd, self.bytecode_hash)
