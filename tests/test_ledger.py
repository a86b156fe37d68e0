import json

import pytest
from eth_utils import to_checksum_address

from equation_deploy.errors import AbsentError, LedgerExistsError, NotFoundError
from equation_deploy.ledger import (
    Ledger,
    MemoryLedger,
    RegisteredEntity,
    ledger_filepath,
    list_ledgers,
)
from tests.conftest import component_address

CHAIN_ID = 421613
ROUTER = component_address(0)
POOL_FACTORY = component_address(1)
ETH = to_checksum_address("0xECF628c20E5E1C0e0A90226d60FAd547AF850E0F")
ETH_POOL = component_address(2)


def test_create_persist_and_load(tmp_path):
    ledger = Ledger.create(CHAIN_ID, tmp_path)
    ledger.set("Router", ROUTER.lower())
    ledger.pool_bytecode_hash = "0x" + "ab" * 32
    ledger.metadata["block"] = 100
    filepath = ledger.persist()

    assert filepath == tmp_path / f"{CHAIN_ID}.json"
    loaded = Ledger.load(CHAIN_ID, tmp_path)
    assert loaded.get("Router") == ROUTER
    assert loaded.pool_bytecode_hash == "0x" + "ab" * 32
    assert loaded.metadata["block"] == 100


def test_document_format(tmp_path):
    ledger = Ledger.create(CHAIN_ID, tmp_path)
    ledger.set("Router", ROUTER)
    ledger.persist()

    with open(ledger_filepath(CHAIN_ID, tmp_path)) as file:
        document = json.load(file)
    assert document == {"deployments": {"Router": ROUTER}}


def test_create_refuses_existing_document(tmp_path):
    Ledger.create(CHAIN_ID, tmp_path).persist()
    with pytest.raises(LedgerExistsError, match=f"already published for chain_id {CHAIN_ID}"):
        Ledger.create(CHAIN_ID, tmp_path)


def test_load_missing_document(tmp_path):
    with pytest.raises(NotFoundError):
        Ledger.load(CHAIN_ID, tmp_path)


def test_open_starts_empty_ledger(tmp_path):
    ledger = Ledger.open(CHAIN_ID, tmp_path)
    assert len(ledger) == 0
    assert ledger.filepath == tmp_path / f"{CHAIN_ID}.json"


def test_get_absent_name():
    ledger = MemoryLedger(CHAIN_ID)
    with pytest.raises(AbsentError, match="'PoolFactory' is not deployed"):
        ledger.get("PoolFactory")
    assert ledger.get_optional("PoolFactory") is None
    assert "PoolFactory" not in ledger


def test_overwrite_is_an_upgrade(capsys):
    ledger = MemoryLedger(CHAIN_ID, {"deployments": {"PoolFactory": POOL_FACTORY}})
    ledger.set("PoolFactory", ROUTER)
    assert ledger.get("PoolFactory") == ROUTER
    assert len(ledger) == 1
    assert f"Upgrading PoolFactory from {POOL_FACTORY} to {ROUTER}" in capsys.readouterr().out


def test_persist_leaves_no_temporary_file(tmp_path):
    ledger = Ledger.create(CHAIN_ID, tmp_path)
    ledger.set("Router", ROUTER)
    ledger.persist()
    ledger.set("PoolFactory", POOL_FACTORY)
    ledger.persist()
    assert [path.name for path in tmp_path.iterdir()] == [f"{CHAIN_ID}.json"]


def test_failed_persist_keeps_previous_document(tmp_path):
    ledger = Ledger.create(CHAIN_ID, tmp_path)
    ledger.set("Router", ROUTER)
    ledger.persist()

    ledger.set("PoolFactory", POOL_FACTORY)
    ledger.metadata["unserializable"] = object()
    with pytest.raises(TypeError):
        ledger.persist()

    assert [path.name for path in tmp_path.iterdir()] == [f"{CHAIN_ID}.json"]
    assert Ledger.load(CHAIN_ID, tmp_path).deployments == {"Router": ROUTER}


def test_memory_ledger_counts_persists():
    ledger = MemoryLedger(CHAIN_ID)
    ledger.set("Router", ROUTER)
    ledger.persist()
    ledger.set("PoolFactory", POOL_FACTORY)
    ledger.persist()
    assert ledger.persist_count == 2
    assert ledger.snapshots[0]["deployments"] == {"Router": ROUTER}


def test_registered_entities_round_trip(tmp_path):
    ledger = Ledger.create(CHAIN_ID, tmp_path)
    entity = RegisteredEntity(kind="pool", name="ETH", address=ETH_POOL, owner=ETH)
    ledger.register_entity(entity)
    ledger.persist()

    loaded = Ledger.load(CHAIN_ID, tmp_path)
    assert loaded.registered_entities == [entity]
    assert loaded.entities("pool") == [entity]
    assert loaded.entities("connector") == []


def test_legacy_registered_pools_round_trip(tmp_path):
    legacy = {
        "block": 1,
        "usd": to_checksum_address("0x58e7F6b126eCC1A694B19062317b60Cf474E3D17"),
        "poolBytecodeHash": "0x" + "cd" * 32,
        "somethingElse": {"kept": True},
        "deployments": {
            "PoolFactory": POOL_FACTORY,
            "registerPools": [{"name": "ETH", "token": ETH, "pool": ETH_POOL}],
        },
    }
    filepath = ledger_filepath(CHAIN_ID, tmp_path)
    filepath.write_text(json.dumps(legacy))

    ledger = Ledger.load(CHAIN_ID, tmp_path)
    assert "registerPools" not in ledger
    assert ledger.entities("pool") == [
        RegisteredEntity(kind="pool", name="ETH", address=ETH_POOL, owner=ETH)
    ]

    ledger.persist()
    assert json.loads(filepath.read_text()) == legacy


def test_list_ledgers(tmp_path):
    for chain_id in (421613, 42161):
        ledger = Ledger.create(chain_id, tmp_path)
        ledger.set("Router", ROUTER)
        ledger.persist()
    (tmp_path / "notes.json").write_text("{}")

    assert [ledger.chain_id for ledger in list_ledgers(tmp_path)] == [42161, 421613]
