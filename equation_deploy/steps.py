"""
Catalogue of the deployment pipelines of the protocol.

Each pipeline is built from the network parameters into an ordered list of steps
that a StepRunner executes against the ledger of that network. The `core` pipeline
bootstraps a fresh network; every other pipeline extends or rewires an existing one.
"""

from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from eth_typing import ChecksumAddress

from equation_deploy.address import (
    PoolAddressPredictor,
    pool_bytecode_hash,
    predict_create_addresses,
)
from equation_deploy.constants import (
    CORE_CONTRACTS,
    EFC_CAP_ARCHITECT,
    EFC_CAP_CONNECTOR,
    EFC_CAP_MEMBER,
    FEE_DISTRIBUTOR_WITHDRAWAL_PERIOD,
    LIBRARIES,
    POOL_CONTRACT,
    REWARD_FARM_MINT_RATE,
    ROLE_LIQUIDITY_POSITION_LIQUIDATOR,
    ROLE_POSITION_LIQUIDATOR,
)
from equation_deploy.errors import InvalidConfigurationError, LedgerExistsError
from equation_deploy.ledger import Ledger, RegisteredEntity
from equation_deploy.networks import NetworkConfig, TokenDescriptor
from equation_deploy.pipeline import (
    Batch,
    Deploy,
    Step,
    StepContext,
    StepOutcome,
    Wire,
    WiringCall,
    _process_raw_value,
)

TOKEN_PREFIX = "Token:"
CONNECTOR_PREFIX = "Connector#"

POOL_ENTITY = "pool"
CONNECTOR_ENTITY = "connector"
TOKEN_ENTITY = "token"


def token_reference(token: TokenDescriptor) -> str:
    """The configured address of an asset, or the ledger entry of its mock token."""
    if token.address:
        return token.address
    return f"${TOKEN_PREFIX}{token.name}"


def _token_references(network: NetworkConfig) -> List[str]:
    return [token_reference(token) for token in network.tokens]


def _reference_variable(token: TokenDescriptor):
    return _process_raw_value(token_reference(token))


#
# Custom steps
#


class RecordDeploymentStart(Step):
    """Stamps the ledger with the block the network bootstrap started at."""

    def __init__(self):
        super().__init__("record-deployment-start")

    def execute(self, context: StepContext) -> StepOutcome:
        block = context.executor.block_number()
        context.ledger.metadata["block"] = block
        context.ledger.metadata["usd"] = context.network.usd
        context.ledger.persist()
        print(f"First contract deployed at block {block}")
        return StepOutcome(name=self.name)


class FingerprintPoolBytecode(Step):
    """Links the pool creation code against the libraries and records its hash."""

    def __init__(self):
        super().__init__("fingerprint-pool-bytecode")

    def prerequisites(self) -> List[str]:
        return list(LIBRARIES)

    def execute(self, context: StepContext) -> StepOutcome:
        libraries = OrderedDict((name, context.ledger.get(name)) for name in LIBRARIES)
        creation_code = context.executor.creation_code(POOL_CONTRACT, libraries)
        context.ledger.pool_bytecode_hash = pool_bytecode_hash(creation_code)
        context.ledger.persist()
        print(f"{POOL_CONTRACT} bytecode hash: {context.ledger.pool_bytecode_hash}")
        return StepOutcome(name=self.name)


class PredictCoreAddresses(Step):
    """
    Predicts the addresses of the core components from the deployer's next nonce.
    The core components reference each other, so their constructors need
    addresses that do not exist yet; they must then be deployed back to back
    in exactly this order.
    """

    def __init__(self, names: List[str]):
        super().__init__("predict-core-addresses")
        self.names = names

    def execute(self, context: StepContext) -> StepOutcome:
        deployer = context.deployer_address
        nonce = context.executor.nonce()
        print(f"deployer address: {deployer}, nonce: {nonce}")
        predictions = predict_create_addresses(deployer, nonce, self.names)
        for name, address in predictions.items():
            print(f"\t{name}={address}")
        context.predictions.update(predictions)
        return StepOutcome(name=self.name)


class UploadPoolCreationCode(Step):
    """Uploads the linked pool creation code to the pool factory in two halves."""

    def __init__(self):
        super().__init__("upload-pool-creation-code")

    def prerequisites(self) -> List[str]:
        return ["PoolFactory", *LIBRARIES]

    def execute(self, context: StepContext) -> StepOutcome:
        libraries = OrderedDict((name, context.ledger.get(name)) for name in LIBRARIES)
        creation_code = bytes(context.executor.creation_code(POOL_CONTRACT, libraries))
        half = len(creation_code) // 2
        pool_factory = context.ledger.get("PoolFactory")
        for done, chunk in ((False, creation_code[:half]), (True, creation_code[half:])):
            print(f"Uploading {len(chunk)} bytes of {POOL_CONTRACT} creation code (done={done})")
            context.executor.transact(
                "PoolFactory", pool_factory, "concatPoolCreationCode", done, chunk
            )
        return StepOutcome(name=self.name, calls=2)


class RegisterPools(Step):
    """
    Enables every configured asset on the pool factory and creates its pool.
    Assets that are already enabled only get their pool index, when missing.
    """

    def __init__(self, tokens: List[TokenDescriptor]):
        super().__init__("register-pools")
        self.tokens = tokens

    def prerequisites(self) -> List[str]:
        names = ["PoolFactory"]
        names.extend(f"{TOKEN_PREFIX}{token.name}" for token in self.tokens if not token.address)
        return names

    def execute(self, context: StepContext) -> StepOutcome:
        executor = context.executor
        predictor = PoolAddressPredictor.from_ledger(context.ledger)
        pool_factory = context.ledger.get("PoolFactory")
        # the indexer is deployed after the first pools; those get indexed on a later run
        pool_indexer = context.ledger.get_optional("PoolIndexer")
        usd = context.network.usd

        calls = 0
        for token in self.tokens:
            address = context.resolve(_reference_variable(token))
            pool = predictor.predict(pool_factory, address, usd)

            if executor.call("PoolFactory", pool_factory, "isEnabledToken", address):
                if pool_indexer and not executor.call(
                    "PoolIndexer", pool_indexer, "tokenIndexes", address
                ):
                    executor.transact("PoolIndexer", pool_indexer, "assignPoolIndex", pool)
                    calls += 1
                continue

            print(f"registering {token.name} ({address}) at {pool}")
            executor.transact(
                "PoolFactory",
                pool_factory,
                "enableToken",
                address,
                token.config,
                token.fee_rate_config,
                token.price_config,
            )
            executor.transact("PoolFactory", pool_factory, "createPool", address)
            calls += 2
            if pool_indexer:
                executor.transact("PoolIndexer", pool_indexer, "assignPoolIndex", pool)
                calls += 1

            context.ledger.register_entity(
                RegisteredEntity(kind=POOL_ENTITY, name=token.name, address=pool, owner=address)
            )
            context.ledger.persist()

        return StepOutcome(name=self.name, calls=calls)


class UpdatePoolsReward(Step):
    """Sets the per-second farm reward of every registered pool."""

    def __init__(self):
        super().__init__("update-pools-reward")

    def prerequisites(self) -> List[str]:
        return ["RewardFarm"]

    def execute(self, context: StepContext) -> StepOutcome:
        pools = context.ledger.entities(POOL_ENTITY)
        if not pools:
            print("(i) No registered pools; nothing to reward")
            return StepOutcome(name=self.name)

        rewards = [context.network.token(pool.name).rewards_per_second for pool in pools]
        context.executor.transact(
            "RewardFarm",
            context.ledger.get("RewardFarm"),
            "setPoolsReward",
            [pool.address for pool in pools],
            rewards,
        )
        return StepOutcome(name=self.name, calls=1)


class UpdateTokenConfigs(Step):
    """Pushes the configured risk, fee and price parameters of every enabled asset."""

    def __init__(self, tokens: List[TokenDescriptor]):
        super().__init__("update-token-configs")
        self.tokens = tokens

    def prerequisites(self) -> List[str]:
        names = ["PoolFactory"]
        names.extend(f"{TOKEN_PREFIX}{token.name}" for token in self.tokens if not token.address)
        return names

    def execute(self, context: StepContext) -> StepOutcome:
        pool_factory = context.ledger.get("PoolFactory")
        calls = 0
        for token in self.tokens:
            address = context.resolve(_reference_variable(token))
            if not context.executor.call("PoolFactory", pool_factory, "isEnabledToken", address):
                continue
            print(f"updating {token.name} ({address})")
            context.executor.transact(
                "PoolFactory",
                pool_factory,
                "updateTokenConfig",
                address,
                token.config,
                token.fee_rate_config,
                token.price_config,
            )
            calls += 1
        return StepOutcome(name=self.name, calls=calls)


class MintConnector(Step):
    """Mints the connector NFT of one identity, unless the ledger already records it."""

    def __init__(self, index: int, identity: ChecksumAddress):
        super().__init__(f"{CONNECTOR_PREFIX}{index}")
        self.identity = identity

    def prerequisites(self) -> List[str]:
        return ["EFC"]

    def execute(self, context: StepContext) -> StepOutcome:
        for entity in context.ledger.entities(CONNECTOR_ENTITY):
            if entity.address == self.identity:
                print(f"(i) Connector already minted for {self.identity}; skipping")
                return StepOutcome(name=self.name)

        efc = context.ledger.get("EFC")
        print(f"Minting connector for {self.identity}")
        context.executor.transact("EFC", efc, "batchMintConnector", [self.identity])
        context.ledger.register_entity(
            RegisteredEntity(kind=CONNECTOR_ENTITY, name=self.name, address=self.identity, owner=efc)
        )
        context.ledger.persist()
        return StepOutcome(name=self.name, calls=1)


class DeployToken(Deploy):
    """Deploys a mock ERC20 for an asset that has no address on the network."""

    def __init__(self, token: TokenDescriptor):
        super().__init__(
            name=f"{TOKEN_PREFIX}{token.name}",
            contract="ERC20",
            constructor=OrderedDict(name=f"Equation Market - {token.name}", symbol=token.name),
        )
        self.token = token

    def execute(self, context: StepContext) -> StepOutcome:
        outcome = super().execute(context)
        if not outcome.deployed:
            # a previous run may have stopped between the deploy and the entity record
            self.after_deploy(context, outcome.address)
        return outcome

    def after_deploy(self, context: StepContext, address: ChecksumAddress) -> None:
        for entity in context.ledger.entities(TOKEN_ENTITY):
            if entity.name == self.token.name and entity.address == address:
                return
        context.ledger.register_entity(
            RegisteredEntity(
                kind=TOKEN_ENTITY,
                name=self.token.name,
                address=address,
                owner=context.deployer_address,
            )
        )
        context.ledger.persist()


#
# Pipelines
#


def _set_executor_calls(target: str, network: NetworkConfig) -> List[WiringCall]:
    return [WiringCall(target, "setExecutor", executor, True) for executor in network.mixed_executors]


def build_core(network: NetworkConfig) -> List[Step]:
    steps: List[Step] = [RecordDeploymentStart()]
    steps.extend(Deploy(name, skip_if_present=False) for name in LIBRARIES)
    steps.append(FingerprintPoolBytecode())
    steps.append(PredictCoreAddresses(list(CORE_CONTRACTS)))

    constructors = OrderedDict(
        [
            ("EQU", {}),
            ("veEQU", {}),
            (
                "EFC",
                {
                    "capArchitect": EFC_CAP_ARCHITECT,
                    "capConnector": EFC_CAP_CONNECTOR,
                    "capMember": EFC_CAP_MEMBER,
                    "rewardFarm": "$predicted:RewardFarm",
                    "feeDistributor": "$predicted:FeeDistributor",
                },
            ),
            (
                "Router",
                {
                    "EFC": "$EFC",
                    "rewardFarm": "$predicted:RewardFarm",
                    "feeDistributor": "$predicted:FeeDistributor",
                },
            ),
            ("RewardCollector", {"router": "$Router", "EQU": "$EQU", "EFC": "$EFC"}),
            (
                "OrderBook",
                {
                    "usd": "$USD",
                    "router": "$Router",
                    "minExecutionFee": "$MIN_ORDER_BOOK_EXECUTION_FEE",
                },
            ),
            (
                "PositionRouter",
                {
                    "usd": "$USD",
                    "router": "$Router",
                    "minExecutionFee": "$MIN_POSITION_ROUTER_EXECUTION_FEE",
                },
            ),
            ("PriceFeed", {"usdChainLinkPriceFeed": "$USD_PRICE_FEED", "refPriceFeedTimeout": 0}),
            (
                "RewardFarm",
                {
                    "poolFactory": "$predicted:PoolFactory",
                    "router": "$Router",
                    "EFC": "$EFC",
                    "EQU": "$EQU",
                    "mintTime": "$FARM_MINT_TIME",
                    "mintRate": REWARD_FARM_MINT_RATE,
                },
            ),
            (
                "FeeDistributor",
                {
                    "EFC": "$EFC",
                    "EQU": "$EQU",
                    "WETH": "$WETH",
                    "veEQU": "$veEQU",
                    "usd": "$USD",
                    "router": "$Router",
                    "uniswapV3Factory": "$UNISWAP_V3_FACTORY",
                    "uniswapV3PositionManager": "$UNISWAP_V3_POSITION_MANAGER",
                    "withdrawalPeriod": FEE_DISTRIBUTOR_WITHDRAWAL_PERIOD,
                },
            ),
            (
                "PoolFactory",
                {
                    "usd": "$USD",
                    "EFC": "$EFC",
                    "router": "$Router",
                    "priceFeed": "$PriceFeed",
                    "feeDistributor": "$FeeDistributor",
                    "rewardFarm": "$RewardFarm",
                },
            ),
            (
                "MixedExecutor",
                {
                    "liquidator": "$predicted:Liquidator",
                    "positionRouter": "$PositionRouter",
                    "priceFeed": "$PriceFeed",
                    "orderBook": "$OrderBook",
                },
            ),
            ("ExecutorAssistant", {"positionRouter": "$PositionRouter"}),
            (
                "Liquidator",
                {
                    "router": "$Router",
                    "poolFactory": "$PoolFactory",
                    "usd": "$USD",
                    "EFC": "$EFC",
                },
            ),
        ]
    )
    for name in CORE_CONTRACTS:
        steps.append(
            Deploy(
                name,
                constructor=OrderedDict(constructors[name]),
                skip_if_present=False,
                expect=f"$predicted:{name}",
            )
        )

    steps.append(
        Wire(
            "initialize-tokens",
            [
                WiringCall("$EQU", "setMinter", "$RewardFarm", True, contract="MultiMinter"),
                WiringCall("$veEQU", "setMinter", "$FeeDistributor", True, contract="MultiMinter"),
                WiringCall("$EFC", "setBaseURI", "$EFC_BASE_URL"),
            ],
        )
    )
    steps.append(
        Wire(
            "initialize-plugins",
            [
                WiringCall("$Router", "registerLiquidator", "$Liquidator"),
                WiringCall("$Router", "registerPlugin", "$RewardCollector"),
                WiringCall("$Router", "registerPlugin", "$OrderBook"),
                WiringCall("$Router", "registerPlugin", "$PositionRouter"),
                WiringCall("$OrderBook", "updateOrderExecutor", "$MixedExecutor", True),
                WiringCall("$PositionRouter", "updatePositionExecutor", "$MixedExecutor", True),
            ],
        )
    )

    price_feed_calls = [
        WiringCall("$PriceFeed", "setUpdater", "$MixedExecutor", True),
        WiringCall("$PriceFeed", "setUpdater", "$deployer", True),
    ]
    if network.sequencer_uptime_feed:
        price_feed_calls.append(
            WiringCall("$PriceFeed", "setSequencerUptimeFeed", "$SEQUENCER_UPTIME_FEED")
        )
    for token in network.tokens:
        reference = token_reference(token)
        price_feed_calls.append(
            WiringCall("$PriceFeed", "setRefPriceFeed", reference, token.price_feed)
        )
        price_feed_calls.append(
            WiringCall(
                "$PriceFeed", "setMaxCumulativeDeltaDiffs", reference, token.max_cumulative_delta_diff
            )
        )
    steps.append(Wire("initialize-price-feed", price_feed_calls))

    steps.append(
        Wire(
            "initialize-fee-distributor",
            [
                WiringCall(
                    "$FeeDistributor", "setLockupRewardMultipliers", "$LOCKUP_REWARD_MULTIPLIERS"
                )
            ],
        )
    )
    steps.append(UploadPoolCreationCode())
    steps.append(
        Wire(
            "initialize-pool-factory",
            [
                WiringCall("$PoolFactory", "grantRole", ROLE_POSITION_LIQUIDATOR, "$Liquidator"),
                WiringCall(
                    "$PoolFactory", "grantRole", ROLE_LIQUIDITY_POSITION_LIQUIDATOR, "$Liquidator"
                ),
            ],
        )
    )
    steps.append(
        Wire(
            "initialize-mixed-executor",
            [
                WiringCall("$MixedExecutor", "setTokens", _token_references(network)),
                *_set_executor_calls("$MixedExecutor", network),
            ],
        )
    )
    steps.append(
        Wire(
            "initialize-liquidator",
            [WiringCall("$Liquidator", "updateExecutor", "$MixedExecutor", True)],
        )
    )
    return steps


def build_register_pools(network: NetworkConfig) -> List[Step]:
    return [RegisterPools(list(network.tokens))]


def build_update_reward_farm(network: NetworkConfig) -> List[Step]:
    return [
        Wire(
            "update-reward-farm-config",
            [WiringCall("$RewardFarm", "setConfig", "$REWARD_FARM_CONFIG")],
        ),
        UpdatePoolsReward(),
    ]


def build_position_farm_reward_distributor(network: NetworkConfig) -> List[Step]:
    return [
        Deploy(
            "PositionFarmRewardDistributor",
            constructor=OrderedDict(signer="$DISTRIBUTOR_SIGNER", EQU="$EQU"),
            wiring=[
                WiringCall(
                    "$EQU", "setMinter", "$PositionFarmRewardDistributor", True, contract="MultiMinter"
                )
            ],
        )
    ]


def build_reward_collector_v2(network: NetworkConfig) -> List[Step]:
    return [
        Deploy(
            "RewardCollectorV2",
            constructor=OrderedDict(
                router="$Router",
                EQU="$EQU",
                EFC="$EFC",
                distributor="$PositionFarmRewardDistributor",
            ),
            wiring=[
                WiringCall(
                    "$PositionFarmRewardDistributor", "setCollector", "$RewardCollectorV2", True
                ),
                WiringCall("$Router", "registerPlugin", "$RewardCollectorV2", repeat_on_reuse=False),
            ],
        )
    ]


def build_pool_indexer(network: NetworkConfig) -> List[Step]:
    return [Deploy("PoolIndexer", constructor=OrderedDict(poolFactory="$PoolFactory"))]


def build_deregister_position_farm_reward_distributor(network: NetworkConfig) -> List[Step]:
    return [
        Wire(
            "deregister-position-farm-reward-distributor",
            [
                WiringCall(
                    "$EQU", "setMinter", "$PositionFarmRewardDistributor", False, contract="MultiMinter"
                ),
                WiringCall(
                    "$PositionFarmRewardDistributor", "setCollector", "$RewardCollectorV2", False
                ),
            ],
        )
    ]


def build_farm_reward_distributor_v2(network: NetworkConfig) -> List[Step]:
    return [
        Deploy(
            "FarmRewardDistributorV2",
            constructor=OrderedDict(
                signer="$DISTRIBUTOR_SIGNER",
                EFC="$EFC",
                distributorV1="$PositionFarmRewardDistributor",
                feeDistributor="$FeeDistributor",
                poolIndexer="$PoolIndexer",
            ),
            wiring=[
                WiringCall(
                    "$EQU", "setMinter", "$FarmRewardDistributorV2", True, contract="MultiMinter"
                )
            ],
        )
    ]


def build_reward_collector_v3(network: NetworkConfig) -> List[Step]:
    return [
        Deploy(
            "RewardCollectorV3",
            constructor=OrderedDict(
                router="$Router",
                EQU="$EQU",
                EFC="$EFC",
                distributor="$FarmRewardDistributorV2",
            ),
            wiring=[
                WiringCall("$FarmRewardDistributorV2", "setCollector", "$RewardCollectorV3", True),
                WiringCall("$Router", "registerPlugin", "$RewardCollectorV3", repeat_on_reuse=False),
            ],
        )
    ]


def build_order_book_assistant(network: NetworkConfig) -> List[Step]:
    return [
        Deploy(
            "OrderBookAssistant",
            constructor=OrderedDict(orderBook="$OrderBook"),
            wiring=[WiringCall("$OrderBook", "updateOrderExecutor", "$OrderBookAssistant", True)],
        )
    ]


def build_mixed_executor_v2(network: NetworkConfig) -> List[Step]:
    return [
        Deploy(
            "MixedExecutorV2",
            constructor=OrderedDict(
                poolIndexer="$PoolIndexer",
                liquidator="$Liquidator",
                positionRouter="$PositionRouter",
                priceFeed="$PriceFeed",
                orderBook="$OrderBook",
            ),
            wiring=[
                WiringCall("$PriceFeed", "setUpdater", "$MixedExecutorV2", True),
                WiringCall("$OrderBook", "updateOrderExecutor", "$MixedExecutorV2", True),
                WiringCall("$PositionRouter", "updatePositionExecutor", "$MixedExecutorV2", True),
                WiringCall("$Liquidator", "updateExecutor", "$MixedExecutorV2", True),
                *_set_executor_calls("$MixedExecutorV2", network),
            ],
        )
    ]


def build_executor_assistant(network: NetworkConfig) -> List[Step]:
    return [
        Deploy("ExecutorAssistant", constructor=OrderedDict(positionRouter="$PositionRouter"))
    ]


def build_token_vertex_updater_governor(network: NetworkConfig) -> List[Step]:
    return [
        Deploy(
            "TokenVertexUpdaterGovernor",
            constructor=OrderedDict(
                admin="$deployer", proposer="$deployer", poolFactory="$PoolFactory"
            ),
            wiring=[
                # governance moves once; the handover cannot be repeated
                WiringCall(
                    "$PoolFactory",
                    "changeGov",
                    "$TokenVertexUpdaterGovernor",
                    repeat_on_reuse=False,
                ),
                WiringCall(
                    "$TokenVertexUpdaterGovernor",
                    "execute",
                    "$PoolFactory",
                    0,
                    "$encode:PoolFactory.acceptGov",
                    repeat_on_reuse=False,
                ),
            ],
        )
    ]


def build_update_mixed_executor(network: NetworkConfig) -> List[Step]:
    return [
        Wire(
            "update-mixed-executor",
            [WiringCall("$MixedExecutor", "setTokens", _token_references(network))],
        )
    ]


def build_upgrade_mixed_executor(network: NetworkConfig) -> List[Step]:
    return [
        Deploy(
            "MixedExecutor",
            constructor=OrderedDict(
                liquidator="$Liquidator",
                positionRouter="$PositionRouter",
                priceFeed="$PriceFeed",
                orderBook="$OrderBook",
            ),
            skip_if_present=False,
            wiring=[
                WiringCall("$MixedExecutor", "setTokens", _token_references(network)),
                *_set_executor_calls("$MixedExecutor", network),
                WiringCall("$PoolFactory", "grantRole", ROLE_POSITION_LIQUIDATOR, "$MixedExecutor"),
                WiringCall(
                    "$PoolFactory", "grantRole", ROLE_LIQUIDITY_POSITION_LIQUIDATOR, "$MixedExecutor"
                ),
                WiringCall("$OrderBook", "updateOrderExecutor", "$MixedExecutor", True),
                WiringCall("$PositionRouter", "updatePositionExecutor", "$MixedExecutor", True),
                WiringCall("$PriceFeed", "setUpdater", "$MixedExecutor", True),
            ],
        )
    ]


def build_update_token_configs(network: NetworkConfig) -> List[Step]:
    return [UpdateTokenConfigs(list(network.tokens))]


def build_mint_connectors(network: NetworkConfig) -> List[Step]:
    items = [MintConnector(index, identity) for index, identity in enumerate(network.connectors)]
    return [Batch("mint-connectors", items)]


def build_deploy_tokens(network: NetworkConfig) -> List[Step]:
    items = [DeployToken(token) for token in network.tokens if not token.address]
    return [Batch("deploy-tokens", items)]


PipelineBuilder = Callable[[NetworkConfig], List[Step]]

CORE_PIPELINE = "core"

# in the order they are meant to be run on a new network
PIPELINES: Dict[str, PipelineBuilder] = OrderedDict(
    [
        ("deploy-tokens", build_deploy_tokens),
        (CORE_PIPELINE, build_core),
        ("register-pools", build_register_pools),
        ("update-reward-farm", build_update_reward_farm),
        ("position-farm-reward-distributor", build_position_farm_reward_distributor),
        ("reward-collector-v2", build_reward_collector_v2),
        ("pool-indexer", build_pool_indexer),
        (
            "deregister-position-farm-reward-distributor",
            build_deregister_position_farm_reward_distributor,
        ),
        ("farm-reward-distributor-v2", build_farm_reward_distributor_v2),
        ("reward-collector-v3", build_reward_collector_v3),
        ("order-book-assistant", build_order_book_assistant),
        ("mixed-executor-v2", build_mixed_executor_v2),
        ("executor-assistant", build_executor_assistant),
        ("token-vertex-updater-governor", build_token_vertex_updater_governor),
        ("update-mixed-executor", build_update_mixed_executor),
        ("upgrade-mixed-executor", build_upgrade_mixed_executor),
        ("update-token-configs", build_update_token_configs),
        ("mint-connectors", build_mint_connectors),
    ]
)

# pipelines that may start a ledger instead of requiring one
LEDGER_STARTING_PIPELINES = {CORE_PIPELINE, "deploy-tokens"}


def build_pipeline(name: str, network: NetworkConfig) -> List[Step]:
    try:
        builder = PIPELINES[name]
    except KeyError:
        raise InvalidConfigurationError(
            f"Unknown pipeline '{name}'; expected one of {', '.join(PIPELINES)}"
        )
    return builder(network)


def open_ledger(name: str, chain_id: int, directory=None) -> Ledger:
    """Opens the ledger a pipeline runs against."""
    if name not in LEDGER_STARTING_PIPELINES:
        return Ledger.load(chain_id, directory)

    ledger = Ledger.open(chain_id, directory)
    if name == CORE_PIPELINE:
        bootstrapped = [n for n in (*LIBRARIES, *CORE_CONTRACTS) if n in ledger]
        if bootstrapped:
            raise LedgerExistsError(f"Deployment is already published for chain_id {chain_id}.")
    return ledger


def find_deploy_step(contract: str, network: NetworkConfig) -> Optional[Deploy]:
    """The first catalogued deploy step recording `contract`, searching pipelines in run order."""
    for builder in PIPELINES.values():
        for step in builder(network):
            items = step.items if isinstance(step, Batch) else [step]
            for item in items:
                if isinstance(item, Deploy) and item.name == contract:
                    return item
    return None
