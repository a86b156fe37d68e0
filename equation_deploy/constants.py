from pathlib import Path

from eth_utils import keccak

import equation_deploy

#
# Filesystem
#

PACKAGE_DIR = Path(equation_deploy.__file__).parent
NETWORK_PARAMS_DIR = PACKAGE_DIR / "network_params"
DEPLOYMENTS_DIR = Path.cwd() / "deployments"

STANDARD_LEDGER_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}

#
# Networks
#

ARBITRUM_GOERLI = "arbitrum-goerli"

SUPPORTED_NETWORKS = [ARBITRUM_GOERLI]

#
# Fixed-point rates
#

# 1% == 1_000_000, 100% == 100_000_000
RATE_BASE_PER_PERCENT = 10**6
RATE_BASE = 100 * RATE_BASE_PER_PERCENT

#
# Roles
#

ROLE_POSITION_LIQUIDATOR = keccak(text="ROLE_POSITION_LIQUIDATOR")
ROLE_LIQUIDITY_POSITION_LIQUIDATOR = keccak(text="ROLE_LIQUIDITY_POSITION_LIQUIDATOR")

#
# Core bootstrap
#

# Deployed before the pool creation code can be linked
LIBRARIES = ["PoolUtil", "FundingRateUtil", "PriceUtil", "PositionUtil", "LiquidityPositionUtil"]

# Deployed back to back from consecutive deployer nonces; order matters
CORE_CONTRACTS = [
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

EFC_CAP_ARCHITECT = 100
EFC_CAP_CONNECTOR = 100
EFC_CAP_MEMBER = 100

REWARD_FARM_MINT_RATE = 110_000_000
FEE_DISTRIBUTOR_WITHDRAWAL_PERIOD = 7

POOL_CONTRACT = "Pool"
