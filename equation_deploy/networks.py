from pathlib import Path
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from equation_deploy.constants import NETWORK_PARAMS_DIR, RATE_BASE
from equation_deploy.errors import FormatError, InvalidConfigurationError, UndefinedNetworkError
from equation_deploy.percent import parse_percent
from equation_deploy.utils import _load_yaml

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# names usable as $CONSTANT variables in pipeline steps
NETWORK_CONSTANTS = frozenset(
    [
        "USD",
        "USD_PRICE_FEED",
        "WETH",
        "MIN_EXECUTION_FEE",
        "MIN_ORDER_BOOK_EXECUTION_FEE",
        "MIN_POSITION_ROUTER_EXECUTION_FEE",
        "DISTRIBUTOR_SIGNER",
        "FARM_MINT_TIME",
        "UNISWAP_V3_FACTORY",
        "UNISWAP_V3_POSITION_MANAGER",
        "SEQUENCER_UPTIME_FEED",
        "EFC_BASE_URL",
        "EFC_MEMBER_BASE_URL",
        "TOKENS",
        "MIXED_EXECUTORS",
        "REWARD_FARM_CONFIG",
        "LOCKUP_REWARD_MULTIPLIERS",
    ]
)


#
# Per-asset configuration
#


class TokenConfig(NamedTuple):
    """Risk parameters of a market; field order matches the on-chain struct."""

    min_margin_per_liquidity_position: int
    max_risk_rate_per_liquidity_position: int
    max_leverage_per_liquidity_position: int
    min_margin_per_position: int
    max_leverage_per_position: int
    liquidation_fee_rate_per_position: int
    liquidation_execution_fee: int
    interest_rate: int
    max_funding_rate: int


class TokenFeeRateConfig(NamedTuple):
    trading_fee_rate: int
    liquidity_fee_rate: int
    protocol_fee_rate: int
    referral_return_fee_rate: int
    referral_parent_return_fee_rate: int
    referral_discount_rate: int


class VertexConfig(NamedTuple):
    balance_rate: int
    premium_rate: int


class TokenPriceConfig(NamedTuple):
    max_price_impact_liquidity: int
    liquidation_vertex_index: int
    vertices: Tuple[VertexConfig, ...]


class TokenDescriptor(NamedTuple):
    name: str
    address: Optional[ChecksumAddress]
    price_feed: ChecksumAddress
    max_cumulative_delta_diff: int
    rewards_per_second: int
    config: TokenConfig
    fee_rate_config: TokenFeeRateConfig
    price_config: TokenPriceConfig


class RewardFarmConfig(NamedTuple):
    liquidity_rate: int
    risk_buffer_fund_liquidity_rate: int
    referral_token_rate: int
    referral_parent_token_rate: int


class LockupRewardMultiplier(NamedTuple):
    period: int
    multiplier: int


class NetworkConfig(NamedTuple):
    """Immutable parameters of one network, built once at process start."""

    name: str
    chain_id: int
    usd: ChecksumAddress
    usd_price_feed: ChecksumAddress
    weth: ChecksumAddress
    min_execution_fee: int
    min_order_book_execution_fee: int
    min_position_router_execution_fee: int
    distributor_signer: Optional[ChecksumAddress]
    mixed_executors: Tuple[ChecksumAddress, ...]
    tokens: Tuple[TokenDescriptor, ...]
    connectors: Tuple[ChecksumAddress, ...]
    farm_mint_time: int
    uniswap_v3_factory: ChecksumAddress
    uniswap_v3_position_manager: ChecksumAddress
    sequencer_uptime_feed: Optional[ChecksumAddress]
    efc_base_url: str
    efc_member_base_url: str
    reward_farm_config: RewardFarmConfig
    lockup_reward_multipliers: Tuple[LockupRewardMultiplier, ...]

    def token(self, name: str) -> TokenDescriptor:
        for token in self.tokens:
            if token.name == name:
                return token
        raise UndefinedNetworkError(f"token {name} is not defined for network {self.name}")

    @property
    def token_addresses(self) -> List[ChecksumAddress]:
        return [token.address for token in self.tokens if token.address]

    def constants(self) -> Dict[str, Any]:
        """Values exposed to pipelines as `$UPPER_CASE` variables (see NETWORK_CONSTANTS)."""
        return {
            "USD": self.usd,
            "USD_PRICE_FEED": self.usd_price_feed,
            "WETH": self.weth,
            "MIN_EXECUTION_FEE": self.min_execution_fee,
            "MIN_ORDER_BOOK_EXECUTION_FEE": self.min_order_book_execution_fee,
            "MIN_POSITION_ROUTER_EXECUTION_FEE": self.min_position_router_execution_fee,
            "DISTRIBUTOR_SIGNER": self.distributor_signer,
            "FARM_MINT_TIME": self.farm_mint_time,
            "UNISWAP_V3_FACTORY": self.uniswap_v3_factory,
            "UNISWAP_V3_POSITION_MANAGER": self.uniswap_v3_position_manager,
            "SEQUENCER_UPTIME_FEED": self.sequencer_uptime_feed,
            "EFC_BASE_URL": self.efc_base_url,
            "EFC_MEMBER_BASE_URL": self.efc_member_base_url,
            "TOKENS": self.token_addresses,
            "MIXED_EXECUTORS": list(self.mixed_executors),
            "REWARD_FARM_CONFIG": self.reward_farm_config,
            "LOCKUP_REWARD_MULTIPLIERS": list(self.lockup_reward_multipliers),
        }


#
# Validation
#


def _fail(location: str, message: str) -> None:
    raise InvalidConfigurationError(f"{location}: {message}")


def _validate_rate(location: str, value: int) -> None:
    if not 0 <= value <= RATE_BASE:
        _fail(location, f"rate {value} is outside [0, {RATE_BASE}]")


def validate_token_config(location: str, config: TokenConfig) -> None:
    _validate_rate(f"{location}.max_risk_rate_per_liquidity_position",
                   config.max_risk_rate_per_liquidity_position)
    _validate_rate(f"{location}.liquidation_fee_rate_per_position",
                   config.liquidation_fee_rate_per_position)
    _validate_rate(f"{location}.interest_rate", config.interest_rate)
    _validate_rate(f"{location}.max_funding_rate", config.max_funding_rate)
    if config.max_leverage_per_liquidity_position <= 0:
        _fail(f"{location}.max_leverage_per_liquidity_position", "leverage must be positive")
    if config.max_leverage_per_position <= 0:
        _fail(f"{location}.max_leverage_per_position", "leverage must be positive")
    for field in ("min_margin_per_liquidity_position", "min_margin_per_position",
                  "liquidation_execution_fee"):
        if getattr(config, field) < 0:
            _fail(f"{location}.{field}", "amount cannot be negative")


def validate_fee_rate_config(location: str, config: TokenFeeRateConfig) -> None:
    for field, value in config._asdict().items():
        _validate_rate(f"{location}.{field}", value)

    # these shares decompose the trading fee
    shares = (
        config.liquidity_fee_rate
        + config.protocol_fee_rate
        + config.referral_return_fee_rate
        + config.referral_parent_return_fee_rate
    )
    if shares > RATE_BASE:
        _fail(location, f"fee shares sum to {shares}, exceeding the trading fee ({RATE_BASE})")


def validate_price_config(location: str, config: TokenPriceConfig) -> None:
    vertices = [VertexConfig(*vertex) for vertex in config.vertices]
    if len(vertices) < 2:
        _fail(f"{location}.vertices", "at least two vertices are required")
    if vertices[0] != VertexConfig(0, 0):
        _fail(f"{location}.vertices[0]", "curve must start at (0%, 0%)")
    if vertices[-1].balance_rate != RATE_BASE:
        _fail(f"{location}.vertices[{len(vertices) - 1}]", "curve must end at a 100% balance rate")

    for index, (previous, current) in enumerate(zip(vertices, vertices[1:]), start=1):
        if current.balance_rate <= previous.balance_rate:
            _fail(f"{location}.vertices[{index}]", "balance rates must be strictly increasing")
        if current.premium_rate < previous.premium_rate:
            _fail(f"{location}.vertices[{index}]", "premium rates must be non-decreasing")
    for index, vertex in enumerate(vertices):
        _validate_rate(f"{location}.vertices[{index}].premium_rate", vertex.premium_rate)

    if not 0 <= config.liquidation_vertex_index < len(vertices):
        _fail(
            f"{location}.liquidation_vertex_index",
            f"index {config.liquidation_vertex_index} is out of range for {len(vertices)} vertices",
        )
    if config.max_price_impact_liquidity <= 0:
        _fail(f"{location}.max_price_impact_liquidity", "must be positive")


def validate_reward_farm_config(location: str, config: RewardFarmConfig) -> None:
    for field, value in config._asdict().items():
        _validate_rate(f"{location}.{field}", value)
    total = sum(config)
    if total > RATE_BASE:
        _fail(location, f"rates sum to {total}, exceeding {RATE_BASE}")


def validate_network(config: NetworkConfig) -> None:
    """Checks the invariants of a network and of every asset it configures."""
    name = config.name
    names = [token.name for token in config.tokens]
    duplicates = {n for n in names if names.count(n) > 1}
    if duplicates:
        _fail(name, f"duplicate tokens {sorted(duplicates)}")

    for token in config.tokens:
        location = f"{name}.{token.name}"
        validate_token_config(f"{location}.token_config", token.config)
        validate_fee_rate_config(f"{location}.token_fee_rate_config", token.fee_rate_config)
        validate_price_config(f"{location}.token_price_config", token.price_config)
    validate_reward_farm_config(f"{name}.reward_farm_config", config.reward_farm_config)


#
# Parsing
#


def _address(location: str, value: Any) -> ChecksumAddress:
    try:
        return to_checksum_address(value)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(f"{location}: '{value}' is not a valid address")


def _optional_address(location: str, value: Any) -> Optional[ChecksumAddress]:
    if value is None:
        return None
    return _address(location, value)


def _rate(location: str, value: Any) -> int:
    """Rates are written as percent strings; bare integers are taken as already encoded."""
    if isinstance(value, bool):
        _fail(location, f"'{value}' is not a rate")
    if isinstance(value, int):
        return value
    try:
        return parse_percent(value)
    except FormatError as e:
        raise InvalidConfigurationError(f"{location}: {e}")


def _int(location: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(location, f"'{value}' is not an integer")
    return value


def _field(location: str, data: Dict[str, Any], key: str) -> Any:
    try:
        return data[key]
    except (KeyError, TypeError):
        raise InvalidConfigurationError(f"{location}: missing '{key}'")


RATE_FIELDS = {
    "max_risk_rate_per_liquidity_position",
    "liquidation_fee_rate_per_position",
    "interest_rate",
    "max_funding_rate",
}


def _build_token_config(location: str, data: Dict[str, Any]) -> TokenConfig:
    values = dict()
    for field in TokenConfig._fields:
        raw = _field(location, data, field)
        converter = _rate if field in RATE_FIELDS else _int
        values[field] = converter(f"{location}.{field}", raw)
    return TokenConfig(**values)


def _build_rates(location: str, data: Dict[str, Any], fields: Iterable[str]) -> Dict[str, int]:
    return {field: _rate(f"{location}.{field}", _field(location, data, field)) for field in fields}


def _build_price_config(location: str, data: Dict[str, Any]) -> TokenPriceConfig:
    vertices = list()
    for index, vertex in enumerate(_field(location, data, "vertices") or []):
        vertex_location = f"{location}.vertices[{index}]"
        vertices.append(
            VertexConfig(
                balance_rate=_rate(vertex_location, _field(vertex_location, vertex, "balance_rate")),
                premium_rate=_rate(vertex_location, _field(vertex_location, vertex, "premium_rate")),
            )
        )
    return TokenPriceConfig(
        max_price_impact_liquidity=_int(
            location, _field(location, data, "max_price_impact_liquidity")
        ),
        liquidation_vertex_index=_int(location, _field(location, data, "liquidation_vertex_index")),
        vertices=tuple(vertices),
    )


def _build_lockup_multiplier(location: str, data: Dict[str, Any]) -> LockupRewardMultiplier:
    return LockupRewardMultiplier(
        period=_int(f"{location}.period", _field(location, data, "period")),
        multiplier=_int(f"{location}.multiplier", _field(location, data, "multiplier")),
    )


def build_token(network: str, data: Dict[str, Any]) -> TokenDescriptor:
    name = _field(network, data, "name")
    location = f"{network}.{name}"

    config = _build_token_config(f"{location}.token_config",
                                 _field(location, data, "token_config"))
    fee_rate_config = TokenFeeRateConfig(
        **_build_rates(
            f"{location}.token_fee_rate_config",
            _field(location, data, "token_fee_rate_config"),
            TokenFeeRateConfig._fields,
        )
    )
    price_config = _build_price_config(f"{location}.token_price_config",
                                       _field(location, data, "token_price_config"))

    return TokenDescriptor(
        name=name,
        address=_optional_address(f"{location}.address", data.get("address")),
        price_feed=_address(f"{location}.price_feed", _field(location, data, "price_feed")),
        max_cumulative_delta_diff=_int(
            f"{location}.max_cumulative_delta_diff", data.get("max_cumulative_delta_diff", 0)
        ),
        rewards_per_second=_int(f"{location}.rewards_per_second",
                                data.get("rewards_per_second", 0)),
        config=config,
        fee_rate_config=fee_rate_config,
        price_config=price_config,
    )


def build_network(data: Dict[str, Any]) -> NetworkConfig:
    """Builds and validates a network configuration from its parameters file contents."""
    name = _field("network", data, "name")

    tokens = tuple(build_token(name, token) for token in data.get("tokens") or [])
    reward_farm_config = RewardFarmConfig(
        **_build_rates(
            f"{name}.reward_farm_config",
            _field(name, data, "reward_farm_config"),
            RewardFarmConfig._fields,
        )
    )
    min_execution_fee = _int(f"{name}.min_execution_fee", _field(name, data, "min_execution_fee"))
    network = NetworkConfig(
        name=name,
        chain_id=_int(f"{name}.chain_id", _field(name, data, "chain_id")),
        usd=_address(f"{name}.usd", _field(name, data, "usd")),
        usd_price_feed=_address(f"{name}.usd_price_feed",
                                data.get("usd_price_feed") or ZERO_ADDRESS),
        weth=_address(f"{name}.weth", _field(name, data, "weth")),
        min_execution_fee=min_execution_fee,
        min_order_book_execution_fee=_int(
            f"{name}.min_order_book_execution_fee",
            data.get("min_order_book_execution_fee", min_execution_fee),
        ),
        min_position_router_execution_fee=_int(
            f"{name}.min_position_router_execution_fee",
            data.get("min_position_router_execution_fee", min_execution_fee),
        ),
        distributor_signer=_optional_address(f"{name}.distributor_signer",
                                             data.get("distributor_signer")),
        mixed_executors=tuple(
            _address(f"{name}.mixed_executors", e) for e in data.get("mixed_executors") or []
        ),
        tokens=tokens,
        connectors=tuple(_address(f"{name}.connectors", c) for c in data.get("connectors") or []),
        farm_mint_time=_int(f"{name}.farm_mint_time", _field(name, data, "farm_mint_time")),
        uniswap_v3_factory=_address(f"{name}.uniswap_v3_factory",
                                    _field(name, data, "uniswap_v3_factory")),
        uniswap_v3_position_manager=_address(f"{name}.uniswap_v3_position_manager",
                                             _field(name, data, "uniswap_v3_position_manager")),
        sequencer_uptime_feed=_optional_address(f"{name}.sequencer_uptime_feed",
                                                data.get("sequencer_uptime_feed")),
        efc_base_url=data.get("efc_base_url", ""),
        efc_member_base_url=data.get("efc_member_base_url", ""),
        reward_farm_config=reward_farm_config,
        lockup_reward_multipliers=tuple(
            _build_lockup_multiplier(f"{name}.lockup_reward_multipliers[{index}]", m)
            for index, m in enumerate(data.get("lockup_reward_multipliers") or [])
        ),
    )
    validate_network(network)
    return network


class NetworkRegistry:
    """
    Static per-network parameters.

    Built once at process start and passed into pipelines; every network is
    validated on construction so a bad constant fails before any remote call.
    """

    def __init__(self, networks: Iterable[NetworkConfig]):
        self._networks: Dict[str, NetworkConfig] = dict()
        for network in networks:
            if network.name in self._networks:
                raise InvalidConfigurationError(f"network {network.name} is defined twice")
            validate_network(network)
            self._networks[network.name] = network

    @classmethod
    def from_dicts(cls, items: Iterable[Dict[str, Any]]) -> "NetworkRegistry":
        return cls(networks=[build_network(data) for data in items])

    @classmethod
    def from_directory(cls, directory: Path = NETWORK_PARAMS_DIR) -> "NetworkRegistry":
        filepaths = sorted(Path(directory).glob("*.yml"))
        return cls.from_dicts(_load_yaml(filepath) for filepath in filepaths)

    def resolve(self, name: str) -> NetworkConfig:
        try:
            return self._networks[name]
        except KeyError:
            raise UndefinedNetworkError(f"network {name} is not defined")

    def for_chain_id(self, chain_id: int) -> NetworkConfig:
        for network in self._networks.values():
            if network.chain_id == chain_id:
                return network
        raise UndefinedNetworkError(f"no network defined for chain_id {chain_id}")

    @property
    def names(self) -> List[str]:
        return list(self._networks)

    def __contains__(self, name: str) -> bool:
        return name in self._networks


def load_registry() -> NetworkRegistry:
    return NetworkRegistry.from_directory(NETWORK_PARAMS_DIR)
