import copy

import pytest
from eth_utils import to_checksum_address

from equation_deploy.constants import ARBITRUM_GOERLI, NETWORK_PARAMS_DIR, RATE_BASE
from equation_deploy.errors import InvalidConfigurationError, UndefinedNetworkError
from equation_deploy.networks import (
    NETWORK_CONSTANTS,
    ZERO_ADDRESS,
    NetworkRegistry,
    TokenConfig,
    TokenPriceConfig,
    VertexConfig,
    build_network,
)
from equation_deploy.utils import _load_yaml


@pytest.fixture
def params():
    return copy.deepcopy(_load_yaml(NETWORK_PARAMS_DIR / f"{ARBITRUM_GOERLI}.yml"))


def _unshare(token):
    """YAML anchors share one mapping between tokens; give this token its own copy."""
    for key in ("token_config", "token_fee_rate_config", "token_price_config"):
        token[key] = copy.deepcopy(token[key])
    return token


def test_packaged_network(network):
    assert network.name == ARBITRUM_GOERLI
    assert network.chain_id == 421613
    assert network.usd == to_checksum_address("0x58e7F6b126eCC1A694B19062317b60Cf474E3D17")
    assert network.usd_price_feed == ZERO_ADDRESS
    assert network.distributor_signer is None
    assert [token.name for token in network.tokens] == ["ETH", "BTC", "ARB", "LINK"]
    assert len(network.mixed_executors) == 2
    assert len(network.connectors) == 8


def test_fee_floors_default_to_min_execution_fee(network):
    assert network.min_execution_fee == 300_000_000_000_000
    assert network.min_order_book_execution_fee == network.min_execution_fee
    assert network.min_position_router_execution_fee == network.min_execution_fee


def test_rates_are_decoded(network):
    eth = network.token("ETH")
    assert eth.fee_rate_config.trading_fee_rate == 50_000
    assert eth.fee_rate_config.referral_discount_rate == 90_000_000
    assert eth.config.max_risk_rate_per_liquidity_position == 99_500_000
    assert eth.config.interest_rate == 1_250
    assert eth.config.min_margin_per_position == 10_000_000
    assert network.reward_farm_config.liquidity_rate == 28_000_000
    assert sum(network.reward_farm_config) == RATE_BASE


def test_token_config_renders_struct_order(network):
    config = network.token("BTC").config
    assert isinstance(config, TokenConfig)
    assert tuple(config) == (
        10_000_000,
        99_500_000,
        200,
        10_000_000,
        200,
        200_000,
        600_000,
        1_250,
        150_000,
    )


def test_price_curve(network):
    price_config = network.token("ARB").price_config
    assert price_config.vertices[0] == VertexConfig(0, 0)
    assert price_config.vertices[-1] == VertexConfig(RATE_BASE, 10_000_000)
    assert price_config.liquidation_vertex_index == 4
    assert price_config.max_price_impact_liquidity == 10_000_000_000_000


def test_constants(network):
    constants = network.constants()
    assert set(constants) == NETWORK_CONSTANTS
    assert constants["USD"] == network.usd
    assert constants["DISTRIBUTOR_SIGNER"] is None
    assert constants["TOKENS"] == [token.address for token in network.tokens]
    assert [tuple(m) for m in constants["LOCKUP_REWARD_MULTIPLIERS"]] == [(30, 1), (60, 2), (90, 3)]


def test_resolve_unknown_network(registry):
    with pytest.raises(UndefinedNetworkError, match="network mainnet is not defined"):
        registry.resolve("mainnet")


def test_undefined_network_is_a_key_error(registry):
    with pytest.raises(KeyError):
        registry.resolve("mainnet")


def test_for_chain_id(registry, network):
    assert registry.for_chain_id(421613) == network
    with pytest.raises(UndefinedNetworkError):
        registry.for_chain_id(1)


def test_unknown_token(network):
    with pytest.raises(UndefinedNetworkError):
        network.token("DOGE")


def test_network_defined_twice(params):
    with pytest.raises(InvalidConfigurationError, match="defined twice"):
        NetworkRegistry.from_dicts([params, copy.deepcopy(params)])


def test_fee_shares_cannot_exceed_trading_fee(params):
    token = _unshare(params["tokens"][1])
    token["token_fee_rate_config"]["protocol_fee_rate"] = "45%"
    with pytest.raises(InvalidConfigurationError) as error:
        build_network(params)
    assert "BTC.token_fee_rate_config" in str(error.value)


def test_rate_above_one_hundred_percent(params):
    token = _unshare(params["tokens"][0])
    token["token_fee_rate_config"]["referral_discount_rate"] = "100.5%"
    with pytest.raises(InvalidConfigurationError, match="referral_discount_rate"):
        build_network(params)


def test_malformed_percent_names_the_field(params):
    token = _unshare(params["tokens"][2])
    token["token_config"]["interest_rate"] = "0.00125"
    with pytest.raises(InvalidConfigurationError) as error:
        build_network(params)
    assert "ARB.token_config.interest_rate" in str(error.value)


def test_balance_rates_must_increase(params):
    token = _unshare(params["tokens"][0])
    token["token_price_config"]["vertices"][2]["balance_rate"] = "4%"
    with pytest.raises(InvalidConfigurationError, match="strictly increasing"):
        build_network(params)


def test_premium_rates_must_not_decrease(params):
    token = _unshare(params["tokens"][0])
    token["token_price_config"]["vertices"][3]["premium_rate"] = "0.01%"
    with pytest.raises(InvalidConfigurationError, match="non-decreasing"):
        build_network(params)


def test_curve_must_start_at_origin(params):
    token = _unshare(params["tokens"][0])
    token["token_price_config"]["vertices"][0]["premium_rate"] = "0.01%"
    with pytest.raises(InvalidConfigurationError, match="start"):
        build_network(params)


def test_curve_must_end_at_full_balance(params):
    token = _unshare(params["tokens"][0])
    token["token_price_config"]["vertices"].pop()
    with pytest.raises(InvalidConfigurationError, match="100%"):
        build_network(params)


def test_liquidation_vertex_index_must_be_valid(params):
    token = _unshare(params["tokens"][3])
    token["token_price_config"]["liquidation_vertex_index"] = 7
    with pytest.raises(InvalidConfigurationError, match="LINK.token_price_config"):
        build_network(params)


def test_reward_farm_rates_cannot_exceed_total(params):
    params["reward_farm_config"]["referral_parent_token_rate"] = "3%"
    with pytest.raises(InvalidConfigurationError, match="reward_farm_config"):
        build_network(params)


def test_invalid_address(params):
    params["weth"] = "0x1234"
    with pytest.raises(InvalidConfigurationError, match="weth"):
        build_network(params)


def test_missing_field(params):
    del params["usd"]
    with pytest.raises(InvalidConfigurationError, match="missing 'usd'"):
        build_network(params)


def test_duplicate_tokens(params):
    params["tokens"].append(copy.deepcopy(params["tokens"][0]))
    with pytest.raises(InvalidConfigurationError, match="duplicate tokens"):
        build_network(params)


def test_token_without_address(params):
    del params["tokens"][0]["address"]
    network = build_network(params)
    assert network.token("ETH").address is None
    assert network.token_addresses == [token.address for token in network.tokens[1:]]


def test_optional_signer(params):
    params["distributor_signer"] = "0x00000000000000000000000000000000005167e7"
    network = build_network(params)
    assert network.distributor_signer == to_checksum_address(
        "0x00000000000000000000000000000000005167e7"
    )


def test_registry_validates_built_networks(network):
    eth = network.token("ETH")
    curve = TokenPriceConfig(
        max_price_impact_liquidity=1,
        liquidation_vertex_index=9,
        vertices=((0, 0), (5, 1), (3, 2)),
    )
    bad = network._replace(tokens=(eth._replace(price_config=curve),))
    with pytest.raises(InvalidConfigurationError, match="ETH.token_price_config"):
        NetworkRegistry([bad])


def test_registry_rejects_out_of_range_liquidation_vertex(network):
    eth = network.token("ETH")
    price_config = eth.price_config._replace(liquidation_vertex_index=9)
    bad = network._replace(tokens=(eth._replace(price_config=price_config),))
    with pytest.raises(InvalidConfigurationError, match="liquidation_vertex_index"):
        NetworkRegistry([bad])


def test_registry_accepts_valid_networks(network):
    assert NetworkRegistry([network]).resolve(network.name) == network


def test_malformed_lockup_multiplier(params):
    del params["lockup_reward_multipliers"][1]["multiplier"]
    with pytest.raises(InvalidConfigurationError, match=r"lockup_reward_multipliers\[1\]"):
        build_network(params)
