import json

import eth_abi
import pytest
from conftest import POOL_ID, FakeBackend, make_address

from olas_deployment.constants import PIPELINES_DIR
from olas_deployment.encoding import decode_init_call, decode_inner
from olas_deployment.errors import MissingKey
from olas_deployment.graph import DeploymentGraph
from olas_deployment.store import GlobalConfigStore
from olas_deployment.verification import (
    VerificationArgsBuilder,
    VerificationRecord,
    read_verification_artifacts,
    write_verification_artifacts,
)

OLAS = make_address(0x01A5)
DISPENSER = make_address(0xD15)


def processor_graph():
    config = {
        "deployment": {"name": "deposit-processors", "chain": "ethereum", "chain_id": 1},
        "steps": [
            {
                "EthereumDepositProcessor": {
                    "output": "ethereumDepositProcessorAddress",
                    "constructor": {
                        "_olas": "$olasAddress",
                        "_dispenser": "$dispenserAddress",
                        "_chainId": "$l1ChainId",
                    },
                    "types": ["address", "address", "uint256"],
                }
            }
        ],
    }
    return DeploymentGraph.from_config(config)


@pytest.fixture()
def balancer_seed():
    return {
        "olasAddress": make_address(0x01),
        "nativeTokenAddress": make_address(0x02),
        "maxOracleSlippage": 10,
        "minUpdateTimePeriod": 900,
        "balancerVaultAddress": make_address(0x03),
        "balancerPoolId": POOL_ID,
        "buyBackBurnerAddress": make_address(0x04),
        "maxBuyBackSlippage": 5,
    }


@pytest.fixture()
def balancer_graph():
    return DeploymentGraph.from_yaml(PIPELINES_DIR / "gnosis" / "buy_back_burner_balancer.yml")


def test_arguments_follow_schema_order():
    store = GlobalConfigStore.from_mapping(
        {
            "l1ChainId": 1,
            "dispenserAddress": DISPENSER,
            "olasAddress": OLAS,
            "ethereumDepositProcessorAddress": make_address(0xE7),
        }
    )
    builder = VerificationArgsBuilder(graphs=[processor_graph()], stores={"ethereum": store})
    assert builder.build_args("EthereumDepositProcessor", "ethereum") == [OLAS, DISPENSER, 1]


def test_missing_key_is_not_defaulted():
    store = GlobalConfigStore.from_mapping({"olasAddress": OLAS, "l1ChainId": 1})
    builder = VerificationArgsBuilder(graphs=[processor_graph()], stores={"ethereum": store})
    with pytest.raises(MissingKey) as e:
        builder.build_args("EthereumDepositProcessor", "ethereum")
    assert e.value.key == "dispenserAddress"
    assert e.value.step.name == "EthereumDepositProcessor"


def test_unknown_contract_or_chain():
    store = GlobalConfigStore()
    builder = VerificationArgsBuilder(graphs=[processor_graph()], stores={"ethereum": store})
    with pytest.raises(ValueError):
        builder.build_args("Treasury", "ethereum")
    with pytest.raises(ValueError):
        builder.build_args("EthereumDepositProcessor", "gnosis")


def test_proxy_arguments_match_deployment(balancer_graph, balancer_seed):
    store = GlobalConfigStore.from_mapping(balancer_seed, chain="gnosis")
    backend = FakeBackend()
    receipts = balancer_graph.execute(store, backend)
    deployed = receipts[-1]
    assert deployed.name == "BuyBackBurnerProxy"

    builder = VerificationArgsBuilder(graphs=[balancer_graph], stores={"gnosis": store})
    args = builder.build_args("BuyBackBurnerProxy", "gnosis")

    assert args == deployed.arguments
    assert args == backend.deployments[-1][1]
    implementation, call_data = args
    assert implementation == balancer_seed["buyBackBurnerAddress"]
    assert call_data == deployed.payload.call_data

    inner = decode_init_call(call_data)
    assert inner == deployed.payload.inner_payload
    addresses, pool_id, slippage = decode_inner(["address[]", "bytes32", "uint256"], inner)
    assert [a.lower() for a in addresses] == [
        balancer_seed["olasAddress"].lower(),
        balancer_seed["nativeTokenAddress"].lower(),
        store.get("balancerPriceOracleAddress").lower(),
        balancer_seed["balancerVaultAddress"].lower(),
    ]
    assert pool_id == bytes.fromhex(POOL_ID[2:])
    assert slippage == 5


def test_build_all(balancer_graph, balancer_seed):
    store = GlobalConfigStore.from_mapping(balancer_seed, chain="gnosis")
    balancer_graph.execute(store, FakeBackend())
    builder = VerificationArgsBuilder(graphs=[balancer_graph], stores={"gnosis": store})

    records = builder.build_all("gnosis")
    assert [r.name for r in records] == ["BalancerPriceOracle", "BuyBackBurnerProxy"]
    oracle, proxy = records
    assert oracle.address == store.get("balancerPriceOracleAddress")
    assert oracle.chain_id == 100
    assert proxy.types == ["address", "bytes"]
    assert proxy.encoded_arguments == "0x" + eth_abi.encode(proxy.types, proxy.arguments).hex()


def test_record_without_types():
    record = VerificationRecord(
        chain="ethereum",
        chain_id=1,
        name="Dispenser",
        contract_type="Dispenser",
        address=make_address(0xD15),
        arguments=[OLAS, 8],
    )
    assert record.encoded_arguments is None
    assert record.to_json()["arguments"] == [OLAS, 8]


def test_write_and_merge_artifacts(tmp_path):
    first = VerificationRecord("ethereum", 1, "Tokenomics", "Tokenomics", OLAS, [])
    second = VerificationRecord(
        "ethereum", 1, "TokenomicsProxy", "TokenomicsProxy", DISPENSER, [OLAS, b"\x01\x02"], ["address", "bytes"]
    )
    filepath = tmp_path / "artifacts" / "ethereum-tokenomics.json"

    assert write_verification_artifacts([first], filepath) == filepath
    assert write_verification_artifacts([second], filepath) == filepath

    data = read_verification_artifacts(filepath)
    assert list(data) == ["1"]
    assert sorted(data["1"]) == ["Tokenomics", "TokenomicsProxy"]
    assert data["1"]["TokenomicsProxy"]["arguments"] == [OLAS, "0x0102"]


def test_overlapping_artifacts_are_not_overwritten(tmp_path):
    record = VerificationRecord("ethereum", 1, "Tokenomics", "Tokenomics", OLAS, [])
    filepath = tmp_path / "ethereum-tokenomics.json"
    write_verification_artifacts([record], filepath)
    original = filepath.read_text()

    moved = record._replace(address=DISPENSER)
    unmerged = write_verification_artifacts([moved], filepath)

    assert unmerged == tmp_path / "ethereum-tokenomics.unmerged.json"
    assert filepath.read_text() == original
    with open(unmerged) as file:
        assert json.load(file)["1"]["Tokenomics"]["address"] == DISPENSER


def test_no_records(tmp_path):
    filepath = tmp_path / "empty.json"
    assert write_verification_artifacts([], filepath) == filepath
    assert not filepath.exists()
