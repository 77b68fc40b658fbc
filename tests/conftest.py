import json

import pytest
from eth_utils import to_checksum_address

from olas_deployment.graph import DeploymentBackend, DeploymentGraph
from olas_deployment.store import GlobalConfigStore

# Common constants
ETHEREUM_CHAIN_ID = 1
POOL_ID = "0x" + "ab" * 32


# Utility functions
def make_address(n: int) -> str:
    return to_checksum_address(f"0x{n:040x}")


def registries_config(steps=None):
    """A small ethereum pipeline: AgentRegistry reads the ComponentRegistry address."""
    default_steps = [
        {
            "ComponentRegistry": {
                "output": "componentRegistryAddress",
                "constructor": {"_name": "agent components", "_symbol": "MECHCOMP", "_baseURI": "$componentBaseURI"},
                "types": ["string", "string", "string"],
            }
        },
        {
            "AgentRegistry": {
                "output": "agentRegistryAddress",
                "constructor": {
                    "_name": "agent",
                    "_symbol": "MECH",
                    "_baseURI": "$agentBaseURI",
                    "_componentRegistry": "$componentRegistryAddress",
                },
            }
        },
        {
            "RegistriesManager": {
                "output": "registriesManagerAddress",
                "constructor": {
                    "_componentRegistry": "$componentRegistryAddress",
                    "_agentRegistry": "$agentRegistryAddress",
                },
                "types": ["address", "address"],
            }
        },
    ]
    return {
        "deployment": {"name": "registries", "chain": "ethereum", "chain_id": ETHEREUM_CHAIN_ID},
        "steps": default_steps if steps is None else steps,
    }


class FakeBackend(DeploymentBackend):
    """Records deployments and hands out sequential addresses."""

    def __init__(self, deployer=None, fail_on=()):
        self.deployer = deployer
        self.fail_on = set(fail_on)
        self.deployments = list()
        self.transactions = list()
        self._nonce = 0

    def get_address(self):
        return self.deployer

    def deploy(self, contract_name, constructor_args):
        if contract_name in self.fail_on:
            raise RuntimeError("execution reverted")
        self._nonce += 1
        address = make_address(0xDE0000 + self._nonce)
        self.deployments.append((contract_name, list(constructor_args), address))
        return address

    def transact(self, contract_name, address, method, args):
        if contract_name in self.fail_on:
            raise RuntimeError("execution reverted")
        self.transactions.append((contract_name, address, method, list(args)))

    @property
    def deployed_names(self):
        return [name for name, _, _ in self.deployments]


# Fixtures
@pytest.fixture()
def deployer():
    return make_address(0xD1)


@pytest.fixture()
def backend(deployer):
    return FakeBackend(deployer=deployer)


@pytest.fixture()
def registries_seed():
    return {
        "componentBaseURI": "https://gateway.autonolas.tech/ipfs/",
        "agentBaseURI": "https://gateway.autonolas.tech/ipfs/",
    }


@pytest.fixture()
def registries_store(registries_seed):
    return GlobalConfigStore.from_mapping(registries_seed, chain="ethereum")


@pytest.fixture()
def registries_graph():
    return DeploymentGraph.from_config(registries_config())


@pytest.fixture()
def globals_file(tmp_path, registries_seed):
    filepath = tmp_path / "globals.json"
    with open(filepath, "w") as file:
        json.dump(registries_seed, file)
    return filepath
