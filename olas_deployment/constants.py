from pathlib import Path

import olas_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(olas_deployment.__file__).parent
PIPELINES_DIR = DEPLOYMENT_DIR / "pipelines"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

STANDARD_ARTIFACT_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}

#
# Chains
#

ETHEREUM = "ethereum"
ARBITRUM = "arbitrum"
OPTIMISM = "optimism"
BASE = "base"
MODE = "mode"
POLYGON = "polygon"
GNOSIS = "gnosis"
CELO = "celo"

CHAIN_IDS = {
    ETHEREUM: 1,
    ARBITRUM: 42161,
    OPTIMISM: 10,
    BASE: 8453,
    MODE: 34443,
    POLYGON: 137,
    GNOSIS: 100,
    CELO: 42220,
}

# testnets share the chain name of their mainnet
TESTNET_CHAIN_IDS = {
    ETHEREUM: 11155111,
    ARBITRUM: 421614,
    OPTIMISM: 11155420,
    BASE: 84532,
    MODE: 919,
    POLYGON: 80002,
    GNOSIS: 10200,
    CELO: 44787,
}

SUPPORTED_CHAINS = list(CHAIN_IDS)

#
# Contracts
#

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Proxies execute this call atomically in their constructor
INITIALIZE_METHOD = "initialize"
INITIALIZE_SIGNATURE = "initialize(bytes)"

PROXY_CONSTRUCTOR_TYPES = ["address", "bytes"]

# store key holding the address of the account that signs the deployments
DEPLOYER_KEY = "deployer"
