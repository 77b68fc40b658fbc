import json
from pathlib import Path
from typing import Any, Dict, List

import yaml

from olas_deployment.constants import (
    ARTIFACTS_DIR,
    CHAIN_IDS,
    PIPELINES_DIR,
    TESTNET_CHAIN_IDS,
)


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def _load_config_file(filepath: Path) -> dict:
    """Loads a JSON or YAML file, depending on its suffix."""
    filepath = Path(filepath)
    if filepath.suffix in (".yml", ".yaml"):
        data = _load_yaml(filepath)
    else:
        data = _load_json(filepath)
    return data or dict()


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the verification artifact file."""
    artifact_config = config.get("artifacts") or dict()
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        deployment = config.get("deployment") or dict()
        filename = f"{deployment.get('chain')}-{deployment.get('name')}.json"
    return artifact_dir / filename


def pipeline_filepath(chain: str, name: str) -> Path:
    """Returns the filepath of a shipped pipeline."""
    p = PIPELINES_DIR / chain / f"{name}.yml"
    if not p.exists():
        raise ValueError(f"No pipeline '{name}' found for chain '{chain}'")
    return p


def list_pipelines() -> List[Path]:
    """Returns the filepaths of all shipped pipelines."""
    return sorted(PIPELINES_DIR.glob("*/*.yml"))


def validate_chain_id(chain: str, chain_id: int, network_chain_id: int) -> None:
    """
    Checks that a pipeline declared for `chain` targets the network
    the deployment is connected to.
    """
    if int(chain_id) != int(network_chain_id):
        raise ValueError(
            f"chain_id in pipeline ({chain_id}) does not match "
            f"chain_id of current network ({network_chain_id})."
        )
    known = (CHAIN_IDS.get(chain), TESTNET_CHAIN_IDS.get(chain))
    if int(chain_id) not in known:
        print(f"WARNING: chain_id {chain_id} is not a known chain id for {chain}.")


def to_json_value(value: Any) -> Any:
    """Converts a resolved argument into a JSON-serializable value."""
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value
