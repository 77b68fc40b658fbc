import json
import typing
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from eth_typing import ChecksumAddress

from olas_deployment.constants import STANDARD_ARTIFACT_JSON_FORMAT
from olas_deployment.encoding import encode_inner
from olas_deployment.errors import MissingKey
from olas_deployment.graph import DeploymentGraph
from olas_deployment.store import GlobalConfigStore
from olas_deployment.utils import _load_json, to_json_value

ChainName = str
ContractName = str


class VerificationRecord(typing.NamedTuple):
    """The literal constructor argument tuple of one deployed contract."""

    chain: ChainName
    chain_id: int
    name: ContractName
    contract_type: str
    address: Optional[ChecksumAddress]
    arguments: List[Any]
    types: Optional[List[str]] = None

    @property
    def encoded_arguments(self) -> Optional[str]:
        """ABI-encoded constructor arguments, as block explorers expect them."""
        if self.types is None:
            return None
        return "0x" + encode_inner(self.types, self.arguments).hex()

    def to_json(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "contract_type": self.contract_type,
            "arguments": to_json_value(self.arguments),
            "types": self.types,
            "encoded_arguments": self.encoded_arguments,
        }


class VerificationArgsBuilder:
    """
    Rebuilds constructor argument tuples from the final config store of each chain.

    Arguments are produced by the same step declarations that were used at
    deployment time, so proxy calldata is re-encoded with the identical type list
    and value order. Unresolved keys are never defaulted.
    """

    def __init__(
        self,
        graphs: Sequence[DeploymentGraph],
        stores: Mapping[ChainName, GlobalConfigStore],
    ):
        self.graphs = list(graphs)
        self.stores = dict(stores)

    def _find_step(self, contract_name: ContractName, chain: ChainName):
        for graph in self.graphs:
            if graph.chain != chain:
                continue
            try:
                return graph, graph.get_step(contract_name)
            except KeyError:
                continue
        raise ValueError(f"No deployment of {contract_name} declared for chain '{chain}'.")

    def _get_store(self, chain: ChainName) -> GlobalConfigStore:
        try:
            return self.stores[chain]
        except KeyError:
            raise ValueError(f"No config store for chain '{chain}'.")

    def build_args(self, contract_name: ContractName, chain: ChainName) -> List[Any]:
        """Returns the ordered constructor arguments of a deployed contract."""
        _, step = self._find_step(contract_name, chain)
        store = self._get_store(chain)
        try:
            return step.constructor_arguments(store)
        except MissingKey as error:
            raise error.at_step(step)

    def build_record(self, contract_name: ContractName, chain: ChainName) -> VerificationRecord:
        graph, step = self._find_step(contract_name, chain)
        store = self._get_store(chain)
        try:
            address = store.get(step.output_key)
            arguments = step.constructor_arguments(store)
        except MissingKey as error:
            raise error.at_step(step)
        return VerificationRecord(
            chain=chain,
            chain_id=graph.chain_id,
            name=step.name,
            contract_type=step.contract_type,
            address=address,
            arguments=arguments,
            types=step.types,
        )

    def build_all(self, chain: ChainName) -> List[VerificationRecord]:
        """Builds records for every deployment declared for `chain`, in step order."""
        records = list()
        for graph in self.graphs:
            if graph.chain != chain:
                continue
            for step in graph.deployment_steps:
                records.append(self.build_record(step.name, chain))
        return records


def write_verification_artifacts(
    records: List[VerificationRecord], filepath: Path, silent: bool = False
) -> Path:
    """Writes verification records to a JSON artifact keyed by chain id and contract."""
    if not records:
        print("No verification records provided.")
        return filepath

    records = sorted(records, key=lambda record: (str(record.chain_id), record.name))

    data = defaultdict(dict)
    for record in records:
        data[str(record.chain_id)][record.name] = record.to_json()

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    # If the file already exists, attempt to merge the data, if not create a new file
    if filepath.exists():
        if not silent:
            print(f"Updating existing verification artifact at {filepath}.")
        existing_data = _load_json(filepath)

        overlapping = [
            name
            for chain_id, entries in data.items()
            for name in entries
            if name in existing_data.get(chain_id, {})
        ]
        if overlapping:
            filepath = filepath.with_suffix(".unmerged.json")
            if not silent:
                print(
                    f"Cannot merge entries already present for {overlapping}.\n"
                    f"Writing to {filepath} to avoid overwriting existing data."
                )
        else:
            for chain_id, entries in data.items():
                existing_data.setdefault(chain_id, {}).update(entries)
            data = existing_data
    elif not silent:
        print(f"Creating new verification artifact at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_ARTIFACT_JSON_FORMAT)

    return filepath


def read_verification_artifacts(filepath: Path) -> Dict[str, Dict[str, Dict[str, Any]]]:
    return _load_json(filepath)
