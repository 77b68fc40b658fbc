import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml

from olas_deployment.constants import STANDARD_ARTIFACT_JSON_FORMAT
from olas_deployment.errors import KeyAlreadySet, MissingKey
from olas_deployment.utils import _load_config_file, to_json_value


class GlobalConfigStore:
    """
    Append-only key -> value record for a single pipeline run on a single chain.

    Seed values (pre-existing addresses, chain ids, tunables) are bulk-loaded once
    with `seed`. Every later write goes through `set`, which refuses to overwrite
    a key that already holds a value.
    """

    class Sealed(Exception):
        """Raised when seeding a store that steps have already written to"""

    def __init__(self, chain: Optional[str] = None):
        self.chain = chain
        self._values: Dict[str, Any] = dict()
        self._seed_keys = set()
        self._written: List[str] = list()

    def __repr__(self) -> str:
        return f"GlobalConfigStore(chain={self.chain!r}, keys={len(self._values)})"

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], chain: Optional[str] = None):
        store = cls(chain=chain)
        store.seed(mapping)
        return store

    @classmethod
    def from_file(cls, filepath: Path, chain: Optional[str] = None) -> "GlobalConfigStore":
        """Loads a seed config file (JSON or YAML) into a new store."""
        try:
            data = _load_config_file(filepath)
        except yaml.YAMLError as e:
            raise ValueError(f"Malformed seed config at {filepath}: {e}")
        if not isinstance(data, dict):
            raise ValueError(f"Seed config at {filepath} must be a key -> value mapping.")
        return cls.from_mapping(data, chain=chain)

    def seed(self, mapping: Mapping[str, Any]) -> None:
        if self._written:
            raise self.Sealed(
                f"Cannot seed a store after {len(self._written)} key(s) were written by steps."
            )
        for key, value in mapping.items():
            self._values[str(key)] = value
            self._seed_keys.add(str(key))

    def get(self, key: str) -> Any:
        try:
            return self._values[key]
        except KeyError:
            raise MissingKey(key)

    def set(self, key: str, value: Any) -> None:
        if key in self._values:
            raise KeyAlreadySet(key, self._values[key])
        self._values[key] = value
        self._written.append(key)

    def keys(self) -> Iterable[str]:
        return self._values.keys()

    def seed_keys(self) -> List[str]:
        return sorted(self._seed_keys)

    def written_keys(self) -> List[str]:
        """Keys written by steps during this run, in write order."""
        return list(self._written)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def write(self, filepath: Path) -> Path:
        """Persists the full store so that a later run can resume from it."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        data = {key: to_json_value(value) for key, value in self._values.items()}
        with open(filepath, "w") as file:
            json.dump(data, file, **STANDARD_ARTIFACT_JSON_FORMAT)
        return filepath
