import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Iterable, List, Optional

import yaml
from eth_typing import ChecksumAddress

from olas_deployment.constants import CHAIN_IDS, DEPLOYER_KEY, PROXY_CONSTRUCTOR_TYPES
from olas_deployment.encoding import ProxyInitPayload, normalize_values
from olas_deployment.errors import (
    ArityMismatch,
    DeploymentFailed,
    InvalidPipeline,
    KeyAlreadySet,
    MissingKey,
    PipelineError,
)
from olas_deployment.params import (
    ProxyInitializer,
    VariableContext,
    process_raw_value,
    process_raw_values,
    referenced_keys,
    resolve_param,
    resolve_params,
)
from olas_deployment.store import GlobalConfigStore
from olas_deployment.utils import _load_yaml, get_artifact_filepath

STEP_OUTPUT_KEY = "output"
STEP_CONSTRUCTOR_KEY = "constructor"
STEP_TYPES_KEY = "types"
STEP_CONTRACT_TYPE_KEY = "contract_type"
STEP_PROXY_KEY = "proxy"
STEP_TRANSACT_KEY = "transact"


class DeploymentBackend(ABC):
    """The chain-submission collaborator: nonces, gas and confirmations live behind it."""

    def get_address(self) -> Optional[ChecksumAddress]:
        """Address of the account signing deployments, if known."""
        return None

    @abstractmethod
    def deploy(self, contract_name: str, constructor_args: List[Any]) -> ChecksumAddress:
        """Deploys a contract, waits for confirmation and returns its address."""
        raise NotImplementedError

    @abstractmethod
    def transact(
        self, contract_name: str, address: ChecksumAddress, method: str, args: List[Any]
    ) -> Any:
        """Calls `method` on an already deployed contract."""
        raise NotImplementedError


class DeploymentReceipt(typing.NamedTuple):
    index: int
    name: str
    contract_type: str
    address: ChecksumAddress
    arguments: List[Any]
    payload: Optional[ProxyInitPayload] = None


# Steps


class Step(ABC):
    def __init__(self, index: int, name: str, contract_type: Optional[str] = None):
        self.index = index
        self.name = name
        self.contract_type = contract_type or name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.index}, {self.name})"

    @abstractmethod
    def referenced_keys(self) -> List[str]:
        raise NotImplementedError

    def output_keys(self) -> List[str]:
        return []

    @abstractmethod
    def execute(
        self, store: GlobalConfigStore, backend: DeploymentBackend
    ) -> Optional[DeploymentReceipt]:
        raise NotImplementedError


class DeploymentStep(Step):
    """Deploys one contract and stores its address under `output_key`."""

    def __init__(
        self,
        index: int,
        name: str,
        output_key: str,
        parameters: OrderedDict = None,
        types: Optional[List[str]] = None,
        contract_type: Optional[str] = None,
    ):
        super().__init__(index=index, name=name, contract_type=contract_type)
        if not output_key:
            raise InvalidPipeline(f"Deployment step {name} has no output key.")
        self.output_key = output_key
        self.parameters = parameters or OrderedDict()
        if types is not None and len(types) != len(self.parameters):
            raise ArityMismatch(len(types), len(self.parameters), context=f"{name} constructor")
        self.types = list(types) if types is not None else None

    def referenced_keys(self) -> List[str]:
        return referenced_keys(list(self.parameters.values()))

    def output_keys(self) -> List[str]:
        return [self.output_key]

    def resolve(self, store: GlobalConfigStore) -> OrderedDict:
        """Resolves the named constructor parameters against the store."""
        resolved = resolve_params(self.parameters, store)
        if self.types is not None:
            normalized = normalize_values(self.types, list(resolved.values()))
            resolved = OrderedDict(zip(resolved.keys(), normalized))
        return resolved

    def constructor_arguments(self, store: GlobalConfigStore) -> List[Any]:
        return list(self.resolve(store).values())

    def payload(self, store: GlobalConfigStore) -> Optional[ProxyInitPayload]:
        return None

    def execute(self, store: GlobalConfigStore, backend: DeploymentBackend) -> DeploymentReceipt:
        if self.output_key in store:
            raise KeyAlreadySet(self.output_key, store.get(self.output_key))
        resolved = self.resolve(store)
        _print_parameters(self, resolved)

        arguments = list(resolved.values())
        try:
            address = backend.deploy(self.contract_type, arguments)
        except PipelineError:
            raise
        except Exception as e:
            raise DeploymentFailed(self.name, e) from e

        store.set(self.output_key, address)
        print(f"(i) {self.name} deployed at {address} -> {self.output_key}")
        return DeploymentReceipt(
            index=self.index,
            name=self.name,
            contract_type=self.contract_type,
            address=address,
            arguments=arguments,
            payload=self.payload(store),
        )


class ProxyDeploymentStep(DeploymentStep):
    """
    Deploys a proxy whose constructor takes the implementation address and
    the initialization calldata it executes atomically.
    """

    def __init__(
        self,
        index: int,
        name: str,
        output_key: str,
        implementation: Any,
        initializer: ProxyInitializer,
        contract_type: Optional[str] = None,
    ):
        parameters = OrderedDict(_logic=implementation, _data=initializer)
        super().__init__(
            index=index,
            name=name,
            output_key=output_key,
            parameters=parameters,
            types=PROXY_CONSTRUCTOR_TYPES,
            contract_type=contract_type,
        )
        self.implementation = implementation
        self.initializer = initializer

    def payload(self, store: GlobalConfigStore) -> ProxyInitPayload:
        return self.initializer.build(store)


class TransactionStep(Step):
    """
    A post-deployment call on an existing contract, e.g. setting an address
    that could not be passed at construction time. Produces no output key.
    """

    def __init__(
        self,
        index: int,
        name: str,
        contract_type: str,
        address: Any,
        method: str,
        args: List[Any] = None,
    ):
        super().__init__(index=index, name=name, contract_type=contract_type)
        if address is None:
            raise InvalidPipeline(f"Transaction step {name} has no address.")
        if not method:
            raise InvalidPipeline(f"Transaction step {name} has no method.")
        self.address = address
        self.method = method
        self.args = args or []

    def referenced_keys(self) -> List[str]:
        return referenced_keys([self.address, *self.args])

    def execute(self, store: GlobalConfigStore, backend: DeploymentBackend) -> None:
        address = resolve_param(self.address, store)
        args = [resolve_param(arg, store) for arg in self.args]
        pretty_args = ", ".join(str(a) for a in args)
        print(f"\n({self.index}) Transacting {self.contract_type}[{address}].{self.method}({pretty_args})")
        try:
            backend.transact(self.contract_type, address, self.method, args)
        except PipelineError:
            raise
        except Exception as e:
            raise DeploymentFailed(f"{self.name} ({self.method})", e) from e
        return None


def _print_parameters(step: DeploymentStep, resolved: OrderedDict) -> None:
    if not resolved:
        print(f"\n({step.index}) Deploying {step.name} with no constructor parameters")
        return
    print(f"\n({step.index}) Deploying {step.name} ({step.contract_type}) with parameters")
    for name, value in resolved.items():
        if isinstance(value, bytes):
            value = "0x" + value.hex()
        print(f"\t{name}={value}")


def _step_from_config(index: int, step_info: Any, constants: typing.Dict) -> Step:
    if not isinstance(step_info, dict) or len(step_info) != 1:
        raise InvalidPipeline(f"Malformed step at position {index}.")

    name = list(step_info.keys())[0]  # only one entry
    data = step_info[name] or dict()
    if not isinstance(data, dict):
        raise InvalidPipeline(f"Malformed step data for {name}.")
    context = VariableContext(step_name=name, constants=constants)
    contract_type = data.get(STEP_CONTRACT_TYPE_KEY)

    if STEP_TRANSACT_KEY in data:
        transact = data[STEP_TRANSACT_KEY] or dict()
        return TransactionStep(
            index=index,
            name=name,
            contract_type=transact.get("contract", contract_type),
            address=process_raw_value(transact.get("address"), context),
            method=transact.get("method"),
            args=process_raw_value(transact.get("args") or [], context),
        )

    if STEP_PROXY_KEY in data:
        proxy_data = data[STEP_PROXY_KEY] or dict()
        if STEP_CONSTRUCTOR_KEY in data:
            raise InvalidPipeline(
                f"{name} declares both constructor parameters and a proxy; "
                "proxy constructor parameters are implicit."
            )
        if "implementation" not in proxy_data:
            raise InvalidPipeline(f"Proxy step {name} has no implementation.")
        return ProxyDeploymentStep(
            index=index,
            name=name,
            output_key=data.get(STEP_OUTPUT_KEY),
            implementation=process_raw_value(proxy_data["implementation"], context),
            initializer=ProxyInitializer.from_config(proxy_data.get("initializer"), context),
            contract_type=contract_type,
        )

    return DeploymentStep(
        index=index,
        name=name,
        output_key=data.get(STEP_OUTPUT_KEY),
        parameters=process_raw_values(data.get(STEP_CONSTRUCTOR_KEY), context),
        types=data.get(STEP_TYPES_KEY),
        contract_type=contract_type,
    )


class DeploymentGraph:
    """
    Ordered steps for one chain. The declared order is the dependency order:
    step i may only read keys from the seed or from steps 0..i-1.
    """

    def __init__(
        self,
        name: str,
        chain: str,
        chain_id: int,
        steps: List[Step],
        artifact_filepath: Optional[Path] = None,
    ):
        self.name = name
        self.chain = chain
        self.chain_id = int(chain_id)
        self.steps = list(steps)
        self.artifact_filepath = artifact_filepath

        labels = [step.name for step in self.deployment_steps]
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            raise InvalidPipeline(f"Duplicate deployment step(s) in {name}: {duplicates}")

    def __repr__(self) -> str:
        return f"DeploymentGraph({self.chain}/{self.name}, steps={len(self.steps)})"

    def __len__(self) -> int:
        return len(self.steps)

    @classmethod
    def from_config(cls, config: typing.Dict) -> "DeploymentGraph":
        if not isinstance(config, dict):
            raise InvalidPipeline("Pipeline file must be a mapping.")
        deployment = config.get("deployment")
        if not deployment:
            raise InvalidPipeline("deployment is not set in pipeline file.")
        chain = deployment.get("chain")
        if chain not in CHAIN_IDS:
            raise InvalidPipeline(f"Unsupported chain '{chain}' in pipeline file.")
        chain_id = deployment.get("chain_id")
        if not chain_id:
            raise InvalidPipeline("chain_id is not set in pipeline file.")
        steps_config = config.get("steps")
        if not steps_config:
            raise InvalidPipeline("Pipeline file missing 'steps' field.")

        constants = config.get("constants") or dict()
        steps = [
            _step_from_config(index, step_info, constants)
            for index, step_info in enumerate(steps_config)
        ]
        return cls(
            name=deployment.get("name", chain),
            chain=chain,
            chain_id=chain_id,
            steps=steps,
            artifact_filepath=get_artifact_filepath(config),
        )

    @classmethod
    def from_yaml(cls, filepath: Path) -> "DeploymentGraph":
        try:
            config = _load_yaml(filepath)
        except yaml.YAMLError as e:
            raise InvalidPipeline(f"Malformed pipeline file {filepath}: {e}")
        return cls.from_config(config)

    @property
    def deployment_steps(self) -> List[DeploymentStep]:
        return [step for step in self.steps if isinstance(step, DeploymentStep)]

    def get_step(self, name: str) -> DeploymentStep:
        for step in self.deployment_steps:
            if step.name == name:
                return step
        raise KeyError(name)

    def validate(self, available_keys: Iterable[str], start: int = 0) -> None:
        """
        Walks the steps without executing them; raises on the first forward
        reference (MissingKey) or on an output key that is already taken.
        """
        available = set(available_keys)
        for step in self.steps[start:]:
            for key in step.referenced_keys():
                if key not in available:
                    raise MissingKey(key).at_step(step)
            for key in step.output_keys():
                if key in available:
                    raise KeyAlreadySet(key).at_step(step)
                available.add(key)

    def execute(
        self,
        store: GlobalConfigStore,
        backend: DeploymentBackend,
        start: int = 0,
        checkpoint: Optional[Path] = None,
    ) -> List[DeploymentReceipt]:
        """
        Executes steps `start..n-1` strictly in order. The first failure
        aborts the run; keys written by earlier steps stay in the store.
        """
        if store.chain and store.chain != self.chain:
            raise InvalidPipeline(
                f"Store for chain '{store.chain}' cannot run {self.chain} pipeline {self.name}."
            )
        if not 0 <= start <= len(self.steps):
            raise InvalidPipeline(f"Start step {start} is out of range for {self.name}.")

        deployer = backend.get_address()
        if deployer and DEPLOYER_KEY not in store:
            store.set(DEPLOYER_KEY, deployer)

        self.validate(store.keys(), start=start)

        receipts = list()
        for step in self.steps[start:]:
            try:
                receipt = step.execute(store, backend)
            except PipelineError as error:
                error.at_step(step)
                print(f"\n(!) {error}")
                raise
            if receipt is not None:
                receipts.append(receipt)
            if checkpoint:
                store.write(checkpoint)

        print(f"\n(i) {self.chain}/{self.name}: executed {len(self.steps) - start} step(s).")
        return receipts
