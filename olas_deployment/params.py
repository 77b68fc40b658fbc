import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, List

from olas_deployment.constants import INITIALIZE_METHOD
from olas_deployment.encoding import ProxyInitPayload, function_signature
from olas_deployment.errors import ArityMismatch, InvalidPipeline
from olas_deployment.store import GlobalConfigStore


class VariableContext:
    def __init__(self, step_name: str, constants: typing.Dict[str, Any] = None):
        self.step_name = step_name
        self.constants = constants or dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, store: GlobalConfigStore) -> Any:
        raise NotImplementedError

    def references(self) -> List[str]:
        """Store keys this variable reads."""
        return []

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise InvalidPipeline(
                f"Constant '{constant_name}' used by {context.step_name} "
                "not found in pipeline file."
            )
        self.constant_name = constant_name

    def __repr__(self) -> str:
        return f"${self.constant_name}"

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a pipeline constant."""
        return value.isupper()

    def resolve(self, store: GlobalConfigStore) -> Any:
        return self.constant_value


class StoreKey(Variable):
    """A reference to a value in the config store, written by the seed or an earlier step."""

    def __init__(self, key: str):
        if not key:
            raise InvalidPipeline("Empty store key reference.")
        self.key = key

    def __repr__(self) -> str:
        return f"${self.key}"

    def resolve(self, store: GlobalConfigStore) -> Any:
        return store.get(self.key)

    def references(self) -> List[str]:
        return [self.key]


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if Constant.is_constant(variable):
        return Constant(variable, context)
    return StoreKey(variable)


def process_raw_value(value: Any, context: VariableContext) -> Any:
    """Turns `$name` strings (also inside lists) into variables; anything else is a literal."""
    if isinstance(value, (list, tuple)):
        return [process_raw_value(v, context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, context)

    return value


def process_raw_values(values: typing.Mapping, context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in (values or dict()).items():
        processed_parameters[name] = process_raw_value(value, context)

    return processed_parameters


def resolve_param(value: Any, store: GlobalConfigStore) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [resolve_param(v, store) for v in value]

    if isinstance(value, Variable):
        return value.resolve(store)

    return value  # literally a value


def resolve_params(parameters: OrderedDict, store: GlobalConfigStore) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = resolve_param(value, store)

    return resolved_parameters


def referenced_keys(value: Any) -> List[str]:
    """Returns the store keys read by a processed value, in order of appearance."""
    if isinstance(value, list):
        keys = list()
        for v in value:
            keys.extend(referenced_keys(v))
        return keys

    if isinstance(value, Variable):
        return value.references()

    return []


class ProxyInitializer(Variable):
    """
    The calldata a proxy executes against its implementation at construction time.

    Resolves to `ProxyInitPayload.call_data`; the full two-layer payload is
    available through `build`.
    """

    def __init__(
        self,
        param_types: List[str],
        param_values: List[Any],
        method: str = INITIALIZE_METHOD,
        wrap: bool = True,
        context: VariableContext = None,
    ):
        context = context or VariableContext(step_name="proxy")
        step_name = context.step_name
        if len(param_types) != len(param_values):
            raise ArityMismatch(
                len(param_types), len(param_values), context=f"{step_name} initializer"
            )
        self.param_types = list(param_types)
        self.method = method
        self.wrap = wrap
        self.param_values = [process_raw_value(v, context) for v in param_values]

    def __repr__(self) -> str:
        if self.wrap:
            return f"{INITIALIZE_METHOD}(bytes({','.join(self.param_types)}))"
        return function_signature(self.method, self.param_types)

    @classmethod
    def from_config(cls, data: typing.Mapping, context: VariableContext) -> "ProxyInitializer":
        data = data or dict()
        unknown = set(data) - {"method", "wrap", "types", "values"}
        if unknown:
            raise InvalidPipeline(
                f"Unknown initializer field(s) {sorted(unknown)} for {context.step_name}."
            )
        return cls(
            param_types=data.get("types") or [],
            param_values=data.get("values") or [],
            method=data.get("method", INITIALIZE_METHOD),
            wrap=bool(data.get("wrap", True)),
            context=context,
        )

    def build(self, store: GlobalConfigStore) -> ProxyInitPayload:
        values = [resolve_param(v, store) for v in self.param_values]
        return ProxyInitPayload.build(
            self.param_types, values, method=self.method, wrap=self.wrap
        )

    def resolve(self, store: GlobalConfigStore) -> Any:
        return self.build(store).call_data

    def references(self) -> List[str]:
        return referenced_keys(self.param_values)
