"""
ABI encoding of proxy initialization payloads and constructor argument tuples.

Proxy-initialized contracts receive their configuration in two layers: the
implementation-specific parameter tuple is ABI-encoded on its own (the inner
payload), and that byte string becomes the sole argument of an
`initialize(bytes)` call (the calldata). The proxy constructor executes the
calldata against the implementation, so both layers must be reproduced exactly
when the same deployment is verified later on.
"""
import typing
from typing import Any, List, Sequence

import eth_abi
from eth_abi.exceptions import DecodingError, EncodingError, ParseError
from eth_abi.grammar import ABIType, TupleType, parse
from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address
from hexbytes import HexBytes

from olas_deployment.constants import INITIALIZE_METHOD, INITIALIZE_SIGNATURE
from olas_deployment.errors import ArityMismatch, InvalidValue

# (base, sub) pairs of the basic ABI types used by the deployment pipelines
SUPPORTED_BASIC_TYPES = {
    ("address", None),
    ("bytes", None),
    ("bytes", 32),
    ("string", None),
    ("uint", 256),
}


class ProxyInitPayload(typing.NamedTuple):
    """The two layers of a proxy initialization: parameter tuple and the call wrapping it."""

    inner_payload: bytes
    call_data: bytes

    @classmethod
    def build(
        cls,
        param_types: Sequence[str],
        param_values: Sequence[Any],
        method: str = INITIALIZE_METHOD,
        wrap: bool = True,
    ) -> "ProxyInitPayload":
        """
        Builds the payload for a proxy initializer.

        With `wrap` the inner tuple is passed as `bytes` to `initialize(bytes)`;
        otherwise the tuple is used directly as the arguments of `method`.
        """
        inner = encode_inner(param_types, param_values)
        if wrap:
            if method != INITIALIZE_METHOD:
                raise InvalidValue(
                    f"Wrapped payloads are always passed to {INITIALIZE_SIGNATURE}, got '{method}'"
                )
            return cls(inner_payload=inner, call_data=encode_init_call(inner))
        selector = function_signature_to_4byte_selector(function_signature(method, param_types))
        return cls(inner_payload=inner, call_data=bytes(selector) + inner)

    @property
    def call_data_hex(self) -> str:
        return "0x" + self.call_data.hex()


def function_signature(method: str, param_types: Sequence[str]) -> str:
    return f"{method}({','.join(param_types)})"


def _parse_type(abi_type: str) -> ABIType:
    try:
        node = parse(abi_type)
        node.validate()
    except (ParseError, ValueError) as e:
        raise InvalidValue(f"Invalid ABI type '{abi_type}': {e}")
    _check_supported(node, abi_type)
    return node


def _check_supported(node: ABIType, abi_type: str) -> None:
    if isinstance(node, TupleType):
        for component in node.components:
            _check_supported(component, abi_type)
        return
    if (node.base, node.sub) not in SUPPORTED_BASIC_TYPES:
        raise InvalidValue(f"Unsupported ABI type '{node.to_type_str()}' in '{abi_type}'")


def _normalize_value(node: ABIType, value: Any) -> Any:
    """Coerces a resolved config value into what the ABI codec expects for `node`."""
    type_str = node.to_type_str()
    if node.is_array:
        if not isinstance(value, (list, tuple)):
            raise InvalidValue(f"Expected a list for '{type_str}', got {value!r}")
        dimension = node.arrlist[-1]
        if dimension and len(value) != dimension[0]:
            raise ArityMismatch(dimension[0], len(value), context=type_str)
        return [_normalize_value(node.item_type, v) for v in value]

    if isinstance(node, TupleType):
        if not isinstance(value, (list, tuple)):
            raise InvalidValue(f"Expected a tuple for '{type_str}', got {value!r}")
        if len(value) != len(node.components):
            raise ArityMismatch(len(node.components), len(value), context=type_str)
        return tuple(_normalize_value(c, v) for c, v in zip(node.components, value))

    if node.base == "address":
        if not isinstance(value, str) or not is_address(value):
            raise InvalidValue(f"'{value}' is not a valid address")
        return to_checksum_address(value)

    if node.base == "uint":
        if isinstance(value, (bool, float)):
            raise InvalidValue(f"Expected an integer for '{type_str}', got {value!r}")
        try:
            integer = int(value, 0) if isinstance(value, str) else int(value)
        except (TypeError, ValueError):
            raise InvalidValue(f"Expected an integer for '{type_str}', got {value!r}")
        if integer < 0 or integer >= 2**node.sub:
            raise InvalidValue(f"{integer} is out of range for '{type_str}'")
        return integer

    if node.base == "bytes":
        if not isinstance(value, (str, bytes, bytearray)):
            raise InvalidValue(f"Expected bytes or a hex string for '{type_str}', got {value!r}")
        try:
            data = bytes(HexBytes(value))
        except (TypeError, ValueError):
            raise InvalidValue(f"Expected bytes for '{type_str}', got {value!r}")
        if node.sub is not None and len(data) != node.sub:
            raise InvalidValue(f"Expected {node.sub} bytes for '{type_str}', got {len(data)}")
        return data

    if not isinstance(value, str):
        raise InvalidValue(f"Expected a string for '{type_str}', got {value!r}")
    return value


def normalize_values(param_types: Sequence[str], param_values: Sequence[Any]) -> List[Any]:
    """Validates values against their ABI types and returns them in codec-ready form."""
    if len(param_types) != len(param_values):
        raise ArityMismatch(len(param_types), len(param_values))
    nodes = [_parse_type(t) for t in param_types]
    return [_normalize_value(node, value) for node, value in zip(nodes, param_values)]


def encode_inner(param_types: Sequence[str], param_values: Sequence[Any]) -> bytes:
    """ABI-encodes the values as a tuple of the given types, in declaration order."""
    values = normalize_values(param_types, param_values)
    try:
        return eth_abi.encode(list(param_types), values)
    except EncodingError as e:
        raise InvalidValue(f"Could not encode {list(param_types)}: {e}")


def encode_call(signature: str, param_types: Sequence[str], param_values: Sequence[Any]) -> bytes:
    """Encodes a contract call: 4-byte selector of `signature` followed by the arguments."""
    selector = function_signature_to_4byte_selector(signature)
    return bytes(selector) + encode_inner(param_types, param_values)


def encode_init_call(inner_bytes: bytes) -> bytes:
    """Wraps an inner payload as the sole argument of `initialize(bytes)`."""
    return encode_call(INITIALIZE_SIGNATURE, ["bytes"], [inner_bytes])


def decode_init_call(call_data: bytes) -> bytes:
    """Extracts the inner payload from `initialize(bytes)` calldata."""
    call_data = bytes(HexBytes(call_data))
    selector = bytes(function_signature_to_4byte_selector(INITIALIZE_SIGNATURE))
    if call_data[:4] != selector:
        raise InvalidValue(f"Calldata does not start with the {INITIALIZE_SIGNATURE} selector")
    try:
        (inner,) = eth_abi.decode(["bytes"], call_data[4:])
    except DecodingError as e:
        raise InvalidValue(f"Malformed {INITIALIZE_SIGNATURE} calldata: {e}")
    return inner


def decode_inner(param_types: Sequence[str], data: bytes) -> tuple:
    for abi_type in param_types:
        _parse_type(abi_type)
    try:
        return eth_abi.decode(list(param_types), bytes(HexBytes(data)))
    except DecodingError as e:
        raise InvalidValue(f"Could not decode {list(param_types)}: {e}")
