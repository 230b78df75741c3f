"""
Cardano script values and their canonical CBOR encoding.

A script is either a native (multisig/timelock) script or a compiled
Plutus program tagged with its language version. The ledger encodes a
script as a two element array whose first element is the language tag:

    [0, native_script]
    [1, plutus_v1_bytes]
    [2, plutus_v2_bytes]
    [3, plutus_v3_bytes]

and a native script as:

    [0, addr_keyhash]           ScriptPubkey
    [1, [native_script, ...]]   ScriptAll
    [2, [native_script, ...]]   ScriptAny
    [3, n, [native_script, ...]] ScriptNOfK
    [4, slot]                   InvalidBefore
    [5, slot]                   InvalidHereafter

The encoder here always produces definite-length arrays and minimal
integers. Other encodings of the same script are valid on-chain, which is
why re-encoding a decoded native script does not necessarily reproduce its
hash.
"""

import io
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple, Union

import cbor2

from scriptinfo.lib import util
from scriptinfo.lib.errors import ScriptDecodeError

KEY_HASH_LEN = 28

# Deepest ScriptAll/ScriptAny/ScriptNOfK nesting accepted by the decoders
MAX_NATIVE_DEPTH = 64


# Script language tags
class ScriptTag:
    NATIVE = 0
    PLUTUS_V1 = 1
    PLUTUS_V2 = 2
    PLUTUS_V3 = 3


# Plutus language versions share their numbering with the script tag
class PlutusVersion:
    V1 = ScriptTag.PLUTUS_V1
    V2 = ScriptTag.PLUTUS_V2
    V3 = ScriptTag.PLUTUS_V3

    ALL = (V1, V2, V3)


# Native script constructor tags
class NativeTag:
    PUBKEY = 0
    ALL = 1
    ANY = 2
    N_OF_K = 3
    INVALID_BEFORE = 4
    INVALID_HEREAFTER = 5


VERSION_NAMES = {
    PlutusVersion.V1: 'PlutusV1',
    PlutusVersion.V2: 'PlutusV2',
    PlutusVersion.V3: 'PlutusV3',
}


# ------------------------------------------------------------------
# Native script body
# ------------------------------------------------------------------

@dataclass(frozen=True)
class ScriptPubkey:
    key_hash: bytes


@dataclass(frozen=True)
class ScriptAll:
    scripts: Tuple['NativeBody', ...]


@dataclass(frozen=True)
class ScriptAny:
    scripts: Tuple['NativeBody', ...]


@dataclass(frozen=True)
class ScriptNOfK:
    n: int
    scripts: Tuple['NativeBody', ...]


@dataclass(frozen=True)
class InvalidBefore:
    slot: int


@dataclass(frozen=True)
class InvalidHereafter:
    slot: int


NativeBody = Union[ScriptPubkey, ScriptAll, ScriptAny, ScriptNOfK,
                   InvalidBefore, InvalidHereafter]


# ------------------------------------------------------------------
# Script
# ------------------------------------------------------------------

@dataclass(frozen=True)
class NativeScript:
    body: NativeBody


@dataclass(frozen=True)
class PlutusScript:
    version: int
    code: bytes

    def __post_init__(self):
        if not _is_uint(self.version) or self.version not in PlutusVersion.ALL:
            raise ValueError(f'invalid Plutus version {self.version!r}')


Script = Union[NativeScript, PlutusScript]


def _is_uint(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


# ------------------------------------------------------------------
# Encoding
# ------------------------------------------------------------------

def _native_to_cbor_obj(body: NativeBody) -> List[Any]:
    if isinstance(body, ScriptPubkey):
        return [NativeTag.PUBKEY, body.key_hash]
    if isinstance(body, ScriptAll):
        return [NativeTag.ALL, [_native_to_cbor_obj(s) for s in body.scripts]]
    if isinstance(body, ScriptAny):
        return [NativeTag.ANY, [_native_to_cbor_obj(s) for s in body.scripts]]
    if isinstance(body, ScriptNOfK):
        return [NativeTag.N_OF_K, body.n,
                [_native_to_cbor_obj(s) for s in body.scripts]]
    if isinstance(body, InvalidBefore):
        return [NativeTag.INVALID_BEFORE, body.slot]
    if isinstance(body, InvalidHereafter):
        return [NativeTag.INVALID_HEREAFTER, body.slot]
    raise TypeError(f'not a native script: {type(body).__name__}')


def encode_native_body(body: NativeBody) -> bytes:
    """Canonical CBOR for an untagged native script."""
    return cbor2.dumps(_native_to_cbor_obj(body))


def encode_script(script: Script) -> bytes:
    """Canonical CBOR for a script, language tag included."""
    if isinstance(script, NativeScript):
        return cbor2.dumps([ScriptTag.NATIVE, _native_to_cbor_obj(script.body)])
    if isinstance(script, PlutusScript):
        return cbor2.dumps([script.version, script.code])
    raise TypeError(f'not a script: {type(script).__name__}')


# ------------------------------------------------------------------
# Decoding
# ------------------------------------------------------------------

def _loads_exact(data: bytes) -> Any:
    """Decode exactly one CBOR item spanning all of *data*."""
    fp = io.BytesIO(data)
    try:
        obj = cbor2.CBORDecoder(fp).decode()
    except cbor2.CBORDecodeError as e:
        raise ScriptDecodeError(f'invalid CBOR: {e}') from e
    if fp.tell() != len(data):
        raise ScriptDecodeError(
            f'{len(data) - fp.tell()} trailing bytes after script')
    return obj


def _decode_native_list(obj, depth: int) -> Tuple[NativeBody, ...]:
    if not isinstance(obj, (list, tuple)):
        raise ScriptDecodeError('native script list must be an array')
    return tuple(decode_native_body(item, depth + 1) for item in obj)


def decode_native_body(obj, depth: int = 0) -> NativeBody:
    """Build a native script from its decoded CBOR array."""
    if depth > MAX_NATIVE_DEPTH:
        raise ScriptDecodeError(f'native script nested deeper than {MAX_NATIVE_DEPTH}')
    if not isinstance(obj, (list, tuple)) or not obj:
        raise ScriptDecodeError('native script must be a non-empty array')
    tag = obj[0]
    if not _is_uint(tag):
        raise ScriptDecodeError(f'invalid native script tag {tag!r}')

    if tag == NativeTag.PUBKEY:
        if len(obj) != 2:
            raise ScriptDecodeError('ScriptPubkey must have 2 elements')
        key_hash = obj[1]
        if not isinstance(key_hash, bytes) or len(key_hash) != KEY_HASH_LEN:
            raise ScriptDecodeError('ScriptPubkey key hash must be 28 bytes')
        return ScriptPubkey(key_hash)

    if tag in (NativeTag.ALL, NativeTag.ANY):
        if len(obj) != 2:
            raise ScriptDecodeError('ScriptAll/ScriptAny must have 2 elements')
        scripts = _decode_native_list(obj[1], depth)
        return ScriptAll(scripts) if tag == NativeTag.ALL else ScriptAny(scripts)

    if tag == NativeTag.N_OF_K:
        if len(obj) != 3:
            raise ScriptDecodeError('ScriptNOfK must have 3 elements')
        if not _is_uint(obj[1]):
            raise ScriptDecodeError(f'invalid ScriptNOfK count {obj[1]!r}')
        return ScriptNOfK(obj[1], _decode_native_list(obj[2], depth))

    if tag in (NativeTag.INVALID_BEFORE, NativeTag.INVALID_HEREAFTER):
        if len(obj) != 2 or not _is_uint(obj[1]):
            raise ScriptDecodeError('timelock must carry a single slot number')
        if tag == NativeTag.INVALID_BEFORE:
            return InvalidBefore(obj[1])
        return InvalidHereafter(obj[1])

    raise ScriptDecodeError(f'unknown native script tag {tag}')


def decode_script(data: bytes) -> Script:
    """Parse tagged script CBOR. Raises ScriptDecodeError on bad input."""
    obj = _loads_exact(data)
    if not isinstance(obj, (list, tuple)) or len(obj) != 2:
        raise ScriptDecodeError('script must be a 2-element array')
    tag, payload = obj
    if not _is_uint(tag):
        raise ScriptDecodeError(f'invalid script tag {tag!r}')
    if tag == ScriptTag.NATIVE:
        return NativeScript(decode_native_body(payload))
    if tag in PlutusVersion.ALL:
        if not isinstance(payload, bytes):
            raise ScriptDecodeError(f'{VERSION_NAMES[tag]} payload must be bytes')
        return PlutusScript(tag, payload)
    raise ScriptDecodeError(f'unknown script tag {tag}')


# ------------------------------------------------------------------
# JSON form (cardano-cli / Koios)
# ------------------------------------------------------------------

def _json_field(value: Dict[str, Any], name: str):
    if name not in value:
        raise ValueError(f'native script "{value.get("type")}" missing "{name}"')
    return value[name]


def _json_slot(value: Dict[str, Any]) -> int:
    slot = _json_field(value, 'slot')
    if not _is_uint(slot):
        raise ValueError(f'invalid slot {slot!r}')
    return slot


def _json_scripts(value: Dict[str, Any], depth: int) -> Tuple[NativeBody, ...]:
    scripts = _json_field(value, 'scripts')
    if not isinstance(scripts, list):
        raise ValueError('"scripts" must be a list')
    return tuple(native_script_from_json(s, depth + 1) for s in scripts)


def native_script_from_json(value: Dict[str, Any], depth: int = 0) -> NativeBody:
    """
    Parse the JSON form of a native script.

    Accepted shapes::

        {"type": "sig", "keyHash": "<56 hex chars>"}
        {"type": "all", "scripts": [...]}
        {"type": "any", "scripts": [...]}
        {"type": "atLeast", "required": n, "scripts": [...]}
        {"type": "after", "slot": n}     -> InvalidBefore
        {"type": "before", "slot": n}    -> InvalidHereafter

    Raises ValueError on anything else, including nesting deeper than
    MAX_NATIVE_DEPTH.
    """
    if depth > MAX_NATIVE_DEPTH:
        raise ValueError(f'native script nested deeper than {MAX_NATIVE_DEPTH}')
    if not isinstance(value, dict):
        raise ValueError(f'native script must be an object, got {type(value).__name__}')
    kind = value.get('type')

    if kind == 'sig':
        key_hash = _json_field(value, 'keyHash')
        if not isinstance(key_hash, str):
            raise ValueError('"keyHash" must be a hex string')
        raw = util.to_bytes(key_hash)
        if len(raw) != KEY_HASH_LEN:
            raise ValueError(f'"keyHash" must be {KEY_HASH_LEN} bytes, got {len(raw)}')
        return ScriptPubkey(raw)
    if kind == 'all':
        return ScriptAll(_json_scripts(value, depth))
    if kind == 'any':
        return ScriptAny(_json_scripts(value, depth))
    if kind == 'atLeast':
        required = _json_field(value, 'required')
        if not _is_uint(required):
            raise ValueError(f'invalid "required" count {required!r}')
        return ScriptNOfK(required, _json_scripts(value, depth))
    if kind == 'after':
        return InvalidBefore(_json_slot(value))
    if kind == 'before':
        return InvalidHereafter(_json_slot(value))

    raise ValueError(f'unknown native script type {kind!r}')


def native_script_to_json(body: NativeBody) -> Dict[str, Any]:
    """Inverse of native_script_from_json."""
    if isinstance(body, ScriptPubkey):
        return {'type': 'sig', 'keyHash': body.key_hash.hex()}
    if isinstance(body, ScriptAll):
        return {'type': 'all',
                'scripts': [native_script_to_json(s) for s in body.scripts]}
    if isinstance(body, ScriptAny):
        return {'type': 'any',
                'scripts': [native_script_to_json(s) for s in body.scripts]}
    if isinstance(body, ScriptNOfK):
        return {'type': 'atLeast', 'required': body.n,
                'scripts': [native_script_to_json(s) for s in body.scripts]}
    if isinstance(body, InvalidBefore):
        return {'type': 'after', 'slot': body.slot}
    if isinstance(body, InvalidHereafter):
        return {'type': 'before', 'slot': body.slot}
    raise TypeError(f'not a native script: {type(body).__name__}')
