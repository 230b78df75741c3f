"""
Storage codec for cached ScriptInfo records.

A cached record has two fields:

    {"scriptHash": <hex or bytes>, "scriptCbor": <hex or bytes>}

``scriptCbor`` is the tagged script encoding from ``scriptinfo.lib.script``.
The native encoding check is not persisted; it is recomputed on every
decode so a cached value can never disagree with the current encoder.
"""

from typing import Any, Dict, Mapping

import cbor2

from scriptinfo.lib import util
from scriptinfo.lib.errors import FieldError, ScriptDecodeError
from scriptinfo.lib.hash import HASH_LEN, hash_to_hex_str
from scriptinfo.lib.script import decode_script, encode_script
from scriptinfo.server.script_info import ScriptInfo

HASH_FIELD = 'scriptHash'
SCRIPT_FIELD = 'scriptCbor'


# Database key prefixes for cached scripts
class ScriptDBKeys:
    SCRIPT = b'SC'          # SC + script_hash -> CBOR record


def pack_script_key(script_hash: bytes) -> bytes:
    return ScriptDBKeys.SCRIPT + script_hash


def encode_record(info: ScriptInfo, binary: bool = False) -> Dict[str, Any]:
    """Build the storage record for *info*.

    Fields are hex strings, or raw bytes when *binary* is set.
    """
    script_cbor = encode_script(info.script)
    if binary:
        return {HASH_FIELD: info.script_hash, SCRIPT_FIELD: script_cbor}
    return {HASH_FIELD: info.script_hash.hex(), SCRIPT_FIELD: script_cbor.hex()}


def _field_bytes(record: Mapping[str, Any], name: str, script_hash=None) -> bytes:
    if record.get(name) is None:
        raise FieldError(f'missing {name}', field=name, script_hash=script_hash)
    try:
        return util.to_bytes(record[name])
    except (TypeError, ValueError) as e:
        raise FieldError(f'malformed {name}: {e}', field=name,
                         script_hash=script_hash) from e


def decode_record(record: Mapping[str, Any]) -> ScriptInfo:
    """
    Rebuild a ScriptInfo from a storage record.

    Raises FieldError when a field is missing or not hex/bytes, or when
    the hash has the wrong length, and ScriptDecodeError when the script
    bytes do not parse. A hash that does not match the script is not an
    error; it shows up in ``native_cbor_encoding_matches_hash``.
    """
    if not isinstance(record, Mapping):
        raise FieldError(f'storage record must be a mapping, got {type(record).__name__}')

    script_hash = _field_bytes(record, HASH_FIELD)
    hash_hex = hash_to_hex_str(script_hash)
    if len(script_hash) != HASH_LEN:
        raise FieldError(f'{HASH_FIELD} must be {HASH_LEN} bytes, got {len(script_hash)}',
                         field=HASH_FIELD, script_hash=hash_hex)

    script_cbor = _field_bytes(record, SCRIPT_FIELD, hash_hex)
    try:
        script = decode_script(script_cbor)
    except ScriptDecodeError as e:
        raise ScriptDecodeError(e.message, field=SCRIPT_FIELD,
                                script_hash=hash_hex) from e

    return ScriptInfo.from_script(script_hash, script)


def to_bytes(info: ScriptInfo) -> bytes:
    """Serialize a ScriptInfo to a CBOR storage blob."""
    return cbor2.dumps(encode_record(info, binary=True))


def from_bytes(blob: bytes) -> ScriptInfo:
    """Deserialize a CBOR storage blob written by ``to_bytes``."""
    try:
        record = cbor2.loads(blob)
    except cbor2.CBORDecodeError as e:
        raise FieldError(f'storage blob is not valid CBOR: {e}') from e
    return decode_record(record)
