"""Script content hashing."""

import hashlib

from scriptinfo.lib.script import (
    NativeScript, PlutusScript, Script, ScriptTag, encode_native_body,
)

HASH_LEN = 28


def blake2b_224(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=HASH_LEN).digest()


def script_hash(script: Script) -> bytes:
    """Ledger hash of a script: blake2b-224 over tag byte || script bytes.

    Native scripts are hashed over this package's canonical encoding.
    Plutus code is hashed exactly as supplied.
    """
    if isinstance(script, NativeScript):
        return blake2b_224(bytes([ScriptTag.NATIVE]) + encode_native_body(script.body))
    if isinstance(script, PlutusScript):
        return blake2b_224(bytes([script.version]) + script.code)
    raise TypeError(f'not a script: {type(script).__name__}')


def hash_to_hex_str(x: bytes) -> str:
    return x.hex()


def hex_str_to_hash(x: str) -> bytes:
    """Convert a hex string to a script hash.

    Raises ValueError unless *x* is hex for exactly HASH_LEN bytes.
    """
    if not isinstance(x, str):
        raise ValueError(f'script hash must be a hex string, got {type(x).__name__}')
    raw = bytes.fromhex(x)
    if len(raw) != HASH_LEN or len(x) != HASH_LEN * 2:
        raise ValueError(f'script hash must be {HASH_LEN * 2} hex chars, got {len(x)}')
    return raw
