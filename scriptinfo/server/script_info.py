"""
ScriptInfo: the normalized record for a resolved script.

Both the storage codec and the Koios parser build their results through
``ScriptInfo.from_script``, which stamps the native encoding check.
"""

from dataclasses import dataclass
from typing import Optional

from scriptinfo.lib.hash import hash_to_hex_str, script_hash as compute_script_hash
from scriptinfo.lib.script import NativeScript, PlutusScript, Script


def verify_script_hash(script_hash: bytes, script: Script) -> Optional[bool]:
    """
    Check whether a script's canonical encoding reproduces its claimed hash.

    Returns True/False for native scripts. Native scripts have no unique
    encoding, so a valid script fetched from chain may legitimately hash
    differently once re-encoded here; False means it must be referenced
    rather than inlined.

    Returns None for Plutus scripts: their bytes are kept as supplied and
    the check does not apply.
    """
    if isinstance(script, NativeScript):
        return compute_script_hash(script) == script_hash
    if isinstance(script, PlutusScript):
        return None
    raise TypeError(f'not a script: {type(script).__name__}')


@dataclass(frozen=True)
class ScriptInfo:
    script_hash: bytes
    script: Script
    # None when the check does not apply (Plutus)
    native_cbor_encoding_matches_hash: Optional[bool]

    @classmethod
    def from_script(cls, script_hash: bytes, script: Script) -> 'ScriptInfo':
        return cls(
            script_hash=script_hash,
            script=script,
            native_cbor_encoding_matches_hash=verify_script_hash(script_hash, script),
        )

    @property
    def is_native(self) -> bool:
        return isinstance(self.script, NativeScript)

    @property
    def hash_hex(self) -> str:
        return hash_to_hex_str(self.script_hash)
