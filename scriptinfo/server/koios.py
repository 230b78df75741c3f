"""
Koios script_info response parser.

Turns the JSON array returned by Koios ``POST /script_info`` into
ScriptInfo records. One element looks like:

    {"script_hash": "<56 hex chars>",
     "type": "multisig" | "timelock" | "plutusV1" | "plutusV2" | "plutusV3",
     "value": <native script JSON or null>,
     "bytes": <hex string or null>,
     ...}

Native kinds carry their script in ``value``; Plutus kinds in ``bytes``.
Parsing is fail-fast: one bad record rejects the whole response.
"""

from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError

from scriptinfo.lib import util
from scriptinfo.lib.errors import (
    EmptyResultError, FieldError, MissingFieldError, UnknownTypeError,
)
from scriptinfo.lib.hash import hex_str_to_hash
from scriptinfo.lib.script import (
    NativeScript, PlutusScript, PlutusVersion, Script, native_script_from_json,
)
from scriptinfo.server.script_info import ScriptInfo

KOIOS_NATIVE_TYPES = ('multisig', 'timelock')

KOIOS_PLUTUS_TYPES = {
    'plutusV1': PlutusVersion.V1,
    'plutusV2': PlutusVersion.V2,
    'plutusV3': PlutusVersion.V3,
}


class KoiosScriptRecord(BaseModel):
    """Envelope of one script_info element. Extra Koios fields are ignored."""
    model_config = ConfigDict(extra='ignore')

    script_hash: str
    type: str
    value: Optional[Any] = None
    bytes: Optional[Any] = None


class KoiosScriptParser:
    """
    Parser for Koios script_info responses.

    Stateless apart from its logger; one instance can be shared freely.
    """

    def __init__(self):
        self.logger = util.class_logger(__name__, self.__class__.__name__)

    def parse_record(self, raw: Any, index: int = 0) -> ScriptInfo:
        """Parse a single script_info element."""
        hash_hint = raw.get('script_hash') if isinstance(raw, dict) else None
        hash_hint = hash_hint if isinstance(hash_hint, str) else None

        try:
            record = KoiosScriptRecord.model_validate(raw)
        except ValidationError as e:
            errors = e.errors()
            loc = errors[0]['loc'] if errors and errors[0]['loc'] else ('record',)
            raise FieldError(f'record {index}: invalid Koios script record: '
                             f'{errors[0]["msg"] if errors else e}',
                             field=str(loc[0]), script_hash=hash_hint) from e

        try:
            script_hash = hex_str_to_hash(record.script_hash)
        except ValueError as e:
            raise FieldError(f'record {index}: invalid script_hash: {e}',
                             field='script_hash', script_hash=hash_hint) from e

        script = self._parse_script(record, index)
        info = ScriptInfo.from_script(script_hash, script)
        self.logger.debug(f'Parsed {record.type} script {record.script_hash} '
                          f'native_cbor_matches={info.native_cbor_encoding_matches_hash}')
        return info

    def _parse_script(self, record: KoiosScriptRecord, index: int) -> Script:
        if record.type in KOIOS_NATIVE_TYPES:
            if record.value is None:
                raise MissingFieldError(
                    f'record {index}: Missing native script in Koios response',
                    field='value', script_hash=record.script_hash)
            try:
                body = native_script_from_json(record.value)
            except (TypeError, ValueError) as e:
                raise MissingFieldError(
                    f'record {index}: Invalid native script in Koios response: {e}',
                    field='value', script_hash=record.script_hash) from e
            return NativeScript(body)

        version = KOIOS_PLUTUS_TYPES.get(record.type)
        if version is None:
            raise UnknownTypeError(
                f'record {index}: unknown script type {record.type!r}',
                field='type', script_hash=record.script_hash)

        if not record.bytes:
            raise MissingFieldError(
                f'record {index}: Missing plutus script bytes in Koios response',
                field='bytes', script_hash=record.script_hash)
        if not isinstance(record.bytes, str):
            raise MissingFieldError(
                f'record {index}: plutus script bytes must be a hex string',
                field='bytes', script_hash=record.script_hash)
        try:
            code = util.to_bytes(record.bytes)
        except ValueError as e:
            raise MissingFieldError(
                f'record {index}: invalid plutus script hex: {e}',
                field='bytes', script_hash=record.script_hash) from e
        return PlutusScript(version, code)

    @staticmethod
    def _check_batch(records: Any) -> Sequence[Any]:
        if isinstance(records, (str, bytes, dict)) or not isinstance(records, Sequence):
            raise FieldError(f'Koios response must be a JSON array, '
                             f'got {type(records).__name__}', field='response')
        return records

    def parse_batch(self, records: Sequence[Any]) -> List[ScriptInfo]:
        """Parse every record, stopping at the first bad one."""
        records = self._check_batch(records)
        return [self.parse_record(raw, index) for index, raw in enumerate(records)]

    def parse_single(self, records: Sequence[Any]) -> ScriptInfo:
        """
        Parse the answer to a single-hash query.

        Only the first record is parsed. Anything after it is ignored, not
        merged and not validated: the query is assumed to be scoped to one
        hash.
        """
        records = self._check_batch(records)
        if not records:
            raise EmptyResultError('Koios returned no script for the requested hash')
        if len(records) > 1:
            self.logger.debug(f'Ignoring {len(records) - 1} extra script_info records')
        return self.parse_record(records[0], 0)


_default_parser: Optional[KoiosScriptParser] = None


def _get_default_parser() -> KoiosScriptParser:
    global _default_parser
    if _default_parser is None:
        _default_parser = KoiosScriptParser()
    return _default_parser


def parse_script_info_batch(records: Sequence[Any]) -> List[ScriptInfo]:
    return _get_default_parser().parse_batch(records)


def parse_script_info(records: Sequence[Any]) -> ScriptInfo:
    return _get_default_parser().parse_single(records)
