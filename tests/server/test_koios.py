"""
Koios script_info Parser Tests

Tests for turning Koios ``/script_info`` responses into ScriptInfo:
- native (multisig/timelock) records built from the ``value`` JSON
- Plutus V1/V2/V3 records built from ``bytes``
- fail-fast batch parsing
- the single-hash wrapper
"""

import hashlib

import pytest

from scriptinfo.lib.errors import (
    EmptyResultError,
    FieldError,
    MissingFieldError,
    UnknownTypeError,
)
from scriptinfo.lib.hash import script_hash
from scriptinfo.lib.script import (
    MAX_NATIVE_DEPTH,
    InvalidHereafter,
    NativeScript,
    PlutusScript,
    PlutusVersion,
    ScriptAll,
    ScriptPubkey,
    native_script_to_json,
)
from scriptinfo.server.koios import (
    KoiosScriptParser,
    parse_script_info,
    parse_script_info_batch,
)


KEY = bytes.fromhex('e09d36c79dec9bd1b3d9e152247701cd0bb860b5ebfd1de8abb6735a')
NATIVE = NativeScript(ScriptAll((ScriptPubkey(KEY), InvalidHereafter(99_000_000))))
PLUTUS_CODE = bytes.fromhex('4e4d01000033222220051200120011')


def native_record(script=NATIVE, type_='timelock', claimed=None, **extra):
    """Build a Koios record for a native script."""
    record = {
        'script_hash': (claimed or script_hash(script)).hex(),
        'creation_tx_hash': 'ab' * 32,
        'type': type_,
        'value': native_script_to_json(script.body),
        'bytes': None,
        'size': 0,
    }
    record.update(extra)
    return record


def plutus_record(version=PlutusVersion.V2, code=PLUTUS_CODE, type_=None, **extra):
    """Build a Koios record for a Plutus script."""
    record = {
        'script_hash': script_hash(PlutusScript(version, code)).hex(),
        'creation_tx_hash': 'cd' * 32,
        'type': type_ or f'plutusV{version}',
        'value': None,
        'bytes': code.hex(),
        'size': len(code),
    }
    record.update(extra)
    return record


@pytest.fixture
def parser():
    return KoiosScriptParser()


class TestTypeDispatch:

    @pytest.mark.parametrize("type_", ['multisig', 'timelock'])
    def test_native(self, parser, type_):
        info = parser.parse_record(native_record(type_=type_))
        assert info.script == NATIVE
        assert info.script_hash == script_hash(NATIVE)
        assert info.native_cbor_encoding_matches_hash is True

    def test_plutus_v2(self, parser):
        info = parser.parse_record(plutus_record(PlutusVersion.V2))
        assert info.script == PlutusScript(PlutusVersion.V2, PLUTUS_CODE)
        assert info.native_cbor_encoding_matches_hash is None

    @pytest.mark.parametrize("version", PlutusVersion.ALL)
    def test_plutus_versions(self, parser, version):
        info = parser.parse_record(plutus_record(version))
        assert info.script.version == version
        assert info.native_cbor_encoding_matches_hash is None

    def test_native_ignores_stray_bytes(self, parser):
        info = parser.parse_record(native_record(bytes='8200'))
        assert info.script == NATIVE

    def test_native_hash_from_other_encoding(self, parser):
        # The on-chain bytes used an indefinite-length list; the hash is of those
        onchain = (bytes([0x82, 0x01, 0x9F, 0x82, 0x00, 0x58, 0x1C]) + KEY
                   + bytes([0x82, 0x05, 0x1A, 0x05, 0xE6, 0x9E, 0xC0, 0xFF]))
        claimed = hashlib.blake2b(b'\x00' + onchain, digest_size=28).digest()
        info = parser.parse_record(native_record(claimed=claimed))
        assert info.script == NATIVE
        assert info.script_hash == claimed
        assert info.native_cbor_encoding_matches_hash is False


class TestRecordErrors:

    @pytest.mark.parametrize("bad_hash", ['zz' * 28, 'ab' * 27, 'ab' * 32, ''])
    def test_bad_script_hash(self, parser, bad_hash):
        with pytest.raises(FieldError) as exc_info:
            parser.parse_record(native_record(script_hash=bad_hash))
        assert exc_info.value.field == 'script_hash'

    @pytest.mark.parametrize("missing", ['script_hash', 'type'])
    def test_missing_envelope_field(self, parser, missing):
        record = plutus_record()
        del record[missing]
        with pytest.raises(FieldError) as exc_info:
            parser.parse_record(record)
        assert exc_info.value.field == missing

    def test_record_not_an_object(self, parser):
        with pytest.raises(FieldError):
            parser.parse_record(['not', 'a', 'record'])

    def test_unknown_type(self, parser):
        with pytest.raises(UnknownTypeError) as exc_info:
            parser.parse_record(plutus_record(type_='plutusV9'))
        assert exc_info.value.field == 'type'

    @pytest.mark.parametrize("type_", ['multisig', 'timelock'])
    def test_native_missing_value(self, parser, type_):
        record = native_record(type_=type_, value=None, bytes='8200')
        with pytest.raises(MissingFieldError, match='Missing native script in Koios response'):
            parser.parse_record(record)

    def test_native_value_nested_too_deep(self, parser):
        value = {'type': 'sig', 'keyHash': KEY.hex()}
        for _ in range(400):
            value = {'type': 'all', 'scripts': [value]}
        with pytest.raises(MissingFieldError) as exc_info:
            parser.parse_record(native_record(value=value))
        assert exc_info.value.field == 'value'

    def test_native_value_at_depth_limit(self, parser):
        body = ScriptPubkey(KEY)
        for _ in range(MAX_NATIVE_DEPTH):
            body = ScriptAll((body,))
        script = NativeScript(body)
        info = parser.parse_record(native_record(script=script))
        assert info.script == script
        assert info.native_cbor_encoding_matches_hash is True

    def test_native_malformed_value(self, parser):
        record = native_record(value={'type': 'sig', 'keyHash': 'nothex'})
        with pytest.raises(MissingFieldError) as exc_info:
            parser.parse_record(record)
        assert exc_info.value.field == 'value'

    @pytest.mark.parametrize("bad_bytes", [None, '', 'xyz', 42])
    def test_plutus_bad_bytes(self, parser, bad_bytes):
        with pytest.raises(MissingFieldError) as exc_info:
            parser.parse_record(plutus_record(bytes=bad_bytes))
        assert exc_info.value.field == 'bytes'

    def test_error_carries_context(self, parser):
        record = plutus_record(type_='plutusV9')
        with pytest.raises(UnknownTypeError) as exc_info:
            parser.parse_batch([plutus_record(), record])
        assert exc_info.value.script_hash == record['script_hash']
        assert 'record 1' in str(exc_info.value)


class TestBatch:

    def test_parses_in_order(self, parser):
        records = [native_record(), plutus_record(PlutusVersion.V1),
                   plutus_record(PlutusVersion.V3)]
        infos = parser.parse_batch(records)
        assert [type(i.script) for i in infos] == [NativeScript, PlutusScript, PlutusScript]
        assert infos[2].script.version == PlutusVersion.V3

    def test_fail_fast_on_middle_record(self, parser):
        records = [native_record(), plutus_record(type_='plutusV9'), plutus_record()]
        with pytest.raises(UnknownTypeError):
            parser.parse_batch(records)

    def test_first_error_wins(self, parser):
        records = [native_record(value=None), plutus_record(type_='plutusV9')]
        with pytest.raises(MissingFieldError):
            parser.parse_batch(records)

    def test_empty_batch(self, parser):
        assert parser.parse_batch([]) == []

    @pytest.mark.parametrize("response", [None, {'script_hash': 'ab'}, 'text'])
    def test_not_an_array(self, parser, response):
        with pytest.raises(FieldError):
            parser.parse_batch(response)

    def test_module_helper(self):
        assert len(parse_script_info_batch([native_record(), plutus_record()])) == 2


class TestSingle:

    def test_first_record(self, parser):
        info = parser.parse_single([plutus_record(PlutusVersion.V2)])
        assert info.script == PlutusScript(PlutusVersion.V2, PLUTUS_CODE)

    def test_empty(self, parser):
        with pytest.raises(EmptyResultError):
            parser.parse_single([])

    def test_extra_records_ignored(self, parser):
        # The second record is invalid but never looked at
        info = parser.parse_single([native_record(), plutus_record(type_='plutusV9')])
        assert info.script == NATIVE

    def test_module_helper(self):
        with pytest.raises(EmptyResultError):
            parse_script_info([])
        assert parse_script_info([native_record()]).script == NATIVE


def test_package_lazy_exports():
    import scriptinfo

    assert scriptinfo.KoiosScriptParser is KoiosScriptParser
    assert scriptinfo.ScriptInfo.__name__ == 'ScriptInfo'
    assert scriptinfo.ScriptInfoResolver.__name__ == 'ScriptInfoResolver'
    assert scriptinfo.version_short == '1.0.0'
    with pytest.raises(AttributeError):
        scriptinfo.Nope
