"""
Script lookup across the local cache and Koios.

The resolver owns no I/O: the key/value store and the Koios client are
passed in by the caller. It checks the cache first, falls back to the
indexer, and writes fresh results back to the cache.
"""

from typing import List, Optional, Protocol

from scriptinfo.lib import util
from scriptinfo.lib.errors import DecodeError, FieldError
from scriptinfo.lib.hash import hash_to_hex_str
from scriptinfo.server import storage
from scriptinfo.server.koios import KoiosScriptParser
from scriptinfo.server.script_info import ScriptInfo


class ScriptInfoClient(Protocol):
    """Koios client interface (``POST /script_info``)."""

    def script_info(self, script_hashes: List[str]) -> List[dict]:
        """Return the raw script_info JSON array for the given hashes."""
        ...


class ScriptInfoResolver:
    """
    Resolves ScriptInfo records by hash.

    ``db`` must provide ``get(key) -> Optional[bytes]`` and
    ``put(key, value)``. Settings are read from ``env``:

    - ``script_cache``: read cached records (default True)
    - ``script_cache_write``: store records fetched from Koios (default True)
    """

    def __init__(self, db, client: ScriptInfoClient, env=None):
        self.logger = util.class_logger(__name__, self.__class__.__name__)
        self.db = db
        self.client = client
        self.env = env
        self.cache_enabled = getattr(env, 'script_cache', True)
        self.cache_write = self.cache_enabled and getattr(env, 'script_cache_write', True)
        self.parser = KoiosScriptParser()

        if self.cache_enabled:
            self.logger.info('Script cache enabled')

    def from_storage(self, script_hash: bytes) -> Optional[ScriptInfo]:
        """Return the cached record, or None on a cache miss.

        A corrupt entry raises DecodeError.
        """
        blob = self.db.get(storage.pack_script_key(script_hash))
        if blob is None:
            return None
        return storage.from_bytes(blob)

    def from_remote(self, script_hash: bytes) -> ScriptInfo:
        hash_hex = hash_to_hex_str(script_hash)
        records = self.client.script_info([hash_hex])
        info = self.parser.parse_single(records)
        if info.script_hash != script_hash:
            raise FieldError(f'Koios answered with script {info.hash_hex}',
                             field='script_hash', script_hash=hash_hex)
        return info

    def lookup(self, script_hash: bytes) -> ScriptInfo:
        hash_hex = hash_to_hex_str(script_hash)

        if self.cache_enabled:
            try:
                info = self.from_storage(script_hash)
            except DecodeError as e:
                self.logger.warning(f'Corrupt cache entry for script {hash_hex}: {e}')
                info = None
            if info is not None:
                if info.script_hash == script_hash:
                    self.logger.debug(f'Script {hash_hex} served from cache')
                    return info
                self.logger.warning(f'Cache entry for script {hash_hex} '
                                    f'holds script {info.hash_hex}')

        info = self.from_remote(script_hash)
        if self.cache_write:
            self.db.put(storage.pack_script_key(script_hash), storage.to_bytes(info))
            self.logger.debug(f'Cached script {hash_hex}')
        return info
