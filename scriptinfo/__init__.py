version = 'ScriptInfo 1.0.0'
version_short = version.split()[-1]


def _lazy_import(name):
    """Lazy import to avoid pulling in pydantic at module load time."""
    import importlib
    if name == 'ScriptInfo':
        mod = importlib.import_module('scriptinfo.server.script_info')
        return mod.ScriptInfo
    if name == 'KoiosScriptParser':
        mod = importlib.import_module('scriptinfo.server.koios')
        return mod.KoiosScriptParser
    if name == 'ScriptInfoResolver':
        mod = importlib.import_module('scriptinfo.server.resolver')
        return mod.ScriptInfoResolver
    raise AttributeError(f'module {__name__!r} has no attribute {name!r}')


def __getattr__(name):
    return _lazy_import(name)
