import json
from functools import lru_cache

from pydantic import ValidationError

from graphpack.bootstrap.config.settings import GraphPackSettings
from graphpack.core.codec import GraphCodec
from graphpack.core.errors import ConfigurationError
from graphpack.core.resolver.registry import TypeRegistry


@lru_cache
def get_codec() -> GraphCodec:
    settings = get_settings()
    return GraphCodec(
        registry=get_registry(),
        config=settings.to_config()
    )


@lru_cache
def get_registry() -> TypeRegistry:
    settings = get_settings()
    return TypeRegistry(
        require_registration=settings.require_registration,
        import_prefixes=settings.import_prefixes
    )


@lru_cache
def get_settings() -> GraphPackSettings:
    try:
        return GraphPackSettings()
    except FileNotFoundError as ex:
        raise ConfigurationError(f"Provide a correct configuration file path: {ex}") from ex
    except ValidationError as ex:
        msg = ["Configuration validation failed:"]
        errs = json.loads(ex.json())
        for err in errs:
            msg.append(f"  {'.'.join(str(part) for part in err['loc'])}: {err['msg']}")
        raise ConfigurationError("\n".join(msg)) from ex
