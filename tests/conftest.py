import os
from typing import Generator

import pytest
import yaml

from graphpack.bootstrap import deps
from graphpack.core.codec import GraphCodec
from graphpack.core.models.config import CodecConfig
from graphpack.core.resolver.registry import TypeRegistry


@pytest.fixture
def registry() -> TypeRegistry:
    return TypeRegistry()


@pytest.fixture
def codec(registry) -> GraphCodec:
    return GraphCodec(registry=registry)


@pytest.fixture
def permissive_codec() -> GraphCodec:
    return GraphCodec(config=CodecConfig(require_registration=False))


@pytest.fixture
def config_file(tmp_path):
    file = tmp_path / "graphpack.yaml"
    data = {
        "ref_tracking": False,
        "require_registration": False,
        "tag_mode": "id",
        "max_depth": 16,
    }

    file.write_text(yaml.dump(data))
    return file


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    backup = os.environ.copy()
    for key in list(os.environ):
        if key.startswith("GRAPHPACK"):
            del os.environ[key]

    deps.get_settings.cache_clear()
    deps.get_registry.cache_clear()
    deps.get_codec.cache_clear()
    try:
        yield
    finally:
        os.environ.clear()
        os.environ.update(backup)
        deps.get_settings.cache_clear()
        deps.get_registry.cache_clear()
        deps.get_codec.cache_clear()
