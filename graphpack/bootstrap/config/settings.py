from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource, YamlConfigSettingsSource

from graphpack.bootstrap.config.loader import get_configfile
from graphpack.core.models.config import CodecConfig, TagMode


class GraphPackSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GRAPHPACK_",
        extra="ignore"
    )

    ref_tracking: Annotated[
        bool,
        Field(
            description=(
                "Preserve object identity and cycles.\n"
                "When enabled, a value reached through several paths is written once\n"
                "and referenced afterwards, and cyclic graphs round-trip. When disabled,\n"
                "every value is written inline: shared values are duplicated and a\n"
                "cycle fails with a depth error. Each serialize() call may override it."
            ),
            default=True
        )
    ]

    require_registration: Annotated[
        bool,
        Field(
            description=(
                "Strict type resolution.\n"
                "When enabled, encoding or decoding a class that was never registered\n"
                "fails. When disabled, such classes are written with a structural\n"
                "serializer and tagged with their importable name."
            ),
            default=True
        )
    ]

    tag_mode: Annotated[
        TagMode,
        Field(
            description=(
                "How type descriptors are written on the wire.\n"
                "'named' writes UTF-8 tags (self-describing), 'id' writes 4-byte\n"
                "registered ids (compact, both ends must register types in agreement)."
            ),
            default=TagMode.named
        )
    ]

    max_depth: Annotated[
        int,
        Field(
            description="Maximum nesting of values within one encode or decode call.",
            default=128,
            gt=0
        )
    ]

    import_prefixes: Annotated[
        list[str] | None,
        Field(
            description=(
                "Packages a permissive decoder may import to locate a class by its tag.\n"
                "A payload naming a module outside these packages (and their submodules)\n"
                "fails with an unknown tag. Unset allows any module, which is only safe\n"
                "for trusted payloads."
            ),
            default=None
        )
    ]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        configfile = get_configfile()
        if configfile is None:
            return init_settings, env_settings
        return init_settings, env_settings, YamlConfigSettingsSource(settings_cls, yaml_file=configfile)

    def to_config(self) -> CodecConfig:
        return CodecConfig(
            ref_tracking=self.ref_tracking,
            require_registration=self.require_registration,
            tag_mode=self.tag_mode,
            max_depth=self.max_depth,
            import_prefixes=tuple(self.import_prefixes) if self.import_prefixes is not None else None,
        )
