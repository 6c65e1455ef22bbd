"""Device specification models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from .targeting import DENSITY_BUCKETS, TargetingDimension, language_of, normalize_value


class DeviceSpec(BaseModel):
    """Properties of a concrete device, as reported by the device-spec source.

    Accepts the camelCase keys of device-spec JSON files (``sdkVersion``,
    ``supportedAbis``, ``supportedLocales``, ``screenDensity``, ...).
    """

    model_config = {"frozen": True, "populate_by_name": True}

    sdk_version: int = Field(alias="sdkVersion", ge=1, description="Platform API level")
    supported_abis: tuple[str, ...] = Field(
        default=(), alias="supportedAbis", description="ABIs, most preferred first"
    )
    screen_density: int = Field(default=160, alias="screenDensity", ge=1, description="Screen dpi")
    languages: tuple[str, ...] = Field(
        default=(), alias="supportedLocales", description="Locales, most preferred first"
    )
    supported_texture_compressions: tuple[str, ...] = Field(
        default=(),
        alias="supportedTextureCompressionFormats",
        description="GL texture formats the GPU decodes, most preferred first",
    )
    device_tier: int = Field(default=0, alias="deviceTier", ge=0)

    @field_validator("supported_abis", mode="before")
    @classmethod
    def _known_abis(cls, values: Any) -> Any:
        if isinstance(values, (list, tuple)):
            return tuple(normalize_value(TargetingDimension.ABI, v) for v in values)
        return values

    @field_validator("supported_texture_compressions", mode="before")
    @classmethod
    def _known_texture_formats(cls, values: Any) -> Any:
        if isinstance(values, (list, tuple)):
            return tuple(normalize_value(TargetingDimension.TEXTURE_COMPRESSION, v) for v in values)
        return values

    @field_validator("languages", mode="before")
    @classmethod
    def _language_codes(cls, values: Any) -> Any:
        if not isinstance(values, (list, tuple)):
            return values
        codes: list[str] = []
        for locale in values:
            code = language_of(str(locale))
            if code and code not in codes:
                codes.append(code)
        return tuple(codes)

    @field_validator("screen_density", mode="before")
    @classmethod
    def _density_alias(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in DENSITY_BUCKETS:
            return DENSITY_BUCKETS[value.strip().lower()]
        return value

    def describe(self) -> str:
        abis = ",".join(self.supported_abis) or "-"
        return f"sdk={self.sdk_version} abis={abis} dpi={self.screen_density} tier={self.device_tier}"
