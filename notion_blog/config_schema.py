from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_LANG_RE = re.compile(r"^[A-Za-z]{2,3}(-[A-Za-z0-9]{2,8})*$")


def _normalize_language_list(values: list[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()

    for item in values:
        lang = (item or "").strip()
        if not lang:
            continue
        if not _LANG_RE.fullmatch(lang):
            raise ValueError(f"invalid language key: {lang!r}")
        if lang in seen:
            continue
        seen.add(lang)
        out.append(lang)

    if not out:
        raise ValueError("must contain at least one language key")
    return out


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]
PositiveFloat = Annotated[float, Field(gt=0)]
NonNegativeFloat = Annotated[float, Field(ge=0)]


class NotionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    token_env: str = "NOTION_API_SECRET"
    database_id_env: str = "DATABASE_ID"
    notion_version: str = "2022-06-28"
    request_timeout_ms: PositiveInt = 10000
    query_page_size: int = Field(100, ge=1, le=100)

    @field_validator("token_env", "database_id_env")
    @classmethod
    def _env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)


class SiteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    languages: list[str] = Field(default_factory=lambda: ["ja", "en"])
    default_language: str = "ja"
    posts_per_page: PositiveInt = 10
    meta_title_slug: str = "meta-title"

    @field_validator("languages")
    @classmethod
    def _normalize_languages(cls, v: list[str]) -> list[str]:
        return _normalize_language_list(v)

    @model_validator(mode="after")
    def _default_language_must_be_listed(self) -> "SiteConfig":
        if self.default_language not in self.languages:
            raise ValueError("default_language must be one of languages")
        return self


class RetrySettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_retries: NonNegativeInt = 2
    base_delay_seconds: NonNegativeFloat = 1.0
    max_delay_seconds: NonNegativeFloat = 30.0
    jitter_ratio: float = Field(0.25, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _max_delay_covers_base(self) -> "RetrySettings":
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        return self


class LockConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_pending: PositiveInt = 100
    acquire_timeout_seconds: PositiveFloat = 60.0
    max_occupation_seconds: PositiveFloat = 60.0


class SnapshotConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    dir: str = "tmp"


class AssetsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    output_dir: str = "public/notion"
    timeout_seconds: PositiveFloat = 10.0


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    notion: NotionConfig = Field(default_factory=NotionConfig)
    site: SiteConfig = Field(default_factory=SiteConfig)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    lock: LockConfig = Field(default_factory=LockConfig)
    snapshots: SnapshotConfig = Field(default_factory=SnapshotConfig)
    assets: AssetsConfig = Field(default_factory=AssetsConfig)
