from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _normalize_pattern_list(values: list[str], *, allow_empty: bool) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()

    for item in values:
        pattern = (item or "").strip()
        if not pattern or pattern in seen:
            continue
        seen.add(pattern)
        out.append(pattern)

    if not allow_empty and not out:
        raise ValueError("must contain at least one non-empty entry")
    return out


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


def _require_placeholder(value: str, placeholder: str) -> str:
    v = (value or "").strip()
    if placeholder not in v:
        raise ValueError(f"must contain the {placeholder} placeholder")
    return v


PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]
WaitUntil = Literal["load", "domcontentloaded", "networkidle", "commit"]


class ViewportConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    width: PositiveInt = 1200
    height: PositiveInt = 800


class BrowserConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    headless: bool = True
    executable_path: str | None = None
    executable_path_env: str = "BRAVE_PATH"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36"
    )
    accept_language: str = "en-US,en;q=0.9"
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    launch_args: list[str] = Field(
        default_factory=lambda: ["--no-sandbox", "--disable-dev-shm-usage"]
    )

    @field_validator("executable_path_env")
    @classmethod
    def _executable_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)


class CaptureConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    profile_url_template: str = "https://www.instagram.com/{username}/"
    navigation_wait_until: WaitUntil = "networkidle"
    navigation_timeout_ms: PositiveInt = 60000
    response_wait_timeout_ms: NonNegativeInt = 6000
    grace_delay_ms: NonNegativeInt = 800
    endpoint_patterns: list[str] = Field(
        default_factory=lambda: [
            "/api/v1/users/web_profile_info",
            "/api/graphql/",
            "/graphql/",
        ]
    )
    fallback_enabled: bool = True
    fallback_endpoint: str = (
        "https://i.instagram.com/api/v1/users/web_profile_info/?username={username}"
    )
    app_id: str = "1217981644879628"
    embedded_enabled: bool = True
    embedded_min_length: NonNegativeInt = 200
    embedded_markers: list[str] = Field(
        default_factory=lambda: ["edge_owner_to_timeline_media", "ProfilePage", "graphql"]
    )
    max_observations: PositiveInt = 64
    log_all_responses: bool = False

    @field_validator("profile_url_template", "fallback_endpoint")
    @classmethod
    def _must_take_username(cls, v: str) -> str:
        return _require_placeholder(v, "{username}")

    @field_validator("endpoint_patterns")
    @classmethod
    def _normalize_endpoints(cls, v: list[str]) -> list[str]:
        return _normalize_pattern_list(v, allow_empty=False)

    @field_validator("embedded_markers")
    @classmethod
    def _normalize_markers(cls, v: list[str]) -> list[str]:
        return _normalize_pattern_list(v, allow_empty=False)


class DetailsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    post_url_template: str = "https://www.instagram.com/p/{shortcode}/"
    navigation_wait_until: WaitUntil = "domcontentloaded"
    navigation_timeout_ms: PositiveInt = 30000
    title_separator: str = " on Instagram: "
    caption_selector: str = "article h1"
    embedded_min_length: NonNegativeInt = 200
    embedded_markers: list[str] = Field(
        default_factory=lambda: [
            "shortcode_media",
            "edge_media_to_caption",
            "xdt_api__v1__media__shortcode__web_info",
        ]
    )

    @field_validator("post_url_template")
    @classmethod
    def _must_take_shortcode(cls, v: str) -> str:
        return _require_placeholder(v, "{shortcode}")

    @field_validator("embedded_markers")
    @classmethod
    def _normalize_markers(cls, v: list[str]) -> list[str]:
        return _normalize_pattern_list(v, allow_empty=False)


class SamplingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    default_sample_size: PositiveInt = 12
    max_sample_size: PositiveInt = 50

    @model_validator(mode="after")
    def _max_must_cover_default(self) -> "SamplingConfig":
        if self.max_sample_size < self.default_sample_size:
            raise ValueError("max_sample_size must be >= default_sample_size")
        return self


class ServerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = "127.0.0.1"
    port: Annotated[int, Field(ge=1, le=65535)] = 3000
    port_env: str = "PORT"

    @field_validator("port_env")
    @classmethod
    def _port_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str | None = None
    debug: bool = False


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    details: DetailsConfig = Field(default_factory=DetailsConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
