"""
Configuration — typed, validated settings loaded from a JSON file.

Uses pydantic-settings to:
  - Load the JSON file named on the command line (`--config`)
  - Let environment variables override individual values
  - Validate types and constraints before any remote call is made

Only AppSettings is a BaseSettings instance. Sub-settings are plain
BaseModel classes; with env_prefix="ORPHAN_FINDER_" and
env_nested_delimiter="__", the variable ORPHAN_FINDER_STORAGE__DSN maps to
storage.dsn.

Example file:

    {
      "storage": {"dsn": "postgresql://recovery@db:5432/certs"},
      "ocsp_generator": {"url": "https://ca.internal:9443/ocsp/generate"},
      "tls": {"ca_cert": "/etc/orphan-finder/ca.pem",
              "cert_file": "/etc/orphan-finder/client.pem",
              "key_file": "/etc/orphan-finder/client.key"},
      "backdate": "1h"
    }
"""

from __future__ import annotations

import json
import re
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# Go-style duration: optional sign, then one or more <number><unit> groups.
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION = re.compile(r"[+-]?(?:(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|ms|s|m|h))+")
_SECONDS_PER_UNIT = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string such as "1h", "1h30m", "-90s" or "250ms".

    Raises ValueError for anything else. "0" is accepted as zero.
    """
    text = value.strip()
    if text in ("0", "+0", "-0"):
        return timedelta(0)
    if not _DURATION.fullmatch(text):
        raise ValueError(f"invalid duration {value!r} (expected e.g. '1h', '90m', '-30s')")
    sign = -1 if text.startswith("-") else 1
    seconds = sum(float(amount) * _SECONDS_PER_UNIT[unit] for amount, unit in _DURATION_PART.findall(text))
    return timedelta(seconds=sign * seconds)


class StorageSettings(BaseModel):
    """
    PostgreSQL connection for the certificate store.

    Accepts either a full connection string via `dsn` or individual
    components. `dsn` takes priority when both are provided and is always
    available via get_dsn() after construction.
    """

    dsn: SecretStr | None = Field(
        default=None,
        description="Full PostgreSQL connection string (overrides individual fields)",
    )
    host: str | None = Field(default=None, description="PostgreSQL host")
    port: int = Field(default=5432, ge=1, le=65535, description="PostgreSQL port")
    name: str | None = Field(default=None, description="PostgreSQL database name")
    username: str | None = Field(default=None, description="PostgreSQL username")
    password: SecretStr | None = Field(default=None, description="PostgreSQL password")
    connect_timeout_seconds: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def resolve_dsn(self) -> StorageSettings:
        """Build `dsn` from components when it was not given; fail if neither is complete."""
        if self.dsn is not None:
            return self
        missing = [f for f, v in [
            ("storage.host", self.host),
            ("storage.name", self.name),
            ("storage.username", self.username),
            ("storage.password", self.password),
        ] if not v]
        if missing:
            raise ValueError("Set storage.dsn or provide all of: " + ", ".join(missing))
        dsn_value = (
            f"postgresql://{self.username}:{self.password.get_secret_value()}"  # type: ignore[union-attr]
            f"@{self.host}:{self.port}/{self.name}"
        )
        object.__setattr__(self, "dsn", SecretStr(dsn_value))
        return self

    def get_dsn(self) -> str:
        assert self.dsn is not None  # guaranteed by resolve_dsn validator
        return self.dsn.get_secret_value()


class OcspGeneratorSettings(BaseModel):
    """The CA endpoint that signs fresh OCSP responses."""

    url: str = Field(description="OCSP generation endpoint URL")
    timeout_seconds: int = Field(default=30, ge=1)


class TlsSettings(BaseModel):
    """Client TLS material for talking to the CA."""

    ca_cert: str | None = Field(default=None, description="PEM bundle of trusted roots")
    cert_file: str | None = Field(default=None, description="PEM client certificate")
    key_file: str | None = Field(default=None, description="PEM client private key")

    @model_validator(mode="after")
    def key_requires_cert(self) -> TlsSettings:
        if self.key_file is not None and self.cert_file is None:
            raise ValueError("tls.key_file is set but tls.cert_file is not")
        return self


class AppSettings(BaseSettings):
    """
    Root settings for one recovery run.

    Load order (highest priority first):
      1. Environment variables (ORPHAN_FINDER_*)
      2. The JSON config file passed to from_file()
      3. Default values

    `backdate` must equal the CA's own backdate setting. It is read once
    and applied unchanged to every orphan in the run.
    """

    model_config = SettingsConfigDict(
        env_prefix="ORPHAN_FINDER_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    storage: StorageSettings
    ocsp_generator: OcspGeneratorSettings
    tls: TlsSettings | None = None
    backdate: timedelta
    workers: int = Field(default=1, ge=1, le=64)
    log_level: str = Field(default="INFO")

    @field_validator("backdate", mode="before")
    @classmethod
    def parse_backdate(cls, value: Any) -> Any:
        """Accept Go-style strings ("1h"); leave ISO-8601 strings and numbers to pydantic."""
        if isinstance(value, str) and not value.strip().upper().lstrip("+-").startswith("P"):
            return parse_duration(value)
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Environment beats file values (which arrive as init kwargs)."""
        return env_settings, init_settings, file_secret_settings

    @classmethod
    def from_file(cls, path: str | Path) -> AppSettings:
        """Load settings from a JSON config file. Raises OSError/ValueError on bad input."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"config file {path} must contain a JSON object")
        return cls(**data)
