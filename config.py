"""Application settings: single file, Pydantic-based.

DB selection:
  - DATABASE_URL set and non-empty -> PostgreSQL
  - DATABASE_URL absent/empty -> SQLite (DB_SQLITE_PATH, default data/poolpayout.db)

Pool types are enabled by configuring both their contract address and their
verifier key. A pool type with neither is disabled; a pool type with only one
of the two is a configuration error.
"""

import re
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from db.enums import PoolType
from poolpayout.services.errors import ConfigurationError
from poolpayout.services.schemas.contracts import Configured, ContractConfig, NotConfigured

HEX_PATTERN: re.Pattern[str] = re.compile(r"^0x[0-9a-fA-F]+$")
KNOWN_CHAIN_IDS: tuple[str, ...] = ("SN_SEPOLIA", "SN_MAIN")


def _project_root() -> Path:
    """Project root. config.py lives at the root."""
    return Path(__file__).resolve().parent


def _ensure_env_loaded() -> None:
    """Load .env from project root (then its parent). Idempotent."""
    root: Path = _project_root()
    for candidate in (root / ".env", root.parent / ".env"):
        if candidate.exists():
            load_dotenv(candidate, override=False)


_ensure_env_loaded()


def _env_config(prefix: str) -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


def _check_hex(value: str | None, label: str) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not HEX_PATTERN.match(value):
        raise ValueError(f"{label} must be 0x-prefixed hex")
    return value


class DatabaseSettings(BaseSettings):
    model_config = _env_config("DB_")

    database_url: str | None = Field(
        default=None,
        description="PostgreSQL DSN; when set, uses Postgres.",
        validation_alias="DATABASE_URL",
    )
    sqlite_path: str | None = Field(default="data/poolpayout.db")
    pool_size: int = Field(default=5)
    pool_timeout: int = Field(default=30)
    pool_recycle: int = Field(default=1800)

    def _use_postgres(self) -> bool:
        return bool((self.database_url or "").strip())

    def _resolved_sqlite_path(self) -> Path:
        raw: str = (self.sqlite_path or "data/poolpayout.db").strip()
        path: Path = Path(raw)
        if not path.is_absolute():
            path = (_project_root() / path).resolve()
        return path

    def _redacted_postgres_dsn(self) -> str:
        url: str = (self.database_url or "").strip()
        return re.sub(r":([^:@]+)@", r":***@", url) if url else ""

    @property
    def url(self) -> str:
        if self._use_postgres():
            return (self.database_url or "").strip()
        path = self._resolved_sqlite_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{path.as_posix()}"

    def db_info_for_logging(self) -> str:
        if self._use_postgres():
            return f"PostgreSQL @ {self._redacted_postgres_dsn()}"
        return f"SQLite @ {self._resolved_sqlite_path().as_posix()}"


class StarknetSettings(BaseSettings):
    model_config = _env_config("STARKNET_")

    rpc_url: str = Field(description="Starknet JSON-RPC endpoint")
    chain_id: str = Field(default="SN_SEPOLIA", description="SN_SEPOLIA, SN_MAIN or 0x felt")
    deployer_address: str = Field(description="Account that submits merkle roots")
    deployer_private_key: str = Field(description="Private key of the deployer account")
    confirmation_timeout: float = Field(default=300.0, gt=0)
    confirmation_poll_interval: float = Field(default=5.0, gt=0)

    @field_validator("rpc_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        value = value.strip()
        if not re.match(r"^(https?|wss?)://\S+$", value):
            raise ValueError("rpc_url must be an http(s) or ws(s) URL")
        return value

    @field_validator("chain_id")
    @classmethod
    def _check_chain_id(cls, value: str) -> str:
        value = value.strip()
        if value in KNOWN_CHAIN_IDS or HEX_PATTERN.match(value):
            return value
        raise ValueError(f"chain_id must be one of {KNOWN_CHAIN_IDS} or a 0x felt")

    @field_validator("deployer_address", "deployer_private_key")
    @classmethod
    def _check_hex_fields(cls, value: str) -> str:
        return _check_hex(value, "value") or value


class _PoolContractSettings(BaseSettings):
    """Contract address + verifier key for one pool type."""

    pool_type: PoolType

    contract_address: str | None = Field(default=None)
    verifier_private_key: str | None = Field(default=None)

    @field_validator("contract_address", "verifier_private_key", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _check_pair(self) -> "_PoolContractSettings":
        _check_hex(self.contract_address, "contract_address")
        _check_hex(self.verifier_private_key, "verifier_private_key")
        if (self.contract_address is None) != (self.verifier_private_key is None):
            raise ValueError(
                f"{self.pool_type.value}: contract_address and verifier_private_key "
                "must be set together"
            )
        return self

    def resolve(self) -> ContractConfig:
        if self.contract_address is None or self.verifier_private_key is None:
            prefix: str = self.pool_type.value.upper()
            return NotConfigured(
                pool_type=self.pool_type,
                reason=(
                    f"{self.pool_type.value} pools are disabled. Set "
                    f"{prefix}_CONTRACT_ADDRESS and {prefix}_VERIFIER_PRIVATE_KEY"
                ),
            )
        return Configured(
            pool_type=self.pool_type,
            contract_address=self.contract_address,
            verifier_private_key=self.verifier_private_key,
        )


class AlarmContractSettings(_PoolContractSettings):
    model_config = _env_config("ALARM_")

    pool_type: PoolType = PoolType.ALARM


class FocusContractSettings(_PoolContractSettings):
    model_config = _env_config("FOCUS_")

    pool_type: PoolType = PoolType.FOCUS


class LoggingSettings(BaseSettings):
    model_config = _env_config("LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="console")

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError("level must be DEBUG, INFO, WARNING or ERROR")
        return value

    @field_validator("format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("console", "json"):
            raise ValueError("format must be 'console' or 'json'")
        return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="POOLPAYOUT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: str = Field(default="development")
    cron_secret: str | None = Field(default=None, description="Bearer secret for /cron")
    inter_pool_delay: float = Field(default=3.0, ge=0)
    stale_pool_age: int = Field(default=48 * 3600, gt=0)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    starknet: StarknetSettings = Field(default_factory=StarknetSettings)
    alarm: AlarmContractSettings = Field(default_factory=AlarmContractSettings)
    focus: FocusContractSettings = Field(default_factory=FocusContractSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def contract(self, pool_type: PoolType) -> ContractConfig:
        if pool_type is PoolType.ALARM:
            return self.alarm.resolve()
        return self.focus.resolve()


def _format_validation_error(exc: ValidationError) -> str:
    lines: list[str] = []
    for err in exc.errors():
        loc: str = ".".join(str(part) for part in err["loc"]) or exc.title
        lines.append(f"{loc}: {err['msg']}")
    return "\n".join(lines)


def load_settings(**overrides: object) -> Settings:
    """Build settings eagerly; any missing or malformed value is fatal."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Configuration validation failed:\n{_format_validation_error(exc)}"
        ) from exc


@lru_cache
def get_settings() -> Settings:
    return load_settings()
