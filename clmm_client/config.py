"""
Configuration for the CLMM client

Every setting is read from the environment (a .env file next to the package
is loaded first) when its section is instantiated, so tests can patch
os.environ and build a fresh section.

Sections:
    RpcConfig      SOLANA_RPC_URL, RPC_*
    SignerConfig   SOLANA_KEYPAIR_PATH, ADMIN_KEYPAIR_PATH
    TxConfig       TX_*
    ClmmConfig     CLMM_* (program, mint pair, config index, slippage, lookahead)
    LoggingConfig  LOG_*
"""

import os
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from dotenv import load_dotenv

if TYPE_CHECKING:
    from solders.pubkey import Pubkey


# Raydium CLMM program (mainnet)
DEFAULT_PROGRAM_ID = "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK"

# Tick arrays fetched beyond the current one for a swap
DEFAULT_TICK_ARRAY_LOOKAHEAD = 5

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

_TRUTHY = {"1", "true", "yes", "on"}


def _load_env_file():
    env_file = _PROJECT_ROOT / ".env"
    if env_file.is_file():
        load_dotenv(env_file)


_load_env_file()


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in _TRUTHY


_PARSERS: Dict[type, Callable[[str], Any]] = {
    bool: _parse_bool,
    int: int,
    float: float,
    str: str,
}


def _env(key: str, default: Any) -> Any:
    """
    Environment value converted to the type of default.

    Unparseable values are logged and replaced by the default.
    """
    raw = os.getenv(key)
    if raw is None:
        return default
    parser = _PARSERS[type(default)]
    try:
        return parser(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"{key}={raw!r} is not a valid {type(default).__name__}; using {default!r}"
        )
        return default


def _setting(key: str, default: Any):
    """Dataclass field read from the environment at instantiation"""
    return field(default_factory=lambda: _env(key, default))


@dataclass
class RpcConfig:
    url: str = _setting("SOLANA_RPC_URL", "")
    timeout_seconds: float = _setting("RPC_TIMEOUT_SECONDS", 30.0)
    max_retries: int = _setting("RPC_MAX_RETRIES", 3)
    retry_delay_seconds: float = _setting("RPC_RETRY_DELAY_SECONDS", 1.0)
    commitment: str = _setting("RPC_COMMITMENT", "confirmed")


@dataclass
class SignerConfig:
    """Keypair files; the admin key signs config, operation and reward-owner instructions"""
    keypair_path: str = _setting("SOLANA_KEYPAIR_PATH", "")
    admin_keypair_path: str = _setting("ADMIN_KEYPAIR_PATH", "")


@dataclass
class TxConfig:
    compute_units: int = _setting("TX_COMPUTE_UNITS", 1_400_000)
    # Microlamports per compute unit; 0 leaves the price instruction out
    compute_unit_price: int = _setting("TX_COMPUTE_UNIT_PRICE", 0)
    confirmation_timeout: float = _setting("TX_CONFIRMATION_TIMEOUT", 60.0)
    skip_preflight: bool = _setting("TX_SKIP_PREFLIGHT", False)
    preflight_commitment: str = _setting("TX_PREFLIGHT_COMMITMENT", "confirmed")


@dataclass
class ClmmConfig:
    """
    Pool-scoped CLMM settings

    mint0/mint1 may be given in either order; ClientConfig canonicalizes them.
    slippage is a fraction (0.01 = 1%).
    """
    program_id: str = _setting("CLMM_PROGRAM_ID", DEFAULT_PROGRAM_ID)
    mint0: str = _setting("CLMM_MINT0", "")
    mint1: str = _setting("CLMM_MINT1", "")
    amm_config_index: int = _setting("CLMM_AMM_CONFIG_INDEX", 0)
    slippage: float = _setting("CLMM_SLIPPAGE", 0.01)
    tick_array_lookahead: int = _setting("CLMM_TICK_ARRAY_LOOKAHEAD", DEFAULT_TICK_ARRAY_LOOKAHEAD)


def _default_log_file() -> str:
    return str(_PROJECT_ROOT / "logs" / f"clmm_client_{date.today():%Y%m%d}.log")


@dataclass
class LoggingConfig:
    """
    LOG_FILE (empty disables the file), LOG_LEVEL, LOG_FORMAT, LOG_CONSOLE,
    LOG_MAX_BYTES and LOG_BACKUP_COUNT for the rotating file handler.
    """
    log_file: str = field(default_factory=lambda: _env("LOG_FILE", _default_log_file()))
    log_level: str = _setting("LOG_LEVEL", "INFO")
    log_format: str = _setting("LOG_FORMAT", "%(asctime)s %(levelname)-7s [%(name)s] %(message)s")
    console_output: bool = _setting("LOG_CONSOLE", True)
    max_bytes: int = _setting("LOG_MAX_BYTES", 10 * 1024 * 1024)
    backup_count: int = _setting("LOG_BACKUP_COUNT", 5)

    @property
    def level(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


@dataclass
class Config:
    """
    All configuration sections

    Usage:
        from clmm_client.config import get_config

        url = get_config().rpc.url
    """
    rpc: RpcConfig = field(default_factory=RpcConfig)
    signer: SignerConfig = field(default_factory=SignerConfig)
    tx: TxConfig = field(default_factory=TxConfig)
    clmm: ClmmConfig = field(default_factory=ClmmConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


config = Config()


def get_config() -> Config:
    return config


def reload_config() -> Config:
    """Re-read .env and the environment into a new global Config"""
    global config
    _load_env_file()
    config = Config()
    return config


@dataclass(frozen=True)
class ClientConfig:
    """
    Pool-scoped view of the configuration with every derived address resolved.

    pool_id and tickarray_bitmap_extension are None unless both mints are set;
    callers must handle the absent case.
    """
    program_id: "Pubkey"
    amm_config_index: int
    amm_config_key: "Pubkey"
    slippage: float
    tick_array_lookahead: int
    mint0: Optional["Pubkey"] = None
    mint1: Optional["Pubkey"] = None
    pool_id: Optional["Pubkey"] = None
    tickarray_bitmap_extension: Optional["Pubkey"] = None

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None) -> "ClientConfig":
        """
        Build from the global (or given) Config.

        Raises:
            ConfigurationError: If a key is not valid base58 or slippage is out of range
        """
        from solders.pubkey import Pubkey
        from .errors import ConfigurationError
        from .protocol.pda import (
            config_address,
            canonicalize_mints,
            pool_address,
            bitmap_extension_address,
        )

        clmm = (cfg or config).clmm

        def _parse(name: str, value: str) -> Optional[Pubkey]:
            if not value:
                return None
            try:
                return Pubkey.from_string(value)
            except ValueError as e:
                raise ConfigurationError.invalid(name, str(e))

        program_id = _parse("CLMM_PROGRAM_ID", clmm.program_id)
        if program_id is None:
            raise ConfigurationError.missing("CLMM_PROGRAM_ID")
        if not 0 <= clmm.slippage < 1:
            raise ConfigurationError.invalid("CLMM_SLIPPAGE", f"must be in [0, 1), got {clmm.slippage}")
        if clmm.tick_array_lookahead < 0:
            raise ConfigurationError.invalid("CLMM_TICK_ARRAY_LOOKAHEAD", "must not be negative")
        if not 0 <= clmm.amm_config_index <= 0xFFFF:
            raise ConfigurationError.invalid("CLMM_AMM_CONFIG_INDEX", "must fit in u16")

        amm_config_key = config_address(program_id, clmm.amm_config_index).address
        mint0 = _parse("CLMM_MINT0", clmm.mint0)
        mint1 = _parse("CLMM_MINT1", clmm.mint1)

        pool_id = None
        bitmap_extension = None
        if mint0 is not None and mint1 is not None:
            mint0, mint1 = canonicalize_mints(mint0, mint1)
            pool_id = pool_address(program_id, amm_config_key, mint0, mint1).address
            bitmap_extension = bitmap_extension_address(program_id, pool_id).address

        return cls(
            program_id=program_id,
            amm_config_index=clmm.amm_config_index,
            amm_config_key=amm_config_key,
            slippage=clmm.slippage,
            tick_array_lookahead=clmm.tick_array_lookahead,
            mint0=mint0,
            mint1=mint1,
            pool_id=pool_id,
            tickarray_bitmap_extension=bitmap_extension,
        )

    def require_pool(self) -> "Pubkey":
        """Return the pool id or raise if the mint pair is not configured"""
        if self.pool_id is None:
            from .errors import ConfigurationError
            raise ConfigurationError.missing("CLMM_MINT0/CLMM_MINT1")
        return self.pool_id


def _handlers(log_config: LoggingConfig):
    if log_config.log_file:
        from logging.handlers import RotatingFileHandler

        path = Path(log_config.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        yield RotatingFileHandler(
            path,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding="utf-8",
        )
    if log_config.console_output:
        yield logging.StreamHandler()


def setup_logging(
    log_config: Optional[LoggingConfig] = None,
    logger_name: str = "clmm_client",
) -> logging.Logger:
    """
    Attach file and/or console handlers to the package logger.

    Calling it again replaces the handlers it attached before. Module loggers
    (clmm_client.protocol.router, clmm_client.infra.rpc, ...) propagate here.
    """
    log_config = log_config or config.logging
    logger = logging.getLogger(logger_name)
    logger.setLevel(log_config.level)

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    formatter = logging.Formatter(log_config.log_format)
    for handler in _handlers(log_config):
        handler.setLevel(log_config.level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug(f"Logging to {log_config.log_file or 'console only'} at {log_config.log_level.upper()}")
    return logger
