"""
Dashboard configuration.

Everything the reports need to know about the world (segmentations, alias
table, funnel flows, where records and views live) is loaded once at startup
into a frozen ``DashboardConfig`` and passed explicitly to the components that
use it.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Literal, Mapping, Optional, Tuple, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[3] / "config" / "config.json"

FlowDefinition = Tuple[Tuple[str, str], ...]


class DataRemoteConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str = "http://localhost:3435/data"
    """JSON endpoint serving raw interaction records"""

    timestamp_unit: Literal["ms", "s"] = "ms"
    """kpiggybank stores milliseconds; converted to seconds on fetch"""

    timeout_seconds: float = 30.0


class DatabaseConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    """SQLAlchemy URL of the precomputed view store; unset disables the view path"""

    table_name: str = "kpi_documents"


class DashboardConfig(BaseModel):
    model_config = ConfigDict(frozen=True, validate_default=True)

    segmentations: Mapping[str, Tuple[str, ...]] = Field(
        default_factory=lambda: {
            "OS": ["Windows 7", "Windows XP", "Macintosh", "Linux", "Android", "iOS"],
            "Browser": ["Firefox", "Chrome", "MSIE", "Safari"],
            "Locale": ["en-us", "en-gb"],
        }
    )
    aliases: Mapping[str, str] = Field(
        default_factory=lambda: {
            "Windows NT 6.1": "Windows 7",
            "Windows NT 5.1": "Windows XP",
        }
    )
    flows: Mapping[str, FlowDefinition] = Field(
        default_factory=lambda: {
            "new_user": [
                ("Password set", "screen.set_password"),
                ("Account staged", "user.user_staged"),
                ("Email confirmed", "user.user_confirmed"),
                ("Logged in", "assertion_generated"),
            ]
        }
    )
    data_remote: DataRemoteConfig = DataRemoteConfig()
    database: DatabaseConfig = DatabaseConfig()

    @field_validator("segmentations", "aliases", "flows")
    @classmethod
    def _read_only(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        # Values are already tuples/strings; the proxy stops edits to the keys.
        return MappingProxyType(dict(value))

    def flow(self, name: str) -> FlowDefinition:
        try:
            return self.flows[name]
        except KeyError:
            raise KeyError(f"flow {name!r} is not configured") from None


def _env_str(name: str, default: Optional[str]) -> Optional[str]:
    raw = os.getenv(name)
    return raw if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _read_config_file(path: Path) -> Dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def load_config(path: Optional[Union[str, Path]] = None) -> DashboardConfig:
    """
    Load configuration from JSON, then apply environment overrides.

    The file is taken from ``path``, ``KPI_DASHBOARD_CONFIG`` or the
    repository's ``config/config.json``, in that order. A missing file falls
    back to the built-in defaults.
    """

    load_dotenv()
    config_path = Path(path or os.getenv("KPI_DASHBOARD_CONFIG") or DEFAULT_CONFIG_PATH).expanduser()

    contents: Dict = {}
    if config_path.exists():
        contents = _read_config_file(config_path)
    else:
        logger.warning("Config file %s not found, using defaults", config_path)

    defaults = DashboardConfig()

    remote_cfg = contents.get("data_remote", {})
    data_remote = DataRemoteConfig(
        url=_env_str("KPI_DATA_URL", remote_cfg.get("url", defaults.data_remote.url)),
        timestamp_unit=_env_str(
            "KPI_DATA_TIMESTAMP_UNIT", remote_cfg.get("timestamp_unit", defaults.data_remote.timestamp_unit)
        ),
        timeout_seconds=_env_float(
            "KPI_DATA_TIMEOUT_SECONDS", remote_cfg.get("timeout_seconds", defaults.data_remote.timeout_seconds)
        ),
    )

    database_cfg = contents.get("database", {})
    database = DatabaseConfig(
        url=_env_str("KPI_DATABASE_URL", database_cfg.get("url", defaults.database.url)),
        table_name=database_cfg.get("table_name", defaults.database.table_name),
    )

    return DashboardConfig(
        segmentations=contents.get("segmentations", dict(defaults.segmentations)),
        aliases=contents.get("aliases", dict(defaults.aliases)),
        flows=contents.get("flows", dict(defaults.flows)),
        data_remote=data_remote,
        database=database,
    )
