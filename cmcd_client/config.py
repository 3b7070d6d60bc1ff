"""
CMCD configuration: enabled flag, delivery mode, and externally supplied ids.
"""
import json
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import yaml
from dacite import from_dict


_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class CmcdConfig:
    enabled: bool = False
    # Send CMCD as CMCD-* headers instead of a CMCD query argument.
    use_headers: bool = False
    # Empty means "generate a random session id".
    session_id: str = ""
    content_id: str = ""


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUTHY


def config_from_dict(data: Optional[Mapping[str, Any]]) -> CmcdConfig:
    return from_dict(data_class=CmcdConfig, data=dict(data or {}))


def read_config_by_file(config_path: str) -> CmcdConfig:
    """Read a YAML or JSON config file (JSON is valid YAML, but keep .json strict)."""
    with open(config_path, "r") as file:
        text = file.read()

    if config_path.endswith(".json"):
        d = json.loads(text)
    else:
        d = yaml.safe_load(text)
    return config_from_dict(d)


def read_config_by_env(base: Optional[CmcdConfig] = None) -> CmcdConfig:
    """Overlay CMCD_ENABLED, CMCD_USE_HEADERS, CMCD_SESSION_ID and CMCD_CONTENT_ID on base."""
    base = base or CmcdConfig()
    return CmcdConfig(
        enabled=_env_flag("CMCD_ENABLED", base.enabled),
        use_headers=_env_flag("CMCD_USE_HEADERS", base.use_headers),
        session_id=os.getenv("CMCD_SESSION_ID") or base.session_id,
        content_id=os.getenv("CMCD_CONTENT_ID") or base.content_id,
    )
