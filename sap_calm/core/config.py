"""
sap_calm.core.config - Settings and endpoint layout
===================================================

Validated settings for the two supported deployment modes:

- OAuth2 (production): tenant, region, client id and secret
- Sandbox: static API key against the SAP API Business Hub sandbox

Settings come from a JSON file or from ``CALM_*`` environment variables
(``.env`` files are honoured).
"""

from __future__ import annotations

import enum
import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

from sap_calm.core.errors import ConfigError


SANDBOX_BASE_URL = "https://sandbox.api.sap.com/SAPCALM"

VALID_REGIONS = (
    "eu10", "eu20", "us10", "ap10", "jp10", "eu10-004", "ca10", "eu11", "cn20",
)


class ApiPath(str, enum.Enum):
    """The nine SAP Cloud ALM API base paths."""

    FEATURES = "calm-features/v1"
    DOCUMENTS = "calm-documents/v1"
    TASKS = "calm-tasks/v1"
    PROJECTS = "calm-projects/v1"
    TEST_MANAGEMENT = "calm-testmanagement/v1"
    PROCESS_HIERARCHY = "calm-processhierarchy/v1"
    ANALYTICS = "calm-analytics/v1/odata/v4/analytics"
    PROCESS_MONITORING = "calm-processmonitoring/v1"
    LOGS = "calm-logs/v1"


def _env_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class CalmSettings:
    """
    Connection settings for SAP Cloud ALM.

    Parameters
    ----------
    sandbox : bool
        Use the sandbox host with a static API key instead of OAuth2
    api_key : str, optional
        API key (sandbox mode only)
    tenant : str, optional
        Cloud ALM tenant, e.g. "mycompany" (OAuth2 mode)
    region : str, optional
        Cloud ALM region, e.g. "eu10" (OAuth2 mode)
    client_id, client_secret : str, optional
        OAuth2 client credentials from the service binding
    timeout_seconds : float
        Per-request timeout (default: 30)
    debug : bool
        Emit trace events to the debug sink
    token_refresh_buffer_seconds : float
        Safety margin before token expiry that triggers a refresh
    max_page_size : int
        Upper bound applied to ``$top``

    Examples
    --------
    >>> cfg = CalmSettings(sandbox=True, api_key="abc")
    >>> cfg.validate()
    >>> cfg.api_url(ApiPath.FEATURES)
    'https://sandbox.api.sap.com/SAPCALM/calm-features/v1'
    """

    sandbox: bool = False
    api_key: Optional[str] = None
    tenant: Optional[str] = None
    region: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    timeout_seconds: float = 30.0
    debug: bool = False
    token_refresh_buffer_seconds: float = 60.0
    max_page_size: int = 500

    # ---------------- loading ----------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalmSettings":
        """Build settings from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        cfg = cls(**{k: v for k, v in data.items() if k in known})
        cfg.validate()
        return cfg

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "CalmSettings":
        """Load and validate settings from a JSON file."""
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "CalmSettings":
        """
        Load and validate settings from ``CALM_*`` environment variables.

        A ``.env`` file in the working directory (or ``env_file``) is read
        first; variables already set in the environment win.
        """
        env_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        env = os.environ
        cfg = cls(
            sandbox=_env_bool(env.get("CALM_SANDBOX")),
            api_key=env.get("CALM_API_KEY") or None,
            tenant=env.get("CALM_TENANT") or None,
            region=env.get("CALM_REGION") or None,
            client_id=env.get("CALM_CLIENT_ID") or None,
            client_secret=env.get("CALM_CLIENT_SECRET") or None,
            timeout_seconds=float(env.get("CALM_TIMEOUT", "30")),
            debug=_env_bool(env.get("CALM_DEBUG")),
            token_refresh_buffer_seconds=float(env.get("CALM_TOKEN_BUFFER", "60")),
            max_page_size=int(env.get("CALM_MAX_TOP", "500")),
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """Validate settings. Raises ConfigError if invalid."""
        if self.sandbox:
            if not self.api_key:
                raise ConfigError("Missing required field: api_key (required in sandbox mode)")
        else:
            for name in ("tenant", "region", "client_id", "client_secret"):
                if not getattr(self, name):
                    raise ConfigError(f"Missing required field: {name}")
            if self.region not in VALID_REGIONS:
                raise ConfigError(
                    f"Invalid region '{self.region}'. Valid regions: {', '.join(VALID_REGIONS)}"
                )
        if self.timeout_seconds <= 0:
            raise ConfigError("timeout_seconds must be positive")
        if self.max_page_size < 1:
            raise ConfigError("max_page_size must be at least 1")

    # ---------------- urls ----------------

    @property
    def base_url(self) -> str:
        """Host root for API calls."""
        if self.sandbox:
            return SANDBOX_BASE_URL
        return f"https://{self.tenant}.{self.region}.alm.cloud.sap"

    @property
    def path_prefix(self) -> str:
        # sandbox paths are mounted directly under the host root
        return "" if self.sandbox else "/api"

    @property
    def token_url(self) -> Optional[str]:
        """OAuth2 token endpoint, or None in sandbox mode."""
        if self.sandbox:
            return None
        return f"https://{self.tenant}.authentication.{self.region}.hana.ondemand.com/oauth/token"

    def api_url(self, api: ApiPath) -> str:
        """Full base URL for one of the nine API groups."""
        return f"{self.base_url}{self.path_prefix}/{api.value}"

    def __repr__(self) -> str:
        if self.sandbox:
            return f"CalmSettings(mode='sandbox', timeout={self.timeout_seconds})"
        return (
            f"CalmSettings(mode='oauth2', tenant={self.tenant!r}, "
            f"region={self.region!r}, timeout={self.timeout_seconds})"
        )
