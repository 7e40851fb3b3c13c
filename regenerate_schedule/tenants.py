from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from pydantic import ValidationError

from .config import Settings
from .errors import ConfigurationError
from .models import TenantConfig

logger = logging.getLogger(__name__)

# Keys used by older tenant lists (one Google Sheet + one site UUID per tenant)
_LEGACY_KEYS = {
    "googleSheetId": "sourceIdentifier",
    "siteUUID": "siteIdentifier",
}


def _upgrade_legacy(item: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(item)
    for old, new in _LEGACY_KEYS.items():
        if old in out and new not in out:
            out[new] = out.pop(old)
    return out


def parse_tenants(data: Any) -> List[TenantConfig]:
    if isinstance(data, dict):
        data = data.get("tenants")
    if not isinstance(data, list) or not data:
        raise ConfigurationError("Tenant config must be a non-empty list")

    tenants: List[TenantConfig] = []
    for idx, item in enumerate(data):
        if not isinstance(item, dict):
            raise ConfigurationError(f"Tenant #{idx} must be an object")
        try:
            tenants.append(TenantConfig.model_validate(_upgrade_legacy(item)))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid tenant #{idx}: {e}") from e
    return tenants


def _log_tenants(mode: str, tenants: List[TenantConfig]) -> None:
    logger.info("[tenants] mode=%s count=%s", mode, len(tenants))
    for t in tenants:
        logger.info("[tenants] - name=%s source=%s site=%s", t.name, t.source_identifier, t.site_identifier)


def load_tenants(settings: Settings) -> List[TenantConfig]:
    """TENANTS_FILE wins over TENANTS_JSON; one of them is required."""
    if settings.tenants_file:
        path = Path(settings.tenants_file)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read TENANTS_FILE {path}: {e}") from e
        tenants = parse_tenants(data)
        _log_tenants(f"FILE ({path})", tenants)
        return tenants

    if settings.tenants_json:
        try:
            data = json.loads(settings.tenants_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"TENANTS_JSON is not valid JSON: {e}") from e
        tenants = parse_tenants(data)
        _log_tenants("ENV", tenants)
        return tenants

    raise ConfigurationError("No tenants configured. Set TENANTS_FILE or TENANTS_JSON.")
