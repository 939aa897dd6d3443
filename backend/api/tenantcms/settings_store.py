from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .errors import ValidationError

DEFAULT_PLATFORM_SETTINGS: Dict[str, Dict[str, Any]] = {
    "general": {
        "siteName": "Tenant Content Platform",
        "siteDescription": "Stories, media and events from participating tenants",
        "contactEmail": "contact@example.org",
        "supportEmail": "support@example.org",
        "defaultLanguage": "en",
        "timezone": "UTC",
        "allowRegistration": True,
        "requireEmailVerification": True,
        "maintenanceMode": False,
    },
    "security": {
        "passwordMinLength": 8,
        "requireStrongPasswords": True,
        "sessionTimeout": 24,
        "maxLoginAttempts": 5,
        "enableTwoFactor": False,
        "allowPasswordReset": True,
    },
    "email": {
        "smtpHost": "",
        "smtpPort": 587,
        "fromEmail": "noreply@example.org",
        "fromName": "Tenant Content Platform",
        "enableEmailNotifications": True,
    },
    "content": {
        "maxFileSize": 10,
        "allowedFileTypes": ["jpg", "jpeg", "png", "gif", "pdf", "mp4", "mp3"],
        "requireApproval": True,
        "enableComments": True,
    },
    "appearance": {
        "primaryColor": "#2563eb",
        "secondaryColor": "#64748b",
        "logo": "",
        "favicon": "",
        "darkModeEnabled": True,
    },
    "notifications": {
        "newUserSignup": True,
        "newTenantApplication": True,
        "contentFlagged": True,
        "systemAlerts": True,
        "weeklyReports": True,
    },
}


class PlatformSettingsStore:
    """
    Process-local platform settings and maintenance flag.

    Built once per app and hung on ``PlatformState``; lost on restart.
    Reads return copies so callers never mutate the stored groups.
    """

    def __init__(self, defaults: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._defaults = copy.deepcopy(dict(defaults or DEFAULT_PLATFORM_SETTINGS))
        self._settings: Dict[str, Dict[str, Any]] = copy.deepcopy(self._defaults)
        self._maintenance: Dict[str, Any] = {"enabled": False, "message": None, "updatedAt": None, "updatedBy": None}
        self._lock = threading.Lock()

    def get(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._settings)

    def update(self, patch: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Merge ``patch`` one group deep; unknown groups or keys are rejected."""
        errors: Dict[str, list] = {}
        for group, values in patch.items():
            if group not in self._defaults:
                errors.setdefault(group, []).append("Unknown settings group")
                continue
            if not isinstance(values, Mapping):
                errors.setdefault(group, []).append("Settings group must be an object")
                continue
            for key in values:
                if key not in self._defaults[group]:
                    errors.setdefault(f"{group}.{key}", []).append("Unknown setting")
        if errors:
            raise ValidationError("Invalid settings", errors)

        with self._lock:
            for group, values in patch.items():
                self._settings[group].update(copy.deepcopy(dict(values)))
            if "maintenanceMode" in patch.get("general", {}):
                self._maintenance["enabled"] = bool(self._settings["general"]["maintenanceMode"])
            return copy.deepcopy(self._settings)

    def maintenance(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._maintenance)

    def set_maintenance(self, enabled: bool, message: Optional[str], updated_by: Optional[str]) -> Dict[str, Any]:
        with self._lock:
            self._maintenance = {
                "enabled": bool(enabled),
                "message": message,
                "updatedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                "updatedBy": updated_by,
            }
            self._settings["general"]["maintenanceMode"] = bool(enabled)
            return dict(self._maintenance)

    def reset(self) -> None:
        with self._lock:
            self._settings = copy.deepcopy(self._defaults)
            self._maintenance = {"enabled": False, "message": None, "updatedAt": None, "updatedBy": None}
