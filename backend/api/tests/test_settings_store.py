import pytest

from tenantcms.errors import ValidationError
from tenantcms.settings_store import PlatformSettingsStore


def test_stores_do_not_share_state():
    a = PlatformSettingsStore()
    b = PlatformSettingsStore()
    a.update({"general": {"siteName": "A"}})
    assert b.get()["general"]["siteName"] != "A"


def test_reads_are_copies():
    store = PlatformSettingsStore()
    store.get()["general"]["siteName"] = "mutated"
    assert store.get()["general"]["siteName"] != "mutated"


def test_rejected_patch_changes_nothing():
    store = PlatformSettingsStore()
    with pytest.raises(ValidationError) as exc:
        store.update({"general": {"siteName": "ok", "bogus": 1}})
    assert "general.bogus" in exc.value.errors
    assert store.get()["general"]["siteName"] != "ok"


def test_maintenance_flag_and_general_setting_stay_in_step():
    store = PlatformSettingsStore()
    store.update({"general": {"maintenanceMode": True}})
    assert store.maintenance()["enabled"] is True

    state = store.set_maintenance(False, None, "root")
    assert state["updatedBy"] == "root"
    assert store.get()["general"]["maintenanceMode"] is False


def test_reset_restores_defaults():
    store = PlatformSettingsStore()
    store.set_maintenance(True, "down", "root")
    store.reset()
    assert store.maintenance() == {"enabled": False, "message": None, "updatedAt": None, "updatedBy": None}
    assert store.get()["general"]["maintenanceMode"] is False
