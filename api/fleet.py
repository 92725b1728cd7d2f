"""
api/fleet.py -- Load the classified fleet for a request.

Devices are never stored in classified form: every read merges the stored
exports, re-attaches the retired flags and runs the classification pipeline
with the OS policy resolved at startup.
"""

import logging

from fastapi import Request

from cmdb.merge import load_devices
from cmdb.store import FleetStore
from core.models import Device

logger = logging.getLogger("fleetadvisor.api.fleet")


def load_fleet(request: Request) -> list[Device]:
    store: FleetStore = request.app.state.store
    devices = load_devices(store.get_all_csv(), store.get_retired_ids(), request.app.state.os_policy)
    logger.debug("Loaded %d devices", len(devices))
    return devices


def find_device(devices: list[Device], device_id: str) -> Device | None:
    """Match by device id, else by serial number (case-insensitive)."""
    for device in devices:
        if device.id == device_id:
            return device
    key = device_id.lower()
    for device in devices:
        if device.serial_number and device.serial_number.lower() == key:
            return device
    return None
