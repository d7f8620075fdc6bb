"""
TreadCtl - BLE Treadmill Control Library

A Python library for finding treadmills that advertise the fff0 vendor
service and driving them through their command characteristic.
"""

__version__ = "0.1.0"
__description__ = (
    "Discover and control BLE treadmills speaking the fff0 vendor protocol"
)

from .controller import TreadmillController, parse_address
from .discovery import Peripheral, find_treadmills, scan_for_treadmill
from .display import DisplayManager

__all__ = [
    "TreadmillController",
    "DisplayManager",
    "Peripheral",
    "find_treadmills",
    "parse_address",
    "scan_for_treadmill",
]
