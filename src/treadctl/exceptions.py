"""
Exceptions raised by discovery and command sequencing.
"""


class TreadctlError(Exception):
    """Base class for all treadctl errors."""


class TreadmillNotFoundError(TreadctlError):
    """No peripheral advertising the treadmill service was found in time."""


class InvalidAddressError(TreadctlError, ValueError):
    """Device address is not six colon separated hex octets."""


class FrameChecksumError(TreadctlError, ValueError):
    """Command frame trailer does not match the sum of its body."""


class AdapterError(TreadctlError):
    """Bluetooth adapter is missing, powered off or not accessible."""


class ConnectError(TreadctlError):
    """Connecting to the device failed."""


class CharacteristicNotFoundError(TreadctlError):
    """Treadmill service or command characteristic missing on the device."""


class WriteError(TreadctlError):
    """Writing a command frame to the device failed."""
