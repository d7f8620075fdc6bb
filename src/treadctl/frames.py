"""
Vendor command frames written to the treadmill command characteristic.

Frames look like ``[0xf0, 0xc3, <len>, <cmd>, <param>, 0x00, <checksum>]``
where the trailing byte is the sum of all preceding bytes modulo 256. The
meaning of most fields is only partially known, so the frames themselves
are kept as a literal table and only the checksum is verified.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List

from .exceptions import FrameChecksumError


def checksum(body: Iterable[int]) -> int:
    """Sum of ``body`` modulo 256."""
    return sum(body) & 0xFF


@dataclass(frozen=True)
class CommandFrame:
    """A single vendor protocol instruction."""

    name: str
    payload: bytes

    def __post_init__(self) -> None:
        if len(self.payload) < 2:
            raise FrameChecksumError(f"Frame {self.name!r} is too short")
        expected = checksum(self.payload[:-1])
        if self.payload[-1] != expected:
            raise FrameChecksumError(
                f"Frame {self.name!r} checksum is 0x{self.payload[-1]:02x}, "
                f"expected 0x{expected:02x}"
            )

    @property
    def body(self) -> bytes:
        return self.payload[:-1]

    def hex(self) -> str:
        return self.payload.hex(" ")


def build_frame(name: str, body: Iterable[int]) -> CommandFrame:
    """Append the checksum to ``body`` and wrap it as a frame.

    Args:
        name: Frame name used in logs and errors
        body: Frame bytes without the checksum

    Returns:
        Validated CommandFrame
    """
    data = bytes(body)
    return CommandFrame(name, data + bytes([checksum(data)]))


# Resumes running at the last known speed, same as the remote's power button.
# Does not toggle; on first use the speed is at 1.
RESUME = CommandFrame("resume", bytes([0xF0, 0xC3, 0x03, 0x01, 0x00, 0x00, 0xB7]))

# Sets speed to 2 regardless of the previous speed.
SET_SPEED = CommandFrame(
    "set_speed", bytes([0xF0, 0xC3, 0x03, 0x03, 0x14, 0x00, 0xCD])
)

FRAMES: Dict[str, CommandFrame] = {frame.name: frame for frame in (RESUME, SET_SPEED)}


def frames_for_speed(speed: int) -> List[CommandFrame]:
    """Get the ordered frames that power on the belt and set its speed.

    The speed frame is a fixed literal until the speed encoding is known,
    so ``speed`` does not change the result.

    Args:
        speed: Requested speed

    Returns:
        Frames in write order
    """
    return [FRAMES["resume"], FRAMES["set_speed"]]
