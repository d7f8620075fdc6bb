"""
Command sequencing for treadmills speaking the fff0 vendor protocol.

Connects to a treadmill by address, plays back the fixed frame sequence on
the command characteristic and disconnects. Every step awaits completion
before the next one starts and nothing is retried. The belt state on the
treadmill is not rolled back when a later step fails.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from bleak import BleakClient
from bleak.exc import BleakError

from .core import (
    CONNECT_TIMEOUT,
    POWER_ON_DELAY,
    SPEED_MAX,
    SPEED_MIN,
    TREADMILL_COMMAND_CHAR_UUID,
    TREADMILL_SERVICE_UUID,
)
from .exceptions import (
    CharacteristicNotFoundError,
    ConnectError,
    InvalidAddressError,
    WriteError,
)
from .frames import CommandFrame, frames_for_speed

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^[0-9A-Fa-f]{2}(:[0-9A-Fa-f]{2}){5}$")


def parse_address(text: str) -> str:
    """Validate a Bluetooth device address.

    Args:
        text: Address such as "aa:bb:cc:dd:ee:ff"

    Returns:
        Upper-case address

    Raises:
        InvalidAddressError: Not six colon separated hex octets
    """
    candidate = text.strip()
    if not _ADDRESS_RE.match(candidate):
        raise InvalidAddressError(f"Invalid device address: {text!r}")
    return candidate.upper()


@dataclass
class DescriptorInfo:
    uuid: str
    handle: int


@dataclass
class CharacteristicInfo:
    uuid: str
    handle: int
    properties: List[str]
    descriptors: List[DescriptorInfo] = field(default_factory=list)


@dataclass
class ServiceInfo:
    uuid: str
    handle: int
    characteristics: List[CharacteristicInfo] = field(default_factory=list)


class TreadmillController:
    """Connects to a treadmill and writes command frames."""

    def __init__(
        self,
        client_factory: Any = BleakClient,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        power_on_delay: float = POWER_ON_DELAY,
        connect_timeout: float = CONNECT_TIMEOUT,
        adapter: Optional[str] = None,
    ) -> None:
        """Initialize controller.

        Args:
            client_factory: BleakClient compatible class
            sleep: Coroutine function used for the power-on delay
            power_on_delay: Seconds to wait between resume and speed frames
            connect_timeout: Connection timeout in seconds
            adapter: Adapter name such as "hci0" (None for the default adapter)
        """
        self._client_factory = client_factory
        self._sleep = sleep
        self._power_on_delay = power_on_delay
        self._connect_timeout = connect_timeout
        self._adapter = adapter

    async def apply_speed(self, address: str, speed: int) -> None:
        """Power on the treadmill and set its speed.

        Args:
            address: Device address
            speed: Requested speed (SPEED_MIN to SPEED_MAX)

        Raises:
            InvalidAddressError: Malformed address, raised before connecting
            ConnectError: Connection failed, no frame was written
            CharacteristicNotFoundError: Command characteristic missing
            WriteError: A frame write failed
        """
        address = parse_address(address)
        if not SPEED_MIN <= speed <= SPEED_MAX:
            raise ValueError(f"Speed {speed} out of range [{SPEED_MIN}, {SPEED_MAX}]")

        frames = frames_for_speed(speed)
        logger.debug(f"Speed {speed} uses the fixed frame {frames[-1].hex()}")

        client = await self._connect(address)
        try:
            characteristic = self._find_command_characteristic(client)

            resume, set_speed = frames
            await self._write(client, characteristic, resume)

            logger.info(f"Waiting {self._power_on_delay:g}s for the belt to power on")
            await self._sleep(self._power_on_delay)

            await self._write(client, characteristic, set_speed)
        finally:
            await self._disconnect(client)

    async def list_services(self, address: str) -> List[ServiceInfo]:
        """Read the GATT service tree of a device.

        Args:
            address: Device address

        Returns:
            Services with their characteristics and descriptors
        """
        address = parse_address(address)
        client = await self._connect(address)
        try:
            services = []
            for service in client.services:
                info = ServiceInfo(uuid=service.uuid, handle=service.handle)
                for char in service.characteristics:
                    info.characteristics.append(
                        CharacteristicInfo(
                            uuid=char.uuid,
                            handle=char.handle,
                            properties=list(char.properties),
                            descriptors=[
                                DescriptorInfo(uuid=d.uuid, handle=d.handle)
                                for d in char.descriptors
                            ],
                        )
                    )
                services.append(info)
            return services
        finally:
            await self._disconnect(client)

    async def _connect(self, address: str) -> Any:
        kwargs = {"adapter": self._adapter} if self._adapter else {}
        client = self._client_factory(
            address, timeout=self._connect_timeout, **kwargs
        )
        logger.info(f"Connecting to {address}...")
        try:
            await client.connect()
        except (BleakError, asyncio.TimeoutError, OSError) as e:
            raise ConnectError(f"Could not connect to {address}: {e}") from e
        logger.info(f"Connected to {address}")
        return client

    async def _disconnect(self, client: Any) -> None:
        logger.info("Disconnecting...")
        try:
            await client.disconnect()
        except (BleakError, asyncio.TimeoutError, OSError) as e:
            logger.error(f"Disconnect failed: {e}")
            return
        logger.info("Disconnected")

    @staticmethod
    def _find_command_characteristic(client: Any) -> Any:
        service = client.services.get_service(TREADMILL_SERVICE_UUID)
        if service is None:
            raise CharacteristicNotFoundError(
                f"Service {TREADMILL_SERVICE_UUID} not found"
            )
        characteristic = service.get_characteristic(TREADMILL_COMMAND_CHAR_UUID)
        if characteristic is None:
            raise CharacteristicNotFoundError(
                f"Characteristic {TREADMILL_COMMAND_CHAR_UUID} not found"
            )
        return characteristic

    @staticmethod
    async def _write(client: Any, characteristic: Any, frame: CommandFrame) -> None:
        logger.info(f"Writing {frame.name} frame: {frame.hex()}")
        try:
            await client.write_gatt_char(characteristic, frame.payload, response=True)
        except (BleakError, asyncio.TimeoutError, OSError) as e:
            raise WriteError(f"Writing {frame.name} frame failed: {e}") from e
