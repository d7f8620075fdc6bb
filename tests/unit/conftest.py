"""Fake bleak scanner and client classes for tests without a radio."""

import asyncio
from types import SimpleNamespace
from typing import Dict, List, Optional, Sequence

import pytest
from bleak.exc import BleakError

from treadctl.core import (
    TREADMILL_COMMAND_CHAR_UUID,
    TREADMILL_NOTIFY_CHAR_UUID,
    TREADMILL_SERVICE_UUID,
)

DEVICE_INFO_UUID = "0000180a-0000-1000-8000-00805f9b34fb"


def advertisement(address: str, uuids: Sequence[str], name: Optional[str] = None):
    """Build a (device, advertisement_data) pair as bleak reports them."""
    device = SimpleNamespace(address=address, name=name)
    adv = SimpleNamespace(local_name=name, service_uuids=list(uuids))
    return device, adv


class FakeCharacteristic:
    def __init__(self, uuid: str, handle: int, properties: List[str]):
        self.uuid = uuid
        self.handle = handle
        self.properties = properties
        self.descriptors = [
            SimpleNamespace(uuid="00002902-0000-1000-8000-00805f9b34fb", handle=handle + 2)
        ]


class FakeService:
    def __init__(self, uuid: str, handle: int, characteristics=()):
        self.uuid = uuid
        self.handle = handle
        self.characteristics = list(characteristics)

    def get_characteristic(self, uuid: str):
        for char in self.characteristics:
            if char.uuid == uuid:
                return char
        return None


class FakeServiceCollection:
    def __init__(self, services):
        self._services = list(services)

    def __iter__(self):
        return iter(self._services)

    def get_service(self, uuid: str):
        for service in self._services:
            if service.uuid == uuid:
                return service
        return None


def treadmill_services() -> List[FakeService]:
    """GATT layout of the reference treadmill."""
    return [
        FakeService(DEVICE_INFO_UUID, 9),
        FakeService(
            TREADMILL_SERVICE_UUID,
            14,
            [
                FakeCharacteristic(TREADMILL_NOTIFY_CHAR_UUID, 15, ["notify"]),
                FakeCharacteristic(
                    TREADMILL_COMMAND_CHAR_UUID, 18, ["write-without-response", "write"]
                ),
            ],
        ),
    ]


class FakeBle:
    """Configurable stand-in for BleakScanner and BleakClient.

    All interactions are appended to ``events`` in order.
    """

    def __init__(self) -> None:
        self.events: List[tuple] = []
        self.advertisements: List[tuple] = []
        self.services: Dict[str, List[FakeService]] = {}
        self.default_services: List[FakeService] = treadmill_services()
        self.scan_error: Optional[Exception] = None
        self.scan_errors: Dict[str, Exception] = {}
        self.stop_error: Optional[Exception] = None
        self.disconnect_error: Optional[Exception] = None
        self.connect_errors: Dict[str, Exception] = {}
        self.write_error: Optional[Exception] = None
        self.clients: List["object"] = []
        self.scanners: List["object"] = []

    def advertise(
        self,
        address: str,
        uuids: Sequence[str],
        name: Optional[str] = None,
        gatt: Optional[List[FakeService]] = None,
    ) -> None:
        """Make a peripheral visible to scans.

        Args:
            address: Device address
            uuids: Service UUIDs in the advertisement
            name: Local name
            gatt: Services read after connecting (defaults to the advertised ones)
        """
        self.advertisements.append(advertisement(address, uuids, name))
        if gatt is None:
            gatt = [FakeService(uuid, 1 + i) for i, uuid in enumerate(uuids)]
        self.services[address] = gatt

    async def sleep(self, seconds: float) -> None:
        self.events.append(("sleep", seconds))

    @property
    def scanner_factory(self):
        ble = self

        class FakeScanner:
            def __init__(self, detection_callback=None, **kwargs):
                self.detection_callback = detection_callback
                self.kwargs = kwargs
                self.started = False
                self.stopped = False
                ble.scanners.append(self)

            async def start(self):
                if ble.scan_error is not None:
                    raise ble.scan_error
                self.started = True
                ble.events.append(("scan_start",))
                loop = asyncio.get_running_loop()
                for device, adv in ble.advertisements:
                    loop.call_soon(self.detection_callback, device, adv)

            async def stop(self):
                self.stopped = True
                ble.events.append(("scan_stop",))
                if ble.stop_error is not None:
                    raise ble.stop_error

            @classmethod
            async def discover(cls, timeout=5.0, return_adv=False, **kwargs):
                if ble.scan_error is not None:
                    raise ble.scan_error
                error = ble.scan_errors.get(kwargs.get("adapter"))
                if error is not None:
                    raise error
                ble.events.append(("discover", timeout, kwargs.get("adapter")))
                await asyncio.sleep(timeout)
                return {device.address: (device, adv) for device, adv in ble.advertisements}

        return FakeScanner

    @property
    def client_factory(self):
        ble = self

        class FakeClient:
            def __init__(self, address_or_device, timeout=10.0, **kwargs):
                self.address = getattr(address_or_device, "address", address_or_device)
                self.timeout = timeout
                self.kwargs = kwargs
                ble.clients.append(self)

            @property
            def services(self):
                return FakeServiceCollection(
                    ble.services.get(self.address, ble.default_services)
                )

            async def connect(self):
                ble.events.append(("connect", self.address))
                error = ble.connect_errors.get(self.address)
                if error is not None:
                    raise error

            async def disconnect(self):
                ble.events.append(("disconnect", self.address))
                if ble.disconnect_error is not None:
                    raise ble.disconnect_error

            async def __aenter__(self):
                await self.connect()
                return self

            async def __aexit__(self, *exc_info):
                await self.disconnect()

            async def write_gatt_char(self, characteristic, data, response=False):
                if ble.write_error is not None:
                    raise ble.write_error
                ble.events.append(("write", characteristic.uuid, bytes(data), response))

        return FakeClient


@pytest.fixture
def ble() -> FakeBle:
    return FakeBle()


@pytest.fixture
def bleak_error() -> BleakError:
    return BleakError("org.bluez.Error.Failed")
