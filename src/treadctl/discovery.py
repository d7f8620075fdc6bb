"""
BLE discovery of treadmills advertising the vendor fff0 service.

Two interchangeable strategies share one interface:

* ``StreamingDiscovery`` watches advertisements as they arrive and stops at
  the first treadmill. Lowest latency, single match.
* ``EnumerateDiscovery`` scans for the whole window, then connects to every
  peripheral it saw to read its service list and returns all treadmills.

Device removal is not tracked. A treadmill that goes away after being found
shows up later as a connection failure.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from .core import CONNECT_TIMEOUT, DEFAULT_SCAN_TIMEOUT, TREADMILL_SERVICE_UUID
from .exceptions import AdapterError, TreadmillNotFoundError

logger = logging.getLogger(__name__)

# Errors that make enumerate mode skip a single peripheral
SKIPPABLE_ERRORS = (BleakError, asyncio.TimeoutError, OSError)

# Errors raised when the adapter or BlueZ itself is unavailable
SCAN_START_ERRORS = (BleakError, OSError)


@dataclass(frozen=True)
class Peripheral:
    """A peripheral seen while scanning, and the handle used to connect to it."""

    address: str
    name: Optional[str] = None
    service_uuids: FrozenSet[str] = frozenset()
    device: Optional[BLEDevice] = None

    @classmethod
    def from_bleak(
        cls, device: BLEDevice, advertisement_data: AdvertisementData
    ) -> "Peripheral":
        return cls(
            address=device.address,
            name=advertisement_data.local_name or device.name,
            service_uuids=frozenset(
                uuid.lower() for uuid in advertisement_data.service_uuids or []
            ),
            device=device,
        )

    @property
    def display_name(self) -> str:
        return self.name or "Unnamed"


def is_treadmill(service_uuids: Iterable[str]) -> bool:
    """Check whether a service UUID set contains the treadmill service."""
    return any(uuid.lower() == TREADMILL_SERVICE_UUID for uuid in service_uuids)


def _check_timeout(timeout: float) -> None:
    if timeout < 0:
        raise ValueError(f"Scan timeout must not be negative, got {timeout}")


def _adapter_kwargs(adapter: Optional[str]) -> Dict[str, Any]:
    return {"adapter": adapter} if adapter else {}


async def _stop_scanner(scanner: Any) -> None:
    try:
        await scanner.stop()
    except SCAN_START_ERRORS as e:
        logger.warning(f"Stopping the scanner failed: {e}")


class Discovery(ABC):
    """Finds treadmills within a time budget."""

    # True if the strategy stops at the first match
    single_match = True

    def __init__(
        self,
        scanner_factory: Any = BleakScanner,
        client_factory: Any = BleakClient,
        adapters: Optional[Sequence[str]] = None,
        connect_timeout: float = CONNECT_TIMEOUT,
    ) -> None:
        """Initialize discovery.

        Args:
            scanner_factory: BleakScanner compatible class
            client_factory: BleakClient compatible class
            adapters: Adapter names such as "hci0" (None for the default adapter)
            connect_timeout: Per-peripheral connection timeout in seconds
        """
        self._scanner_factory = scanner_factory
        self._client_factory = client_factory
        self._adapters = list(adapters or [])
        self._connect_timeout = connect_timeout

    @abstractmethod
    async def scan(self, timeout: float) -> List[Peripheral]:
        """Scan for treadmills.

        Args:
            timeout: Scan window in seconds

        Returns:
            Matching peripherals, never a non-matching one
        """


class StreamingDiscovery(Discovery):
    """Stops the scan at the first advertisement carrying the treadmill service."""

    single_match = True

    async def scan(self, timeout: float) -> List[Peripheral]:
        _check_timeout(timeout)
        found: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_detection(
            device: BLEDevice, advertisement_data: AdvertisementData
        ) -> None:
            if found.done():
                return
            logger.debug(f"Device seen: {device.address}")
            if is_treadmill(advertisement_data.service_uuids or []):
                found.set_result(Peripheral.from_bleak(device, advertisement_data))

        adapter = self._adapters[0] if self._adapters else None
        scanner = self._scanner_factory(
            detection_callback=on_detection, **_adapter_kwargs(adapter)
        )

        if len(self._adapters) > 1:
            logger.warning(
                f"Streaming scan uses one adapter, ignoring {self._adapters[1:]}"
            )
        logger.info(f"Discovering devices using adapter {adapter or 'default'}")
        try:
            await scanner.start()
        except SCAN_START_ERRORS as e:
            raise AdapterError(f"Could not start scanning: {e}") from e

        try:
            peripheral = await asyncio.wait_for(found, timeout)
        except asyncio.TimeoutError:
            raise TreadmillNotFoundError(
                f"No treadmill found within {timeout:g} seconds"
            ) from None
        finally:
            await _stop_scanner(scanner)

        logger.info(f"Found treadmill: {peripheral.display_name} ({peripheral.address})")
        return [peripheral]


class EnumerateDiscovery(Discovery):
    """Scans for the full window and queries every peripheral's services."""

    single_match = False

    async def scan(self, timeout: float) -> List[Peripheral]:
        _check_timeout(timeout)
        adapters: List[Optional[str]] = list(self._adapters) or [None]
        # Every adapter finishes before an error is raised
        results = await asyncio.gather(
            *(self._scan_adapter(adapter, timeout) for adapter in adapters),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

        # Same device may be visible from several adapters
        matches: Dict[str, Peripheral] = {}
        for peripherals in results:
            for peripheral in peripherals:
                matches.setdefault(peripheral.address, peripheral)
        return list(matches.values())

    async def _scan_adapter(
        self, adapter: Optional[str], timeout: float
    ) -> List[Peripheral]:
        kwargs = _adapter_kwargs(adapter)
        logger.info(
            f"Scanning {timeout:g}s using adapter {adapter or 'default'}..."
        )
        try:
            seen = await self._scanner_factory.discover(
                timeout=timeout, return_adv=True, **kwargs
            )
        except SCAN_START_ERRORS as e:
            raise AdapterError(f"Could not scan with adapter {adapter}: {e}") from e

        matches = []
        for device, advertisement_data in seen.values():
            peripheral = Peripheral.from_bleak(device, advertisement_data)
            try:
                queried = await self._query_service_uuids(device, kwargs)
            except SKIPPABLE_ERRORS as e:
                logger.warning(f"Skipping {peripheral.address}: {e}")
                continue

            service_uuids = peripheral.service_uuids | queried
            if is_treadmill(service_uuids):
                logger.info(
                    f"Found treadmill: {peripheral.display_name} ({peripheral.address})"
                )
                matches.append(replace(peripheral, service_uuids=service_uuids))
            else:
                logger.debug(f"Not a treadmill: {peripheral.address}")
        return matches

    async def _query_service_uuids(
        self, device: BLEDevice, kwargs: Dict[str, Any]
    ) -> FrozenSet[str]:
        async with self._client_factory(
            device, timeout=self._connect_timeout, **kwargs
        ) as client:
            return frozenset(service.uuid.lower() for service in client.services)


DISCOVERY_MODES = {
    "stream": StreamingDiscovery,
    "enumerate": EnumerateDiscovery,
}


def make_discovery(mode: str = "stream", **kwargs: Any) -> Discovery:
    """Create the discovery strategy for a mode.

    Args:
        mode: "stream" for the first match, "enumerate" for all matches
        **kwargs: Passed to the strategy constructor

    Returns:
        Discovery instance
    """
    try:
        strategy = DISCOVERY_MODES[mode]
    except KeyError:
        raise ValueError(
            f"Unknown discovery mode {mode!r}, expected one of {sorted(DISCOVERY_MODES)}"
        ) from None
    return strategy(**kwargs)


async def scan_for_treadmill(
    timeout: float = DEFAULT_SCAN_TIMEOUT, mode: str = "stream", **kwargs: Any
) -> Peripheral:
    """Find one treadmill.

    Raises:
        TreadmillNotFoundError: Nothing matched before the timeout
        AdapterError: Scanning could not be started
    """
    peripherals = await make_discovery(mode, **kwargs).scan(timeout)
    if not peripherals:
        raise TreadmillNotFoundError(f"No treadmill found within {timeout:g} seconds")
    return peripherals[0]


async def find_treadmills(
    timeout: float = DEFAULT_SCAN_TIMEOUT, **kwargs: Any
) -> List[Peripheral]:
    """Find every treadmill in range, possibly none."""
    return await make_discovery("enumerate", **kwargs).scan(timeout)
