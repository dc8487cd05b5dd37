"""mDNS/DNS-SD advertisement of the photo backup service on the LAN."""

import asyncio
import socket
from typing import Callable, List, Optional

from zeroconf import ServiceInfo
from zeroconf.asyncio import AsyncZeroconf

from common.logging_config import get_logger
from common.types import DiscoveryRecord
from photobackup.exceptions import DiscoveryError
from photobackup.network import lan_ipv4_addresses

logger = get_logger(__name__)


def build_service_info(record: DiscoveryRecord, addresses: List[str]) -> ServiceInfo:
    """
    Translate a DiscoveryRecord into a zeroconf ServiceInfo.

    Args:
        record: Record to advertise
        addresses: IPv4 addresses to announce

    Returns:
        ServiceInfo for ``<service_name>.<service_type>``
    """
    service_type = record.service_type
    if not service_type.endswith('.'):
        service_type = f"{service_type}.local."
    return ServiceInfo(
        type_=service_type,
        name=f"{record.service_name}.{service_type}",
        port=record.port,
        server=f"{record.host_identifier}.local.",
        addresses=[socket.inet_aton(address) for address in addresses],
        properties={"path": "/upload"},
    )


class DiscoveryHandle:
    """
    One advertisement. Returned by ``publish``, consumed by ``retract``.

    ``error`` holds the DiscoveryError of a failed publish, if any.
    """

    def __init__(self, record: DiscoveryRecord):
        self.record = record
        self.info: Optional[ServiceInfo] = None
        self.zeroconf: Optional[AsyncZeroconf] = None
        self.task: Optional[asyncio.Task] = None
        self.registered = False
        self.retracted = False
        self.error: Optional[DiscoveryError] = None

    @property
    def active(self) -> bool:
        return self.registered and not self.retracted


class DiscoveryAdvertiser:
    """
    Publishes and retracts the LAN service record.

    Publishing runs in a background task and never raises: failures are
    logged and kept on the handle so HTTP service is unaffected.
    """

    def __init__(
        self,
        zeroconf_factory: Optional[Callable[[], AsyncZeroconf]] = None,
        address_provider: Callable[[], List[str]] = lan_ipv4_addresses,
    ):
        self.zeroconf_factory = zeroconf_factory
        self.address_provider = address_provider

    def publish(self, record: DiscoveryRecord) -> DiscoveryHandle:
        """
        Schedule registration of ``record``. Must be called from the event loop.
        """
        handle = DiscoveryHandle(record)
        handle.task = asyncio.create_task(self._register(handle))
        return handle

    async def _register(self, handle: DiscoveryHandle) -> None:
        record = handle.record
        try:
            factory = self.zeroconf_factory or AsyncZeroconf
            handle.info = build_service_info(record, self.address_provider())
            handle.zeroconf = factory()
            registration = await handle.zeroconf.async_register_service(
                handle.info, allow_name_change=True
            )
            await registration
            handle.registered = True
            logger.info(
                f"Discovery record published: {handle.info.name} "
                f"({record.service_type}) on port {record.port}"
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            handle.error = DiscoveryError(f"publish failed: {e}")
            logger.error(f"Discovery service error: {e}")

    async def retract(self, handle: Optional[DiscoveryHandle]) -> None:
        """
        Withdraw an advertisement. Idempotent; safe for a failed or
        still-pending publish and for ``None``.
        """
        if handle is None or handle.retracted:
            return
        handle.retracted = True

        if handle.task is not None and not handle.task.done():
            handle.task.cancel()
            try:
                await handle.task
            except asyncio.CancelledError:
                pass

        if handle.zeroconf is None:
            return

        try:
            if handle.registered and handle.info is not None:
                unregistration = await handle.zeroconf.async_unregister_service(handle.info)
                await unregistration
                logger.info(f"Discovery record retracted: {handle.record.service_name}")
        except Exception as e:
            logger.error(f"Discovery retract error: {e}")
        finally:
            handle.registered = False
            try:
                await handle.zeroconf.async_close()
            except Exception as e:
                logger.error(f"Discovery shutdown error: {e}")
