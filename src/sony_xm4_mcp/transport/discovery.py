"""RFCOMM channel discovery through an SDP query.

The channel selection heuristic was derived from observed devices
rather than a published profile, so it lives in :func:`select_channel`
with every threshold configurable.
"""

from __future__ import annotations

import logging
from typing import Iterable

from ..config import DiscoveryConfig

logger = logging.getLogger(__name__)


def select_channel(
    channels: Iterable[int],
    preferred: int = 9,
    minimum: int = 2,
    default: int = 9,
) -> int:
    """Pick the control channel among advertised RFCOMM channels.

    Args:
        channels: Channel numbers advertised by the device.
        preferred: Channel used when advertised.
        minimum: The highest advertised channel is used only above this.
        default: Returned when nothing else qualifies.
    """
    found = sorted({c for c in channels if c and c > 0})
    if preferred in found:
        logger.info("Using control channel %d", preferred)
        return preferred
    if found and found[-1] > minimum:
        logger.info("Using highest channel: %d", found[-1])
        return found[-1]
    logger.info("Falling back to channel %d", default)
    return default


def discover_channel(address: str, config: DiscoveryConfig | None = None) -> int:
    """Query SDP records of ``address`` for the control channel.

    Blocking; run it in a worker thread. The Sony control service record
    wins when present; otherwise the channel is chosen by
    :func:`select_channel` from all RFCOMM records.
    """
    config = config or DiscoveryConfig()
    logger.info("Performing SDP query on %s...", address)

    try:
        import bluetooth

        records = bluetooth.find_service(address=address)
    except Exception as e:
        logger.warning("SDP query failed: %s", e)
        records = []

    channels = []
    for record in records:
        if record.get("protocol") != "RFCOMM" or not record.get("port"):
            continue
        port = int(record["port"])
        service_ids = [s.upper() for s in record.get("service-classes") or []]
        service_id = (record.get("service-id") or "").upper()
        if config.service_uuid.upper() in service_ids or service_id == config.service_uuid.upper():
            logger.info("Found Sony service on channel: %d", port)
            return port
        logger.info("Found RFCOMM channel: %d", port)
        channels.append(port)

    return select_channel(
        channels,
        preferred=config.preferred_channel,
        minimum=config.minimum_channel,
        default=config.default_channel,
    )
