"""Wires the transport, decoder, store and the three periodic actors."""

from __future__ import annotations

import logging
from functools import lru_cache
from threading import Lock
from typing import Optional

from app.schemas import PublisherStatus, SamplerStatus, StationStatus, WeatherSnapshot
from datastore.sample_store import SampleStore
from hardware.mock_bus import MockI2CBus
from hardware.transport import BusTransport, SMBusTransport
from services.decoder import FrameDecoder
from services.publisher import CloudPublisher, build_resource_uri, resolve_channels
from services.responder import SnapshotResponder
from services.sampler import Indicator, SamplingScheduler
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


class WeatherStation:
    """Owns the bus and starts or stops sampler, responder and publisher together."""

    def __init__(
        self,
        settings: Settings,
        transport: BusTransport,
        publisher: Optional[CloudPublisher] = None,
        sampling_indicator: Optional[Indicator] = None,
        responder_indicator: Optional[Indicator] = None,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.bus_lock = Lock()
        self.store = SampleStore()
        self.decoder = FrameDecoder(transport)
        self.sampler = SamplingScheduler(
            decoder=self.decoder,
            store=self.store,
            bus_lock=self.bus_lock,
            interval=settings.sample_interval,
            lock_timeout=settings.bus_lock_timeout,
            indicator=sampling_indicator,
        )
        self.responder = SnapshotResponder(
            store=self.store,
            host=settings.snapshot_host,
            port=settings.snapshot_port,
            indicator=responder_indicator,
        )
        self.publisher = publisher
        if self.publisher is None and settings.cloud_configured:
            self.publisher = CloudPublisher(
                store=self.store,
                resource_uri=build_resource_uri(
                    settings.servicebus_namespace,
                    settings.event_hub_name,
                    settings.display_name,
                ),
                key_name=settings.key_name,
                key=settings.key,
                channels=resolve_channels(settings.publish_channels),
                publish_interval=settings.publish_interval,
                renew_interval=settings.token_renew_interval,
                token_ttl=settings.token_ttl,
                timeout=settings.publish_timeout,
                display_name=settings.display_name,
                organization=settings.organization,
                location=settings.location,
            )
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self.transport.open()
        self.sampler.start()
        self.responder.start()
        if self.publisher is not None:
            self.publisher.start()
        else:
            logger.info(
                "Cloud publishing disabled",
                extra={"reason": "event hub settings incomplete"},
            )
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        if self.publisher is not None:
            self.publisher.stop()
        self.responder.stop()
        self.sampler.stop()
        self.transport.close()
        self._started = False

    def status(self) -> StationStatus:
        stats = self.sampler.stats()
        address = self.responder.address
        publisher_status: Optional[PublisherStatus] = None
        if self.publisher is not None:
            token = self.publisher.token
            sent, failed = self.publisher.counters
            publisher_status = PublisherStatus(
                running=self.publisher.running,
                channels=[channel.name for channel in self.publisher.channels],
                token_expiry=token.expiry if token is not None else None,
                messages_sent=sent,
                messages_failed=failed,
            )
        return StationStatus(
            sampler=SamplerStatus(
                running=self.sampler.running,
                cycles_completed=stats.cycles_completed,
                cycles_skipped=stats.cycles_skipped,
                channel_faults=stats.channel_faults,
                last_cycle_ms=stats.last_cycle_ms,
            ),
            responder_address=f"{address[0]}:{address[1]}" if address else None,
            publisher=publisher_status,
            sample=WeatherSnapshot.from_sample(self.store.current()),
        )


def build_transport(settings: Settings) -> BusTransport:
    if settings.i2c_bus is None:
        logger.info("No I2C bus configured, using simulated sensors")
        return MockI2CBus()
    return SMBusTransport(settings.i2c_bus)


@lru_cache
def build_default_station() -> WeatherStation:
    """Factory that wires the station from environment settings."""
    settings = get_settings()
    return WeatherStation(settings=settings, transport=build_transport(settings))
