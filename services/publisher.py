"""Best-effort publishing of the latest sample to an Azure Event Hub."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, Iterable, List, Optional

import httpx

from app.schemas import SignedMessage
from datastore.sample_store import SampleStore
from models.records import SigningToken, WeatherSample, url_encode

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 20 * 60
DEFAULT_RENEW_INTERVAL_SECONDS = 15 * 60


@dataclass(frozen=True)
class PublishChannel:
    name: str
    channel_id: str
    measure_name: str
    unit: str
    extract: Callable[[WeatherSample], float]


# No channel id has been assigned to temperature yet; it is published only once
# an entry is added here.
KNOWN_CHANNELS: Dict[str, PublishChannel] = {
    "altitude": PublishChannel(
        name="altitude",
        channel_id="2298a348-e2f9-4438-ab23-82a3930662ab",
        measure_name="Altitude",
        unit="m",
        extract=lambda sample: sample.altitude_m,
    ),
    "humidity": PublishChannel(
        name="humidity",
        channel_id="2298a348-e2f9-4438-ab23-82a3930662ac",
        measure_name="Humidity",
        unit="%RH",
        extract=lambda sample: sample.humidity_pct,
    ),
    "pressure": PublishChannel(
        name="pressure",
        channel_id="2298a348-e2f9-4438-ab23-82a3930662ad",
        measure_name="Pressure",
        unit="kPa",
        extract=lambda sample: sample.pressure_kPa,
    ),
}


def build_resource_uri(namespace: str, hub_name: str, display_name: str) -> str:
    return (
        f"https://{namespace}.servicebus.windows.net/"
        f"{hub_name}/publishers/{display_name}/messages"
    )


def sign(key: str, value: str) -> str:
    digest = hmac.new(key.encode("utf-8"), value.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def generate_signing_token(
    resource_uri: str,
    key_name: str,
    key: str,
    now: Optional[float] = None,
    ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
) -> SigningToken:
    """Build a shared access signature valid for ``ttl_seconds`` from ``now``."""

    issued_at = int(now if now is not None else time.time())
    expiry = issued_at + ttl_seconds
    string_to_sign = f"{url_encode(resource_uri)}\n{expiry}"
    return SigningToken(
        resource_uri=resource_uri,
        key_name=key_name,
        signature=sign(key, string_to_sign),
        expiry=expiry,
    )


def resolve_channels(names: Iterable[str]) -> List[PublishChannel]:
    channels: List[PublishChannel] = []
    for name in names:
        channel = KNOWN_CHANNELS.get(name.strip().lower())
        if channel is None:
            logger.warning(
                "Ignoring unknown publish channel",
                extra={"channel": name, "reason": "no channel id configured"},
            )
            continue
        if channel not in channels:
            channels.append(channel)
    return channels


class CloudPublisher:
    """Posts one signed message per channel; failures are logged and dropped."""

    def __init__(
        self,
        store: SampleStore,
        resource_uri: str,
        key_name: str,
        key: str,
        channels: Iterable[PublishChannel],
        client: Optional[httpx.Client] = None,
        publish_interval: float = 2.0,
        renew_interval: float = DEFAULT_RENEW_INTERVAL_SECONDS,
        token_ttl: int = DEFAULT_TOKEN_TTL_SECONDS,
        timeout: float = 10.0,
        display_name: Optional[str] = None,
        organization: Optional[str] = None,
        location: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.resource_uri = resource_uri
        self.key_name = key_name
        self._key = key
        self.channels = list(channels)
        self.publish_interval = publish_interval
        self.renew_interval = renew_interval
        self.token_ttl = token_ttl
        self.display_name = display_name
        self.organization = organization
        self.location = location
        self._clock = clock
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)
        self.executor = self._build_executor()
        self._executor_closed = False
        self._token: Optional[SigningToken] = None
        self._token_lock = Lock()
        self._counter_lock = Lock()
        self._sent = 0
        self._failed = 0
        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []

    @property
    def token(self) -> Optional[SigningToken]:
        with self._token_lock:
            return self._token

    @property
    def counters(self) -> tuple[int, int]:
        with self._counter_lock:
            return self._sent, self._failed

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def renew_token(self) -> SigningToken:
        token = generate_signing_token(
            self.resource_uri,
            self.key_name,
            self._key,
            now=self._clock(),
            ttl_seconds=self.token_ttl,
        )
        with self._token_lock:
            self._token = token
        logger.info("Signing token renewed", extra={"expiry": token.expiry})
        return token

    def build_messages(self, sample: WeatherSample) -> List[SignedMessage]:
        timestamp = datetime.now(timezone.utc).isoformat()
        return [
            SignedMessage(
                channel_id=channel.channel_id,
                measure_name=channel.measure_name,
                unit=channel.unit,
                value=channel.extract(sample),
                timestamp_utc=timestamp,
                display_name=self.display_name,
                organization=self.organization,
                location=self.location,
            )
            for channel in self.channels
        ]

    def publish_once(self) -> Dict[str, bool]:
        """Send the current sample on every channel; returns per-measure success."""
        token = self.token or self.renew_token()
        messages = self.build_messages(self.store.current())
        futures = {
            message.measure_name: self.executor.submit(self._post, message, token)
            for message in messages
        }
        return {name: future.result() for name, future in futures.items()}

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        if self._executor_closed:
            self.executor = self._build_executor()
            self._executor_closed = False
        if self._owns_client and self._client.is_closed:
            self._client = httpx.Client(timeout=self._timeout)
        self.renew_token()
        self._threads = [
            threading.Thread(
                target=self._loop,
                args=(self.publish_interval, self.publish_once, "publish"),
                name="publisher",
                daemon=True,
            ),
            threading.Thread(
                target=self._loop,
                args=(self.renew_interval, self.renew_token, "token renewal"),
                name="token-renewal",
                daemon=True,
            ),
        ]
        for thread in self._threads:
            thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        # In-flight posts finish before the client they use is closed.
        self.executor.shutdown(wait=True, cancel_futures=True)
        self._executor_closed = True
        if self._owns_client:
            self._client.close()

    def _build_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(
            max_workers=max(len(self.channels), 1), thread_name_prefix="publish"
        )

    def _loop(self, interval: float, action: Callable[[], object], label: str) -> None:
        while not self._stop_event.wait(interval):
            try:
                action()
            except Exception:
                logger.exception("Unexpected failure during %s", label)

    def _post(self, message: SignedMessage, token: SigningToken) -> bool:
        try:
            response = self._client.post(
                self.resource_uri,
                content=message.to_json(),
                headers={
                    "Authorization": token.authorization,
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            self._count(success=False)
            logger.warning(
                "Failed sending message",
                extra={"measure": message.measure_name, "reason": str(exc)},
            )
            return False

        if not response.is_success:
            self._count(success=False)
            logger.warning(
                "Failed sending message",
                extra={
                    "measure": message.measure_name,
                    "status_code": response.status_code,
                    "reason": response.reason_phrase,
                },
            )
            return False

        self._count(success=True)
        logger.debug("Message sent", extra={"measure": message.measure_name})
        return True

    def _count(self, success: bool) -> None:
        with self._counter_lock:
            if success:
                self._sent += 1
            else:
                self._failed += 1
