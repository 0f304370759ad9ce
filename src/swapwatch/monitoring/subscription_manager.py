"""
Logs subscription manager.

Keeps one logsSubscribe stream for a tracked wallet alive indefinitely:

    DISCONNECTED -> CONNECTING -> SUBSCRIBING -> ACTIVE -> CLOSING | FAILED -> DISCONNECTED

A closed or failed connection is retried after `reconnect_delay`, at most
`max_reconnect_attempts` times in a row. The counter resets each time a
connection reaches ACTIVE. Once the budget is spent the manager is STOPPED
and an operator alert is raised.

Every notification carrying a signature is handed to `on_signature` in its
own task, so a slow pipeline never blocks intake or the heartbeat.
In-flight pipelines survive reconnects.
"""

import asyncio
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol

import aiohttp

from swapwatch.monitoring.signal_dedup import SignalDedup
from swapwatch.monitoring.ws_transport import (
    TransportClosed,
    TransportNotReady,
    WebSocketTransport,
)
from swapwatch.utils.logger import get_logger, log_critical_error

logger = get_logger(__name__)

# Patched in tests to skip real reconnect delays
_sleep = asyncio.sleep


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    CLOSING = "closing"
    FAILED = "failed"
    STOPPED = "stopped"


class Transport(Protocol):
    ready: asyncio.Future

    @property
    def closed(self) -> bool: ...

    async def connect(self) -> None: ...

    async def send_json(self, data: dict[str, Any]) -> None: ...

    async def ping(self) -> None: ...

    async def receive(self) -> str: ...

    async def close(self) -> None: ...


def extract_signature(raw: str) -> Optional[str]:
    """Signature of a successful logsNotification, None for anything else."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    params = data.get("params")
    if not isinstance(params, dict):
        return None
    result = params.get("result")
    if not isinstance(result, dict):
        return None
    value = result.get("value")
    if not isinstance(value, dict):
        return None
    if value.get("err"):
        return None
    signature = value.get("signature")
    if isinstance(signature, str) and signature:
        return signature
    return None


class SubscriptionManager:
    """Owns the streaming connection of one tracked wallet."""

    def __init__(
        self,
        tracked_address: str,
        wss_endpoint: str,
        on_signature: Callable[[str], Awaitable[Any]],
        *,
        name: str | None = None,
        session: aiohttp.ClientSession | None = None,
        transport_factory: Callable[[str], Transport] | None = None,
        max_reconnect_attempts: int = 5,
        reconnect_delay: float = 5.0,
        ping_interval: float = 60.0,
        ready_poll_attempts: int = 10,
        ready_poll_interval: float = 0.2,
        commitment: str = "confirmed",
        dedup_ttl: float = 300,
        on_exhausted: Callable[[str], Awaitable[Any]] | None = None,
    ):
        self.tracked_address = tracked_address
        self.wss_endpoint = wss_endpoint
        self.on_signature = on_signature
        self.name = name or f"{tracked_address[:4]}..{tracked_address[-4:]}"
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.ping_interval = ping_interval
        self.ready_poll_attempts = ready_poll_attempts
        self.ready_poll_interval = ready_poll_interval
        self.commitment = commitment
        self.on_exhausted = on_exhausted

        self._session = session
        self._owns_session = False
        self._transport_factory = transport_factory

        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempts = 0
        self._running = False
        self._transport: Optional[Transport] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()
        self._dedup = SignalDedup(ttl_seconds=dedup_ttl)

        self._metrics = {
            "connections": 0,
            "messages": 0,
            "dispatched": 0,
            "duplicates": 0,
            "ignored": 0,
            "pings_sent": 0,
            "heartbeat_failures": 0,
            "dispatch_errors": 0,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def subscription_request(self) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "logsSubscribe",
            "params": [
                {"mentions": [self.tracked_address]},
                {"commitment": self.commitment},
            ],
        }

    def start(self) -> asyncio.Task:
        """Run the manager as a background task."""
        return asyncio.create_task(self.run(), name=f"subscription-{self.name}")

    async def run(self) -> None:
        """Connect and keep reconnecting until stopped or out of retries."""
        self._running = True
        if self._transport_factory is None and self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

        try:
            while self._running:
                await self._connect_once()
                if not self._running:
                    break

                if self.reconnect_attempts >= self.max_reconnect_attempts:
                    await self._exhausted()
                    break

                self.reconnect_attempts += 1
                logger.info(
                    f"[WS] {self.name}: reconnecting in {self.reconnect_delay}s "
                    f"({self.reconnect_attempts}/{self.max_reconnect_attempts})"
                )
                await _sleep(self.reconnect_delay)
        finally:
            self._running = False
            if self._owns_session and self._session is not None:
                await self._session.close()
                self._session = None
                self._owns_session = False

    async def stop(self) -> None:
        """Close the transport and the heartbeat. In-flight pipelines keep running."""
        self._running = False
        await self._teardown()
        if self.state is not ConnectionState.STOPPED:
            self._set_state(ConnectionState.DISCONNECTED)
        logger.info(f"[WS] {self.name}: stopped")

    async def wait_inflight(self) -> None:
        """Wait for all dispatched pipelines to finish."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # One connection
    # ------------------------------------------------------------------

    def _new_transport(self) -> Transport:
        if self._transport_factory is not None:
            return self._transport_factory(self.wss_endpoint)
        return WebSocketTransport(self.wss_endpoint, self._session)

    async def _connect_once(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        transport = self._new_transport()
        self._transport = transport
        try:
            await transport.connect()
            self._set_state(ConnectionState.SUBSCRIBING)
            await self._wait_until_ready(transport)
            await transport.send_json(self.subscription_request())
            logger.info(f"[WS] {self.name}: subscribed to logs of {self.tracked_address}")

            self._set_state(ConnectionState.ACTIVE)
            self.reconnect_attempts = 0
            self._metrics["connections"] += 1
            self._heartbeat_task = asyncio.create_task(self._heartbeat(transport))

            await self._receive_loop(transport)
        except TransportClosed as e:
            if e.error is not None:
                logger.warning(f"[WS] {self.name}: transport error: {e.error}")
                self._set_state(ConnectionState.FAILED)
            else:
                logger.info(f"[WS] {self.name}: disconnected ({e})")
                self._set_state(ConnectionState.CLOSING)
        except TransportNotReady as e:
            logger.warning(f"[WS] {self.name}: {e}")
            self._set_state(ConnectionState.FAILED)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"[WS] {self.name}: connection error: {e}")
            self._set_state(ConnectionState.FAILED)
        except Exception as e:
            logger.exception(f"[WS] {self.name}: unexpected connection error: {e}")
            self._set_state(ConnectionState.FAILED)
        finally:
            await self._teardown()
            if self.state is not ConnectionState.STOPPED:
                self._set_state(ConnectionState.DISCONNECTED)

    async def _wait_until_ready(self, transport: Transport) -> None:
        timeout = self.ready_poll_attempts * self.ready_poll_interval
        try:
            await asyncio.wait_for(transport.ready, timeout=timeout)
        except asyncio.TimeoutError:
            raise TransportNotReady(
                f"transport not ready after {self.ready_poll_attempts} checks"
            ) from None

    async def _receive_loop(self, transport: Transport) -> None:
        while self._running:
            raw = await transport.receive()
            self._metrics["messages"] += 1
            self._handle_message(raw)

    def _handle_message(self, raw: str) -> Optional[asyncio.Task]:
        signature = extract_signature(raw)
        if signature is None:
            self._metrics["ignored"] += 1
            return None
        if not self._dedup.is_new(signature, source=self.name):
            self._metrics["duplicates"] += 1
            return None

        self._metrics["dispatched"] += 1
        task = asyncio.create_task(self._dispatch(signature))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _dispatch(self, signature: str) -> None:
        try:
            await self.on_signature(signature)
        except Exception as e:
            self._metrics["dispatch_errors"] += 1
            logger.exception(f"[WS] {self.name}: pipeline failed for {signature[:16]}...: {e}")

    async def _heartbeat(self, transport: Transport) -> None:
        """Ping at a fixed interval while the transport is open."""
        while True:
            await asyncio.sleep(self.ping_interval)
            if transport.closed:
                logger.debug(f"[WS] {self.name}: transport closed, heartbeat stopped")
                return
            try:
                await transport.ping()
                self._metrics["pings_sent"] += 1
            except Exception as e:
                self._metrics["heartbeat_failures"] += 1
                logger.warning(f"[WS] {self.name}: ping failed, heartbeat stopped: {e}")
                return

    async def _teardown(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                await transport.close()
            except Exception as e:
                logger.debug(f"[WS] {self.name}: error closing transport: {e}")

    async def _exhausted(self) -> None:
        self._set_state(ConnectionState.STOPPED)
        message = (
            f"Subscription for {self.name} ({self.tracked_address}) stopped after "
            f"{self.max_reconnect_attempts} failed reconnect attempts"
        )
        log_critical_error(
            error_code="RECONNECT_EXHAUSTED",
            message=message,
            module=__name__,
            extra={"tracked_wallet": self.tracked_address},
        )
        if self.on_exhausted is not None:
            try:
                await self.on_exhausted(message)
            except Exception as e:
                logger.error(f"[WS] {self.name}: failed to send operator alert: {e}")

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self.state:
            logger.debug(f"[WS] {self.name}: {self.state.value} -> {state.value}")
            self.state = state

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        return {
            "name": self.name,
            "tracked_wallet": self.tracked_address,
            "state": self.state.value,
            "reconnect_attempts": self.reconnect_attempts,
            "inflight": len(self._inflight),
            **self._metrics,
            "dedup": self._dedup.get_stats(),
        }
