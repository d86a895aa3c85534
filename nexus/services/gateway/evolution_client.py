"""
Evolution API client for the WhatsApp messaging gateway.
Handles group, participant and history fetches plus outbound text delivery.
Low-level gateway client: returns raw payloads, validated as lists.
"""

import asyncio
import time
from typing import Any

import httpx

from nexus.config import Settings
from nexus.features.triage.domain import ConfigError, GatewayPayloadError, TransportError
from nexus.infrastructure.observability.logging import get_logger, log_gateway_call

logger = get_logger(__name__)

# Request timeouts and retry configuration
BACKOFF_FACTOR = 1
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class EvolutionGatewayClient:
    """
    Client for the Evolution API gateway.

    Every fetch returns a list on success. A payload that is not a list
    (the gateway's ``{"error": ...}`` objects) raises GatewayPayloadError,
    so callers can tell "zero results" apart from "the gateway refused".
    """

    def __init__(self, config: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = (config.EVOLUTION_API_URL or "").rstrip("/")
        self.api_key = config.EVOLUTION_API_KEY
        self.max_retries = max(1, config.GATEWAY_MAX_RETRIES)
        self._timeout = config.GATEWAY_TIMEOUT_SECONDS
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._config_error_logged = False

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def _ensure_configured(self) -> None:
        if self.configured:
            return
        if not self._config_error_logged:
            logger.error(
                "Evolution API not configured",
                has_url=bool(self.base_url),
                has_api_key=bool(self.api_key),
            )
            self._config_error_logged = True
        raise ConfigError("Evolution API missing")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            timeout = httpx.Timeout(self._timeout)
            limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=timeout,
                limits=limits,
                transport=self._transport,
                headers={"apikey": self.api_key or ""},
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request_with_retry(
        self, method: str, url: str, max_attempts: int | None = None, **kwargs
    ) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        client = self._get_client()
        attempts = max_attempts or self.max_retries
        for attempt in range(1, attempts + 1):
            try:
                response = await client.request(method, url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < attempts:
                    backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                    logger.debug(
                        "Gateway retrying request",
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= attempts:
                    raise TransportError(f"Gateway request failed: {e}") from e
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Gateway request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise TransportError("Gateway retry loop exhausted")

    def _handle_list_response(
        self, response: httpx.Response, instance: str, operation: str
    ) -> list[dict[str, Any]]:
        """
        Validate a gateway response as a list payload.

        Raises:
            TransportError: Non-2xx status without a readable error payload
            GatewayPayloadError: Body parsed but is not a list
        """
        try:
            data = response.json() if response.text else None
        except ValueError as e:
            if not response.is_success:
                raise TransportError(
                    f"Gateway {operation} failed (HTTP {response.status_code})",
                    status_code=response.status_code,
                ) from e
            raise GatewayPayloadError(f"Gateway {operation} returned non-JSON body") from e

        if isinstance(data, list):
            if not response.is_success:
                raise TransportError(
                    f"Gateway {operation} failed (HTTP {response.status_code})",
                    status_code=response.status_code,
                )
            return data

        if isinstance(data, dict):
            detail = data.get("error") or data.get("message") or data.get("response") or data
        else:
            detail = data
        logger.error(
            f"Gateway {operation} returned error payload",
            instance=instance,
            status_code=response.status_code,
            detail=str(detail)[:200],
        )
        raise GatewayPayloadError(f"Gateway {operation} error: {detail}", payload=data)

    async def _fetch_list(
        self, instance: str, operation: str, url: str, params: dict | None = None
    ) -> list[dict[str, Any]]:
        self._ensure_configured()
        started = time.time()
        try:
            response = await self._request_with_retry("GET", url, params=params)
            payload = self._handle_list_response(response, instance, operation)
        except (TransportError, GatewayPayloadError) as e:
            log_gateway_call(
                instance, operation, False, round((time.time() - started) * 1000, 1), error=str(e)
            )
            raise
        log_gateway_call(instance, operation, True, round((time.time() - started) * 1000, 1))
        return payload

    async def fetch_groups(self, instance: str) -> list[dict[str, Any]]:
        return await self._fetch_list(
            instance, "fetch_groups", f"/group/fetchAllGroups/{instance}"
        )

    async def fetch_participants(self, instance: str, group_id: str) -> list[dict[str, Any]]:
        return await self._fetch_list(
            instance,
            "fetch_participants",
            f"/group/participants/{instance}",
            params={"groupJid": group_id},
        )

    async def fetch_history(
        self, instance: str, group_id: str, limit: int = 20
    ) -> list[dict[str, Any]]:
        return await self._fetch_list(
            instance,
            "fetch_history",
            f"/chat/findMessages/{instance}",
            params={"where[key.remoteJid]": group_id, "limit": limit},
        )

    async def send_text(self, instance: str, recipient: str, text: str) -> bool:
        """
        Deliver a text message. The POST is sent once and never retried.

        Returns:
            True only when the gateway confirms with a 2xx response
        """
        self._ensure_configured()
        started = time.time()
        try:
            response = await self._request_with_retry(
                "POST",
                f"/message/sendText/{instance}",
                max_attempts=1,
                json={"number": recipient, "text": text},
            )
        except TransportError as e:
            log_gateway_call(
                instance, "send_text", False, round((time.time() - started) * 1000, 1), error=str(e)
            )
            return False

        ok = response.is_success
        log_gateway_call(
            instance,
            "send_text",
            ok,
            round((time.time() - started) * 1000, 1),
            error=None if ok else f"HTTP {response.status_code}",
        )
        return ok
