from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Protocol

import httpx
import structlog

from backup_relay.services.report import Embed, build_message_payload

logger = structlog.get_logger(__name__)

STRUCTURAL_REJECTION_STATUSES = frozenset({400, 404})


class SinkDeliveryError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class DeliveryResult:
    status_code: int
    body: str
    content_type: str | None
    used_fallback: bool


class DeliveryClient(Protocol):
    async def deliver(
        self, embeds: list[Embed], sink_address: str, *, fallback: Embed
    ) -> DeliveryResult: ...


class DiscordWebhookClient:
    """Posts embeds to a Discord webhook, retrying once with a minimal embed.

    Only a structural rejection (400/404) triggers the fallback; every other
    failure is raised as SinkDeliveryError without retrying.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def deliver(
        self, embeds: list[Embed], sink_address: str, *, fallback: Embed
    ) -> DeliveryResult:
        async with httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport) as client:
            response = await self._post(client, sink_address, build_message_payload(embeds))
            if response.is_success:
                logger.info("sink delivery succeeded", status_code=response.status_code, embeds=len(embeds))
                return self._result(response, used_fallback=False)

            if response.status_code not in STRUCTURAL_REJECTION_STATUSES:
                raise self._failure(response)

            logger.warning(
                "sink rejected payload, sending fallback",
                status_code=response.status_code,
                body=response.text[:200],
            )
            fallback_response = await self._post(
                client, sink_address, build_message_payload([fallback])
            )
            if not fallback_response.is_success:
                raise self._failure(fallback_response, fallback=True)

        logger.info("fallback delivery succeeded", status_code=fallback_response.status_code)
        return self._result(fallback_response, used_fallback=True)

    async def _post(
        self, client: httpx.AsyncClient, sink_address: str, payload: dict[str, Any]
    ) -> httpx.Response:
        try:
            # Unpaired surrogates in report text stay as \u escapes.
            return await client.post(
                sink_address,
                content=json.dumps(payload).encode("ascii"),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.error("sink request failed", error=str(exc))
            raise SinkDeliveryError(str(exc)) from exc

    @staticmethod
    def _failure(response: httpx.Response, *, fallback: bool = False) -> SinkDeliveryError:
        stage = "fallback delivery" if fallback else "delivery"
        logger.error(f"sink {stage} failed", status_code=response.status_code)
        return SinkDeliveryError(
            f"Sink {stage} failed with status code {response.status_code}: {response.text}",
            status_code=response.status_code,
        )

    @staticmethod
    def _result(response: httpx.Response, *, used_fallback: bool) -> DeliveryResult:
        return DeliveryResult(
            status_code=response.status_code,
            body=response.text,
            content_type=response.headers.get("content-type"),
            used_fallback=used_fallback,
        )
