"""HTTP SMS gateway using httpx."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from ..ports import IDeliveryGateway

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..config import SmsGatewayConfig

logger = logging.getLogger(__name__)

# Reported when the gateway could not be reached at all.
TRANSPORT_FAILURE_STATUS = 503


class HttpSmsGateway(IDeliveryGateway):
    """
    Templated SMS API posting JSON to ``{base_url}/{endpoint}``.

    Request body::

        {"TemplateId": 100000, "Mobile": "+15550001",
         "Parameters": [{"Name": "Code", "Value": "123456"}]}

    Authentication is an ``X-API-KEY`` header. Transport errors are logged
    and reported as status 503; the gateway never raises for them.

    Example:
        ```python
        gateway = HttpSmsGateway(SmsGatewayConfig(base_url="https://sms.example.com/api/", api_key="..."))
        status = await gateway.send("+15550001", 100000, {"Code": "123456"})
        ```
    """

    def __init__(
        self,
        config: SmsGatewayConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self._client = client

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            verify=self.config.verify_tls,
        )

    def _payload(
        self, destination: str, template_id: int, parameters: Mapping[str, str]
    ) -> dict[str, object]:
        return {
            "TemplateId": template_id,
            "Mobile": destination,
            "Parameters": [
                {"Name": name, "Value": value} for name, value in parameters.items()
            ],
        }

    async def send(
        self,
        destination: str,
        template_id: int,
        parameters: Mapping[str, str],
    ) -> int:
        headers = {"Accept": "application/json", "X-API-KEY": self.config.api_key}
        payload = self._payload(destination, template_id, parameters)
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.config.endpoint, json=payload, headers=headers
                )
            else:
                async with self._build_client() as client:
                    response = await client.post(
                        self.config.endpoint, json=payload, headers=headers
                    )
        except httpx.HTTPError as e:
            logger.error("SMS gateway unreachable for %s: %s", destination, e)
            return TRANSPORT_FAILURE_STATUS

        if response.is_success:
            logger.info("SMS sent to %s (status %s)", destination, response.status_code)
        else:
            logger.error(
                "SMS gateway rejected message to %s (status %s)",
                destination,
                response.status_code,
            )
        return response.status_code


__all__: list[str] = ["HttpSmsGateway", "TRANSPORT_FAILURE_STATUS"]
