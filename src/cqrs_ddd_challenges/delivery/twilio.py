"""Twilio SMS gateway (optional)."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from ..messages import MessageCatalog
from ..ports import IDeliveryGateway

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


class _Blank(dict):  # type: ignore[type-arg]
    def __missing__(self, key: str) -> str:
        return ""


class TwilioSmsGateway(IDeliveryGateway):
    """
    Twilio implementation of IDeliveryGateway.

    Twilio has no server-side templates, so ``template_id`` selects a local
    body format filled with the parameters (missing names render empty).
    Without a template for the id, each parameter is worded through the
    message catalog (``smsCode``, ``smsLink``), one line per parameter.

    Requires twilio library:
    pip install 'cqrs-ddd-challenges[twilio]'
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        templates: Mapping[int, str] | None = None,
        messages: MessageCatalog | None = None,
        client: Any | None = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.templates = dict(templates or {})
        self.messages = messages or MessageCatalog()
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                from twilio.rest import Client as TwilioClient
            except ImportError as e:
                raise ImportError(
                    "twilio is required for TwilioSmsGateway. "
                    "Install with: pip install 'cqrs-ddd-challenges[twilio]'"
                ) from e
            self._client = TwilioClient(self.account_sid, self.auth_token)
        return self._client

    def render(self, template_id: int, parameters: Mapping[str, str]) -> str:
        template = self.templates.get(template_id)
        if template is not None:
            return template.format_map(_Blank(parameters))
        lines = []
        for name, value in parameters.items():
            key = f"sms{name}"
            if key in self.messages:
                value = self.messages.get(key, value)
            lines.append(value)
        return "\n".join(lines)

    async def send(
        self,
        destination: str,
        template_id: int,
        parameters: Mapping[str, str],
    ) -> int:
        try:
            from twilio.base.exceptions import TwilioRestException
        except ImportError as e:
            raise ImportError(
                "twilio is required for TwilioSmsGateway. "
                "Install with: pip install 'cqrs-ddd-challenges[twilio]'"
            ) from e

        client = self._get_client()
        body = self.render(template_id, parameters)
        try:
            message = await asyncio.to_thread(
                client.messages.create,
                to=destination,
                from_=self.from_number,
                body=body,
            )
        except TwilioRestException as e:
            logger.error("Twilio API error for %s: %s", destination, e.msg)
            return int(e.status or 502)
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to send SMS via Twilio to %s: %s", destination, e)
            return 503

        logger.info("SMS sent via Twilio to %s (SID: %s)", destination, message.sid)
        return 201


__all__: list[str] = ["TwilioSmsGateway"]
