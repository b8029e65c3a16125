"""Delivery gateway adapters.

``TwilioSmsGateway`` is imported from ``cqrs_ddd_challenges.delivery.twilio``
so that the twilio extra stays optional.
"""

from .http_sms import HttpSmsGateway

__all__: list[str] = ["HttpSmsGateway"]
