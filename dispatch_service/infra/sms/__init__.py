"""SMS gateway integration."""

from .client import (
    SmsCredentials,
    SmsDeliveryResult,
    SmsGatewayClient,
    clean_phone_number,
    parse_gateway_response,
)

__all__ = [
    "SmsCredentials",
    "SmsDeliveryResult",
    "SmsGatewayClient",
    "clean_phone_number",
    "parse_gateway_response",
]
