"""
Tax rate providers.

The engine only depends on TaxRateProvider. TaxJarProvider is the
production implementation talking to the TaxJar SmartCalcs API.
"""

import asyncio
import json
import logging
from decimal import Decimal
from typing import Protocol

import aiohttp
from pydantic import BaseModel, ValidationError

import config
from exceptions.tax import TaxProviderUnavailableException
from models.pricing import AddressDTO

logger = logging.getLogger(__name__)


class TaxProviderResponse(BaseModel):
    rate: Decimal  # Combined rate as a fraction, e.g. 0.0825
    amount_to_collect: Decimal
    taxable_amount: Decimal = Decimal("0")
    shipping_taxable: bool = False
    has_nexus: bool = False


class TaxRateProvider(Protocol):
    name: str

    async def tax_for_order(self, address: AddressDTO, amount: Decimal, shipping: Decimal) -> TaxProviderResponse:
        """
        Tax for an order shipped to `address`.

        Raises:
            TaxProviderUnavailableException: On any transport or provider error
        """
        ...


class TaxJarProvider:
    """TaxJar `POST /v2/taxes` client."""

    name = "taxjar"

    def __init__(self, api_key: str | None = None, api_url: str | None = None, timeout: float | None = None):
        self.api_key = api_key if api_key is not None else config.TAXJAR_API_KEY
        self.api_url = (api_url or config.TAXJAR_API_URL).rstrip("/")
        self.timeout = timeout or config.TAX_PROVIDER_TIMEOUT_SECONDS

    @staticmethod
    def build_payload(address: AddressDTO, amount: Decimal, shipping: Decimal) -> dict:
        payload = {
            "to_country": address.country,
            "to_zip": address.zip,
            "to_state": address.state,
            "to_city": address.city or "",
            "amount": float(amount),
            "shipping": float(shipping),
        }
        if address.street:
            payload["to_street"] = address.street
        return payload

    @staticmethod
    def parse_response(body: dict) -> TaxProviderResponse:
        tax = body["tax"]
        return TaxProviderResponse(
            rate=tax.get("rate", 0),
            amount_to_collect=tax.get("amount_to_collect", 0),
            taxable_amount=tax.get("taxable_amount", 0),
            shipping_taxable=tax.get("freight_taxable", False),
            has_nexus=tax.get("has_nexus", False),
        )

    async def tax_for_order(self, address: AddressDTO, amount: Decimal, shipping: Decimal) -> TaxProviderResponse:
        if not self.api_key:
            raise TaxProviderUnavailableException(self.name, "TAXJAR_API_KEY not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = self.build_payload(address, amount, shipping)

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.post(f"{self.api_url}/v2/taxes", json=payload, headers=headers) as response:
                    if response.status != 200:
                        text = await response.text()
                        logger.error(f"[Tax] TaxJar returned HTTP {response.status}: {text[:200]}")
                        raise TaxProviderUnavailableException(self.name, f"HTTP {response.status}")
                    body = await response.json(loads=lambda s: json.loads(s, parse_float=Decimal))
        except asyncio.TimeoutError as e:
            raise TaxProviderUnavailableException(self.name, "timeout", timed_out=True) from e
        except aiohttp.ClientError as e:
            raise TaxProviderUnavailableException(self.name, type(e).__name__) from e

        try:
            return self.parse_response(body)
        except (KeyError, TypeError, ValidationError) as e:
            logger.error(f"[Tax] Unexpected TaxJar response shape: {e!r}")
            raise TaxProviderUnavailableException(self.name, "malformed response") from e
