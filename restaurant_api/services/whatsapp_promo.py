from __future__ import annotations

import logging
from typing import Iterable

import httpx

from restaurant_api.core.config import META_API_VERSION, META_GRAPH_BASE_URL
from restaurant_api.models.customer import Customer
from restaurant_api.models.whatsapp_credential import WhatsAppCredential

logger = logging.getLogger(__name__)


def promo_message(business_name: str) -> str:
    return f"Hey there! Check out our new dishes & offers at {business_name}!"


def _messages_url(phone_number_id: str) -> str:
    return f"{META_GRAPH_BASE_URL.rstrip('/')}/{META_API_VERSION}/{phone_number_id}/messages"


def send_text(client: httpx.Client, credential: WhatsAppCredential, *, to: str, body: str) -> int:
    payload = {
        "messaging_product": "whatsapp",
        "to": to,
        "type": "text",
        "text": {"preview_url": False, "body": body},
    }
    headers = {
        "Authorization": f"Bearer {credential.access_token}",
        "Content-Type": "application/json",
    }
    response = client.post(_messages_url(credential.phone_number_id), headers=headers, json=payload)
    return response.status_code


def send_promo(
    credential: WhatsAppCredential,
    customers: Iterable[Customer],
    *,
    business_name: str,
) -> list[dict]:
    """One message per customer, no retry; each result carries the HTTP status or the error."""
    body = promo_message(business_name)
    results: list[dict] = []
    with httpx.Client(timeout=20.0) as client:
        for customer in customers:
            try:
                status_code = send_text(client, credential, to=customer.mobile, body=body)
            except httpx.HTTPError as exc:
                logger.warning("WhatsApp promo failed: customer_id=%s error=%s", customer.id, exc)
                results.append({"customer": customer.name, "status": None, "error": str(exc)})
                continue
            results.append({"customer": customer.name, "status": status_code})
    sent = sum(1 for result in results if result.get("status") and 200 <= result["status"] < 300)
    logger.info("WhatsApp promo finished: business_id=%s sent=%s total=%s", credential.business_id, sent, len(results))
    return results
