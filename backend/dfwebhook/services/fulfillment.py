"""
Dialogflow Webhook — Fulfillment Service
=========================================

What:  Decides which followup event Dialogflow should trigger next.
How:   The customer's reply (``queryText``) is expected to look like

           Nomor ID: 1234 Nama: Joko

       The id and name are checked against the known customers. A match
       hands the conversation over (``handover-intent``); anything else
       sends it to the fallback intent of the current branch.

Decision table:
    intent                              parse ok + known   otherwise
    ─────────────────────────────────   ────────────────   ─────────────────────────────────
    1komplain-pesanan-sent-intent       handover-intent    1komplain-pesanan-fallback-intent
    2konfirmasi-pesanan-sent-intent     handover-intent    2konfirmasi-pesanan-fallback-intent
    any other intent                    ""                 ""
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Tuple, Union

from dfwebhook.config import settings
from dfwebhook.exceptions import CustomerDataError
from dfwebhook.schemas.dialogflow import DialogflowWebhookResponse, FollowupEventInput

logger = logging.getLogger(__name__)

AnyLogger = Union[logging.Logger, logging.LoggerAdapter]

KOMPLAIN_PESANAN = "1komplain-pesanan-sent-intent"
KONFIRMASI_PESANAN = "2konfirmasi-pesanan-sent-intent"

KOMPLAIN_PESANAN_FALLBACK = "1komplain-pesanan-fallback-intent"
KONFIRMASI_PESANAN_FALLBACK = "2konfirmasi-pesanan-fallback-intent"

HANDOVER_EVENT = "handover-intent"

FALLBACK_INTENTS: Dict[str, str] = {
    KOMPLAIN_PESANAN: KOMPLAIN_PESANAN_FALLBACK,
    KONFIRMASI_PESANAN: KONFIRMASI_PESANAN_FALLBACK,
}


@dataclass(frozen=True)
class Pesanan:
    """A customer order on record."""

    id: int
    nama: str


KNOWN_ORDERS: Tuple[Pesanan, ...] = (
    Pesanan(id=1234, nama="Joko"),
    Pesanan(id=4567, nama="Budi"),
    Pesanan(id=6789, nama="Susi"),
)

_CUSTOMER_ID = re.compile(r"[+-]?[0-9]+")
_ID_MIN, _ID_MAX = -(2**63), 2**63 - 1


def extract_customer_data(data: str) -> Tuple[int, str]:
    """
    Parse ``Nomor ID: <id> Nama: <name>`` into ``(id, name)``.

    Tokens are whitespace separated; anything after the name is ignored.

    Raises:
        CustomerDataError: the layout does not match or the id is not an integer
    """
    parts = data.split()

    if len(parts) < 5 or parts[0] != "Nomor" or parts[1] != "ID:" or parts[3] != "Nama:":
        raise CustomerDataError(text=data)

    # int() alone would also take "1_234" and non-ASCII digits
    if not _CUSTOMER_ID.fullmatch(parts[2]):
        raise CustomerDataError(message=f"invalid customer id {parts[2]!r}", text=data)

    customer_id = int(parts[2])
    if not _ID_MIN <= customer_id <= _ID_MAX:
        raise CustomerDataError(message=f"customer id out of range {parts[2]!r}", text=data)

    return customer_id, parts[4]


def _followup(name: str) -> DialogflowWebhookResponse:
    return DialogflowWebhookResponse(
        followup_event_input=FollowupEventInput(
            name=name, language_code=settings.language_code
        )
    )


class FulfillmentService:
    """
    Business logic for the order complaint and confirmation intents.

    Stateless: the customer set is fixed, and the caller passes the
    request-bound logger so every record carries the request id.
    """

    def __init__(self, orders: Tuple[Pesanan, ...] = KNOWN_ORDERS):
        self.orders = orders

    def is_known_customer(self, customer_id: int, customer_name: str) -> bool:
        return any(o.id == customer_id and o.nama == customer_name for o in self.orders)

    def process_intent(
        self, data: str, intent: str, log: AnyLogger = logger
    ) -> DialogflowWebhookResponse:
        """
        Choose the followup event for a matched intent.

        Args:
            data:   The user's query text
            intent: Display name of the intent Dialogflow matched
            log:    Request-bound logger

        Returns:
            DialogflowWebhookResponse naming the next event.
        """
        fallback_intent = FALLBACK_INTENTS.get(intent, "")

        try:
            customer_id, customer_name = extract_customer_data(data)
        except CustomerDataError as e:
            log.error("Failed to extract customer data: %s", e.message)
            return _followup(fallback_intent)

        if intent not in FALLBACK_INTENTS or not self.is_known_customer(
            customer_id, customer_name
        ):
            log.error(
                "Customer data not available for ID: %d, Name: %s",
                customer_id,
                customer_name,
            )
            response = _followup(fallback_intent)
            log.debug("Response: %s", response.model_dump(by_alias=True))
            return response

        return _followup(HANDOVER_EVENT)


fulfillment_service = FulfillmentService()
