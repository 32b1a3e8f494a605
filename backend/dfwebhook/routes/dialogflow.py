"""
Dialogflow Webhook — Fulfillment Route
=======================================

What:  ``POST /wh/dialogflow``, called by Dialogflow whenever an intent with
       webhook fulfillment is matched.

Request Flow:
    1. Decode the raw body as JSON into DialogflowWebhookRequest, whatever
       the Content-Type says (a body that does not decode → 400, see
       main.register_exception_handlers)
    2. FulfillmentService picks the followup event
    3. Return 200 with the followupEventInput directive
"""

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from dfwebhook.middleware.request_id import RequestContext, get_request_context
from dfwebhook.schemas.dialogflow import (
    DialogflowWebhookRequest,
    DialogflowWebhookResponse,
    ErrorResponse,
)
from dfwebhook.services.fulfillment import fulfillment_service

router = APIRouter(prefix="/wh", tags=["Dialogflow"])


async def decode_webhook_request(request: Request) -> DialogflowWebhookRequest:
    """Parse the body as a webhook request; decode errors surface as a 400."""
    body = await request.body()
    try:
        return DialogflowWebhookRequest.model_validate_json(body)
    except ValidationError as e:
        raise RequestValidationError(
            [{**err, "loc": ("body", *err["loc"])} for err in e.errors()],
            body=body,
        ) from None


@router.post(
    "/dialogflow",
    status_code=200,
    response_model=DialogflowWebhookResponse,
    responses={
        400: {"description": "Body is not a valid webhook request", "model": ErrorResponse},
    },
    summary="Dialogflow fulfillment webhook",
)
async def dialogflow_webhook(
    payload: DialogflowWebhookRequest = Depends(decode_webhook_request),
    ctx: RequestContext = Depends(get_request_context),
) -> DialogflowWebhookResponse:
    response = fulfillment_service.process_intent(
        payload.query_text, payload.intent, log=ctx.logger
    )

    ctx.logger.debug(
        "FulfillmentResp: %s", response.model_dump(by_alias=True)
    )

    return response
