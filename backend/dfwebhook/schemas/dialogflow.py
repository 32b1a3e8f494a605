"""
Dialogflow Webhook — Pydantic Request/Response Schemas
=======================================================

What:  The subset of the Dialogflow ES webhook contract this service reads
       and writes.

Request (only the fields used here; everything else is ignored):
    {
        "session": "projects/<p>/agent/sessions/<id>",
        "queryResult": {
            "queryText": "Nomor ID: 1234 Nama: Joko",
            "intent": {"displayName": "2konfirmasi-pesanan-sent-intent"}
        }
    }

Response:
    {
        "followupEventInput": {
            "name": "handover-intent",
            "languageCode": "en-US",
            "parameters": {"param-name": ""}
        }
    }

Missing fields default to empty strings, so only a body that does not
decode (bad JSON, wrong types) is rejected.
"""

from pydantic import BaseModel, ConfigDict, Field


class _DialogflowModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class Intent(_DialogflowModel):
    display_name: str = Field(default="", alias="displayName")


class QueryResult(_DialogflowModel):
    query_text: str = Field(default="", alias="queryText")
    intent: Intent = Field(default_factory=Intent)


class DialogflowWebhookRequest(_DialogflowModel):
    """Fulfillment request sent by Dialogflow for a matched intent."""

    query_result: QueryResult = Field(default_factory=QueryResult, alias="queryResult")
    session: str = Field(default="")

    @property
    def intent(self) -> str:
        return self.query_result.intent.display_name

    @property
    def query_text(self) -> str:
        return self.query_result.query_text


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class EventParameters(_DialogflowModel):
    param_name: str = Field(default="", alias="param-name")


class FollowupEventInput(_DialogflowModel):
    name: str = Field(default="", description="Event that triggers the next intent")
    language_code: str = Field(default="en-US", alias="languageCode")
    parameters: EventParameters = Field(default_factory=EventParameters)


class DialogflowWebhookResponse(_DialogflowModel):
    """Directs Dialogflow to the next conversational branch."""

    followup_event_input: FollowupEventInput = Field(
        default_factory=FollowupEventInput, alias="followupEventInput"
    )


class ErrorResponse(BaseModel):
    """Body of every non-2xx JSON response produced by the routes."""

    error: str
    message: str
    request_id: str = ""
