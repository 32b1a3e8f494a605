"""
Dialogflow Webhook — Application Package
=========================================

What: Fulfillment webhook for a Dialogflow agent that handles order
      complaint and order confirmation intents.

Layout:

    ┌─────────────────────────────────────┐
    │   Middleware pipeline (ASGI)        │  ← recover, access log, real IP, request ID
    ├─────────────────────────────────────┤
    │   Routes (FastAPI)                  │  ← GET /, POST /wh/dialogflow
    ├─────────────────────────────────────┤
    │   Services (business rules)         │  ← customer lookup, followup event choice
    ├─────────────────────────────────────┤
    │   Schemas (pydantic)                │  ← Dialogflow request/response payloads
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
