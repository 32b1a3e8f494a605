# Middleware package init
"""
Dialogflow Webhook — Middleware Package
========================================

Cross-cutting concerns applied to every request, as plain ASGI middlewares
composed with ``chain_middleware``.

Middleware Chain (outer → inner):
    Request → [Recover] → [Access Log] → [Real IP] → [Request ID] → Routes

    1. Recover: outermost, catches exceptions from every later stage
    2. Access Log: wraps ``send`` once; reads status, client IP and request
       id from the shared scope after the inner stages have run
    3. Real IP: rewrites ``scope["client"]`` from proxy headers
    4. Request ID: guarantees ``X-Request-Id`` and binds the request logger

    Response ← [Recover] ← [Access Log] ← [Real IP] ← [Request ID] ← Routes
"""
