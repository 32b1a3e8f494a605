# Routes package init
"""
Dialogflow Webhook — API Routes Package
========================================

Route Inventory:
    - health.py:      GET  /               (liveness probe, not access-logged)
    - dialogflow.py:  POST /wh/dialogflow  (Dialogflow fulfillment webhook)

Routes stay thin: decode the request, call the service, return the model.
"""
