# Services package init
"""
Dialogflow Webhook — Services Package
======================================

Business logic, independent of HTTP:
    - fulfillment.py: order-text parsing, customer lookup, followup event choice
"""
