"""
Checkout engine.

Pure policies (delivery calendar, region availability, recipient validation,
identity gate) plus the stateful orchestration built on them (state machine,
payment dispatcher, client-local persistence).

Modules:
- models: the CheckoutSession aggregate and the records it exchanges
- delivery_calendar / region_policy / recipient_validator: pure policies
- identity: guest/member gate and inline login
- state_machine: step sequencing and navigation intents
- payment_dispatcher: order creation and the payment-method branch
- persistence: draft, abandonment marker and payment outcome storage
"""
