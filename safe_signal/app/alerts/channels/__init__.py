"""
channels — Per-channel notification backends.

Each channel module exposes:
    send(record, phone, **provider_options) → DeliveryAttempt

Channels are stateless functions. Provider selection lives in
alert_service.Notifier.
"""
