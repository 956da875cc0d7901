"""
alerts — Emergency contact registry and append-only alert log.

Sub-modules:
    models         — Data structures shared across the service
    repositories   — Contact / alert-log storage interfaces + in-memory backends
    alert_service  — Contact CRUD, alert ingestion, notified snapshot
    channels/      — Notification transports (SMS, simulated by default)
"""
