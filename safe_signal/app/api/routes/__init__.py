"""
routes — HTTP routers of the Alert Service.

    contacts — GET/POST /contacts, DELETE /contacts/{id}
    alerts   — POST /alert, GET /alerts
"""
