"""
client — Client Alert Controller.

A headless rendition of the SOS page: every user action and every
geolocation callback is an event fed to ClientAlertController.handle(),
which updates an explicit ViewState and drives the map widget.

Sub-modules:
    models         — Coordinate, Fix, RosterContact, location error codes
    collaborators  — map / geolocation / key-value store interfaces + local backends
    roster         — contact roster mirrored to the key-value store
    view           — ViewState and text rendering
    events         — event types and the Transition returned by handle()
    controller     — the command dispatcher
    reporter       — optional HTTP reporting of SOS alerts to the Alert Service
"""
