"""
Receiver application ids known to the gateway
"""

APP_BACKDROP = "E8C28D3C"
APP_MEDIA_RECEIVER = "CC1AD845"

# Apps that run when nothing has been cast
IDLE_APP_IDS = (APP_BACKDROP,)


def is_idle_app(app_id: str | None) -> bool:
    """Returns True if app_id is not a sender launched application."""
    return app_id is None or app_id in IDLE_APP_IDS
