"""
ASGI config for the fertility project.

Plain HTTP only; the cycle API has no WebSocket routes.
"""
import os

from django.core.asgi import get_asgi_application  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "fertility.settings")

application = get_asgi_application()
