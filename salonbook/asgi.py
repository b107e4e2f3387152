"""ASGI config for the salonbook project."""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "salonbook.settings")

application = get_asgi_application()
