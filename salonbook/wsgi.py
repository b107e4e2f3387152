"""WSGI config for the salonbook project."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "salonbook.settings")

application = get_wsgi_application()
