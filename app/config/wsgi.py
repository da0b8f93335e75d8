"""
WSGI config for the chat backend.

The project is served through ASGI (see asgi.py) so WebSocket traffic can
reach Channels consumers. WSGI stays available for plain HTTP deployments
that do not need realtime delivery.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
