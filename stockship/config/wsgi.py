"""
WSGI config for the Stockship backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'stockship.config.settings')

application = get_wsgi_application()
