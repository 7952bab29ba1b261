"""
WSGI config for the Delta Fashion API.

It exposes the WSGI callable as a module-level variable named ``application``.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'delta_fashion.config.settings')

application = get_wsgi_application()
