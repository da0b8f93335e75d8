"""
Root pytest configuration for the Django project.

pytest-django reads DJANGO_SETTINGS_MODULE from pyproject.toml and builds an
SQLite test database from migrations. App-specific fixtures are defined in
each app's tests/conftest.py.
"""

import os

# Keep tests off any developer .env file and external infrastructure
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("ENV_FILE", os.devnull)
os.environ.setdefault("SECRET_KEY", "test-secret-key")
