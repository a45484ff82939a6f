"""
WSGI entry point for BugFixer and Flask-Migrate / Alembic.

Usage:
    flask --app wsgi run --port 7070
    flask --app wsgi db upgrade
"""

from bugfixer import create_app

app = create_app()
