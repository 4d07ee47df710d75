"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi seed-roles
"""

from helpdesk import create_app

app = create_app()
