"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi issue-token 123456 --contract 4600012345 --role editor
    gunicorn wsgi:app
"""

from practice_portal import create_app

app = create_app()
