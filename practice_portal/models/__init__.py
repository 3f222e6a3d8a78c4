"""
Good Practice Portal
SQLAlchemy models package.

The shared ``db`` handle is created here and bound to the Flask app in
``practice_portal.create_app``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
