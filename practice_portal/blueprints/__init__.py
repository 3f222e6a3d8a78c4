"""
Good Practice Portal
Blueprint registry.
"""

from practice_portal.blueprints.catalog_bp import catalog_bp
from practice_portal.blueprints.health_bp import health_bp
from practice_portal.blueprints.practice_bp import practice_bp
from practice_portal.blueprints.voting_bp import voting_bp

ALL_BLUEPRINTS = (practice_bp, voting_bp, catalog_bp, health_bp)
