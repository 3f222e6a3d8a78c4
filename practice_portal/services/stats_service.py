"""
Stats Aggregator — practice counters for the portal dashboard.

All three numbers come from ONE aggregate SELECT so they describe the same
snapshot of the table:

    total                    every practice in scope
    in_review                status != concluded
    rejected_or_eliminated   eliminated OR validated = false
"""

from sqlalchemy import case, func, or_, select

from practice_portal.models import db
from practice_portal.models.practice import STATUS_CONCLUDED, Practice


def get_practice_stats(contract: str | None = None) -> dict:
    """Counters over all practices, or over one contract when given."""
    in_review = case((Practice.status != STATUS_CONCLUDED, 1), else_=0)
    rejected = case(
        (or_(Practice.eliminated.is_(True), Practice.validated.is_(False)), 1),
        else_=0,
    )

    stmt = select(
        func.count(Practice.id).label("total"),
        func.coalesce(func.sum(in_review), 0).label("in_review"),
        func.coalesce(func.sum(rejected), 0).label("rejected_or_eliminated"),
    )
    if contract:
        stmt = stmt.where(Practice.contract == contract)

    row = db.session.execute(stmt).one()
    return {
        "total": int(row.total),
        "in_review": int(row.in_review),
        "rejected_or_eliminated": int(row.rejected_or_eliminated),
        "contract": contract,
    }
