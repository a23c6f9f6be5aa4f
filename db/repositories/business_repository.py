"""
Repository for scraped business listings.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from db.models.business import Business


class BusinessRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def insert_if_absent(self, values: dict[str, Any]) -> bool:
        """
        Insert one business row unless (domain, search_term) already exists.

        Returns True when a new row was written.
        """
        stmt = (
            insert(Business)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["domain", "search_term"])
            .returning(Business.id)
        )
        inserted_id = self._session.execute(stmt).scalar_one_or_none()
        return inserted_id is not None

    def list_missing_email(self, *, limit: int | None = None) -> list[Business]:
        stmt = (
            select(Business)
            .where(Business.website.is_not(None))
            .where(Business.website != "")
            .where(or_(Business.email.is_(None), Business.email == ""))
            .order_by(Business.id)
        )
        if limit is not None:
            stmt = stmt.limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def update_email(self, *, business_id: int, email: str) -> bool:
        business = self._session.get(Business, business_id)
        if business is None:
            return False
        business.email = email
        return True
