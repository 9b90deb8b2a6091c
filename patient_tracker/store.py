"""
Data store used by the scan reconciliation and notification services.
Wraps a SQLAlchemy session behind insert/update/query operations and turns
driver errors into StoreReadFailure / StoreWriteFailure.
"""

from typing import Any, Dict, Iterable, List, Optional, Type
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from patient_tracker.errors import StoreReadFailure, StoreWriteFailure

logger = logging.getLogger(__name__)


class DataStore:
    """Table CRUD over a single SQLAlchemy session; every write commits immediately."""

    def __init__(self, session: Session):
        self.session = session

    def insert(self, row: Any) -> Any:
        """Persist a new model instance and return it refreshed from the database."""
        try:
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
            return row
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Insert into {row.__tablename__} failed: {e}")
            raise StoreWriteFailure(f"Insert into {row.__tablename__} failed") from e

    def update(self, model: Type[Any], criteria: Iterable[Any], patch: Dict[str, Any]) -> int:
        """Apply ``patch`` to every row matching ``criteria``; returns the affected row count."""
        try:
            affected = (
                self.session.query(model)
                .filter(*criteria)
                .update(patch, synchronize_session=False)
            )
            self.session.commit()
            return affected
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Update of {model.__tablename__} failed: {e}")
            raise StoreWriteFailure(f"Update of {model.__tablename__} failed") from e

    def query(
        self,
        model: Type[Any],
        *criteria: Any,
        order_by: Optional[Any] = None,
        limit: Optional[int] = None
    ) -> List[Any]:
        """Return rows of ``model`` matching every criterion."""
        try:
            q = self.session.query(model).filter(*criteria)
            if order_by is not None:
                q = q.order_by(order_by)
            if limit is not None:
                q = q.limit(limit)
            return q.all()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Query on {model.__tablename__} failed: {e}")
            raise StoreReadFailure(f"Query on {model.__tablename__} failed") from e

    def rows(self, statement: Any) -> List[Any]:
        """Execute a composite SELECT (joins across tables) and return its result rows."""
        try:
            return self.session.execute(statement).all()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Composite query failed: {e}")
            raise StoreReadFailure("Composite query failed") from e

    def first(self, model: Type[Any], *criteria: Any, order_by: Optional[Any] = None) -> Optional[Any]:
        rows = self.query(model, *criteria, order_by=order_by, limit=1)
        return rows[0] if rows else None

    def get(self, model: Type[Any], row_id: str) -> Optional[Any]:
        return self.first(model, model.id == row_id)
