import os

# The engine is built at import time, so point it at SQLite before anything imports the package
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

from datetime import datetime, timedelta
from typing import AsyncIterator, Callable, Iterator, Optional, Sequence, Type

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from patient_tracker.database import SessionLocal, engine
from patient_tracker.errors import StoreReadFailure, StoreWriteFailure
from patient_tracker.models import Base, LabResult, Patient
from patient_tracker.services.patients import register_patient
from patient_tracker.store import DataStore

T0 = datetime(2025, 1, 1, 0, 0, 0)


def minutes(value: float) -> timedelta:
    return timedelta(minutes=value)


class FlakyStore(DataStore):
    """DataStore that fails reads or writes for selected models."""

    def __init__(
        self,
        session: Session,
        fail_reads_on: Sequence[Type] = (),
        fail_writes_on: Sequence[Type] = (),
    ) -> None:
        super().__init__(session)
        self.fail_reads_on = tuple(fail_reads_on)
        self.fail_writes_on = tuple(fail_writes_on)

    def query(self, model, *criteria, order_by=None, limit=None):
        if model in self.fail_reads_on:
            raise StoreReadFailure(f"simulated read failure on {model.__tablename__}")
        return super().query(model, *criteria, order_by=order_by, limit=limit)

    def insert(self, row):
        if isinstance(row, self.fail_writes_on):
            raise StoreWriteFailure(f"simulated write failure on {row.__tablename__}")
        return super().insert(row)

    def update(self, model, criteria, patch):
        if model in self.fail_writes_on:
            raise StoreWriteFailure(f"simulated write failure on {model.__tablename__}")
        return super().update(model, criteria, patch)


@pytest.fixture
def db_session() -> Iterator[Session]:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(db_session: Session) -> DataStore:
    return DataStore(db_session)


@pytest.fixture
def flaky_store(db_session: Session) -> Callable[..., FlakyStore]:
    def _factory(**kwargs) -> FlakyStore:
        return FlakyStore(db_session, **kwargs)

    return _factory


@pytest.fixture
def make_patient(store: DataStore) -> Callable[..., Patient]:
    def _factory(
        patient_id: str = "P100",
        registered_at: datetime = T0,
        culture_required: bool = False,
    ) -> Patient:
        return register_patient(store, patient_id, registered_at, culture_required=culture_required)

    return _factory


@pytest.fixture
def add_lab_result(store: DataStore) -> Callable[..., LabResult]:
    counter = {"n": 0}

    def _factory(patient: Patient, result: Optional[str] = "positive", notes: Optional[str] = None) -> LabResult:
        counter["n"] += 1
        return store.insert(
            LabResult(
                patient_id=patient.id,
                sample_id=f"MDRO-TEST{counter['n']:02d}",
                collection_date=T0,
                result=result,
                notes=notes,
            )
        )

    return _factory


@pytest.fixture
def anyio_backend() -> str:
    """Limit ``pytest-anyio`` to the asyncio backend."""

    return "asyncio"


@pytest.fixture
async def client(db_session: Session) -> AsyncIterator[AsyncClient]:
    from patient_tracker.main import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
