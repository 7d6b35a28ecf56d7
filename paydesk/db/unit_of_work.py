"""
Unit of work: one session, one transaction, every repository bound to it.

    with uow_factory() as uow:
        employee = uow.employees.find_by_id("E1")
        uow.liquidations.add(...)
    # committed here; any exception inside the block rolls everything back

Storage faults escaping the block are re-raised as InfrastructureError.
"""
import logging
from typing import Callable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.errors import InfrastructureError
from ..core.repositories import (
    AttendanceRepository, DeductionsRepository, EmployeesRepository,
    LiquidationsRepository, PaymentsRepository,
)
from .session import make_session_factory

logger = logging.getLogger(__name__)

class UnitOfWork:

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self.session = None

    def __enter__(self) -> "UnitOfWork":
        self.session = self.session_factory()
        self.employees = EmployeesRepository(self.session)
        self.attendance = AttendanceRepository(self.session)
        self.liquidations = LiquidationsRepository(self.session)
        self.deductions = DeductionsRepository(self.session)
        self.payments = PaymentsRepository(self.session)
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                try:
                    self.session.commit()
                except SQLAlchemyError as commit_exc:
                    self.session.rollback()
                    logger.error("Commit failed: %s", commit_exc)
                    raise InfrastructureError(f"Commit failed: {commit_exc}") from commit_exc
            else:
                self.session.rollback()
        finally:
            self.session.close()
        if exc_type is not None and issubclass(exc_type, SQLAlchemyError):
            logger.error("Storage error inside unit of work: %s", exc)
            raise InfrastructureError(str(exc)) from exc
        return False

    def savepoint(self):
        """Nested transaction; an exception inside rolls back only its own writes."""
        return self.session.begin_nested()

def unit_of_work_factory(engine: Engine) -> Callable[[], UnitOfWork]:
    session_factory = make_session_factory(engine)
    return lambda: UnitOfWork(session_factory)
