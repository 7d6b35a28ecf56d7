import datetime as dt
from decimal import Decimal

import pytest

from paydesk.backoffice import PayrollBackOffice
from paydesk.core.audit import AuditLogger
from paydesk.db.session import init_db, make_engine
from paydesk.db.unit_of_work import unit_of_work_factory
from paydesk.integrations.notifications import Notifier

class RecordingNotifier(Notifier):
    def __init__(self):
        self.events = []

    def notify(self, employee_id, event_type, payload):
        self.events.append((employee_id, event_type, payload))

class BrokenNotifier(Notifier):
    def notify(self, employee_id, event_type, payload):
        raise ConnectionError("smtp relay down")

def weekdays(year, month, count):
    """First ``count`` Monday-Friday dates of the month."""
    day = dt.date(year, month, 1)
    out = []
    while len(out) < count:
        if day.weekday() < 5:
            out.append(day)
        day += dt.timedelta(days=1)
    return out

@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'paydesk.db'}")
    init_db(eng)
    yield eng
    eng.dispose()

@pytest.fixture
def uow_factory(engine):
    return unit_of_work_factory(engine)

@pytest.fixture
def notifier():
    return RecordingNotifier()

@pytest.fixture
def audit(tmp_path):
    return AuditLogger(tmp_path / "audit")

@pytest.fixture
def office(uow_factory, notifier, audit):
    return PayrollBackOffice(uow_factory, notifier=notifier, audit=audit)

@pytest.fixture
def seeded(office):
    """Three employees over two companies, with March 2024 attendance.

    E1: 1,000,000 base, 20 full days.
    E2: 600,000 base, 10 days, two of them with 2h overtime.
    E3: 800,000 base, other company, 20 full days.
    E4: no attendance at all.
    """
    office.employees.register("E1", "Ana Rojas", Decimal("1000000"), company_id="C1", position="Engineer")
    office.employees.register("E2", "Luis Vega", Decimal("600000"), company_id="C1", position="Analyst")
    office.employees.register("E3", "Marta Soto", Decimal("800000"), company_id="C2")
    office.employees.register("E4", "Pedro Lagos", Decimal("500000"), company_id="C1")

    for day in weekdays(2024, 3, 20):
        office.employees.record_attendance("E1", day, Decimal("8"))
        office.employees.record_attendance("E3", day, Decimal("8"))
    for i, day in enumerate(weekdays(2024, 3, 10)):
        office.employees.record_attendance("E2", day, Decimal("10") if i < 2 else Decimal("8"))
    return office

def approved(office, employee_id, period="2024-03"):
    liq = office.generate_liquidation(employee_id, period)
    return office.approve(liq.id, approver_id="hr-lead")
