"""
Service Status Tests

Run with: pytest tests/test_status.py -v
"""

from seanotes.status import (
    ConfigurableService,
    ServiceCheck,
    ServiceStatus,
    StatusService,
)


class FakeService(ConfigurableService):
    def __init__(self, name, configured=True, connected=True, required=True):
        self.name = name
        self.configured = configured
        self.connected = connected
        self.required = required

    def check_configuration(self):
        return ServiceStatus(name=self.name, configured=self.configured, connected=self.connected)

    def is_required(self):
        return self.required


def broken_factory():
    raise RuntimeError("no credentials")


def test_service_status_to_dict_omits_empty_fields():
    status = ServiceStatus(name="Email Service", configured=False, connected=False)
    assert status.to_dict() == {
        "name": "Email Service",
        "configured": False,
        "connected": False,
        "required": False,
    }

    status.error = "SMTP host missing"
    status.config_to_review = ["SEANOTES_SMTP_HOST"]
    data = status.to_dict()
    assert data["error"] == "SMTP host missing"
    assert data["configToReview"] == ["SEANOTES_SMTP_HOST"]


def test_healthy_when_required_services_are_up():
    status = StatusService([
        ServiceCheck("Database Service", lambda: FakeService("Database Service")),
        ServiceCheck("AI", lambda: FakeService("AI", configured=False, connected=False, required=False)),
    ])

    state = status.force_health_check()

    assert state.is_healthy
    assert status.is_application_healthy()
    assert [s.required for s in state.services] == [True, False]


def test_unhealthy_when_required_service_is_down():
    status = StatusService([
        ServiceCheck("Database Service", lambda: FakeService("Database Service", connected=False)),
    ])

    assert status.force_health_check().is_healthy is False


def test_factory_failure_becomes_status():
    status = StatusService([
        ServiceCheck("Email Service", broken_factory),
        ServiceCheck("AI Inference Service", broken_factory, required_default=False),
    ])

    email, ai = status.check_all_services()

    assert email.configured is False
    assert email.required is True
    assert email.error == "Failed to initialize email service: no credentials"
    assert ai.required is False


def test_initialize_runs_once():
    calls = []

    def factory():
        calls.append(1)
        return FakeService("Database Service")

    status = StatusService([ServiceCheck("Database Service", factory)])
    assert not status.initialized
    assert status.get_health_state() is None
    assert not status.is_application_healthy()

    status.initialize()
    status.initialize()
    assert len(calls) == 1
    assert status.initialized

    status.force_health_check()
    assert len(calls) == 2


def test_state_to_dict():
    status = StatusService([ServiceCheck("Database Service", lambda: FakeService("Database Service"))])
    data = status.force_health_check().to_dict()

    assert data["isHealthy"] is True
    assert data["lastChecked"].endswith("Z")
    assert data["services"][0]["name"] == "Database Service"


def test_database_status(database):
    status = database.check_configuration()

    assert status.configured
    assert status.connected
    assert database.is_required()


def test_database_status_missing_file(tmp_path):
    from seanotes.database import Database

    status = Database(tmp_path / "missing.db").check_configuration()

    assert status.connected is False
    assert "not found" in status.error


def test_whole_pass_failure_is_reported_as_one_required_entry(monkeypatch):
    status = StatusService([ServiceCheck("Database Service", lambda: FakeService("Database Service"))])

    def explode():
        raise RuntimeError("status table locked")

    monkeypatch.setattr(status, "check_all_services", explode)
    state = status.force_health_check()

    assert state.is_healthy is False
    assert not status.is_application_healthy()
    assert len(state.services) == 1
    entry = state.services[0]
    assert entry.name == "Health Check System"
    assert entry.required is True
    assert entry.error == "Health check failed: status table locked"
