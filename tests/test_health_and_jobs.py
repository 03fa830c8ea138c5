from datetime import timedelta

from app.core.clock import utcnow
from app.crud.verification import issue_code
from app.models.verification_code import PURPOSE_SIGNUP, VerificationCode
from app.worker.scheduler import make_scheduler, run_code_purge


def test_health_endpoints(client):
    res = client.get("/api/healthz")
    assert res.status_code == 200
    assert res.json()["ok"] is True
    # ENABLE_SCHEDULER=0 under test
    assert res.json()["scheduler"] == "off"

    res = client.get("/api/readyz")
    assert res.status_code == 200
    assert res.json()["db"] == "up"
    assert "missing_tables" not in res.json()


def test_code_purge_job(app, db):
    issue_code(db, "old@example.com", PURPOSE_SIGNUP, now=utcnow() - timedelta(hours=1))
    issue_code(db, "new@example.com", PURPOSE_SIGNUP)

    assert run_code_purge(app.state.session_factory) == 1

    db.expire_all()
    assert [r.email for r in db.query(VerificationCode).all()] == ["new@example.com"]


class _BrokenSession:
    closed = False
    rolled_back = False

    def query(self, *args, **kwargs):
        raise RuntimeError("boom")

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


def test_purge_job_survives_store_errors():
    session = _BrokenSession()
    assert run_code_purge(lambda: session) == 0
    assert session.rolled_back and session.closed


def test_scheduler_registers_purge_job(app):
    sched = make_scheduler(app.state.session_factory)
    job = sched.get_job("purge_expired_codes")
    assert job is not None
    assert job.trigger.interval == timedelta(minutes=5)
