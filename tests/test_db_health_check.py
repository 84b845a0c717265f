from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from scripts.db_health_check import EXPECTED_HEAD, _mask_url, run
from timetrack.db import Base
from timetrack.models import Company, EmployeeProfile, Invitation, InvitationStatus


class DbHealthCheckTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.database_url = f"sqlite+pysqlite:///{Path(self._tmp.name) / 'health.db'}"
        self.engine = create_engine(self.database_url)
        Base.metadata.create_all(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()
        self._tmp.cleanup()

    def _checks(self) -> dict[str, dict]:
        report = run(self.database_url)
        return {check["name"]: check for check in report["checks"]}

    def test_clean_database(self) -> None:
        checks = self._checks()
        self.assertEqual(checks["migration_up_to_date"]["status"], "warn")
        self.assertEqual(checks["migration_up_to_date"]["details"]["expected_head"], EXPECTED_HEAD)
        for name in (
            "duplicate_employee_code",
            "duplicate_company_email",
            "nfc_card_company_mismatch",
            "stale_pending_invitations",
        ):
            self.assertEqual(checks[name]["status"], "ok", name)

    def test_stale_pending_invitation_is_reported(self) -> None:
        with Session(self.engine) as db:
            company = Company(name="Acme", slug="acme", timezone="UTC")
            db.add(company)
            db.flush()
            db.add(EmployeeProfile(company_id=company.id, name="Alice", email="alice@acme.test"))
            db.add(
                Invitation(
                    token="stale-token",
                    company_id=company.id,
                    email="bob@acme.test",
                    name="Bob",
                    status=InvitationStatus.PENDING,
                    expires_at=datetime.now(timezone.utc) - timedelta(days=2),
                )
            )
            db.commit()
            invitation_id = db.query(Invitation.id).scalar()

        checks = self._checks()
        self.assertEqual(checks["stale_pending_invitations"]["status"], "warn")
        self.assertEqual(checks["stale_pending_invitations"]["details"]["sample_ids"], [invitation_id])

    def test_credentials_are_masked(self) -> None:
        self.assertEqual(
            _mask_url("postgresql+psycopg://user:secret@db:5432/timetrack"),
            "postgresql+psycopg://***@db:5432/timetrack",
        )


if __name__ == "__main__":
    unittest.main()
