#!/usr/bin/env python
from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import create_engine, inspect, text

from timetrack.settings import get_settings

EXPECTED_HEAD = "0001_initial"


def _mask_url(database_url: str) -> str:
    if "@" not in database_url or "://" not in database_url:
        return database_url
    scheme, rest = database_url.split("://", 1)
    return f"{scheme}://***@{rest.split('@', 1)[1]}"


def run(database_url: str | None = None) -> dict:
    database_url = database_url or get_settings().database_url
    engine = create_engine(database_url)
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "database_url": _mask_url(database_url),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append(
            {
                "name": name,
                "status": status,
                "details": details,
            }
        )

    with engine.connect() as conn:
        tables = set(inspect(conn).get_table_names())

        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0]
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_HEAD, "current": current_versions},
        )

        if "employee_profiles" in tables:
            duplicate_codes = conn.execute(
                text(
                    """
                    select employee_code, count(*)
                    from employee_profiles
                    where employee_code is not null
                    group by employee_code
                    having count(*) > 1
                    """
                )
            ).fetchall()
            add(
                "duplicate_employee_code",
                "fail" if duplicate_codes else "ok",
                {"rows": [list(row) for row in duplicate_codes]},
            )

            duplicate_emails = conn.execute(
                text(
                    """
                    select company_id, lower(email), count(*)
                    from employee_profiles
                    where email is not null
                    group by company_id, lower(email)
                    having count(*) > 1
                    """
                )
            ).fetchall()
            add(
                "duplicate_company_email",
                "fail" if duplicate_emails else "ok",
                {"rows": [list(row) for row in duplicate_emails]},
            )

        if "nfc_cards" in tables:
            cross_company_cards = conn.execute(
                text(
                    """
                    select c.id
                    from nfc_cards c
                    join employee_profiles e on e.id = c.employee_profile_id
                    where e.company_id <> c.company_id
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "nfc_card_company_mismatch",
                "fail" if cross_company_cards else "ok",
                {"sample_ids": [row[0] for row in cross_company_cards]},
            )

        if "invitations" in tables:
            stale_invitations = conn.execute(
                text(
                    """
                    select id
                    from invitations
                    where status = 'PENDING' and expires_at < :now
                    limit 20
                    """
                ),
                {"now": datetime.now(timezone.utc)},
            ).fetchall()
            add(
                "stale_pending_invitations",
                "warn" if stale_invitations else "ok",
                {"sample_ids": [row[0] for row in stale_invitations]},
            )

    engine.dispose()
    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
