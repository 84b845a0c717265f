from __future__ import annotations

import unittest

from sqlalchemy import func, select

from tests._support import TEST_PASSWORD, auth_headers, make_client, open_session, seed_employer, seed_user
from timetrack.main import first_validation_message
from timetrack.models import AuditLog, Company, CompanyMembership, Role, User
from timetrack.security import create_access_token


def _registration(**overrides) -> dict:
    payload = {
        "name": "Olivia Owner",
        "email": "Olivia@Acme.test",
        "password": TEST_PASSWORD,
        "companyName": "Acme Corp",
    }
    payload.update(overrides)
    return payload


class RegisterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.app, self.client = make_client()
        self.db = open_session(self.app)

    def tearDown(self) -> None:
        self.db.close()
        self.app.state.engine.dispose()

    def test_register_creates_user_company_and_membership(self) -> None:
        response = self.client.post("/register", json=_registration())
        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["user"]["email"], "olivia@acme.test")
        self.assertEqual(body["user"]["role"], "EMPLOYER")

        user = self.db.scalar(select(User).where(User.email == "olivia@acme.test"))
        membership = self.db.scalar(select(CompanyMembership).where(CompanyMembership.user_id == user.id))
        company = self.db.get(Company, membership.company_id)
        self.assertEqual(company.name, "Acme Corp")
        self.assertTrue(company.slug.startswith("acme-corp-"))
        self.assertNotEqual(user.password_hash, TEST_PASSWORD)

    def test_weak_password_is_rejected_with_first_rule(self) -> None:
        response = self.client.post("/register", json=_registration(password="alllowercase1!"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Password must contain at least one uppercase letter")

    def test_missing_field_message(self) -> None:
        payload = _registration()
        payload.pop("companyName")
        response = self.client.post("/register", json=payload)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "CompanyName is required")

    def test_duplicate_email(self) -> None:
        self.assertEqual(self.client.post("/register", json=_registration()).status_code, 201)
        response = self.client.post("/register", json=_registration(email="olivia@acme.test"))
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"], "User with this email already exists")
        self.assertEqual(self.db.scalar(select(func.count(Company.id))), 1)

    def test_admin_role_cannot_self_register(self) -> None:
        response = self.client.post("/register", json=_registration(role="ADMIN"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid role")
        self.assertIsNone(self.db.scalar(select(User).where(User.email == "olivia@acme.test")))

        employee = self.client.post("/register", json=_registration(role="EMPLOYEE"))
        self.assertEqual(employee.status_code, 201, employee.text)
        self.assertEqual(employee.json()["user"]["role"], "EMPLOYEE")


class LoginTests(unittest.TestCase):
    def setUp(self) -> None:
        self.app, self.client = make_client()
        self.db = open_session(self.app)
        self.company, self.user = seed_employer(self.db, company_name="Acme", email="owner@acme.test")

    def tearDown(self) -> None:
        self.db.close()
        self.app.state.engine.dispose()

    def test_login_then_me(self) -> None:
        response = self.client.post("/auth/login", json={"email": "OWNER@acme.test", "password": TEST_PASSWORD})
        self.assertEqual(response.status_code, 200, response.text)
        token = response.json()["accessToken"]
        self.assertEqual(response.json()["tokenType"], "bearer")

        me = self.client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json(), {"role": "EMPLOYER", "id": self.user.id, "email": "owner@acme.test"})
        self.assertIn("no-store", me.headers["cache-control"])

    def test_bad_password(self) -> None:
        response = self.client.post("/auth/login", json={"email": "owner@acme.test", "password": "Wrong!Pass1"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "Invalid email or password")

        failures = self.db.scalar(select(func.count(AuditLog.id)).where(AuditLog.action == "LOGIN_FAIL"))
        self.assertEqual(failures, 1)

    def test_repeated_failures_are_throttled(self) -> None:
        for _ in range(10):
            response = self.client.post("/auth/login", json={"email": "ghost@acme.test", "password": "x"})
            self.assertEqual(response.status_code, 401)

        blocked = self.client.post("/auth/login", json={"email": "owner@acme.test", "password": TEST_PASSWORD})
        self.assertEqual(blocked.status_code, 429)
        self.assertEqual(blocked.json()["code"], "TOO_MANY_ATTEMPTS")

    def test_identity_comes_from_membership_not_token(self) -> None:
        other, _ = seed_employer(self.db, company_name="Other", email="owner@other.test")
        token, _ = create_access_token(
            self.app.state.settings,
            user_id=self.user.id,
            role=Role.EMPLOYER,
            company_id=other.id,
        )
        response = self.client.get("/settings", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 200)

        self.company.invitation_message = "Acme only"
        self.db.commit()
        response = self.client.get("/settings", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.json()["invitationMessage"], "Acme only")

    def test_invalid_token(self) -> None:
        response = self.client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "UNAUTHORIZED")


class OnboardingAndSettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.app, self.client = make_client()
        self.db = open_session(self.app)
        self.company, user = seed_employer(self.db, company_name="Acme", email="owner@acme.test")
        self.headers = auth_headers(self.app, user)

    def tearDown(self) -> None:
        self.db.close()
        self.app.state.engine.dispose()

    def test_progress_starts_empty(self) -> None:
        response = self.client.get("/onboarding/progress", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"completed": False, "step": 0, "percentage": 0})

    def test_first_step_saves_profile(self) -> None:
        response = self.client.post(
            "/onboarding",
            json={"phone": "+90 555", "industry": "Retail", "timezone": "Europe/Istanbul", "step": 1},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertFalse(body["completed"])
        self.assertEqual(body["step"], 1)
        self.assertEqual(body["percentage"], 50)

        self.db.expire_all()
        self.assertEqual(self.db.get(Company, self.company.id).timezone, "Europe/Istanbul")

    def test_second_step_completes(self) -> None:
        response = self.client.post("/onboarding", json={"step": 2}, headers=self.headers)
        self.assertEqual(response.json(), {"completed": True, "step": 4, "percentage": 100})

    def test_invalid_timezone_and_website(self) -> None:
        bad_tz = self.client.post("/onboarding", json={"timezone": "Mars/Base", "step": 1}, headers=self.headers)
        self.assertEqual(bad_tz.status_code, 400)
        self.assertEqual(bad_tz.json()["error"], "Invalid timezone")

        bad_site = self.client.post("/onboarding", json={"website": "ftp://x", "step": 1}, headers=self.headers)
        self.assertEqual(bad_site.status_code, 400)
        self.assertEqual(bad_site.json()["error"], "Invalid website URL")

    def test_settings_round_trip(self) -> None:
        updated = self.client.put(
            "/settings",
            json={"invitationMessage": "Hi {name}, join {company}: {link}"},
            headers=self.headers,
        )
        self.assertEqual(updated.status_code, 200)
        fetched = self.client.get("/settings", headers=self.headers)
        self.assertEqual(fetched.json()["invitationMessage"], "Hi {name}, join {company}: {link}")

    def test_employee_role_cannot_manage_settings(self) -> None:
        employee = seed_user(self.db, email="emp@acme.test", role=Role.EMPLOYEE, company=self.company)
        response = self.client.get("/settings", headers=auth_headers(self.app, employee))
        self.assertEqual(response.status_code, 401)


class ValidationMessageTests(unittest.TestCase):
    def test_value_error_prefix_is_stripped(self) -> None:
        errors = [{"type": "value_error", "loc": ("body", "email"), "msg": "Value error, Invalid email address"}]
        self.assertEqual(first_validation_message(errors), "Invalid email address")

    def test_empty_error_list(self) -> None:
        self.assertEqual(first_validation_message([]), "Invalid request")


if __name__ == "__main__":
    unittest.main()
