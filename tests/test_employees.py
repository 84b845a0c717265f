from __future__ import annotations

import unittest

from sqlalchemy import select

from tests._support import auth_headers, make_client, open_session, seed_card, seed_employee, seed_employer, seed_user
from timetrack.models import EmployeeProfile, NFCCard, Role


class EmployeeEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.app, self.client = make_client()
        self.db = open_session(self.app)
        self.company, owner = seed_employer(self.db, company_name="Acme", email="owner@acme.test")
        self.headers = auth_headers(self.app, owner)

    def tearDown(self) -> None:
        self.db.close()
        self.app.state.engine.dispose()

    def _create(self, **overrides):
        payload = {"name": "Alice", "email": "alice@acme.test", "employeeId": "E1"}
        payload.update(overrides)
        return self.client.post("/employees", json=payload, headers=self.headers)

    def test_create_and_list(self) -> None:
        created = self._create()
        self.assertEqual(created.status_code, 201, created.text)
        self.assertEqual(created.json()["employeeId"], "E1")
        self.assertTrue(created.json()["isActive"])

        seed_employee(self.db, self.company, name="Idle", email="idle@acme.test", is_active=False)
        listed = self.client.get("/employees", headers=self.headers)
        self.assertEqual(listed.status_code, 200)
        self.assertEqual([item["name"] for item in listed.json()["employees"]], ["Alice"])

    def test_duplicates_are_rejected(self) -> None:
        self._create()
        same_email = self._create(employeeId="E2")
        self.assertEqual(same_email.status_code, 409)
        self.assertEqual(same_email.json()["error"], "Employee already exists in your company")

        beta, beta_owner = seed_employer(self.db, company_name="Beta", email="owner@beta.test")
        foreign = self.client.post(
            "/employees",
            json={"name": "Bob", "email": "bob@beta.test", "employeeId": "E1"},
            headers=auth_headers(self.app, beta_owner),
        )
        self.assertEqual(foreign.status_code, 409)
        self.assertEqual(foreign.json()["error"], "Employee ID already exists. Please use a different ID.")

    def test_update_and_status(self) -> None:
        employee_id = self._create().json()["id"]
        updated = self.client.patch(
            f"/employees/{employee_id}",
            json={"name": "Alice Smith", "email": "alice@acme.test", "employeeId": "E1", "salaryRate": 25.5},
            headers=self.headers,
        )
        self.assertEqual(updated.status_code, 200, updated.text)
        self.assertEqual(updated.json()["name"], "Alice Smith")
        self.assertEqual(updated.json()["salaryRate"], 25.5)

        negative = self.client.patch(
            f"/employees/{employee_id}",
            json={"name": "Alice Smith", "salaryRate": -1},
            headers=self.headers,
        )
        self.assertEqual(negative.status_code, 400)
        self.assertEqual(negative.json()["error"], "Salary rate cannot be negative")

        deactivated = self.client.post(
            f"/employees/{employee_id}/status",
            json={"isActive": False},
            headers=self.headers,
        )
        self.assertEqual(deactivated.status_code, 200)
        self.assertFalse(deactivated.json()["isActive"])

    def test_other_company_employee_is_not_found(self) -> None:
        beta, _ = seed_employer(self.db, company_name="Beta", email="owner@beta.test")
        bob = seed_employee(self.db, beta, name="Bob", email="bob@beta.test")
        response = self.client.get(f"/employees/{bob.id}", headers=self.headers)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Employee not found")

    def test_delete_removes_cards(self) -> None:
        alice = seed_employee(self.db, self.company, name="Alice", email="alice@acme.test")
        seed_card(self.db, alice, "04AABBCC")
        alice_id = alice.id

        response = self.client.delete(f"/employees/{alice_id}", headers=self.headers)
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json(), {"success": True, "message": "Employee deleted successfully"})

        self.db.expire_all()
        self.assertIsNone(self.db.scalar(select(EmployeeProfile).where(EmployeeProfile.id == alice_id)))
        self.assertIsNone(self.db.scalar(select(NFCCard).where(NFCCard.uid == "04AABBCC")))


class AdminAccessTests(unittest.TestCase):
    def setUp(self) -> None:
        self.app, self.client = make_client()
        self.db = open_session(self.app)
        self.company, owner = seed_employer(self.db, company_name="Acme", email="owner@acme.test")
        seed_employee(self.db, self.company, name="Alice", email="alice@acme.test")
        self.employer_headers = auth_headers(self.app, owner)
        admin = seed_user(self.db, email="root@timetrack.test", role=Role.ADMIN)
        self.admin_headers = auth_headers(self.app, admin)

    def tearDown(self) -> None:
        self.db.close()
        self.app.state.engine.dispose()

    def test_employer_is_forbidden(self) -> None:
        response = self.client.get("/admin/companies", headers=self.employer_headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "FORBIDDEN")
        self.assertEqual(self.client.get("/admin/users").status_code, 401)

    def test_admin_lists_companies_and_users(self) -> None:
        companies = self.client.get("/admin/companies", headers=self.admin_headers).json()
        self.assertEqual(len(companies), 1)
        self.assertEqual(companies[0]["employeeCount"], 1)
        self.assertEqual(companies[0]["cardCount"], 0)

        users = {user["email"]: user for user in self.client.get("/admin/users", headers=self.admin_headers).json()}
        self.assertEqual(users["owner@acme.test"]["companyIds"], [self.company.id])
        self.assertEqual(users["root@timetrack.test"]["companyIds"], [])

        missing = self.client.get("/admin/companies/9999", headers=self.admin_headers)
        self.assertEqual(missing.status_code, 404)

    def test_unknown_route_uses_error_envelope(self) -> None:
        response = self.client.get("/nope")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "NOT_FOUND")
        self.assertIn("request_id", response.json())


if __name__ == "__main__":
    unittest.main()
