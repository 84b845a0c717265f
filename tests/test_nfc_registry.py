from __future__ import annotations

import unittest

from sqlalchemy import select

from tests._support import auth_headers, make_client, open_session, seed_employee, seed_employer
from timetrack.models import NFCCard


class NFCRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.app, self.client = make_client()
        self.db = open_session(self.app)
        self.acme, acme_owner = seed_employer(self.db, company_name="Acme", email="owner@acme.test")
        self.beta, beta_owner = seed_employer(self.db, company_name="Beta", email="owner@beta.test")
        self.acme_headers = auth_headers(self.app, acme_owner)
        self.beta_headers = auth_headers(self.app, beta_owner)
        self.alice = seed_employee(self.db, self.acme, name="Alice", email="alice@acme.test")
        self.bob = seed_employee(self.db, self.beta, name="Bob", email="bob@beta.test")

    def tearDown(self) -> None:
        self.db.close()
        self.app.state.engine.dispose()

    def _register(self, uid: str, employee_id: int, headers: dict[str, str]):
        return self.client.post(
            "/nfc/register",
            json={"uid": uid, "employeeProfileId": employee_id},
            headers=headers,
        )

    def test_register_normalises_uid(self) -> None:
        response = self._register(" 04aabbcc ", self.alice.id, self.acme_headers)
        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        self.assertEqual(body["uid"], "04AABBCC")
        self.assertEqual(body["employeeName"], "Alice")
        self.assertTrue(body["isActive"])

    def test_uid_is_unique_across_tenants(self) -> None:
        self.assertEqual(self._register("04AABBCC", self.alice.id, self.acme_headers).status_code, 201)

        response = self._register("04AABBCC", self.bob.id, self.beta_headers)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"], "This NFC card is already registered")

        cards = self.db.scalars(select(NFCCard)).all()
        self.assertEqual([card.company_id for card in cards], [self.acme.id])

    def test_deactivated_uid_stays_reserved(self) -> None:
        card_id = self._register("04AABBCC", self.alice.id, self.acme_headers).json()["id"]
        deactivated = self.client.post(f"/nfc/cards/{card_id}/deactivate", headers=self.acme_headers)
        self.assertEqual(deactivated.status_code, 200)
        self.assertFalse(deactivated.json()["isActive"])

        response = self._register("04AABBCC", self.alice.id, self.acme_headers)
        self.assertEqual(response.status_code, 409)

    def test_employee_from_other_company_or_inactive_is_rejected(self) -> None:
        foreign = self._register("04000001", self.bob.id, self.acme_headers)
        self.assertEqual(foreign.status_code, 404)
        self.assertEqual(foreign.json()["error"], "Employee not found or is not active")

        inactive = seed_employee(self.db, self.acme, name="Ivan", email="ivan@acme.test", is_active=False)
        response = self._register("04000002", inactive.id, self.acme_headers)
        self.assertEqual(response.status_code, 404)

    def test_register_requires_employer(self) -> None:
        response = self._register("04000003", self.alice.id, {})
        self.assertEqual(response.status_code, 401)

    def test_blank_uid_is_a_validation_error(self) -> None:
        response = self._register("   ", self.alice.id, self.acme_headers)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "UID is required")

    def test_list_cards_is_company_scoped(self) -> None:
        self._register("04AABBCC", self.alice.id, self.acme_headers)
        self._register("04DDEEFF", self.bob.id, self.beta_headers)

        response = self.client.get("/nfc/cards", headers=self.acme_headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual([card["uid"] for card in response.json()], ["04AABBCC"])


if __name__ == "__main__":
    unittest.main()
