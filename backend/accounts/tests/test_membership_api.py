# accounts/tests/test_membership_api.py
"""
API tests for companies, memberships and global administration.
"""
from django.contrib.auth import get_user_model
from django.test import TransactionTestCase
from rest_framework.test import APIClient

from accounts.models import Company, Role, UserCompany


User = get_user_model()


class TestCompanyAPI(TransactionTestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="founder@example.com", password="pass12345", name="Founder")
        self.client.force_authenticate(user=self.user)

    def test_create_company_makes_caller_administrator(self):
        r = self.client.post("/api/companies/", {"name": "Acme", "code": "acme"}, format="json")

        self.assertEqual(r.status_code, 201, r.data)
        self.assertEqual(r.data["code"], "ACME")
        self.assertEqual(r.data["role"], Role.ADMINISTRATOR)

        r = self.client.get("/api/companies/")
        self.assertEqual([c["code"] for c in r.data], ["ACME"])

    def test_duplicate_code(self):
        Company.objects.create(name="Taken", code="TAKEN")

        r = self.client.post("/api/companies/", {"name": "Acme", "code": "TAKEN"}, format="json")
        self.assertEqual(r.status_code, 409)

    def test_list_only_shows_memberships(self):
        Company.objects.create(name="Elsewhere", code="ELSE")

        r = self.client.get("/api/companies/")
        self.assertEqual(r.data, [])

    def test_login(self):
        client = APIClient()
        r = client.post(
            "/api/auth/token/", {"email": "founder@example.com", "password": "pass12345"}, format="json",
        )
        self.assertEqual(r.status_code, 200, r.data)
        self.assertIn("access", r.data)
        self.assertIn("refresh", r.data)

        r = client.post("/api/auth/token/", {"email": "founder@example.com", "password": "wrong"}, format="json")
        self.assertEqual(r.status_code, 401)


class TestMemberAPI(TransactionTestCase):

    def setUp(self):
        self.client = APIClient()
        self.company = Company.objects.create(name="Test Co", code="TESTCO")
        self.manager = User.objects.create_user(email="manager@example.com", password="pass12345", name="Manager")
        UserCompany.objects.create(user=self.manager, company=self.company, role=Role.MANAGER)
        self.client.force_authenticate(user=self.manager)
        self.url = f"/api/companies/{self.company.id}/members/"

    def test_add_existing_user(self):
        other = User.objects.create_user(email="clerk@example.com", password="pass12345", name="Clerk")

        r = self.client.post(self.url, {"user_id": other.id, "role": "assistant"}, format="json")

        self.assertEqual(r.status_code, 201, r.data)
        self.assertEqual(r.data["role"], Role.ASSISTANT)
        self.assertEqual(r.data["user"]["email"], "clerk@example.com")

    def test_create_new_user(self):
        r = self.client.post(
            self.url,
            {"email": "new@example.com", "name": "New", "password": "longpassword", "role": "accountant"},
            format="json",
        )

        self.assertEqual(r.status_code, 201, r.data)
        self.assertTrue(User.objects.filter(email="new@example.com").exists())

    def test_manager_cannot_grant_administrator(self):
        other = User.objects.create_user(email="clerk@example.com", password="pass12345", name="Clerk")

        r = self.client.post(self.url, {"user_id": other.id, "role": "administrator"}, format="json")

        self.assertEqual(r.status_code, 403)
        self.assertEqual(r.data["kind"], "permission_denied")

    def test_missing_identity(self):
        r = self.client.post(self.url, {"role": "assistant"}, format="json")
        self.assertEqual(r.status_code, 400)

    def test_list_and_change_role(self):
        clerk = User.objects.create_user(email="clerk@example.com", password="pass12345", name="Clerk")
        UserCompany.objects.create(user=clerk, company=self.company, role=Role.ASSISTANT)

        r = self.client.get(self.url)
        self.assertEqual(r.status_code, 200)
        self.assertEqual([m["user"]["email"] for m in r.data], ["clerk@example.com", "manager@example.com"])

        r = self.client.patch(f"{self.url}{clerk.id}/", {"role": "accountant"}, format="json")
        self.assertEqual(r.status_code, 200, r.data)
        self.assertEqual(r.data["role"], Role.ACCOUNTANT)

        r = self.client.delete(f"{self.url}{clerk.id}/")
        self.assertEqual(r.status_code, 204)
        self.assertFalse(UserCompany.objects.get(user=clerk).is_active)

    def test_assistant_cannot_list_members(self):
        UserCompany.objects.filter(user=self.manager).update(role=Role.ASSISTANT)

        r = self.client.get(self.url)
        self.assertEqual(r.status_code, 403)


class TestGlobalAdminAPI(TransactionTestCase):

    def setUp(self):
        self.client = APIClient()
        self.root = User.objects.create_user(
            email="root@example.com", password="pass12345", name="Root",
            global_role=User.GlobalRole.GLOBAL_ADMINISTRATOR,
        )
        self.company = Company.objects.create(name="Doomed", code="DOOMED")
        self.client.force_authenticate(user=self.root)

    def test_global_admin_sees_all_companies(self):
        r = self.client.get("/api/companies/")
        self.assertEqual([c["code"] for c in r.data], ["DOOMED"])

    def test_delete_company(self):
        r = self.client.delete(f"/api/admin/companies/{self.company.id}/")

        self.assertEqual(r.status_code, 204)
        self.assertFalse(Company.objects.filter(pk=self.company.pk).exists())

    def test_delete_company_with_members_is_refused(self):
        member = User.objects.create_user(email="member@example.com", password="pass12345", name="Member")
        UserCompany.objects.create(user=member, company=self.company, role=Role.ASSISTANT)

        r = self.client.delete(f"/api/admin/companies/{self.company.id}/")
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.data["kind"], "deletion_refused")

    def test_delete_user(self):
        member = User.objects.create_user(email="member@example.com", password="pass12345", name="Member")

        r = self.client.delete(f"/api/admin/users/{member.id}/")
        self.assertEqual(r.status_code, 204)
        self.assertFalse(User.objects.filter(pk=member.pk).exists())

    def test_regular_user_cannot_use_admin_routes(self):
        regular = User.objects.create_user(email="regular@example.com", password="pass12345", name="Regular")
        self.client.force_authenticate(user=regular)

        r = self.client.delete(f"/api/admin/companies/{self.company.id}/")
        self.assertEqual(r.status_code, 403)
        self.assertTrue(Company.objects.filter(pk=self.company.pk).exists())
