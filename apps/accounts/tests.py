from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from apps.accounts.application.services.identity_service import CallerContextService
from apps.accounts.domain.caller_context import CallerContext, Role
from apps.accounts.domain.errors import AccountInactiveError
from apps.accounts.domain.policies import can_act_as_seller, resolve_role
from apps.accounts.models import AccountProfile


class RolePolicyTests(TestCase):
    def test_resolve_role(self):
        self.assertEqual(resolve_role("seller"), Role.SELLER)
        self.assertEqual(resolve_role(" ADMIN "), Role.ADMIN)
        self.assertEqual(resolve_role(None), Role.BUYER)
        self.assertEqual(resolve_role("wizard"), Role.BUYER)
        self.assertEqual(resolve_role("BUYER", is_superuser=True), Role.ADMIN)

    def test_seller_desk_roles(self):
        self.assertTrue(can_act_as_seller(CallerContext(user_id=1, role=Role.SELLER)))
        self.assertTrue(can_act_as_seller(CallerContext(user_id=1, role=Role.ADMIN)))
        self.assertFalse(can_act_as_seller(CallerContext(user_id=1, role=Role.BUYER)))
        self.assertFalse(can_act_as_seller(CallerContext(user_id=1, role=Role.DELIVERY_PARTNER)))


class CallerContextServiceTests(TestCase):
    def setUp(self) -> None:
        self.user = get_user_model().objects.create_user(username="hana", password="StrongPass12345!")

    def test_profile_role_is_used(self):
        AccountProfile.objects.create(user=self.user, role=AccountProfile.ROLE_SELLER)
        caller = CallerContextService.from_user(self.user)
        self.assertEqual(caller, CallerContext(user_id=self.user.pk, role=Role.SELLER))
        self.assertTrue(caller.is_seller)
        self.assertFalse(caller.is_admin)

    def test_user_without_profile_is_buyer(self):
        self.assertEqual(CallerContextService.from_user(self.user).role, Role.BUYER)

    def test_superuser_is_admin(self):
        admin = get_user_model().objects.create_superuser(username="root", password="StrongPass12345!")
        self.assertTrue(CallerContextService.from_user(admin).is_admin)

    def test_deactivated_profile_rejected(self):
        AccountProfile.objects.create(user=self.user, role=AccountProfile.ROLE_BUYER, is_active=False)
        with self.assertRaises(AccountInactiveError):
            CallerContextService.from_user(self.user)


class TokenAuthTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.user = get_user_model().objects.create_user(username="hana", password="StrongPass12345!")
        AccountProfile.objects.create(user=self.user, role=AccountProfile.ROLE_BUYER)

    def test_obtained_token_authenticates_api_calls(self):
        response = self.client.post(
            "/api/auth/token/",
            data={"username": "hana", "password": "StrongPass12345!"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        access = response.json()["access"]

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
        orders = self.client.get("/api/orders/")
        self.assertEqual(orders.status_code, 200)
        self.assertTrue(orders.json()["success"])

    def test_wrong_password_rejected(self):
        response = self.client.post(
            "/api/auth/token/",
            data={"username": "hana", "password": "nope"},
            format="json",
        )
        self.assertEqual(response.status_code, 401)

    def test_deactivated_account_is_forbidden(self):
        AccountProfile.objects.filter(user=self.user).update(is_active=False)
        self.client.force_authenticate(user=self.user)
        response = self.client.get("/api/orders/")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "forbidden")
