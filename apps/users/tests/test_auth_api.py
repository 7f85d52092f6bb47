"""API tests for authentication endpoints."""

from __future__ import annotations

from datetime import timedelta

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.users.models import User


class AuthAPITests(APITestCase):
    def _register_payload(self, email: str = "driver@example.com") -> dict[str, str]:
        return {
            "email": email,
            "phone": "+16045550100",
            "first_name": "Dana",
            "last_name": "Driver",
            "password": "StrongPass123",
            "password_confirm": "StrongPass123",
        }

    def test_register_returns_tokens(self) -> None:
        payload = self._register_payload()

        response = self.client.post(reverse("auth:register"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertIn("tokens", response.data)
        self.assertEqual(response.data["user"]["email"], payload["email"])
        self.assertEqual(response.data["user"]["role"], User.RoleChoices.CUSTOMER)

    def test_register_claims_guest_account(self) -> None:
        guest, created = User.objects.get_or_create_guest("driver@example.com", "+1 604 555 0100", "Dana Driver")
        self.assertTrue(created)
        self.assertTrue(guest.is_guest)
        self.assertFalse(guest.has_usable_password())

        response = self.client.post(reverse("auth:register"), self._register_payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        guest.refresh_from_db()
        self.assertFalse(guest.is_guest)
        self.assertTrue(guest.check_password("StrongPass123"))
        self.assertEqual(User.objects.count(), 1)

    def test_register_rejects_existing_account(self) -> None:
        User.objects.create_user(email="driver@example.com", password="Whatever123")

        response = self.client.post(reverse("auth:register"), self._register_payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "validation_failed")
        self.assertIn("email", response.data["errors"])

    def test_guest_account_cannot_log_in(self) -> None:
        User.objects.get_or_create_guest("walkin@example.com")

        response = self.client.post(
            reverse("auth:login"),
            {"login": "walkin@example.com", "password": "anything"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_limited_attempts(self) -> None:
        user = User.objects.create_user(
            email="lock@example.com",
            phone="+16045550199",
            password="CorrectPassword1",
        )

        url = reverse("auth:login")
        wrong_payload = {"login": user.email, "password": "wrong"}
        for _ in range(5):
            response = self.client.post(url, wrong_payload, format="json")

        user.refresh_from_db()
        self.assertTrue(user.is_locked)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        # After lock expires user can login again
        user.locked_until = timezone.now() - timedelta(minutes=1)
        user.save(update_fields=["locked_until"])
        response = self.client.post(url, {"login": user.email, "password": "CorrectPassword1"})
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        user.refresh_from_db()
        self.assertIsNone(user.locked_until)
        self.assertEqual(user.failed_login_attempts, 0)
