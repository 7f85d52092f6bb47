"""Serializers for authentication flows (register, login)."""

from __future__ import annotations

from typing import Any

from django.contrib.auth import get_user_model  # type: ignore
from django.db import transaction  # type: ignore
from rest_framework import serializers  # type: ignore

from .models import PHONE_VALIDATOR


User = get_user_model()


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    phone = serializers.CharField(validators=[PHONE_VALIDATOR])
    password = serializers.CharField(min_length=8, write_only=True)
    password_confirm = serializers.CharField(min_length=8, write_only=True)
    first_name = serializers.CharField(required=False, allow_blank=True)
    last_name = serializers.CharField(required=False, allow_blank=True)
    username = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        if attrs.get("password") != attrs.get("password_confirm"):
            raise serializers.ValidationError({"password_confirm": "Passwords do not match."})
        existing = User.objects.filter(email__iexact=attrs["email"]).first()
        if existing is not None and not existing.is_guest:
            raise serializers.ValidationError({"email": "An account with this email already exists."})
        attrs["existing_guest"] = existing
        return attrs

    @transaction.atomic
    def create(self, validated_data: dict[str, Any]):  # type: ignore
        password = validated_data.pop("password")
        validated_data.pop("password_confirm", None)
        guest = validated_data.pop("existing_guest", None)
        if guest is None:
            return User.objects.create_user(password=password, **validated_data)

        # Claim the account created by an earlier guest checkout
        for field, value in validated_data.items():
            if field != "email" and value:
                setattr(guest, field, value)
        guest.phone = User.objects.normalize_phone(validated_data["phone"])
        guest.is_guest = False
        guest.set_password(password)
        guest.save()
        return guest


class LoginSerializer(serializers.Serializer):
    login = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        login = attrs.get("login", "")
        password = attrs.get("password", "")

        if "@" in login:
            user = User.objects.filter(email__iexact=login).first()
        else:
            user = User.objects.filter(phone=User.objects.normalize_phone(login), is_guest=False).first()
        if user is None or user.is_guest:
            raise serializers.ValidationError({"login": "Invalid login or password."})

        if user.is_locked:
            raise serializers.ValidationError({"non_field_errors": ["Account temporarily locked. Try again later."]})

        if not user.check_password(password):
            user.register_failed_attempt(threshold=5)
            raise serializers.ValidationError({"login": "Invalid login or password."})

        user.unlock()
        attrs["user"] = user
        return attrs
