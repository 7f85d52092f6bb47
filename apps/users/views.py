"""User API views."""

from __future__ import annotations

from rest_framework import generics, permissions  # type: ignore

from .serializers import UserSerializer


class MeView(generics.RetrieveAPIView):
    """Profile of the signed-in customer or staff member."""

    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):  # type: ignore
        return self.request.user
