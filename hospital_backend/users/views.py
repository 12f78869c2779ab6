# users/views.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import serializers
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from permissions.roles import capabilities_for


class MeSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    email = serializers.EmailField()
    first_name = serializers.CharField()
    last_name = serializers.CharField()
    role = serializers.CharField()
    capabilities = serializers.ListField(child=serializers.CharField())


class MeView(APIView):
    """
    Current staff profile plus effective capabilities, so the credit screens
    can hide actions the operator is not allowed to take.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = MeSerializer

    @extend_schema(tags=["auth"], responses={200: MeSerializer})
    def get(self, request):
        user = request.user
        return Response(
            {
                "id": user.id,
                "email": user.email,
                "first_name": user.first_name,
                "last_name": user.last_name,
                "role": user.role,
                "capabilities": sorted(capabilities_for(user)),
            }
        )
