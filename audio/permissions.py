import hmac

from django.conf import settings
from rest_framework.permissions import BasePermission


class HasWorkerSecret(BasePermission):
    """
    Service-to-service guard: `Authorization: Bearer <WORKER_SECRET>`.
    An unset secret locks every endpoint.
    """
    message = "Unauthorized"

    def has_permission(self, request, view):
        secret = settings.WORKER_SECRET or ""
        if not secret:
            return False
        auth = request.headers.get("Authorization", "")
        scheme, _, token = auth.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return False
        return hmac.compare_digest(token.strip().encode(), secret.encode())
