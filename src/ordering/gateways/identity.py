"""User Identity Gateway: resolves bearer tokens through the auth service."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import structlog

from ordering.gateways.http import HttpGateway, bearer
from shared.errors import AuthenticationFailure

logger = structlog.get_logger(__name__)

ADMIN_ROLE = "ADMIN"
SYSTEM_ROLE = "SYSTEM"


@dataclass(frozen=True)
class Identity:
    """The caller on whose behalf an operation runs.

    ``token`` is kept so downstream calls can be made as the same caller.
    """

    user_id: str
    role: str = "USER"
    token: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role.upper() == ADMIN_ROLE

    @classmethod
    def system(cls, user_id) -> "Identity":
        """Identity used for provider-initiated work such as webhooks."""
        return cls(user_id=str(user_id), role=SYSTEM_ROLE)


class IdentityGateway(ABC):
    @abstractmethod
    def resolve(self, token: str | None) -> Identity:
        """Return the identity for ``token`` or raise ``AuthenticationFailure``."""
        ...


class HttpIdentityGateway(HttpGateway, IdentityGateway):
    service = "identity"

    def resolve(self, token: str | None) -> Identity:
        if not token:
            raise AuthenticationFailure("Missing bearer token")

        response = self._send_once("GET", "/auth/current-user", headers=bearer(token))
        if not response.is_success:
            logger.info("Identity service rejected token", status_code=response.status_code)
            raise AuthenticationFailure()

        body = response.json() or {}
        user_id = body.get("userId") or body.get("id")
        if not user_id:
            raise AuthenticationFailure("Identity service returned no user")

        role = body.get("role")
        if not role and body.get("roles"):
            role = ADMIN_ROLE if ADMIN_ROLE in {str(r).upper() for r in body["roles"]} else body["roles"][0]
        return Identity(user_id=str(user_id), role=str(role or "USER").upper(), token=token)
