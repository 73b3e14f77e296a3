"""
Authenticated actor for a request.

Principals are resolved upstream (JWT issued by the auth service) and
decoded by ``projecthub.middleware.jwt_auth``. The service layer only ever
sees this value object.
"""

from dataclasses import dataclass

PRINCIPAL_ROLES = ("provider", "client")


@dataclass(frozen=True)
class Principal:
    id: str
    role: str
    email: str | None = None

    @property
    def is_provider(self) -> bool:
        return self.role == "provider"

    @property
    def is_client(self) -> bool:
        return self.role == "client"

    @property
    def normalized_email(self) -> str:
        return (self.email or "").strip().lower()
