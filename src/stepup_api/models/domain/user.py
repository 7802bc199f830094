"""User domain model."""

from uuid import UUID

from pydantic import BaseModel, EmailStr


class User(BaseModel):
    """Authenticated user resolved from a bearer token.

    Only identity is carried here; the step-up credential is always read
    fresh from the store inside the request transaction.
    """

    id: UUID
    email: EmailStr
