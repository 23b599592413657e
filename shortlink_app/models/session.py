"""
Authentication session models.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserProfile(BaseModel):
    email: str
    name: str = ""
    roll_no: str = ""

    model_config = _CAMEL


class Credentials(BaseModel):
    email: str
    password: str

    model_config = _CAMEL


class LoginGrant(BaseModel):
    """Body returned by the authentication boundary on login"""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = Field(..., gt=0)
    user: UserProfile

    model_config = _CAMEL


class RefreshGrant(BaseModel):
    """Body returned by the authentication boundary on refresh"""

    access_token: str
    expires_in: int = Field(..., gt=0)

    model_config = _CAMEL


class AuthSession(BaseModel):
    """
    The current user's token material and identity.

    ``expires_at`` is always derived from the locally recorded
    ``issued_at``; a serialized ``expiresAt`` is written for readers but
    ignored when a session is loaded back.
    """

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    issued_at: int
    user: UserProfile

    model_config = _CAMEL

    @computed_field(alias="expiresAt")
    @property
    def expires_at(self) -> int:
        return self.issued_at + self.expires_in * 1000

    @classmethod
    def from_grant(cls, grant: LoginGrant, issued_at: int) -> "AuthSession":
        return cls(
            access_token=grant.access_token,
            token_type="Bearer",
            expires_in=grant.expires_in,
            issued_at=issued_at,
            user=grant.user,
        )

    def renewed(self, grant: RefreshGrant, issued_at: int) -> "AuthSession":
        """New session for the same user with the refreshed token"""
        return AuthSession(
            access_token=grant.access_token,
            token_type="Bearer",
            expires_in=grant.expires_in,
            issued_at=issued_at,
            user=self.user,
        )

    def is_live(self, now: int) -> bool:
        return now < self.expires_at

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: Optional[str]) -> Optional["AuthSession"]:
        if raw is None:
            return None
        return cls.model_validate_json(raw)
