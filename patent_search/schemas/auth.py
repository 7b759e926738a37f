from pydantic import BaseModel, ConfigDict
from typing import Optional


class TokenExchangeRequest(BaseModel):
    # Optional so absent fields reach the missing_parameters check in the service
    code: Optional[str] = None
    redirect_uri: Optional[str] = None
    code_verifier: Optional[str] = None


class SessionBridgeRequest(BaseModel):
    valyu_access_token: Optional[str] = None


class ValyuUserInfo(BaseModel):
    """Profile returned by the Valyu userinfo endpoint. Validated once at the boundary."""

    model_config = ConfigDict(extra="ignore")

    sub: str
    email: Optional[str] = None
    name: Optional[str] = None
    given_name: Optional[str] = None
    picture: Optional[str] = None
    valyu_user_type: Optional[str] = None
    valyu_organisation_id: Optional[str] = None
    valyu_organisation_name: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.name or self.given_name

    def user_metadata(self) -> dict:
        """Metadata stored on the Supabase auth user."""
        return {
            "valyu_sub": self.sub,
            "full_name": self.display_name,
            "avatar_url": self.picture,
            "valyu_user_type": self.valyu_user_type,
            "valyu_organisation_id": self.valyu_organisation_id,
            "valyu_organisation_name": self.valyu_organisation_name,
        }


class ValyuUserSummary(BaseModel):
    sub: str
    name: Optional[str] = None
    email: Optional[str] = None
    picture: Optional[str] = None
    valyu_user_type: Optional[str] = None
    valyu_organisation_id: Optional[str] = None


class SessionBridgeResponse(BaseModel):
    user_id: str
    email: str
    token_hash: str
    valyu_user: ValyuUserSummary


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    subscription_tier: str
