from pydantic import BaseModel, ConfigDict, Field, StrictStr
from typing import Optional


class UserProfile(BaseModel):
    """User returned by login. Its id doubles as the medical profile id."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: StrictStr = Field(alias="_id")
    roleId: Optional[str] = None
    profileImageId: Optional[str] = None
    fullName: Optional[str] = None
    email: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    roleName: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: str
    signUpCode: Optional[str] = None

    @classmethod
    def for_email(cls, email: str, pin: str) -> "LoginRequest":
        return cls(email=email, password=pin)

    @classmethod
    def for_code(cls, code: str, pin: str) -> "LoginRequest":
        return cls(signUpCode=code, password=pin)

    def body(self) -> dict:
        return self.model_dump(exclude_none=True)


class LoginData(BaseModel):
    authorization: StrictStr
    user: UserProfile
