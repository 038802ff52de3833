from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class IndividualProfile(BaseModel):
    user_type: Literal["individual"]
    skills: list[str] = Field(default_factory=list)
    experience_years: int | None = Field(default=None, ge=0)
    location: str | None = None
    bio: str | None = None


class CompanyProfile(BaseModel):
    user_type: Literal["company"]
    company_name: str = Field(min_length=1, max_length=255)
    industry: str | None = None
    registration_number: str | None = None
    website: str | None = None
    employee_count: int | None = Field(default=None, ge=0)


class NGOProfile(BaseModel):
    user_type: Literal["ngo"]
    organization_name: str = Field(min_length=1, max_length=255)
    registration_number: str | None = None
    focus_areas: list[str] = Field(default_factory=list)
    website: str | None = None


ProfileData = Annotated[
    Union[IndividualProfile, CompanyProfile, NGOProfile],
    Field(discriminator="user_type"),
]


class RegisterRequest(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    password: str
    phone: str | None = None
    profile: ProfileData

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters long")
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "email": "ngo@example.org",
                    "name": "Helping Hands",
                    "password": "securepassword",
                    "profile": {"user_type": "ngo", "organization_name": "Helping Hands"},
                }
            ]
        }
    )


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    success: bool = True
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    user_type: str
    profile: ProfileData | None = None
    is_verified: bool
    created_at: str | None = None


class AdminLoginRequest(BaseModel):
    email: EmailStr
    password: str
