from pydantic import BaseModel, ConfigDict, EmailStr, Field

from gatekeeper.domain.entities import NotificationCategory


class _CamelIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SignupIn(BaseModel):
    name: str = Field(..., description="Display name", min_length=1, max_length=120)
    email: EmailStr = Field(..., description="The email of the user", max_length=255)
    password: str = Field(..., description="The password of the user", min_length=6)


class EmailIn(BaseModel):
    email: EmailStr = Field(..., max_length=255)


class VerifyCodeIn(BaseModel):
    email: EmailStr = Field(..., max_length=255)
    code: str = Field(..., pattern=r"^\d{6}$")


class LoginIn(BaseModel):
    email: EmailStr = Field(..., max_length=255)
    password: str = Field(..., min_length=1)


class ApproveLoginIn(_CamelIn):
    approval_id: str = Field(..., alias="approvalId", min_length=1)
    approved: bool


class ResetPasswordIn(_CamelIn):
    email: EmailStr = Field(..., max_length=255)
    reset_token: str = Field(..., alias="resetToken", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=6)


class SeenIn(BaseModel):
    section: NotificationCategory
