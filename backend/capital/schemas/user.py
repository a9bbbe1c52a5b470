import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


def _check_username(v: str) -> str:
    v = v.strip()
    if not _USERNAME_RE.match(v):
        raise ValueError("Username may only contain letters, numbers, underscores, and hyphens")
    return v


def _check_name(v: str) -> str:
    v = v.strip()
    if len(v) < 3:
        raise ValueError("Name must be at least 3 characters")
    return v


def _check_password(v: str) -> str:
    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", v):
        raise ValueError("Password must contain at least one number")
    return v


class RegisterIn(BaseModel):
    username: str = Field(min_length=3, max_length=30)
    name: str = Field(min_length=3, max_length=200)
    email: EmailStr
    password: str = Field(min_length=8, max_length=255)
    verifyPassword: str = Field(min_length=8, max_length=255)

    @field_validator("username")
    @classmethod
    def username_charset(cls, v: str) -> str:
        return _check_username(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("verifyPassword")
    @classmethod
    def passwords_match(cls, v: str, info: ValidationInfo) -> str:
        # password is absent from info.data when it failed its own validation
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("Passwords don't match")
        return v


class UserUpdate(BaseModel):
    """
    Partial profile update. A password change needs the current password plus a
    confirmed newPassword; the service checks the current one against the stored hash.
    """

    username: Optional[str] = Field(default=None, min_length=3, max_length=30)
    name: Optional[str] = Field(default=None, min_length=3, max_length=200)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=1, max_length=255)
    newPassword: Optional[str] = Field(default=None, min_length=8, max_length=255)
    verifyPassword: Optional[str] = Field(default=None, min_length=8, max_length=255)

    @field_validator("username", "name", "email", mode="before")
    @classmethod
    def not_null(cls, v, info: ValidationInfo):
        if v is None:
            raise ValueError(f"{info.field_name.capitalize()} cannot be null")
        return v

    @field_validator("username")
    @classmethod
    def username_charset(cls, v: str) -> str:
        return _check_username(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("newPassword")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return _check_password(v)

    @property
    def changes_password(self) -> bool:
        return bool(self.password or self.newPassword or self.verifyPassword)

    def password_errors(self) -> dict[str, str]:
        """Field-keyed problems with the password change fields, if any."""
        if not self.changes_password:
            return {}

        errors: dict[str, str] = {}
        if not self.password:
            errors["password"] = "Current password is required to set a new password"
        elif not self.newPassword:
            errors["newPassword"] = "New password is required to set a new password"
        elif not self.verifyPassword:
            errors["verifyPassword"] = "Password verification is required to set a new password"

        if self.password and self.password == self.newPassword:
            errors["newPassword"] = "New password must not match the old password"
        if self.newPassword and self.verifyPassword and self.newPassword != self.verifyPassword:
            errors.setdefault("verifyPassword", "Passwords don't match")
        return errors


class UserDetailsOut(BaseModel):
    username: str
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)
