# capital/schemas/auth.py
from pydantic import BaseModel, Field


class LoginIn(BaseModel):
    username: str = Field(min_length=1, max_length=30)
    password: str = Field(min_length=1, max_length=255)


class SuccessOut(BaseModel):
    success: bool = True


class AuthenticationStatusOut(BaseModel):
    authenticated: bool
