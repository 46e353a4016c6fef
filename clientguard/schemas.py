"""Payload schemas for the application's input forms."""
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .validation import validate_email, validate_input, validate_password


def _guard(value: str, max_length: int, message: str) -> str:
    if not validate_input(value, max_length):
        raise ValueError(message)
    return value


class CommentInput(BaseModel):
    text: str = Field(min_length=1, max_length=500)
    user_id: str = Field(min_length=1)
    username: str = Field(min_length=1, max_length=50)
    timestamp: str
    csrf_token: str = Field(min_length=1)

    @field_validator("text")
    @classmethod
    def check_text(cls, v: str) -> str:
        return _guard(v, 500, "Invalid input detected")

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        return _guard(v, 50, "Invalid username")


class UserInput(BaseModel):
    location: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    username: str = Field(min_length=1, max_length=30)

    @field_validator("location")
    @classmethod
    def check_location(cls, v: Optional[str]) -> Optional[str]:
        return _guard(v, 100, "Invalid location") if v else v

    @field_validator("description")
    @classmethod
    def check_description(cls, v: Optional[str]) -> Optional[str]:
        return _guard(v, 1000, "Invalid description") if v else v

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        return _guard(v, 30, "Invalid username")


class RouteInput(BaseModel):
    start_point: str = Field(min_length=1, max_length=200)
    end_point: str = Field(min_length=1, max_length=200)

    @field_validator("start_point")
    @classmethod
    def check_start(cls, v: str) -> str:
        return _guard(v, 200, "Invalid start point")

    @field_validator("end_point")
    @classmethod
    def check_end(cls, v: str) -> str:
        return _guard(v, 200, "Invalid end point")


class LoginInput(BaseModel):
    email: str
    password: str = Field(min_length=1)
    csrf_token: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not validate_email(v):
            raise ValueError("Invalid email address")
        return v


class RegistrationInput(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    email: str
    password: str
    location: str = Field(min_length=1)
    csrf_token: str = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return _guard(v, 50, "Invalid name")

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not validate_email(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        ok, message = validate_password(v)
        if not ok:
            raise ValueError(message)
        return v

    @field_validator("location")
    @classmethod
    def check_location(cls, v: str) -> str:
        return _guard(v, 500, "Invalid location")
