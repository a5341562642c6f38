from pydantic import BaseModel, ConfigDict, Field

from typing import Optional


class FieldError(BaseModel):
    field: str
    message: str


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    picture: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfilePatch(BaseModel):
    """
    Partial profile update.

    A field left out of the request is not touched. A field sent as null
    clears the stored value where the field may be empty.
    """
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    username: Optional[str] = None
    picture: Optional[str] = None
    old_password: Optional[str] = Field(default=None, alias="oldPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")

    def supplied(self, name: str) -> bool:
        return name in self.model_fields_set


class DeleteRequest(BaseModel):
    password: Optional[str] = None


class FederatedLoginRequest(BaseModel):
    access_token: str


class FederatedProfile(BaseModel):
    """Provider-agnostic identity handed to the account resolver."""
    email: str
    username: Optional[str] = None
    picture: Optional[str] = None


class PublicProfile(BaseModel):
    username: Optional[str] = None
    picture: Optional[str] = None


class PrivateProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    picture: Optional[str] = None
    email: str
    access_token: Optional[str] = None
    password_update: Optional[bool] = Field(default=None, alias="passwordUpdate")


class Availability(BaseModel):
    email: Optional[str] = None
    username: Optional[str] = None
    available: bool


class Acknowledgement(BaseModel):
    message: str = "Success."
