"""
Credential payload validation.

Raw payloads arrive with the form's camelCase keys (``studentId``,
``confirmPassword``). Validation never touches the store.
"""

from typing import Any, Dict, List, Literal, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

MIN_PASSWORD_LENGTH = 6
STUDENT_ID_LENGTH = 6

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class _CredentialsSchema(BaseModel):
    # Session frameworks post extra keys (csrf token, callback url).
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EmailCredentials(_CredentialsSchema):
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    name: Optional[str] = None
    action: Optional[Literal["login", "register"]] = None
    source: Optional[str] = None


class StudentIdCredentials(_CredentialsSchema):
    student_id: str = Field(alias="studentId", min_length=STUDENT_ID_LENGTH, max_length=STUDENT_ID_LENGTH)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class StudentActivationCredentials(StudentIdCredentials):
    confirm_password: str = Field(alias="confirmPassword", min_length=MIN_PASSWORD_LENGTH)

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        # password is absent from info.data when it failed its own checks
        if "password" in info.data and value != info.data["password"]:
            raise ValueError("Passwords do not match")
        return value


class PasswordChange(_CredentialsSchema):
    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=MIN_PASSWORD_LENGTH)


def _field_errors(schema: Type[BaseModel], exc: PydanticValidationError) -> Dict[str, List[str]]:
    aliases = {name: info.alias or name for name, info in schema.model_fields.items()}
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = error.get("loc") or ("__root__",)
        key = aliases.get(str(loc[0]), str(loc[0]))
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(key, []).append(message)
    return errors


def validate_payload(schema: Type[SchemaT], payload: Optional[Mapping[str, Any]]) -> SchemaT:
    """
    Validate a raw payload against a credentials schema.

    Raises:
        ValidationError: With per-field messages if the payload is invalid
    """
    if payload is None:
        raise ValidationError({"__root__": ["Credentials are required"]})
    try:
        return schema.model_validate(dict(payload))
    except PydanticValidationError as e:
        raise ValidationError(_field_errors(schema, e)) from e


def validate_email_credentials(payload: Optional[Mapping[str, Any]]) -> EmailCredentials:
    return validate_payload(EmailCredentials, payload)


def validate_student_id_credentials(payload: Optional[Mapping[str, Any]]) -> StudentIdCredentials:
    return validate_payload(StudentIdCredentials, payload)


def validate_activation_credentials(payload: Optional[Mapping[str, Any]]) -> StudentActivationCredentials:
    return validate_payload(StudentActivationCredentials, payload)


def validate_password_change(payload: Optional[Mapping[str, Any]]) -> PasswordChange:
    return validate_payload(PasswordChange, payload)
