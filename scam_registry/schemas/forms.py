"""
Form validation schemas for login, registration and OTP entry
Validation errors are reported per field and never reach the session manager
"""

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator, model_validator
from typing import Any, Dict, Optional, Tuple, Type, TypeVar
import re

FormT = TypeVar("FormT", bound=BaseModel)

class ContactForm(BaseModel):
    """Either an email address or a phone number identifies the account"""
    email: Optional[EmailStr] = Field(None, description="User email address")
    phone_number: Optional[str] = Field(None, description="User phone number")
    password: Optional[str] = Field(None, description="Password (optional for OTP flows)")

    @field_validator('phone_number')
    @classmethod
    def validate_phone_number(cls, v):
        """Phone numbers need at least 10 digits"""
        if v is None or v == "":
            return None
        digits = re.sub(r'\D', '', v)
        if len(digits) < 10:
            raise ValueError('Phone number must be at least 10 digits')
        return v.strip()

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        if v is not None and len(v) < 1:
            raise ValueError('Password is required')
        return v

    @model_validator(mode='after')
    def require_contact(self):
        if not self.email and not self.phone_number:
            raise ValueError('Either email or phone number is required')
        return self

    model_config = {
        "json_schema_extra": {
            "example": {
                "email": "user@example.com",
                "password": "hunter2"
            }
        }
    }

class LoginForm(ContactForm):
    """Schema for the login form"""

class RegisterForm(ContactForm):
    """Schema for the registration form"""

class OTPForm(BaseModel):
    """Schema for OTP entry"""
    otp: str = Field(..., description="6-digit OTP code")

    @field_validator('otp')
    @classmethod
    def validate_otp(cls, v):
        cleaned = v.strip().replace(' ', '').replace('-', '')
        if not re.match(r'^\d{6}$', cleaned):
            raise ValueError('OTP must be 6 digits')
        return cleaned

def validate_form(schema: Type[FormT], data: Dict[str, Any]) -> Tuple[Optional[FormT], Dict[str, str]]:
    """
    Validate raw form input

    Args:
        schema: Form schema class
        data: Raw field values

    Returns:
        (form, {}) when valid, (None, field errors) otherwise. Cross-field
        errors are reported against "email".
    """
    try:
        return schema.model_validate(data), {}
    except ValidationError as e:
        errors: Dict[str, str] = {}
        for item in e.errors():
            field = str(item["loc"][0]) if item.get("loc") else "email"
            message = item.get("msg", "Invalid value")
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            errors.setdefault(field, message)
        return None, errors
