# rental_app/models/user.py
from typing import Optional
from beanie import Document
from pydantic import BaseModel, Field, EmailStr, field_validator, model_validator
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .enum import UserRole, VerificationStatus


class User(Document):
    name: str = Field(..., max_length=120)
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    id_card_url: Optional[str] = None # Foto KTP
    hashed_password: str
    role: UserRole = Field(default=UserRole.MEMBER)
    verification_status: VerificationStatus = Field(default=VerificationStatus.PENDING)
    disabled: bool = Field(default=False) # False=Aktif, True=Nonaktif

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Settings:
        name = "users"
        indexes = [
            IndexModel([("email", ASCENDING)], name="email_unique_index", unique=True),
            IndexModel([("role", ASCENDING)], name="role_index"),
            IndexModel([("verification_status", ASCENDING)], name="user_verification_index"),
            IndexModel([("disabled", ASCENDING)], name="user_disabled_index"),
            IndexModel([("created_at", DESCENDING)], name="user_created_at_index"),
        ]

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.APPROVED

    # --- Pydantic Schemas ---
    class Response(BaseModel):
        id: str
        name: str
        email: EmailStr
        phone: Optional[str] = None
        address: Optional[str] = None
        id_card_url: Optional[str] = None
        role: UserRole
        verification_status: VerificationStatus
        disabled: bool
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            use_enum_values = True

    class Register(BaseModel):
        """Skema registrasi member (self-service)."""
        name: str = Field(..., min_length=1, max_length=120)
        email: EmailStr
        password: str = Field(..., min_length=6)
        phone: Optional[str] = None
        address: Optional[str] = None
        id_card_url: Optional[str] = None

        @field_validator("email")
        @classmethod
        def lower_email(cls, v: str) -> str:
            return v.lower()

    class AdminCreate(BaseModel):
        name: str = Field(..., min_length=1, max_length=120)
        email: EmailStr
        password: str = Field(..., min_length=6)
        phone: Optional[str] = None
        address: Optional[str] = None
        role: UserRole = UserRole.MEMBER
        verification_status: VerificationStatus = VerificationStatus.APPROVED
        disabled: bool = False

        @field_validator("email")
        @classmethod
        def lower_email(cls, v: str) -> str:
            return v.lower()

    class AdminUpdate(BaseModel):
        name: Optional[str] = Field(None, min_length=1, max_length=120)
        email: Optional[EmailStr] = None
        phone: Optional[str] = None
        address: Optional[str] = None
        password: Optional[str] = Field(None, min_length=6)
        role: Optional[UserRole] = None
        disabled: Optional[bool] = None

    class Verification(BaseModel):
        status: VerificationStatus

    class PasswordChange(BaseModel):
        """Ganti password sendiri; wajib menyertakan password lama."""
        current_password: str = Field(..., min_length=1)
        new_password: str = Field(..., min_length=6)

        @model_validator(mode="after")
        def check_new_password(self):
            if self.new_password == self.current_password:
                raise ValueError("new_password must differ from current_password")
            return self
