"""
Database Schemas for the Car Dealership backend

Each Pydantic model correlates to a MongoDB collection. The collection name is the lowercase of the class name.
- Car -> "car"
- User -> "user"
- Session -> "session"
- Booking -> "booking"
- Message -> "message"
- Chat -> "chat" (user to admin)
- AdminChat -> "adminchat" (admin to user)
- ChatLog -> "chatlog"
- AIPrediction -> "aiprediction"
- Footer -> "footer"

These models are used for request/response validation and for documenting schema via /schema endpoint.
"""

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import HTTPException
from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator

CarStatus = Literal["available", "sold", "reserved", "maintenance"]
FuelType = Literal["Petrol", "Diesel", "Electric", "Hybrid", "Gasoline"]
Transmission = Literal["Automatic", "Manual"]
DriveTrain = Literal["AWD", "FWD", "RWD", "4WD"]
Condition = Literal["New", "Used"]
BookingStatus = Literal["pending", "approved", "rejected"]
ChatStatus = Literal["sent", "delivered", "read"]
Role = Literal["user", "admin"]


def _strip(v):
    return v.strip() if isinstance(v, str) else v


def _upper_drive_train(v):
    # Stored uppercase so that "awd" and "AWD" filter the same way
    if isinstance(v, str):
        return v.strip().upper() or None
    return v


class CarImage(BaseModel):
    url: str
    exists: bool = True


class Car(BaseModel):
    brand: str = Field(..., min_length=1, description="Manufacturer")
    model: str = Field(..., min_length=1, description="Model name")
    year: int = Field(..., ge=1886, le=2100)
    price: float = Field(..., ge=0, description="Price in USD")
    mileage: int = Field(..., ge=0)
    type: Optional[str] = Field(None, description="Body style, e.g. Coupe or SUV")
    fuel: FuelType
    transmission: Transmission
    drive_train: Optional[DriveTrain] = None
    status: CarStatus = "available"
    images: List[CarImage] = Field(default_factory=list)
    description: str
    features: List[str] = Field(default_factory=list)
    color: str
    condition: Condition
    rating: Optional[float] = Field(None, ge=0, le=5)
    engine_size: Optional[str] = None
    engine_cylinders: Optional[int] = Field(None, ge=0)
    engine_horsepower: Optional[int] = Field(None, ge=0)
    vin: Optional[str] = None

    @field_validator("brand", "model", mode="before")
    @classmethod
    def strip_names(cls, v):
        return _strip(v)

    @field_validator("drive_train", mode="before")
    @classmethod
    def upper_drive_train(cls, v):
        return _upper_drive_train(v)


class CarUpdate(BaseModel):
    """Partial update; only fields that were sent end up in the $set."""
    brand: Optional[str] = Field(None, min_length=1)
    model: Optional[str] = Field(None, min_length=1)
    year: Optional[int] = Field(None, ge=1886, le=2100)
    price: Optional[float] = Field(None, ge=0)
    mileage: Optional[int] = Field(None, ge=0)
    type: Optional[str] = None
    fuel: Optional[FuelType] = None
    transmission: Optional[Transmission] = None
    drive_train: Optional[DriveTrain] = None
    status: Optional[CarStatus] = None
    images: Optional[List[CarImage]] = None
    description: Optional[str] = None
    features: Optional[List[str]] = None
    color: Optional[str] = None
    condition: Optional[Condition] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    engine_size: Optional[str] = None
    engine_cylinders: Optional[int] = Field(None, ge=0)
    engine_horsepower: Optional[int] = Field(None, ge=0)
    vin: Optional[str] = None

    @field_validator("brand", "model", mode="before")
    @classmethod
    def strip_names(cls, v):
        return _strip(v)

    @field_validator("drive_train", mode="before")
    @classmethod
    def upper_drive_train(cls, v):
        return _upper_drive_train(v)


class CarPreferences(BaseModel):
    make: Optional[str] = None
    model: Optional[str] = None
    type: Optional[str] = None
    steering: Optional[str] = None
    year: Optional[int] = None
    price_range: Optional[str] = None
    mileage: Optional[str] = None
    location: Optional[str] = None


class User(BaseModel):
    email: EmailStr = Field(..., description="Email address")
    google_id: Optional[str] = Field(None, description="Google account id for OAuth users")
    password_hash: Optional[str] = Field(None, description="BCrypt password hash")
    display_name: str
    first_name: str
    last_name: str
    profile_photo: Optional[str] = None
    role: Role = "user"
    phone_number: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    language: str = "English"
    car_preferences: CarPreferences = Field(default_factory=CarPreferences)


class Session(BaseModel):
    token: str
    user_id: str
    expires_at: datetime


class Booking(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1, description="Requested day, e.g. 2025-05-01")
    time: str = Field(..., min_length=1, description="Requested slot, e.g. 10:00")
    car_model: str = Field(..., min_length=1)
    notes: Optional[str] = None
    status: BookingStatus = "pending"


class BookingUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    car_model: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[BookingStatus] = None


class Message(BaseModel):
    full_name: str
    email: EmailStr
    phone: Optional[str] = None
    car_model: Optional[str] = None
    preferred_date: Optional[datetime] = None
    topic: str
    message: str


class Chat(BaseModel):
    sender: Literal["user", "admin"] = "user"
    sender_id: str
    receiver_id: str
    message: str = Field(..., min_length=1)
    status: ChatStatus = "sent"
    timestamp: datetime


class AdminChat(Chat):
    sender: Literal["user", "admin"] = "admin"


class ChatLog(BaseModel):
    user: str
    message: str
    response: str
    timestamp: datetime


class Defect(BaseModel):
    type: Literal["Paint", "Tire", "Interior", "Engine", "Body"]
    severity: Literal["None", "Minor", "Moderate", "Major"]
    description: str
    confidence: float = Field(..., ge=0, le=100)


class AIPrediction(BaseModel):
    car_id: str
    model: str
    confidence: float = Field(..., ge=0, le=100)
    status: Literal["pending", "verified", "rejected"] = "pending"
    image_url: str
    defects: List[Defect] = Field(default_factory=list)


class SocialLinks(BaseModel):
    twitter: str = "#"
    youtube: str = "#"
    facebook: str = "#"


class Footer(BaseModel):
    company_name: str = Field("Car Selling", min_length=1)
    social_links: SocialLinks = Field(default_factory=SocialLinks)


# Lightweight request models
class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RoleUpdateRequest(BaseModel):
    email: EmailStr
    role: Role


class PasswordUpdateRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class EmailRequest(BaseModel):
    email: EmailStr


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    profile_photo: Optional[str] = None
    phone_number: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    language: Optional[str] = None
    car_preferences: Optional[CarPreferences] = None


class BulkDeleteRequest(BaseModel):
    car_ids: List[str] = Field(default_factory=list)


class SmartSearchRequest(BaseModel):
    query: str = Field(..., min_length=1)


class Range(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


class SearchFilters(BaseModel):
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[Range] = None
    price: Optional[Range] = None
    type: Optional[str] = None
    fuel: Optional[str] = None
    mileage: Optional[Range] = None
    condition: Optional[str] = None


class PredictRequest(BaseModel):
    brand: str
    model: str
    year: int
    type: Optional[str] = None
    fuel: Optional[str] = None
    mileage: Optional[int] = None
    color: Optional[str] = None
    engine_size: Optional[str] = None
    engine_cylinders: Optional[int] = None
    engine_horsepower: Optional[int] = None
    transmission: Optional[str] = None
    drive_train: Optional[str] = None
    condition: Optional[str] = None
    features: List[str] = Field(default_factory=list)


class ChatRequest(BaseModel):
    message: Optional[str] = None


class AdminChatSendRequest(BaseModel):
    receiver_id: str
    message: str = Field(..., min_length=1)


class UserChatSendRequest(BaseModel):
    message: str = Field(..., min_length=1)
    receiver_id: Optional[str] = None


class AnalyzeImageRequest(BaseModel):
    car_id: str
    image_url: str


class PredictionStatusRequest(BaseModel):
    status: Literal["pending", "verified", "rejected"]


def format_errors(errors: List[dict]) -> List[str]:
    out = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        out.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return out


def parse_or_400(model_cls, data: dict):
    """Validate a loosely-typed payload (form fields, raw JSON) against a model."""
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"message": "Validation failed", "errors": format_errors(e.errors())})
