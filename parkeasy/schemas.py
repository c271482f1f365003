from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


# Users / auth
class UserCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Name must be 2-50 characters")
        return value

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    is_admin: bool = False

    model_config = ConfigDict(from_attributes=True)


class UserProfile(UserOut):
    created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserOut


# Parking spots
class ParkingSpotCreate(BaseModel):
    location: str = Field(..., min_length=1, description="Address or description of the spot")


class ParkingSpotUpdate(BaseModel):
    """Owners can edit the listing text only; availability follows reservations."""

    location: Optional[str] = Field(None, min_length=1)


class ParkingSpotOut(BaseModel):
    id: int
    location: str
    is_available: bool
    user_id: int
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ParkingSpotListResponse(BaseModel):
    spots: List[ParkingSpotOut]


class ParkingSpotResponse(BaseModel):
    message: str
    spot: ParkingSpotOut


class ParkingSpotDeleted(BaseModel):
    message: str
    deletedSpotId: int


# Reservations
class ReservationOut(BaseModel):
    id: int
    parking_spot_id: int
    user_id: int
    status: ReservationStatus
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ReservationCreated(BaseModel):
    message: str
    reservation: ReservationOut


class ReservationCancelled(BaseModel):
    message: str
    reservationId: int


# Reviews
class ReviewCreate(BaseModel):
    parking_spot_id: int = Field(..., gt=0)
    rating: int = Field(..., ge=1, le=5, description="Rating must be between 1 and 5")
    comment: Optional[str] = None


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = None


class ReviewOut(BaseModel):
    id: int
    parking_spot_id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ReviewResponse(BaseModel):
    message: str
    review: ReviewOut


class SpotReview(BaseModel):
    id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_name: str


class SpotReviewList(BaseModel):
    reviews: List[SpotReview]


class MyReview(BaseModel):
    id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    parking_spot_id: int
    parking_spot_location: str


class MyReviewList(BaseModel):
    reviews: List[MyReview]


class AverageRating(BaseModel):
    totalReviews: int
    averageRating: float


class MessageResponse(BaseModel):
    message: str


# Admin dashboard
class AdminUser(BaseModel):
    id: int
    name: str
    email: str
    is_admin: bool
    created_at: Optional[datetime] = None
    parking_spots_count: int
    reviews_count: int


class AdminUserList(BaseModel):
    users: List[AdminUser]


class AdminParkingSpot(BaseModel):
    id: int
    location: str
    is_available: bool
    created_at: Optional[datetime] = None
    owner_name: Optional[str] = None
    owner_email: Optional[str] = None
    reviews_count: int
    average_rating: Optional[float] = None


class AdminParkingSpotList(BaseModel):
    parkingSpots: List[AdminParkingSpot]


class AdminReview(BaseModel):
    id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    reviewer_name: str
    reviewer_email: str
    parking_spot_id: int
    parking_spot_location: str


class AdminReviewList(BaseModel):
    reviews: List[AdminReview]


class StatsTotals(BaseModel):
    users: int
    parkingSpots: int
    reviews: int
    availableSpots: int


class StatsRecent(BaseModel):
    newUsers: int
    newSpots: int
    newReviews: int


class AdminStats(BaseModel):
    totals: StatsTotals
    recent: StatsRecent
    averageRating: float
