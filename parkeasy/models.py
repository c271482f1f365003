from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import false, func, true

Base = declarative_base()

RESERVATION_ACTIVE = "active"
RESERVATION_CANCELLED = "cancelled"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    parking_spots = relationship("ParkingSpot", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)
    reviews = relationship("Review", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)


class ParkingSpot(Base):
    """A listed parking space.

    ``is_available`` is a projection of "no active reservation exists" and
    is only written by the reservation workflow (see ``reservations.py``).
    """

    __tablename__ = "parking_spots"

    id = Column(Integer, primary_key=True, index=True)
    location = Column(Text, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True, server_default=true())
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("User", back_populates="parking_spots")
    reservations = relationship("Reservation", back_populates="parking_spot", cascade="all, delete-orphan", passive_deletes=True)
    reviews = relationship("Review", back_populates="parking_spot", cascade="all, delete-orphan", passive_deletes=True)


class Reservation(Base):
    """A booking of a spot. Cancellation is a status change; rows are kept as history."""

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("status IN ('active', 'cancelled')", name="ck_reservations_status"),
        # At most one active reservation per spot
        Index(
            "uq_reservations_active_spot",
            "parking_spot_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    parking_spot_id = Column(Integer, ForeignKey("parking_spots.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=RESERVATION_ACTIVE, server_default=RESERVATION_ACTIVE)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    parking_spot = relationship("ParkingSpot", back_populates="reservations")


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("parking_spot_id", "user_id", name="uq_reviews_spot_user"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
    )

    id = Column(Integer, primary_key=True, index=True)
    parking_spot_id = Column(Integer, ForeignKey("parking_spots.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    parking_spot = relationship("ParkingSpot", back_populates="reviews")
    user = relationship("User", back_populates="reviews")
