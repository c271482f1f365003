import datetime as dt
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import ParkingSpot, Review, User


# -----------------------------
# Users
# -----------------------------

def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    normalized = (email or "").strip().lower()
    if not normalized:
        return None
    return db.query(User).filter(func.lower(User.email) == normalized).first()


def create_user(db: Session, name: str, email: str, password: str, is_admin: bool = False) -> User:
    from .auth import get_password_hash

    if get_user_by_email(db, email):
        raise ValueError("duplicate_email")

    db_user = User(
        name=name.strip(),
        email=email.strip().lower(),
        password=get_password_hash(password),
        is_admin=is_admin,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    from .auth import verify_password

    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password):
        return None
    return user


# -----------------------------
# Parking spots
# -----------------------------

def get_parking_spot(db: Session, spot_id: int) -> Optional[ParkingSpot]:
    return db.query(ParkingSpot).filter(ParkingSpot.id == spot_id).first()


def get_parking_spots(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    available: Optional[bool] = None,
) -> List[ParkingSpot]:
    query = db.query(ParkingSpot)
    if search:
        query = query.filter(ParkingSpot.location.ilike(f"%{search}%"))
    if available is not None:
        query = query.filter(ParkingSpot.is_available.is_(available))
    return (
        query.order_by(ParkingSpot.created_at.desc(), ParkingSpot.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def create_parking_spot(db: Session, user_id: int, location: str) -> ParkingSpot:
    location = (location or "").strip()
    if not location:
        raise ValueError("location_required")

    # New listings always start bookable; availability afterwards belongs to the reservation workflow
    db_spot = ParkingSpot(location=location, user_id=user_id, is_available=True)
    db.add(db_spot)
    db.commit()
    db.refresh(db_spot)
    return db_spot


def update_parking_spot(db: Session, spot: ParkingSpot, update_data: Dict) -> ParkingSpot:
    if "location" in update_data:
        location = (update_data["location"] or "").strip()
        if not location:
            raise ValueError("location_required")
        spot.location = location
    db.commit()
    db.refresh(spot)
    return spot


def delete_parking_spot(db: Session, spot_id: int) -> Optional[ParkingSpot]:
    db_spot = get_parking_spot(db, spot_id)
    if db_spot:
        db.delete(db_spot)
        db.commit()
    return db_spot


# -----------------------------
# Reviews
# -----------------------------

def get_review(db: Session, review_id: int) -> Optional[Review]:
    return db.query(Review).filter(Review.id == review_id).first()


def get_user_review(db: Session, review_id: int, user_id: int) -> Optional[Review]:
    return db.query(Review).filter(Review.id == review_id, Review.user_id == user_id).first()


def get_reviews_for_spot(db: Session, spot_id: int) -> List[Dict]:
    rows = (
        db.query(Review, User.name)
        .join(User, Review.user_id == User.id)
        .filter(Review.parking_spot_id == spot_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    return [
        {
            "id": review.id,
            "rating": review.rating,
            "comment": review.comment,
            "created_at": review.created_at,
            "updated_at": review.updated_at,
            "user_name": user_name,
        }
        for review, user_name in rows
    ]


def get_average_rating(db: Session, spot_id: int) -> Dict:
    total, average = (
        db.query(func.count(Review.id), func.avg(Review.rating))
        .filter(Review.parking_spot_id == spot_id)
        .one()
    )
    return {
        "totalReviews": int(total or 0),
        "averageRating": round(float(average), 2) if average is not None else 0,
    }


def get_reviews_by_user(db: Session, user_id: int) -> List[Dict]:
    rows = (
        db.query(Review, ParkingSpot.location)
        .join(ParkingSpot, Review.parking_spot_id == ParkingSpot.id)
        .filter(Review.user_id == user_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    return [
        {
            "id": review.id,
            "rating": review.rating,
            "comment": review.comment,
            "created_at": review.created_at,
            "updated_at": review.updated_at,
            "parking_spot_id": review.parking_spot_id,
            "parking_spot_location": location,
        }
        for review, location in rows
    ]


def create_review(db: Session, user_id: int, spot_id: int, rating: int, comment: Optional[str] = None) -> Review:
    if not get_parking_spot(db, spot_id):
        raise ValueError("spot_not_found")

    existing = (
        db.query(Review)
        .filter(Review.parking_spot_id == spot_id, Review.user_id == user_id)
        .first()
    )
    if existing:
        raise ValueError("duplicate_review")

    db_review = Review(parking_spot_id=spot_id, user_id=user_id, rating=rating, comment=comment or None)
    db.add(db_review)
    db.commit()
    db.refresh(db_review)
    return db_review


def update_review(db: Session, review: Review, update_data: Dict) -> Review:
    for key, value in update_data.items():
        setattr(review, key, value)
    review.updated_at = dt.datetime.now(dt.timezone.utc)
    db.commit()
    db.refresh(review)
    return review


def delete_review(db: Session, review_id: int) -> Optional[Review]:
    db_review = get_review(db, review_id)
    if db_review:
        db.delete(db_review)
        db.commit()
    return db_review


# -----------------------------
# Admin dashboard
# -----------------------------

def get_users_overview(db: Session) -> List[Dict]:
    spot_counts = (
        db.query(ParkingSpot.user_id, func.count(ParkingSpot.id).label("n"))
        .group_by(ParkingSpot.user_id)
        .subquery()
    )
    review_counts = (
        db.query(Review.user_id, func.count(Review.id).label("n"))
        .group_by(Review.user_id)
        .subquery()
    )
    rows = (
        db.query(User, spot_counts.c.n, review_counts.c.n)
        .outerjoin(spot_counts, spot_counts.c.user_id == User.id)
        .outerjoin(review_counts, review_counts.c.user_id == User.id)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return [
        {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "is_admin": bool(user.is_admin),
            "created_at": user.created_at,
            "parking_spots_count": int(spots or 0),
            "reviews_count": int(reviews or 0),
        }
        for user, spots, reviews in rows
    ]


def get_parking_spots_overview(db: Session) -> List[Dict]:
    review_stats = (
        db.query(
            Review.parking_spot_id,
            func.count(Review.id).label("n"),
            func.avg(Review.rating).label("avg"),
        )
        .group_by(Review.parking_spot_id)
        .subquery()
    )
    rows = (
        db.query(ParkingSpot, User.name, User.email, review_stats.c.n, review_stats.c.avg)
        .outerjoin(User, ParkingSpot.user_id == User.id)
        .outerjoin(review_stats, review_stats.c.parking_spot_id == ParkingSpot.id)
        .order_by(ParkingSpot.created_at.desc(), ParkingSpot.id.desc())
        .all()
    )
    return [
        {
            "id": spot.id,
            "location": spot.location,
            "is_available": spot.is_available,
            "created_at": spot.created_at,
            "owner_name": owner_name,
            "owner_email": owner_email,
            "reviews_count": int(count or 0),
            "average_rating": round(float(avg), 2) if avg is not None else None,
        }
        for spot, owner_name, owner_email, count, avg in rows
    ]


def get_reviews_overview(db: Session) -> List[Dict]:
    rows = (
        db.query(Review, User.name, User.email, ParkingSpot.location)
        .join(User, Review.user_id == User.id)
        .join(ParkingSpot, Review.parking_spot_id == ParkingSpot.id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    return [
        {
            "id": review.id,
            "rating": review.rating,
            "comment": review.comment,
            "created_at": review.created_at,
            "updated_at": review.updated_at,
            "reviewer_name": name,
            "reviewer_email": email,
            "parking_spot_id": review.parking_spot_id,
            "parking_spot_location": location,
        }
        for review, name, email, location in rows
    ]


def get_dashboard_stats(db: Session, recent_days: int = 30) -> Dict:
    since = dt.datetime.now(dt.timezone.utc) - dt.timedelta(days=recent_days)
    average = db.query(func.avg(Review.rating)).scalar()

    return {
        "totals": {
            "users": db.query(User).count(),
            "parkingSpots": db.query(ParkingSpot).count(),
            "reviews": db.query(Review).count(),
            "availableSpots": db.query(ParkingSpot).filter(ParkingSpot.is_available.is_(True)).count(),
        },
        "recent": {
            "newUsers": db.query(User).filter(User.created_at >= since).count(),
            "newSpots": db.query(ParkingSpot).filter(ParkingSpot.created_at >= since).count(),
            "newReviews": db.query(Review).filter(Review.created_at >= since).count(),
        },
        "averageRating": round(float(average), 2) if average is not None else 0,
    }
