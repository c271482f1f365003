import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import get_current_admin
from ..database import get_db
from ..reservations import ReservationError, ReservationService, get_reservation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/users", response_model=schemas.AdminUserList)
def list_all_users(
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    Get list of all users with their listing and review counts (Admin only)
    """
    return {"users": crud.get_users_overview(db)}


@router.get("/parking-spots", response_model=schemas.AdminParkingSpotList)
def list_all_parking_spots(
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return {"parkingSpots": crud.get_parking_spots_overview(db)}


@router.get("/reviews", response_model=schemas.AdminReviewList)
def list_all_reviews(
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return {"reviews": crud.get_reviews_overview(db)}


@router.get("/stats", response_model=schemas.AdminStats)
def dashboard_stats(
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    Totals, last-30-days activity and the overall average rating (Admin only)
    """
    return crud.get_dashboard_stats(db)


@router.delete("/users/{user_id}", response_model=schemas.MessageResponse)
def delete_user_by_admin(
    user_id: int = Path(..., gt=0),
    current_admin: Dict = Depends(get_current_admin),
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Delete a user by ID; their spots, reservations and reviews go with them (Admin only)
    """
    # Prevent admin from deleting themselves
    if user_id == current_admin["id"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    # Spots this user had booked are freed in the same transaction as the delete
    try:
        service.remove_user(user_id)
    except ReservationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    logger.info("Admin %s deleted user %s", current_admin["id"], user_id)
    return {"message": "User deleted successfully"}


@router.delete("/parking-spots/{spot_id}", response_model=schemas.MessageResponse)
def delete_parking_spot_by_admin(
    spot_id: int = Path(..., gt=0),
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if not crud.delete_parking_spot(db, spot_id):
        raise HTTPException(status_code=404, detail="Parking spot not found")

    logger.info("Admin %s deleted parking spot %s", current_admin["id"], spot_id)
    return {"message": "Parking spot deleted successfully"}


@router.delete("/reviews/{review_id}", response_model=schemas.MessageResponse)
def delete_review_by_admin(
    review_id: int = Path(..., gt=0),
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if not crud.delete_review(db, review_id):
        raise HTTPException(status_code=404, detail="Review not found")
    return {"message": "Review deleted successfully"}
