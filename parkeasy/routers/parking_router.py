import logging
from typing import Dict, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import get_current_user
from ..database import get_db
from ..reservations import ReservationError, ReservationService, get_reservation_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/parking",
    tags=["Parking"]
)


def _get_owned_spot(db: Session, spot_id: int, user_id: int, action: str):
    spot = crud.get_parking_spot(db, spot_id)
    if not spot:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parking spot not found")
    if spot.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You can only {action} your own parking spots",
        )
    return spot


def _raise_for(e: ReservationError) -> NoReturn:
    raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/", response_model=schemas.ParkingSpotListResponse)
def list_parking_spots(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    search: Optional[str] = Query(None, description="Search in location"),
    available: Optional[bool] = Query(None, description="Only spots with this availability"),
    db: Session = Depends(get_db),
):
    spots = crud.get_parking_spots(db, skip=skip, limit=limit, search=search, available=available)
    return {"spots": spots}


@router.get("/{spot_id}", response_model=schemas.ParkingSpotOut)
def get_parking_spot(
    spot_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
):
    spot = crud.get_parking_spot(db, spot_id)
    if not spot:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parking spot not found")
    return spot


@router.post("/", response_model=schemas.ParkingSpotResponse, status_code=status.HTTP_201_CREATED)
def create_parking_spot(
    body: schemas.ParkingSpotCreate,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        spot = crud.create_parking_spot(db, user_id=current_user["id"], location=body.location)
    except ValueError as e:
        if str(e) == "location_required":
            raise HTTPException(status_code=400, detail="Location is required")
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("Parking spot %s listed by user %s", spot.id, current_user["id"])
    return {"message": "Parking spot created successfully", "spot": spot}


@router.put("/{spot_id}", response_model=schemas.ParkingSpotResponse)
def update_parking_spot(
    body: schemas.ParkingSpotUpdate,
    spot_id: int = Path(..., gt=0),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spot = _get_owned_spot(db, spot_id, current_user["id"], "update")

    update_data = body.model_dump(exclude_unset=True, exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=400, detail="No fields to update")

    try:
        spot = crud.update_parking_spot(db, spot, update_data)
    except ValueError as e:
        if str(e) == "location_required":
            raise HTTPException(status_code=400, detail="Location is required")
        raise HTTPException(status_code=400, detail=str(e))

    return {"message": "Parking spot updated successfully", "spot": spot}


@router.delete("/{spot_id}", response_model=schemas.ParkingSpotDeleted)
def delete_parking_spot(
    spot_id: int = Path(..., gt=0),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _get_owned_spot(db, spot_id, current_user["id"], "delete")
    crud.delete_parking_spot(db, spot_id)
    logger.info("Parking spot %s deleted by owner %s", spot_id, current_user["id"])
    return {"message": "Parking spot deleted successfully", "deletedSpotId": spot_id}


# -----------------------------
# Reservations
# -----------------------------


@router.post(
    "/{spot_id}/reserve",
    response_model=schemas.ReservationCreated,
    status_code=status.HTTP_201_CREATED,
)
def reserve_parking_spot(
    spot_id: int = Path(..., gt=0),
    current_user: Dict = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
):
    try:
        reservation = service.reserve(spot_id, current_user["id"])
    except ReservationError as e:
        _raise_for(e)

    return {"message": "Parking spot reserved successfully", "reservation": reservation}


@router.delete("/{spot_id}/reserve", response_model=schemas.ReservationCancelled)
def cancel_reservation(
    spot_id: int = Path(..., gt=0),
    current_user: Dict = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
):
    try:
        reservation_id = service.cancel(spot_id, current_user["id"])
    except ReservationError as e:
        _raise_for(e)

    return {"message": "Reservation cancelled successfully", "reservationId": reservation_id}
