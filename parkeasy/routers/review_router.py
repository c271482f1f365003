from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import get_current_user
from ..database import get_db

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])


@router.get("/spot/{spot_id}", response_model=schemas.SpotReviewList)
def list_spot_reviews(spot_id: int = Path(..., gt=0), db: Session = Depends(get_db)):
    if not crud.get_parking_spot(db, spot_id):
        raise HTTPException(status_code=404, detail="Parking spot not found")
    return {"reviews": crud.get_reviews_for_spot(db, spot_id)}


@router.get("/spot/{spot_id}/average", response_model=schemas.AverageRating)
def spot_average_rating(spot_id: int = Path(..., gt=0), db: Session = Depends(get_db)):
    return crud.get_average_rating(db, spot_id)


@router.get("/user/my-reviews", response_model=schemas.MyReviewList)
def list_my_reviews(current_user: Dict = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"reviews": crud.get_reviews_by_user(db, current_user["id"])}


@router.post("/", response_model=schemas.ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    body: schemas.ReviewCreate,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        review = crud.create_review(
            db,
            user_id=current_user["id"],
            spot_id=body.parking_spot_id,
            rating=body.rating,
            comment=body.comment,
        )
    except ValueError as e:
        if str(e) == "spot_not_found":
            raise HTTPException(status_code=404, detail="Parking spot not found")
        if str(e) == "duplicate_review":
            raise HTTPException(status_code=409, detail="You have already reviewed this parking spot")
        raise HTTPException(status_code=400, detail=str(e))
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="You have already reviewed this parking spot")

    return {"message": "Review created successfully", "review": review}


@router.put("/{review_id}", response_model=schemas.ReviewResponse)
def update_review(
    body: schemas.ReviewUpdate,
    review_id: int = Path(..., gt=0),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = crud.get_user_review(db, review_id, current_user["id"])
    if not review:
        raise HTTPException(
            status_code=404,
            detail="Review not found or you do not have permission to edit it",
        )

    update_data = body.model_dump(exclude_unset=True)
    if update_data.get("rating", 0) is None:
        update_data.pop("rating")
    if not update_data:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    review = crud.update_review(db, review, update_data)
    return {"message": "Review updated successfully", "review": review}


@router.delete("/{review_id}", response_model=schemas.MessageResponse)
def delete_review(
    review_id: int = Path(..., gt=0),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = crud.get_user_review(db, review_id, current_user["id"])
    if not review:
        raise HTTPException(
            status_code=404,
            detail="Review not found or you do not have permission to delete it",
        )

    crud.delete_review(db, review_id)
    return {"message": "Review deleted successfully"}
