"""Reservation workflow: reserve and cancel a parking spot.

Every state change of a reservation, and every write of
``ParkingSpot.is_available``, goes through ``ReservationService`` so the
flag always mirrors "no active reservation exists for this spot".

Concurrent callers for the same spot serialize on the spot row lock
(``SELECT ... FOR UPDATE``). The partial unique index
``uq_reservations_active_spot`` backs this up on stores without row
locks. Lock waits are bounded; lock and serialization failures are
retried with exponential backoff before giving up with ``Unavailable``.
"""
import datetime as dt
import logging
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import config
from .database import transaction
from .models import RESERVATION_ACTIVE, RESERVATION_CANCELLED, ParkingSpot, Reservation, User
from .schemas import ReservationOut

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReservationError(Exception):
    """Base for the typed failures of the reservation workflow."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ReservationError):
    status_code = 400


class NotFound(ReservationError):
    status_code = 404


class Conflict(ReservationError):
    status_code = 409


class Forbidden(ReservationError):
    status_code = 403


class Unavailable(ReservationError):
    """Transient store failure; the caller may retry."""

    status_code = 503


def _validate_id(value, label: str) -> int:
    if isinstance(value, bool):
        raise InvalidInput(f"Invalid {label} ID")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise InvalidInput(f"Invalid {label} ID")
    try:
        ident = int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"Invalid {label} ID")
    if ident <= 0:
        raise InvalidInput(f"Invalid {label} ID")
    return ident


def _is_foreign_key_violation(error: IntegrityError) -> bool:
    # psycopg2 exposes the SQLSTATE; sqlite3 only has the message
    if getattr(error.orig, "pgcode", None) == "23503":
        return True
    return "FOREIGN KEY" in str(error.orig).upper()


class ReservationService:
    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        *,
        lock_timeout_ms: Optional[int] = None,
        max_attempts: Optional[int] = None,
        retry_backoff_ms: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.lock_timeout_ms = lock_timeout_ms if lock_timeout_ms is not None else config.RESERVATION_LOCK_TIMEOUT_MS
        self.max_attempts = max(1, max_attempts if max_attempts is not None else config.RESERVATION_MAX_ATTEMPTS)
        self.retry_backoff_ms = (
            retry_backoff_ms if retry_backoff_ms is not None else config.RESERVATION_RETRY_BACKOFF_MS
        )

    # -----------------------------
    # Public operations
    # -----------------------------

    def reserve(self, spot_id, user_id) -> ReservationOut:
        """Create the active reservation for ``spot_id`` held by ``user_id``.

        Raises ``NotFound`` for a missing spot or user, ``Conflict`` when the spot is
        unavailable or already holds an active reservation, ``Unavailable``
        when the store cannot complete the transaction.
        """
        spot_id = _validate_id(spot_id, "parking spot")
        user_id = _validate_id(user_id, "user")

        reservation = self._run("reserve", f"spot {spot_id}", lambda session: self._reserve(session, spot_id, user_id))
        logger.info("Reservation %s created: spot=%s user=%s", reservation.id, spot_id, user_id)
        return reservation

    def cancel(self, spot_id, user_id) -> int:
        """Cancel the caller's active reservation on ``spot_id``; returns its id.

        Raises ``NotFound`` when the spot has no active reservation and
        ``Forbidden`` when it belongs to someone else. Nothing is modified on
        failure.
        """
        spot_id = _validate_id(spot_id, "parking spot")
        user_id = _validate_id(user_id, "user")

        reservation_id = self._run("cancel", f"spot {spot_id}", lambda session: self._cancel(session, spot_id, user_id))
        logger.info("Reservation %s cancelled: spot=%s user=%s", reservation_id, spot_id, user_id)
        return reservation_id

    def remove_user(self, user_id) -> int:
        """Delete an account, first cancelling every active reservation it holds.

        Runs as one transaction holding the user row and the affected spot
        rows, so no reservation can slip in between the release and the
        cascade. Returns the number of reservations released; raises
        ``NotFound`` for an unknown user.
        """
        user_id = _validate_id(user_id, "user")

        released = self._run("remove", f"user {user_id}", lambda session: self._remove_user(session, user_id))
        logger.info("Removed user %s, released %s reservation(s)", user_id, released)
        return released

    # -----------------------------
    # Transaction handling
    # -----------------------------

    def _run(self, operation: str, subject: str, work: Callable[[Session], T]) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                with transaction(self.session_factory) as session:
                    self._apply_lock_timeout(session)
                    return work(session)
            except ReservationError:
                raise
            except IntegrityError as e:
                logger.info("%s on %s lost a race: %s", operation, subject, e.orig)
                if _is_foreign_key_violation(e):
                    # The user or spot was deleted after we read it
                    raise NotFound("User or parking spot not found") from e
                # Another transaction committed an active reservation first
                raise Conflict("Parking spot is already reserved") from e
            except OperationalError as e:
                # Lock wait timeout, deadlock, serialization failure or a dropped connection
                if attempt >= self.max_attempts:
                    logger.warning(
                        "%s on %s failed after %s attempts: %s", operation, subject, attempt, e.orig
                    )
                    raise Unavailable("Parking spot is busy, please try again") from e
                delay = self.retry_backoff_ms * (2 ** (attempt - 1)) / 1000.0
                logger.info(
                    "%s on %s attempt %s failed (%s), retrying in %.3fs",
                    operation, subject, attempt, e.orig, delay,
                )
                time.sleep(delay)
            except SQLAlchemyError as e:
                logger.exception("%s on %s failed", operation, subject)
                raise Unavailable("Reservation store is unavailable") from e

    def _apply_lock_timeout(self, session: Session) -> None:
        if session.get_bind().dialect.name != "postgresql":
            return
        # SET does not take bind parameters; the value is an int we own
        session.execute(text(f"SET LOCAL lock_timeout = {int(self.lock_timeout_ms)}"))

    # -----------------------------
    # State transitions
    # -----------------------------

    @staticmethod
    def _lock_user(session: Session, user_id: int, read: bool = False) -> Optional[User]:
        return (
            session.query(User)
            .filter(User.id == user_id)
            .with_for_update(read=read)
            .first()
        )

    @staticmethod
    def _lock_spot(session: Session, spot_id: int) -> Optional[ParkingSpot]:
        return (
            session.query(ParkingSpot)
            .filter(ParkingSpot.id == spot_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def _active_reservation(session: Session, spot_id: int) -> Optional[Reservation]:
        return (
            session.query(Reservation)
            .filter(
                Reservation.parking_spot_id == spot_id,
                Reservation.status == RESERVATION_ACTIVE,
            )
            .with_for_update()
            .first()
        )

    def _reserve(self, session: Session, spot_id: int, user_id: int) -> ReservationOut:
        # User before spot, the same order remove_user takes its locks in
        if self._lock_user(session, user_id, read=True) is None:
            raise NotFound("User not found")

        spot = self._lock_spot(session, spot_id)
        if spot is None:
            raise NotFound("Parking spot not found")

        if not spot.is_available:
            raise Conflict("Parking spot is not available")

        if self._active_reservation(session, spot_id) is not None:
            raise Conflict("Parking spot is already reserved")

        reservation = Reservation(
            parking_spot_id=spot_id,
            user_id=user_id,
            status=RESERVATION_ACTIVE,
        )
        session.add(reservation)
        spot.is_available = False
        session.flush()
        session.refresh(reservation)
        return ReservationOut.model_validate(reservation)

    def _cancel(self, session: Session, spot_id: int, user_id: int) -> int:
        # Same lock scope as reserve so the two serialize per spot
        spot = self._lock_spot(session, spot_id)
        reservation = self._active_reservation(session, spot_id) if spot is not None else None
        if reservation is None:
            raise NotFound("No active reservation found for this parking spot")

        if reservation.user_id != user_id:
            raise Forbidden("You can only cancel your own reservations")

        self._mark_cancelled(spot, reservation)
        session.flush()
        return reservation.id

    def _release_user(self, session: Session, user_id: int) -> int:
        spot_ids = [
            spot_id
            for (spot_id,) in session.query(Reservation.parking_spot_id)
            .filter(Reservation.user_id == user_id, Reservation.status == RESERVATION_ACTIVE)
            .order_by(Reservation.parking_spot_id)
            .all()
        ]

        released = 0
        # Spots are locked in id order
        for spot_id in spot_ids:
            spot = self._lock_spot(session, spot_id)
            reservation = self._active_reservation(session, spot_id) if spot is not None else None
            if reservation is None or reservation.user_id != user_id:
                continue
            self._mark_cancelled(spot, reservation)
            released += 1

        session.flush()
        return released

    def _remove_user(self, session: Session, user_id: int) -> int:
        user = self._lock_user(session, user_id)
        if user is None:
            raise NotFound("User not found")

        released = self._release_user(session, user_id)
        # The FK cascade takes their spots, reviews and now-cancelled reservations
        session.delete(user)
        session.flush()
        return released

    @staticmethod
    def _mark_cancelled(spot: ParkingSpot, reservation: Reservation) -> None:
        reservation.status = RESERVATION_CANCELLED
        reservation.cancelled_at = dt.datetime.now(dt.timezone.utc)
        spot.is_available = True


def get_reservation_service() -> ReservationService:
    return ReservationService()
