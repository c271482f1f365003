import logging

from sqlalchemy import inspect, text

from .database import engine

logger = logging.getLogger(__name__)


def add_cancelled_at_column():
    """Older databases were created before reservations kept a cancellation time."""
    inspector = inspect(engine)
    if "reservations" not in inspector.get_table_names():
        return

    columns = {column["name"] for column in inspector.get_columns("reservations")}
    if "cancelled_at" in columns:
        logger.info("Column 'cancelled_at' already exists in reservations table")
        return

    column_type = "TIMESTAMP WITH TIME ZONE" if engine.dialect.name == "postgresql" else "TIMESTAMP"
    with engine.begin() as connection:
        connection.execute(text(f"ALTER TABLE reservations ADD COLUMN cancelled_at {column_type}"))
    logger.info("Column 'cancelled_at' added to reservations table")


def add_active_reservation_index():
    """Enforce one active reservation per spot at the database level.

    Fails loudly if existing data already violates the rule; that data has
    to be repaired by hand before the index can exist.
    """
    inspector = inspect(engine)
    if "reservations" not in inspector.get_table_names():
        return

    indexes = {index["name"] for index in inspector.get_indexes("reservations")}
    if "uq_reservations_active_spot" in indexes:
        logger.info("Index 'uq_reservations_active_spot' already exists")
        return

    with engine.begin() as connection:
        try:
            connection.execute(text("""
                CREATE UNIQUE INDEX uq_reservations_active_spot
                ON reservations (parking_spot_id)
                WHERE status = 'active'
            """))
        except Exception:
            logger.exception("Could not create index 'uq_reservations_active_spot'")
            raise
    logger.info("Index 'uq_reservations_active_spot' created")


def sync_spot_availability():
    """Recompute ``is_available`` from reservation rows.

    Earlier versions flipped the flag from several code paths; this brings
    any drifted rows back in line with the active reservations.
    """
    with engine.begin() as connection:
        result = connection.execute(text("""
            UPDATE parking_spots
            SET is_available = NOT EXISTS (
                SELECT 1 FROM reservations r
                WHERE r.parking_spot_id = parking_spots.id AND r.status = 'active'
            )
            WHERE is_available = EXISTS (
                SELECT 1 FROM reservations r
                WHERE r.parking_spot_id = parking_spots.id AND r.status = 'active'
            )
        """))
        if result.rowcount:
            logger.warning("Repaired availability flag on %s parking spot(s)", result.rowcount)


def run_migrations():
    add_cancelled_at_column()
    add_active_reservation_index()
    sync_spot_availability()
