"""Invigilator assignment table lookup.

Older deployments store invigilator assignments under different table names.
The name is resolved once at startup, kept in an ``AllocatorConfig`` and used
to build a typed ``Table`` for every query that touches assignments.
"""
import logging

from sqlalchemy import (
    Column, DateTime, ForeignKey, Integer, Table, UniqueConstraint, func, inspect,
)
from sqlalchemy.exc import SQLAlchemyError

from exam_seating import db_models  # noqa: F401  registers the ORM tables
from exam_seating.config import AllocatorConfig, DEFAULT_ASSIGNMENT_TABLE
from exam_seating.database import Base

logger = logging.getLogger(__name__)


def assignment_table(name):
    """Return the assignment ``Table`` for ``name``, defining it on first use."""
    existing = Base.metadata.tables.get(name)
    if existing is not None:
        return existing

    return Table(
        name,
        Base.metadata,
        Column("id", Integer, primary_key=True),
        Column("exam_id", Integer, ForeignKey("exams.id"), index=True, nullable=False),
        Column("room_id", Integer, ForeignKey("rooms.id"), nullable=False),
        Column("invigilator_id", Integer, ForeignKey("invigilators.id"), index=True, nullable=False),
        Column("created_at", DateTime, server_default=func.now()),
        UniqueConstraint("exam_id", "room_id", "invigilator_id", name=f"uq_{name}_pair"),
    )


def resolve_assignment_table(engine, settings):
    if settings.INVIGILATION_TABLE:
        return settings.INVIGILATION_TABLE

    try:
        existing = set(inspect(engine).get_table_names())
    except SQLAlchemyError as exc:
        logger.warning(
            "Could not inspect tables, falling back to %r: %s", DEFAULT_ASSIGNMENT_TABLE, exc
        )
        return DEFAULT_ASSIGNMENT_TABLE

    for candidate in settings.INVIGILATION_TABLE_CANDIDATES:
        if candidate in existing:
            return candidate

    return DEFAULT_ASSIGNMENT_TABLE


def build_config(engine, settings):
    table_name = resolve_assignment_table(engine, settings)
    logger.info("Invigilator assignments stored in %r", table_name)
    return AllocatorConfig(
        assignment_table=table_name,
        per_room=settings.DEFAULT_INVIGILATORS_PER_ROOM,
        match_all_subject_codes=settings.MATCH_ALL_SUBJECT_CODES,
    )


def init_db(engine, config):
    assignment_table(config.assignment_table)
    Base.metadata.create_all(bind=engine)
