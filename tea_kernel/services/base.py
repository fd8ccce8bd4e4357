"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service in the kernel layer.  All concrete services
    inherit from BaseService, receiving a SQLAlchemy ``Session`` that they
    use via ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.  The caller (CollectionApi or
    a test harness) owns commit/rollback through ``session_scope()``, which
    is what makes item insert + INITIAL ledger entry, and ledger insert +
    item update, commit together or not at all.

Failure modes:
    - If a subclass calls ``session.commit()`` the atomicity of the
      multi-statement write paths is broken.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from tea_kernel.db.base import Base
from tea_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``; savepoints it opens are its own.

    Non-goals:
        - Does NOT provide query-only (read) methods -- those belong in
          ``tea_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for creation timestamps.
        """
        self.session = session
        self._clock = clock or SystemClock()
