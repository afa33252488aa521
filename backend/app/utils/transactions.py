from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


class WriteUnit:
    """
    Groups the statements of one aggregate write.

    atomic=True  -> every step shares the session's transaction; step() only flushes,
                    the whole unit commits or rolls back together.
    atomic=False -> step() commits immediately, so a failure after a step leaves the
                    earlier steps durable (fallback for stores without transactions).
    """

    def __init__(self, session: Session, atomic: bool = True):
        self.session = session
        self.atomic = atomic

    def step(self):
        if self.atomic:
            self.session.flush()
        else:
            self.session.commit()


@contextmanager
def write_unit(session: Session, atomic: bool = True) -> Iterator[WriteUnit]:
    """
    Usage:
        with write_unit(db, atomic=True) as unit:
            db.add(order)
            unit.step()
            ...
    Commits on normal exit, rolls back (whatever is not yet committed) and re-raises on error.
    """
    unit = WriteUnit(session, atomic=atomic)
    try:
        yield unit
        session.commit()
    except Exception:
        session.rollback()
        raise
