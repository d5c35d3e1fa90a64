"""
Per-ledger write serialization.

Posting a transaction reads each account's latest balance
snapshot and appends a new one derived from it. Two writers
doing that for the same account at once would both build on
the same stale snapshot. Every account of a transaction lives
in one ledger, so writers are serialized per ledger:

1. SELECT ... FOR UPDATE on the ledger row blocks writers in
   other processes until commit (PostgreSQL; SQLite's dialect
   omits the clause).
2. A process-wide lock per ledger id serializes threads,
   which is what protects SQLite.

Both are taken before the transaction row is inserted and
held until the session's outermost transaction ends, whether
by commit, rollback or close. A ledger's lock is dropped from
the registry once nothing references it, so deleted ledgers
leave nothing behind.
"""

import logging
import threading
import weakref

from sqlalchemy import event, select
from sqlalchemy.orm import Session

from budget_ledger.models.ledger import Ledger

logger = logging.getLogger(__name__)

_SESSION_KEY = "budget_ledger.held_ledger_locks"

_registry_guard = threading.Lock()
# A lock lives only while some session holds or waits on it.
_ledger_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = (
    weakref.WeakValueDictionary()
)


def _lock_for(ledger_id: int) -> threading.Lock:
    with _registry_guard:
        lock = _ledger_locks.get(ledger_id)
        if lock is None:
            lock = _ledger_locks[ledger_id] = threading.Lock()
        return lock


def acquire_ledger_locks(db: Session, ledger_ids) -> None:
    """
    Take the write locks for the given ledgers on behalf of db.

    Locks are taken in ascending id order. A session never
    waits on a lock it already holds.
    """
    held: dict[int, threading.Lock] = db.info.setdefault(_SESSION_KEY, {})
    wanted = sorted(set(ledger_ids) - set(held))
    if not wanted:
        return

    for ledger_id in wanted:
        lock = _lock_for(ledger_id)
        lock.acquire()
        held[ledger_id] = lock

    db.execute(
        select(Ledger.id)
        .where(Ledger.id.in_(wanted))
        .order_by(Ledger.id)
        .with_for_update()
    ).all()
    logger.debug("Acquired write locks for ledgers %s", wanted)


def release_ledger_locks(db: Session) -> None:
    held = db.info.pop(_SESSION_KEY, None)
    if not held:
        return
    for lock in held.values():
        lock.release()
    logger.debug("Released write locks for ledgers %s", sorted(held))


def holds_ledger_lock(db: Session, ledger_id: int) -> bool:
    return ledger_id in db.info.get(_SESSION_KEY, {})


@event.listens_for(Session, "after_transaction_end")
def _release_on_transaction_end(session, transaction):
    # Only the outermost transaction ends the unit of work.
    if transaction.parent is None:
        release_ledger_locks(session)
