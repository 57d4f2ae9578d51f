'''
Re-applies recorded exceptions to a freshly expanded session list,
so a bulk rule edit never drops manual per-occurrence changes.
'''
from datetime import datetime
from typing import Iterable, Protocol

from ..database.db_enums import ExceptionStatusEnum
from ..common.logger import log
from .recurrence import GeneratedSession


class ExceptionLike(Protocol):
    anchor: datetime
    status: str
    new_start: datetime | None
    new_end: datetime | None


def reconcile_sessions(generated: list[GeneratedSession], exceptions: Iterable[ExceptionLike]) -> list[GeneratedSession]:
    """
    1. MODIFIED exceptions replace start/end of the session with the same anchor.
    2. CANCELLED exceptions then drop the session with the same anchor.

    Cancelling runs last, so a cancelled anchor stays cancelled even if a
    modification was also recorded for it.
    """
    modified = {}
    cancelled = set()
    for exception in exceptions:
        if exception.status == ExceptionStatusEnum.CANCELLED.value:
            cancelled.add(exception.anchor)
        elif exception.status == ExceptionStatusEnum.MODIFIED.value and exception.new_start and exception.new_end:
            # later records win for the same anchor
            modified[exception.anchor] = (exception.new_start, exception.new_end)

    reconciled = []
    for session in generated:
        if session.anchor in modified:
            new_start, new_end = modified[session.anchor]
            session = session.moved_to(new_start, new_end)
        if session.anchor in cancelled:
            continue
        reconciled.append(session)

    dropped = len(generated) - len(reconciled)
    if modified or cancelled:
        log.info(f"Reconciled {len(generated)} sessions: {dropped} cancelled, {len(modified)} modification(s) on record.")
    return reconciled
