# accounting/write_barrier.py
"""
Thread-local write contexts checked by ledger model guards.

Two kinds of rows are only writable from inside a command:

- CompanySequence, the per-company entry number counter
  (command_writes_allowed)
- JournalEntry saved with is_posted=True, which only the posting and
  reversal commands write (posting_allowed)

Contexts nest and the innermost one decides. Threads do not share them.
"""

from contextlib import contextmanager
from enum import Enum
import threading


class WriteContext(str, Enum):
    COMMAND = "command"
    POSTING = "posting"


_local = threading.local()


def _open_contexts() -> list:
    if not hasattr(_local, "contexts"):
        _local.contexts = []
    return _local.contexts


def current_write_context():
    contexts = _open_contexts()
    return contexts[-1] if contexts else None


def write_context_allowed(allowed) -> bool:
    """True when the innermost open context is one of ``allowed``."""
    allowed = {WriteContext(name) for name in allowed}
    return current_write_context() in allowed


@contextmanager
def _open(context: WriteContext):
    contexts = _open_contexts()
    contexts.append(context)
    try:
        yield
    finally:
        contexts.pop()


def command_writes_allowed():
    return _open(WriteContext.COMMAND)


def posting_allowed():
    return _open(WriteContext.POSTING)
