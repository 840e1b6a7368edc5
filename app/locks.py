import threading
from contextlib import contextmanager


class SessionLocks:
    """
    Mutexes keyed by gym session id.

    Serializes read-occupancy -> decide -> write for one session inside this
    process while bookings for other sessions run in parallel. The engine also
    takes a SELECT ... FOR UPDATE row lock on the session, which covers
    multi-process deployments on databases that support it.
    Entries are dropped as soon as nobody holds or waits for them.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}  # session_id -> [lock, users]

    @contextmanager
    def hold(self, session_id):
        with self._guard:
            entry = self._locks.setdefault(session_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[session_id]

    def __len__(self):
        with self._guard:
            return len(self._locks)


session_locks = SessionLocks()
