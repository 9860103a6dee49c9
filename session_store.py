#!/usr/bin/env python3
"""
In-memory session store for live Arrow CAPTCHA challenges
At most one challenge per session id; every operation is one critical section
"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, List, Optional, Tuple

from captcha_session import CaptchaSession


class SessionStore:
    """Maps session id -> CaptchaSession.

    The store never disposes anything itself: whatever swap(), pop() or
    clear() hands back is the caller's to dispose.
    """

    def __init__(self):
        self._sessions: Dict[Hashable, CaptchaSession] = {}
        self.lock = threading.Lock()

    @contextmanager
    def _locked(self):
        with self.lock:
            yield self._sessions

    def get(self, session_id) -> Optional[CaptchaSession]:
        with self._locked() as sessions:
            return sessions.get(session_id)

    def swap(self, session_id, session: CaptchaSession) -> Optional[CaptchaSession]:
        """Install session and return the one it replaced, if any"""
        with self._locked() as sessions:
            previous = sessions.get(session_id)
            sessions[session_id] = session
            return previous

    def pop(self, session_id) -> Optional[CaptchaSession]:
        with self._locked() as sessions:
            return sessions.pop(session_id, None)

    def remove_if(self, session_id, session: CaptchaSession) -> bool:
        """Remove the entry only while it still holds this exact session"""
        with self._locked() as sessions:
            if sessions.get(session_id) is session:
                del sessions[session_id]
                return True
            return False

    def session_ids(self) -> List[Hashable]:
        with self._locked() as sessions:
            return list(sessions.keys())

    def snapshot(self) -> List[Tuple[Hashable, CaptchaSession]]:
        """Point-in-time copy of all entries, e.g. for an idle sweep run by the host"""
        with self._locked() as sessions:
            return list(sessions.items())

    def clear(self) -> List[CaptchaSession]:
        with self._locked() as sessions:
            removed = list(sessions.values())
            sessions.clear()
            return removed

    def __contains__(self, session_id) -> bool:
        with self._locked() as sessions:
            return session_id in sessions

    def __len__(self) -> int:
        with self._locked() as sessions:
            return len(sessions)
