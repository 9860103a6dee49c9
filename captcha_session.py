#!/usr/bin/env python3
"""
One live arrow challenge: the secret answer, the typed buffer and the image
"""

import time
import threading
from collections import deque
from typing import Optional, Sequence, Tuple

from arrow_sequence import SEQUENCE_LENGTH, is_valid_symbol, sequence_to_string
from error_handling import DisposedError, InvalidArgument


class CaptchaSession:
    """Mutable state of a single challenge.

    Input state (typed buffer, fail count) sits behind one lock and the
    image payload behind another. The disposed flag is read without a lock;
    its single false -> true transition happens under a dedicated guard so
    cleanup runs exactly once however many callers race on dispose().
    """

    def __init__(self, session_id, correct_sequence: Sequence[int], image_bytes: bytes, zoom: int = 1):
        sequence = tuple(correct_sequence)
        if len(sequence) != SEQUENCE_LENGTH or not all(is_valid_symbol(s) for s in sequence):
            raise InvalidArgument(
                f"Correct sequence must be {SEQUENCE_LENGTH} symbols from 0-2, got {sequence!r}"
            )

        self.session_id = session_id
        self.zoom = zoom
        self.created_at = time.time()
        self._correct_sequence = sequence
        self._entered = deque(maxlen=SEQUENCE_LENGTH)
        self._fail_count = 0
        self._image_bytes: Optional[bytes] = bytes(image_bytes)

        # dispose() re-enters the input lock on the completion path
        self._input_lock = threading.RLock()
        self._resource_lock = threading.Lock()
        self._dispose_guard = threading.Lock()
        self._disposed = threading.Event()

    @property
    def correct_sequence(self) -> Tuple[int, ...]:
        return self._correct_sequence

    # ── Input ────────────────────────────────────────────────────────────────

    def add_input(self, symbol) -> bool:
        """Append one typed symbol; True when the last six match the answer.

        Out of range symbols are ignored. Only the most recent six symbols
        are kept, so an early typo is corrected by continuing to type.
        """
        if self.is_disposed():
            return False

        with self._input_lock:
            if self.is_disposed() or not is_valid_symbol(symbol):
                return False

            self._entered.append(symbol)
            completed = len(self._entered) == SEQUENCE_LENGTH and self.verify()
            if completed:
                self.dispose()
            return completed

    def verify(self) -> bool:
        """True when the full buffer equals the answer"""
        with self._input_lock:
            return tuple(self._entered) == self._correct_sequence

    def get_entered_value(self) -> str:
        with self._input_lock:
            return sequence_to_string(self._entered)

    def get_entered_symbols(self) -> Tuple[int, ...]:
        with self._input_lock:
            return tuple(self._entered)

    def is_buffer_full(self) -> bool:
        with self._input_lock:
            return len(self._entered) == SEQUENCE_LENGTH

    def get_fail_count(self) -> int:
        with self._input_lock:
            return self._fail_count

    def record_failure(self) -> int:
        """Count one full-but-wrong buffer and return the new total"""
        with self._input_lock:
            self._fail_count += 1
            return self._fail_count

    def reset_failures(self):
        with self._input_lock:
            self._fail_count = 0

    # ── Image ────────────────────────────────────────────────────────────────

    def get_image_bytes(self) -> bytes:
        """The encoded challenge image; bytes are immutable so callers get a safe copy"""
        if self.is_disposed():
            raise DisposedError(f"Captcha session {self.session_id!r} has been disposed")
        with self._resource_lock:
            if self._image_bytes is None:
                raise DisposedError(f"Captcha session {self.session_id!r} has been disposed")
            return self._image_bytes

    # ── Disposal ─────────────────────────────────────────────────────────────

    def dispose(self) -> bool:
        """Release the image and clear the buffer; True only for the releasing caller"""
        with self._dispose_guard:
            if self._disposed.is_set():
                return False
            self._disposed.set()

        with self._resource_lock:
            self._image_bytes = None
        with self._input_lock:
            self._entered.clear()
        return True

    def is_disposed(self) -> bool:
        return self._disposed.is_set()

    def close(self):
        self.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()
        return False

    def __repr__(self):
        state = 'disposed' if self.is_disposed() else 'active'
        return f"CaptchaSession(id={self.session_id!r}, zoom={self.zoom}, {state})"
