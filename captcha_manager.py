#!/usr/bin/env python3
"""
Arrow CAPTCHA challenge manager
Creates, routes input to, regenerates and removes challenges per session id
"""

import logging
import random
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Callable, Optional

from arrow_sequence import generate_sequence, is_valid_symbol, sequence_to_string
from captcha_config import CaptchaConfig
from captcha_renderer import render_captcha, validate_zoom
from captcha_session import CaptchaSession
from error_handling import DisposedError, EncodingError, GenerationFailed, InvalidArgument, log_errors
from image_effects import apply_image_effects
from image_encoder import encode_image
from monitoring import PerformanceMonitor
from session_store import SessionStore

logger = logging.getLogger('arrow_captcha.manager')


class SubmitOutcome(Enum):
    """Result of routing one typed symbol to a challenge"""
    PENDING = "pending"
    SOLVED = "solved"
    REGENERATED = "regenerated"
    ABSENT = "absent"


class CaptchaManager:
    """Facade over the session store and the synthesis pipeline.

    Synthesis runs on a worker pool without touching the store lock; only
    a finished session is published, replacing (and disposing) whatever
    the id held before.
    """

    def __init__(self, config: Optional[CaptchaConfig] = None,
                 store: Optional[SessionStore] = None,
                 rng_factory: Optional[Callable[[], random.Random]] = None,
                 executor: Optional[ThreadPoolExecutor] = None,
                 performance_monitor: Optional[PerformanceMonitor] = None):
        self.config = (config or CaptchaConfig()).validate()
        self.store = store if store is not None else SessionStore()
        self.performance_monitor = performance_monitor or PerformanceMonitor()
        self._rng_factory = rng_factory or random.SystemRandom

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.worker_threads,
            thread_name_prefix='captcha-render'
        )

        self._stats_lock = threading.Lock()
        self._stats = {
            'generated': 0,
            'solved': 0,
            'regenerated': 0,
            'removed': 0,
            'failures': 0,
            'generation_errors': 0
        }
        self._build_session = self.performance_monitor.time_operation('captcha_generation')(
            self._build_session
        )

    # ── Generation ───────────────────────────────────────────────────────────

    @log_errors(logger)
    def generate(self, session_id, zoom: int) -> None:
        """Create a challenge for session_id, replacing any existing one"""
        self.submit_generate(session_id, zoom).result()

    def submit_generate(self, session_id, zoom: int) -> Future:
        """Non-blocking generate; the future resolves once the session is installed"""
        validate_zoom(zoom)
        self._discard(session_id)
        return self._executor.submit(self._generate_and_install, session_id, zoom)

    def _generate_and_install(self, session_id, zoom: int) -> None:
        try:
            session = self._build_session(session_id, zoom)
        except (InvalidArgument, EncodingError):
            self._bump('generation_errors')
            raise
        except Exception as e:
            self._bump('generation_errors')
            raise GenerationFailed(f"Failed to generate captcha for session {session_id!r}") from e

        previous = self.store.swap(session_id, session)
        if previous is not None:
            previous.dispose()
        self._bump('generated')
        logger.info(f"Captcha generated for session {session_id!r} at zoom {zoom}")

    def _build_session(self, session_id, zoom: int) -> CaptchaSession:
        rng = self._rng_factory()
        sequence = generate_sequence(rng)
        canvas = render_captcha(sequence, zoom, rng)
        canvas = apply_image_effects(canvas, zoom)
        image_bytes = encode_image(canvas, self.config.image_format, self.config.image_quality)
        logger.debug(f"Session {session_id!r} answer {sequence_to_string(sequence)}, {len(image_bytes)} bytes")
        return CaptchaSession(session_id, sequence, image_bytes, zoom)

    # ── Queries ──────────────────────────────────────────────────────────────

    def contains(self, session_id) -> bool:
        session = self.store.get(session_id)
        return session is not None and not session.is_disposed()

    def get_challenge(self, session_id) -> Optional[bytes]:
        """Encoded image of the live challenge, or None when missing or disposed"""
        session = self.store.get(session_id)
        if session is None:
            return None
        try:
            return session.get_image_bytes()
        except DisposedError:
            return None

    def active_count(self) -> int:
        return sum(1 for _, session in self.store.snapshot() if not session.is_disposed())

    def get_stats(self) -> dict:
        with self._stats_lock:
            stats = dict(self._stats)
        stats['active'] = self.active_count()
        return stats

    # ── Input ────────────────────────────────────────────────────────────────

    def submit_input(self, session_id, symbol) -> SubmitOutcome:
        """Route one typed symbol to the challenge for session_id"""
        session = self.store.get(session_id)
        if session is None or session.is_disposed():
            return SubmitOutcome.ABSENT

        if not is_valid_symbol(symbol):
            return SubmitOutcome.PENDING

        if session.add_input(symbol):
            self.store.remove_if(session_id, session)
            self._bump('solved')
            logger.info(f"Captcha solved for session {session_id!r}")
            return SubmitOutcome.SOLVED

        if session.is_disposed():
            return SubmitOutcome.ABSENT

        if not session.is_buffer_full():
            return SubmitOutcome.PENDING

        # The buffer is a sliding window, so this fires on every keystroke
        # after it first fills until the answer matches.
        failures = session.record_failure()
        self._bump('failures')
        if failures < self.config.max_failures:
            return SubmitOutcome.PENDING

        return self._regenerate(session_id, session)

    def _regenerate(self, session_id, session: CaptchaSession) -> SubmitOutcome:
        if not self.store.remove_if(session_id, session):
            # Replaced or removed by a concurrent caller
            return SubmitOutcome.ABSENT
        session.dispose()
        logger.info(
            f"Session {session_id!r} reached {self.config.max_failures} failures, regenerating"
        )
        self._executor.submit(self._generate_and_install, session_id, session.zoom).result()
        self._bump('regenerated')
        return SubmitOutcome.REGENERATED

    # ── Removal ──────────────────────────────────────────────────────────────

    def remove_challenge(self, session_id) -> None:
        if self._discard(session_id):
            self._bump('removed')
            logger.info(f"Captcha removed for session {session_id!r}")

    def _discard(self, session_id) -> bool:
        session = self.store.pop(session_id)
        if session is None:
            return False
        session.dispose()
        return True

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def shutdown(self, wait: bool = True):
        """Dispose every live challenge and stop the worker pool if we own it"""
        for session in self.store.clear():
            session.dispose()
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False

    def _bump(self, counter: str):
        with self._stats_lock:
            self._stats[counter] += 1
