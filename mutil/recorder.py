"""
Scrob recorder.

Polls the player on a fixed interval, feeds each snapshot to the scrob state
machine and stores the scrobs it produces.
"""

import logging
import sys
import time
from typing import Callable, Optional, TextIO

from . import scrobbler
from .cmus import CmusClient
from .database import ScrobRepository
from .errors import SourceUnavailable
from .models import ScrobSession, Tick

# Return to column 0 and erase the line
CLEAR_LINE = "\r\x1b[2K"

# Longest stretch the inter-poll wait sleeps before rechecking for a stop request
STOP_CHECK_SECONDS = 0.25


def epoch_ms() -> int:
    return int(time.time() * 1000)


class Recorder:
    """Drives the scrob state machine from a sequential poll loop."""

    def __init__(
        self,
        source: CmusClient,
        scrobs: ScrobRepository,
        interval_ms: int = 2000,
        live_line: bool = False,
        retry_attempts: int = 3,
        retry_backoff_ms: int = 1000,
        clock: Optional[Callable[[], int]] = None,
        wait: Optional[Callable[[float], bool]] = None,
        stream: Optional[TextIO] = None,
    ):
        """
        Initialize Recorder.

        Args:
            source: Player status source
            scrobs: Repository receiving qualifying scrobs
            interval_ms: Delay between two polls
            live_line: Overwrite one terminal line instead of logging each status
            retry_attempts: Consecutive failed polls tolerated before giving up
            retry_backoff_ms: Wait after the first failed poll, doubled each time
            clock: Returns the current time in epoch milliseconds
            wait: Sleeps for the given seconds, returns True to stop early
            stream: Terminal stream for live-line output
        """
        self.source = source
        self.scrobs = scrobs
        self.interval_ms = interval_ms
        self.live_line = live_line
        self.retry_attempts = retry_attempts
        self.retry_backoff_ms = retry_backoff_ms
        self.clock = clock or epoch_ms
        self.stream = stream or sys.stdout
        self.logger = logging.getLogger(__name__)

        self._stop_requested = False
        self.wait = wait or self._wait_unless_stopped
        self.session: ScrobSession = scrobbler.new_session(self.clock())
        self._failures = 0

    def stop(self):
        """Ask the loop to exit before its next poll.

        Only sets a flag, so it is safe to call from a signal handler.
        """
        self._stop_requested = True

    @property
    def stopped(self) -> bool:
        return self._stop_requested

    def _wait_unless_stopped(self, seconds: float) -> bool:
        """Sleep for seconds, returning True early once stop() was called."""
        deadline = time.monotonic() + seconds
        while not self._stop_requested:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(remaining, STOP_CHECK_SECONDS))
        return True

    def run(self, max_ticks: Optional[int] = None):
        """
        Poll until stopped.

        Args:
            max_ticks: Stop after this many polls (unbounded if None)

        Raises:
            SourceUnavailable: when cmus stays unreachable past the retry budget
            StoreError: when a scrob cannot be stored
        """
        self.logger.info(
            "Recording scrobs from %s every %sms", self.source.socket_path, self.interval_ms
        )
        ticks = 0
        try:
            while not self.stopped:
                delay_ms = self.interval_ms
                try:
                    self.tick()
                except SourceUnavailable as e:
                    delay_ms = self._on_source_failure(e)

                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break
                if self.wait(delay_ms / 1000.0):
                    break
        finally:
            if self.live_line:
                self.stream.write("\n")
                self.stream.flush()
        self.logger.info("Recorder stopped")

    def tick(self) -> Tick:
        """Run one poll: fetch, advance, persist, report."""
        snapshot = self.source.fetch_status()
        now = self.clock()

        if self._failures:
            # Time while cmus was unreachable is never counted as play time
            self.session.last_poll_ms = now
            self._failures = 0

        tick = scrobbler.advance(self.session, snapshot, now)
        key = snapshot.identity.key

        if tick.track_changed:
            self._log_event("Track changed to %s", key)

        if tick.record is not None:
            self.scrobs.insert(tick.record)
            scrobbler.mark_scrobbled(self.session)
            self._log_event("Scrob'd %s", key)
            tick.status_line = scrobbler.render_status_line(self.session, snapshot)

        self._output(tick.status_line)
        return tick

    def _on_source_failure(self, error: SourceUnavailable) -> int:
        """Decide how long to back off after a failed poll, or give up."""
        self._failures += 1
        if self._failures > self.retry_attempts:
            self.logger.error("Giving up after %s failed polls: %s", self._failures, error)
            raise error

        delay_ms = self.retry_backoff_ms * 2 ** (self._failures - 1)
        self.logger.warning(
            "Status poll failed (%s/%s), retrying in %sms: %s",
            self._failures,
            self.retry_attempts,
            delay_ms,
            error,
        )
        return delay_ms

    def _log_event(self, msg: str, *args):
        # Events would break the live line, keep them for debug output there
        level = logging.DEBUG if self.live_line else logging.INFO
        self.logger.log(level, msg, *args)

    def _output(self, line: str):
        if self.live_line:
            self.stream.write(CLEAR_LINE + line)
            self.stream.flush()
        else:
            self.logger.info(line)
