from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from climaneer.runtime.timers import ThreadingTimerFactory, TimerFactory, TimerHandle
from climaneer.voice.interpreter import VoiceCommandInterpreter, VoiceIntent

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoiceSessionConfig:
    """
    Listening timing.

    Parameters
    ----------
    stop_delay_s
        Delay before a spoken "stop listening" takes effect, so the spoken
        confirmation is not cut off.
    restart_delay_s
        Pause between stop and start when restarting the microphone.
    """

    stop_delay_s: float = 0.3
    restart_delay_s: float = 1.2


class VoiceSession:
    """
    Listening state of the voice assistant.

    Owns the "is the microphone on" flag and the delayed stop / restart
    timers. Transcripts are only interpreted while listening, the same way a
    recognizer delivers nothing while it is off.

    Notes
    -----
    - All pending timers are cancellable handles; :meth:`close` cancels them
      and no callback runs afterwards.
    - The interpreter is bound after construction with :meth:`bind`, since it
      needs the session as its listening control.

    Parameters
    ----------
    timers
        Timer factory. Defaults to real threading timers.
    cfg
        Listening timing.
    on_listening_changed
        Optional callback invoked with the new listening flag.
    """

    def __init__(
        self,
        timers: Optional[TimerFactory] = None,
        cfg: Optional[VoiceSessionConfig] = None,
        on_listening_changed: Optional[Callable[[bool], None]] = None,
    ):
        self._timers = timers or ThreadingTimerFactory()
        self._cfg = cfg or VoiceSessionConfig()
        self._on_listening_changed = on_listening_changed
        self._interpreter: Optional[VoiceCommandInterpreter] = None

        self._lock = threading.RLock()
        self._listening = False
        self._closed = False
        self._pending: List[TimerHandle] = []

    def bind(self, interpreter: VoiceCommandInterpreter) -> None:
        """Attach the interpreter and make this session its listening control."""
        interpreter.listening = self
        self._interpreter = interpreter

    @property
    def listening(self) -> bool:
        with self._lock:
            return self._listening

    def _set_listening(self, value: bool) -> None:
        with self._lock:
            if self._closed or self._listening == value:
                return
            self._listening = value
        log.info("[VOICE] listening %s", "on" if value else "off")
        if self._on_listening_changed is not None:
            self._on_listening_changed(value)

    def _later(self, delay_s: float, fn: Callable[[], None], name: str) -> None:
        with self._lock:
            if self._closed:
                return
            self._pending = [h for h in self._pending if h.active]
            self._pending.append(self._timers.call_later(delay_s, fn, name=name))

    def _cancel_pending(self) -> None:
        with self._lock:
            for h in self._pending:
                h.cancel()
            self._pending.clear()

    # --- ListeningControl ---
    def start_listening(self) -> None:
        self._cancel_pending()
        self._set_listening(True)

    def stop_listening(self, delay_s: Optional[float] = None) -> None:
        """
        Stop listening after ``delay_s`` (default ``stop_delay_s``).

        A delay of 0 stops immediately.
        """
        delay = self._cfg.stop_delay_s if delay_s is None else delay_s
        self._cancel_pending()
        if delay <= 0:
            self._set_listening(False)
            return
        self._later(delay, lambda: self._set_listening(False), "voice-stop")

    def restart_listening(self) -> None:
        """Stop now and start again after ``restart_delay_s``."""
        self._cancel_pending()
        self._set_listening(False)
        self._later(self._cfg.restart_delay_s, lambda: self._set_listening(True), "voice-restart")

    # --- input ---
    def handle_transcript(self, transcript: str) -> Optional[VoiceIntent]:
        """
        Interpret a transcript if the session is listening.

        Returns
        -------
        VoiceIntent or None
            The handled intent, or None if not listening, closed, or no
            interpreter is bound.
        """
        with self._lock:
            active = self._listening and not self._closed
        if not active or self._interpreter is None or not transcript.strip():
            return None
        return self._interpreter.interpret(transcript)

    def close(self) -> None:
        """Cancel all pending timers and stop listening for good."""
        self._cancel_pending()
        with self._lock:
            self._listening = False
            self._closed = True

    @property
    def pending_timers(self) -> int:
        with self._lock:
            return sum(1 for h in self._pending if h.active)
