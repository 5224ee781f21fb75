"""
Voice command interpretation.

A transcript is normalized (lower-cased, stripped) and matched against an
ordered rule table; the first matching rule wins. Rule order matters: for
example "water temperature" must not be read as an air temperature query,
and a greeting inside any phrase takes precedence over everything else.

The interpreter is pure dispatch logic. Speech output, sensor values, pump
actions and the microphone are all injected, so it runs without any audio
subsystem.
"""

from __future__ import annotations

import logging
import random
import re
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence, Tuple

log = logging.getLogger(__name__)


class VoiceIntent(str, Enum):
    """Recognized command, in matching order."""

    GREETING = "greeting"
    FAREWELL = "farewell"
    WAKE = "wake"
    FULL_REPORT = "full_report"
    SOIL = "soil"
    HUMIDITY = "humidity"
    TEMPERATURE = "temperature"
    PH = "ph"
    WATER_LEVEL = "water_level"
    AIR_QUALITY = "air_quality"
    BATTERY = "battery"
    FLOW = "flow"
    PUMP_ON = "pump_on"
    PUMP_OFF = "pump_off"
    AUTO_MODE = "auto_mode"
    RESTART_LISTENING = "restart_listening"
    STOP_LISTENING = "stop_listening"
    START_LISTENING = "start_listening"
    TEST_VOICE = "test_voice"
    UNKNOWN = "unknown"


_GREETING = re.compile(r"(^| )((hey|hi|hello|good morning|good afternoon|good evening))( |$)")
_FAREWELL = re.compile(r"(bye|goodbye|see you|good night|take care)")
_WAKE = re.compile(r"^cli[a-z]*")
_FULL_REPORT = re.compile(r"(all sensors|all readings|full report|give me all readings|read all)")
_TEMPERATURE = re.compile(r"(air )?temperature")
_PUMP_ON = re.compile(r"(turn on|start pump|pump on)")
_PUMP_OFF = re.compile(r"(turn off|stop pump|pump off)")
_AUTO = re.compile(r"(auto mode|automatic|auto)")


def _has_any(text: str, *needles: str) -> bool:
    return any(n in text for n in needles)


RULES: Tuple[Tuple[VoiceIntent, Callable[[str], bool]], ...] = (
    (VoiceIntent.GREETING, lambda t: bool(_GREETING.search(t))),
    (VoiceIntent.FAREWELL, lambda t: bool(_FAREWELL.search(t))),
    (VoiceIntent.WAKE, lambda t: bool(_WAKE.search(t))),
    (VoiceIntent.FULL_REPORT, lambda t: bool(_FULL_REPORT.search(t))),
    (VoiceIntent.SOIL, lambda t: "soil" in t),
    (VoiceIntent.HUMIDITY, lambda t: "humidity" in t),
    (VoiceIntent.TEMPERATURE, lambda t: bool(_TEMPERATURE.search(t)) and "water" not in t),
    (VoiceIntent.PH, lambda t: _has_any(t, "p h", "ph ")),
    (VoiceIntent.WATER_LEVEL, lambda t: "water level" in t or ("water" in t and "level" in t)),
    (VoiceIntent.AIR_QUALITY, lambda t: _has_any(t, "air quality", "aqi")),
    (VoiceIntent.BATTERY, lambda t: "battery" in t),
    (VoiceIntent.FLOW, lambda t: _has_any(t, "flow rate", "flow sensor", "water flow")),
    (VoiceIntent.PUMP_ON, lambda t: bool(_PUMP_ON.search(t))),
    (VoiceIntent.PUMP_OFF, lambda t: bool(_PUMP_OFF.search(t))),
    (VoiceIntent.AUTO_MODE, lambda t: bool(_AUTO.search(t))),
    (VoiceIntent.RESTART_LISTENING, lambda t: _has_any(t, "restart mic", "restart listening")),
    (VoiceIntent.STOP_LISTENING, lambda t: _has_any(t, "stop listening", "stop voice")),
    (VoiceIntent.START_LISTENING, lambda t: _has_any(t, "start listening", "resume listening")),
    (VoiceIntent.TEST_VOICE, lambda t: "test voice" in t),
)

GREETING_TEXT = (
    "Hello! I'm Clima, ready when you are. "
    "Ask me to read sensors, control the pump, or get the AI recommendation."
)
FAREWELL_TEXT = "Goodbye! Take care and stay green!"
WAKE_TEXT = "Yes, I'm here. What would you like me to do?"
FALLBACK_TEXT = "Sorry, I didn't quite get that. Try asking for a sensor reading or say 'turn on pump'."
TEST_VOICE_LINES = (
    "This is Clima speaking, test successful!",
    "All systems are running perfectly.",
    "Voice system operational and ready.",
    "Hello human, your AI assistant is active.",
)

# intent -> (sensor key, spoken template)
SENSOR_QUERIES = {
    VoiceIntent.SOIL: ("soilMoisture", "Soil moisture is {}."),
    VoiceIntent.HUMIDITY: ("airHumidity", "Air humidity is {}."),
    VoiceIntent.TEMPERATURE: ("airTemperature", "Air temperature is {}."),
    VoiceIntent.PH: ("phValue", "pH level is {}."),
    VoiceIntent.WATER_LEVEL: ("waterLevel", "Water level is {}."),
    VoiceIntent.AIR_QUALITY: ("airQuality", "Air quality is {}."),
    VoiceIntent.BATTERY: ("batteryLevel", "Battery level is {}."),
    VoiceIntent.FLOW: ("flowRate", "The current water flow rate is {}."),
}


def normalize(transcript: str) -> str:
    return (transcript or "").lower().strip()


def classify(transcript: str) -> VoiceIntent:
    """
    Match a transcript against the rule table.

    Parameters
    ----------
    transcript
        Raw recognized text.

    Returns
    -------
    VoiceIntent
        The first matching intent, or ``UNKNOWN``.
    """
    text = normalize(transcript)
    for intent, matches in RULES:
        if matches(text):
            return intent
    return VoiceIntent.UNKNOWN


class ListeningControl(Protocol):
    """Microphone control used by the listening meta-commands."""

    def start_listening(self) -> None:
        ...

    def stop_listening(self, delay_s: Optional[float] = None) -> None:
        ...

    def restart_listening(self) -> None:
        ...


class VoiceCommandInterpreter:
    """
    Dispatch recognized commands to their actions.

    Every branch ends in exactly one or two ``announce`` calls. Pump and mode
    actions are announced first and then performed; a failing action is
    announced as a failure instead of being raised.

    Parameters
    ----------
    announce
        Speech sink.
    get_sensor_value
        Returns a spoken sensor value for a key such as ``"soilMoisture"``.
    on_pump_toggle
        Called with True/False for pump on/off.
    on_auto_mode
        Called to switch to automatic mode.
    listening
        Microphone control; listening commands are no-ops without it.
    rng
        Random source for the test-voice line.
    """

    def __init__(
        self,
        announce: Callable[[str], None],
        get_sensor_value: Callable[[str], str],
        on_pump_toggle: Callable[[bool], None],
        on_auto_mode: Callable[[], None],
        listening: Optional[ListeningControl] = None,
        rng: Optional[random.Random] = None,
    ):
        self._announce = announce
        self._get = get_sensor_value
        self._on_pump_toggle = on_pump_toggle
        self._on_auto_mode = on_auto_mode
        self.listening = listening
        self._rng = rng or random.Random()

    def interpret(self, transcript: str) -> VoiceIntent:
        """
        Classify a transcript and perform its action.

        Returns
        -------
        VoiceIntent
            The intent that was acted upon.
        """
        intent = classify(transcript)
        log.debug("[VOICE] %r -> %s", transcript, intent.value)

        if intent in SENSOR_QUERIES:
            key, template = SENSOR_QUERIES[intent]
            self._announce(template.format(self._get(key)))
        elif intent == VoiceIntent.GREETING:
            self._announce(GREETING_TEXT)
        elif intent == VoiceIntent.FAREWELL:
            self._announce(FAREWELL_TEXT)
        elif intent == VoiceIntent.WAKE:
            self._announce(WAKE_TEXT)
        elif intent == VoiceIntent.FULL_REPORT:
            self._announce(self.full_report())
        elif intent == VoiceIntent.PUMP_ON:
            self._announce("Turning the pump on now.")
            self._run(lambda: self._on_pump_toggle(True), "Failed to turn on pump.")
        elif intent == VoiceIntent.PUMP_OFF:
            self._announce("Stopping the pump now.")
            self._run(lambda: self._on_pump_toggle(False), "Failed to stop pump.")
        elif intent == VoiceIntent.AUTO_MODE:
            self._announce("Switching to automatic mode.")
            self._run(self._on_auto_mode, "Failed to switch to auto mode.")
        elif intent == VoiceIntent.RESTART_LISTENING:
            self._announce("Restarting my microphone system now.")
            if self.listening is not None:
                self.listening.restart_listening()
        elif intent == VoiceIntent.STOP_LISTENING:
            self._announce("Stopping listening.")
            if self.listening is not None:
                self.listening.stop_listening()
        elif intent == VoiceIntent.START_LISTENING:
            self._announce("Starting voice recognition again.")
            if self.listening is not None:
                self.listening.start_listening()
        elif intent == VoiceIntent.TEST_VOICE:
            self._announce(self._rng.choice(TEST_VOICE_LINES))
        else:
            self._announce(FALLBACK_TEXT)
        return intent

    def full_report(self) -> str:
        g = self._get
        return (
            f"Here's the full report: Soil moisture is {g('soilMoisture')}. "
            f"Air humidity {g('airHumidity')}. Air temperature {g('airTemperature')}. "
            f"pH level {g('phValue')}. Water level {g('waterLevel')}. "
            f"Air quality {g('airQuality')}. Battery {g('batteryLevel')}."
        )

    def _run(self, action: Callable[[], None], failure_text: str) -> None:
        try:
            action()
        except Exception as e:
            log.warning("[VOICE] action failed: %r", e)
            self._announce(failure_text)


def supported_phrases() -> Sequence[str]:
    """Example phrases, one per intent, for help output."""
    return (
        "hello", "read all", "soil", "humidity", "temperature", "ph level",
        "water level", "air quality", "battery", "flow rate", "turn on pump",
        "turn off pump", "auto mode", "restart listening", "stop listening",
        "start listening", "test voice", "bye",
    )
