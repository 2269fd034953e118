"""Location sources: live Termux polling, fixed positions and trace recording/playback."""

import json
import subprocess
import threading
import time
from datetime import datetime
from typing import Optional

from .config import CONFIG
from .models import AuthorizationStatus, Heading, Location


class LocationProvider:
    """Push source of authorization, location and heading.

    Subclasses feed updates through set_authorization / update_location /
    update_heading, possibly from their own thread. Readers only ever see the
    latest values.
    """

    def __init__(self):
        self.authorization_status = AuthorizationStatus.NOT_DETERMINED
        self.location: Optional[Location] = None
        self.heading: Optional[Heading] = None

    @property
    def is_authorized(self) -> bool:
        return self.authorization_status == AuthorizationStatus.AUTHORIZED

    def start(self):
        pass

    def stop(self):
        pass

    def request_authorization(self):
        """Ask for permission; only meaningful while not yet determined"""
        pass

    def set_authorization(self, status: AuthorizationStatus):
        self.authorization_status = status

    def update_location(self, location: Location):
        self.location = location

    def update_heading(self, heading: Optional[Heading]):
        self.heading = heading

    def best_heading_degrees(self) -> Optional[float]:
        """Compass heading when trustworthy, else course over ground, else None"""
        heading = self.heading
        if heading is not None and heading.accuracy >= 0:
            if heading.true_heading >= 0:
                return heading.true_heading
            return heading.magnetic_heading

        location = self.location
        if location is not None and location.course is not None and location.course >= 0:
            return location.course

        return None

    def get_status(self) -> str:
        location = self.location
        if location is None:
            return f"No fix ({self.authorization_status.value})"
        acc = f", accuracy {location.accuracy:.0f}m" if location.accuracy is not None else ""
        return f"Fix OK{acc}"


class StaticLocationProvider(LocationProvider):
    """Fixed position (and optional fixed heading), authorized on start"""

    def __init__(self, lat: float, lon: float, accuracy: float = 5.0,
                 heading: Optional[float] = None, heading_accuracy: float = 5.0):
        super().__init__()
        self._fixed_location = Location(lat=lat, lon=lon, accuracy=accuracy)
        self._fixed_heading = None
        if heading is not None:
            self._fixed_heading = Heading(
                magnetic_heading=heading, true_heading=heading, accuracy=heading_accuracy
            )

    def start(self):
        self.set_authorization(AuthorizationStatus.AUTHORIZED)
        self._fixed_location.timestamp = time.time()
        self.update_location(self._fixed_location)
        self.update_heading(self._fixed_heading)


class TermuxLocationProvider(LocationProvider):
    """GPS access via Termux API, polled in a background thread"""

    def __init__(self, poll_interval: Optional[float] = None, config: Optional[dict] = None):
        super().__init__()
        self.config = {**CONFIG, **(config or {})}
        self.poll_interval = poll_interval or self.config["location_poll_interval"]
        self.consecutive_failures = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._poll_loop, daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()

    def _poll_loop(self):
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self.poll_interval)

    def poll_once(self) -> Optional[Location]:
        """Run termux-location once and push the fix"""
        try:
            result = subprocess.run(
                ["termux-location", "-p", "gps", "-r", "once"],
                capture_output=True,
                text=True,
                timeout=self.config["location_command_timeout"]
            )
        except FileNotFoundError:
            # No Termux API on this device
            self.consecutive_failures += 1
            self.set_authorization(AuthorizationStatus.RESTRICTED)
            self._stop_event.set()
            return None
        except subprocess.TimeoutExpired:
            self.consecutive_failures += 1
            return None

        if result.returncode != 0:
            self.consecutive_failures += 1
            if "permission" in (result.stderr or "").lower():
                self.set_authorization(AuthorizationStatus.DENIED)
            return None

        if not result.stdout or not result.stdout.strip():
            self.consecutive_failures += 1
            return None

        try:
            data = json.loads(result.stdout)
            location = Location(
                lat=data["latitude"],
                lon=data["longitude"],
                accuracy=data.get("accuracy"),
                course=self._course(data),
                timestamp=time.time()
            )
        except (json.JSONDecodeError, KeyError, TypeError):
            self.consecutive_failures += 1
            return None

        self.set_authorization(AuthorizationStatus.AUTHORIZED)
        self.update_location(location)
        self.consecutive_failures = 0
        return location

    @staticmethod
    def _course(data: dict) -> Optional[float]:
        """GPS bearing, or None when Android reports a placeholder 0.0 while not moving"""
        bearing = data.get("bearing")
        if bearing is None:
            return None
        if bearing == 0 and not data.get("speed"):
            return None
        return bearing

    def get_status(self) -> str:
        if self.consecutive_failures == 0:
            return super().get_status()
        return f"GPS: {self.consecutive_failures} consecutive failures"


class TraceRecorder:
    """Records what a provider reports so it can be replayed later"""

    def __init__(self, provider: LocationProvider, record_path: str):
        self.provider = provider
        self.record_path = record_path
        self.trace: list[dict] = []
        self.start_time = time.time()
        self._last_entry: Optional[dict] = None

    def sample(self):
        """Append the provider's current values if they changed since the last sample"""
        location = self.provider.location
        heading = self.provider.heading
        entry = {
            "authorization": self.provider.authorization_status.value,
            "location": location.to_dict() if location else None,
            "heading": heading.to_dict() if heading else None,
        }
        if entry == self._last_entry:
            return
        self._last_entry = entry
        self.trace.append({"elapsed": time.time() - self.start_time, **entry})

    def save(self):
        """Save trace to file"""
        with open(self.record_path, "w", encoding="utf-8") as f:
            json.dump({
                "recorded_at": datetime.now().isoformat(),
                "trace": self.trace
            }, f, indent=2)
        print(f"Location trace saved to {self.record_path} ({len(self.trace)} entries)")


class TracePlayback(LocationProvider):
    """Plays back a recorded trace, pacing entries by their elapsed times"""

    def __init__(self, playback_path: str, speed: float = 1.0):
        super().__init__()
        self.playback_path = playback_path
        self.speed = speed
        self.index = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        with open(playback_path, encoding="utf-8") as f:
            data = json.load(f)
            self.trace: list[dict] = data["trace"]
        print(f"Loaded location trace from {playback_path} ({len(self.trace)} entries)")

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._play, daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()

    def _play(self):
        while not self._stop_event.is_set() and self.index < len(self.trace):
            self.apply_next()
            self._stop_event.wait(self.get_interval())

    def apply_next(self) -> bool:
        """Push the next trace entry; False once the trace is exhausted"""
        if self.index >= len(self.trace):
            return False
        entry = self.trace[self.index]
        self.index += 1

        status = entry.get("authorization")
        self.set_authorization(AuthorizationStatus(status) if status else AuthorizationStatus.AUTHORIZED)
        if entry.get("location"):
            self.update_location(Location.from_dict(entry["location"]))
        self.update_heading(Heading.from_dict(entry["heading"]) if entry.get("heading") else None)
        return True

    def get_interval(self) -> float:
        """Seconds until the next entry is due, scaled by playback speed"""
        if self.index <= 0 or self.index >= len(self.trace):
            return 0.0
        prev_elapsed = self.trace[self.index - 1].get("elapsed", 0)
        curr_elapsed = self.trace[self.index].get("elapsed", 0)
        return max(0.0, min((curr_elapsed - prev_elapsed) / self.speed, 5.0))

    def is_finished(self) -> bool:
        return self.index >= len(self.trace)

    def get_status(self) -> str:
        return f"Playback ({self.index}/{len(self.trace)})"
