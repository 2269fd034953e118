"""Tests for location sources and trace record/playback."""

import json
import subprocess
from types import SimpleNamespace

from smokearrow.location import (
    LocationProvider,
    StaticLocationProvider,
    TermuxLocationProvider,
    TracePlayback,
    TraceRecorder,
)
from smokearrow.models import AuthorizationStatus, Heading, Location

from conftest import BASE_LAT, BASE_LON


def test_best_heading_prefers_true_then_magnetic_then_course() -> None:
    provider = LocationProvider()
    provider.update_location(Location(BASE_LAT, BASE_LON, accuracy=10, course=200))

    provider.update_heading(Heading(magnetic_heading=40, true_heading=45, accuracy=5))
    assert provider.best_heading_degrees() == 45

    provider.update_heading(Heading(magnetic_heading=40, true_heading=-1, accuracy=5))
    assert provider.best_heading_degrees() == 40

    # Invalid compass: fall back to course over ground
    provider.update_heading(Heading(magnetic_heading=40, true_heading=45, accuracy=-1))
    assert provider.best_heading_degrees() == 200

    provider.update_location(Location(BASE_LAT, BASE_LON, accuracy=10, course=-1))
    assert provider.best_heading_degrees() is None


def test_static_provider_authorizes_on_start() -> None:
    provider = StaticLocationProvider(BASE_LAT, BASE_LON, accuracy=8, heading=90)
    assert provider.authorization_status == AuthorizationStatus.NOT_DETERMINED
    assert provider.location is None

    provider.start()

    assert provider.is_authorized
    assert (provider.location.lat, provider.location.lon, provider.location.accuracy) == (BASE_LAT, BASE_LON, 8)
    assert provider.best_heading_degrees() == 90


def test_static_provider_without_heading_has_no_direction() -> None:
    provider = StaticLocationProvider(BASE_LAT, BASE_LON)
    provider.start()

    assert provider.heading is None
    assert provider.best_heading_degrees() is None


def test_record_then_playback(tmp_path) -> None:
    path = tmp_path / "trace.json"
    source = LocationProvider()
    recorder = TraceRecorder(source, str(path))

    recorder.sample()
    recorder.sample()
    source.set_authorization(AuthorizationStatus.AUTHORIZED)
    source.update_location(Location(BASE_LAT, BASE_LON, accuracy=12.0))
    source.update_heading(Heading(magnetic_heading=10, true_heading=12, accuracy=3))
    recorder.sample()
    recorder.sample()
    recorder.save()

    # Unchanged samples are not repeated
    assert len(recorder.trace) == 2
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert len(saved["trace"]) == 2

    playback = TracePlayback(str(path), speed=2.0)
    assert playback.apply_next()
    assert playback.authorization_status == AuthorizationStatus.NOT_DETERMINED
    assert playback.location is None

    assert playback.apply_next()
    assert playback.is_authorized
    assert playback.location.accuracy == 12.0
    assert playback.best_heading_degrees() == 12
    assert playback.is_finished()
    assert not playback.apply_next()


def test_playback_interval_is_scaled_and_capped(tmp_path) -> None:
    path = tmp_path / "trace.json"
    entry = {"location": {"lat": BASE_LAT, "lon": BASE_LON}, "heading": None}
    path.write_text(json.dumps({"trace": [
        {"elapsed": 0.0, **entry},
        {"elapsed": 4.0, **entry},
        {"elapsed": 100.0, **entry},
    ]}), encoding="utf-8")

    playback = TracePlayback(str(path), speed=2.0)
    playback.apply_next()
    assert playback.get_interval() == 2.0
    playback.apply_next()
    assert playback.get_interval() == 5.0
    # Missing authorization in an entry means the fix was authorized
    assert playback.is_authorized


def test_termux_poll_pushes_location_with_course(monkeypatch) -> None:
    output = json.dumps({"latitude": BASE_LAT, "longitude": BASE_LON, "accuracy": 9.5, "bearing": 270.0})
    monkeypatch.setattr(
        subprocess, "run",
        lambda *args, **kwargs: SimpleNamespace(returncode=0, stdout=output, stderr=""),
    )
    provider = TermuxLocationProvider()
    provider.consecutive_failures = 2

    location = provider.poll_once()

    assert location.course == 270.0
    assert provider.location is location
    assert provider.is_authorized
    assert provider.consecutive_failures == 0
    assert provider.best_heading_degrees() == 270.0


def test_termux_missing_command_is_restricted(monkeypatch) -> None:
    def missing(*args, **kwargs):
        raise FileNotFoundError("termux-location")

    monkeypatch.setattr(subprocess, "run", missing)
    provider = TermuxLocationProvider()

    assert provider.poll_once() is None
    assert provider.authorization_status == AuthorizationStatus.RESTRICTED
    assert provider.consecutive_failures == 1


def test_termux_permission_error_is_denied(monkeypatch) -> None:
    monkeypatch.setattr(
        subprocess, "run",
        lambda *args, **kwargs: SimpleNamespace(returncode=1, stdout="", stderr="Permission denied"),
    )
    provider = TermuxLocationProvider()

    assert provider.poll_once() is None
    assert provider.authorization_status == AuthorizationStatus.DENIED
    assert "1 consecutive failures" in provider.get_status()


def test_termux_garbage_output_counts_as_failure(monkeypatch) -> None:
    monkeypatch.setattr(
        subprocess, "run",
        lambda *args, **kwargs: SimpleNamespace(returncode=0, stdout="not json", stderr=""),
    )
    provider = TermuxLocationProvider()

    assert provider.poll_once() is None
    assert provider.location is None
    assert provider.authorization_status == AuthorizationStatus.NOT_DETERMINED


def termux_returning(monkeypatch, payload: dict) -> TermuxLocationProvider:
    output = json.dumps({"latitude": BASE_LAT, "longitude": BASE_LON, "accuracy": 9.5, **payload})
    monkeypatch.setattr(
        subprocess, "run",
        lambda *args, **kwargs: SimpleNamespace(returncode=0, stdout=output, stderr=""),
    )
    return TermuxLocationProvider()


def test_termux_zero_bearing_while_stationary_is_no_course(monkeypatch) -> None:
    provider = termux_returning(monkeypatch, {"bearing": 0.0, "speed": 0.0})

    location = provider.poll_once()

    assert location.course is None
    assert provider.best_heading_degrees() is None


def test_termux_zero_bearing_without_speed_is_no_course(monkeypatch) -> None:
    provider = termux_returning(monkeypatch, {"bearing": 0.0})

    assert provider.poll_once().course is None


def test_termux_due_north_while_moving_keeps_course(monkeypatch) -> None:
    provider = termux_returning(monkeypatch, {"bearing": 0.0, "speed": 1.4})

    assert provider.poll_once().course == 0.0
    assert provider.best_heading_degrees() == 0.0
