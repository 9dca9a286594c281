from dogmap import config
from dogmap.errors import PermissionDeniedError
from dogmap.location import (
    DeniedLocationProvider,
    FixedLocationProvider,
    default_coordinate,
    resolve_viewer_location,
)
from dogmap.models import Coordinate


class BrokenProvider:
    def get_current_location(self):
        return Coordinate(float("nan"), 10.0)


def test_denied_permission_falls_back_to_default():
    viewer, used_fallback = resolve_viewer_location(DeniedLocationProvider())

    assert used_fallback is True
    assert viewer.coordinate == Coordinate(40.7128, -74.0060)
    assert viewer.latitude_delta == config.DEFAULT_REGION_DELTA


def test_explicit_default_and_delta():
    viewer, used_fallback = resolve_viewer_location(
        DeniedLocationProvider(), default=Coordinate(52.2, 21.0), delta=0.2
    )
    assert used_fallback is True
    assert viewer.coordinate == Coordinate(52.2, 21.0)
    assert viewer.longitude_delta == 0.2


def test_provider_position_is_used():
    viewer, used_fallback = resolve_viewer_location(FixedLocationProvider(Coordinate(51.5, -0.12)))
    assert used_fallback is False
    assert viewer.coordinate == Coordinate(51.5, -0.12)


def test_unusable_positions_fall_back():
    for provider in (BrokenProvider(), FixedLocationProvider(Coordinate(0.0, 0.0))):
        viewer, used_fallback = resolve_viewer_location(provider)
        assert used_fallback is True
        assert viewer.coordinate == default_coordinate()


def test_no_provider_uses_default():
    viewer, used_fallback = resolve_viewer_location(None)
    assert used_fallback is True
    assert viewer.coordinate == default_coordinate()


def test_default_location_follows_config(monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_LOCATION", (48.85, 2.35))
    assert default_coordinate() == Coordinate(48.85, 2.35)


def test_denied_provider_raises_directly():
    try:
        DeniedLocationProvider().get_current_location()
    except PermissionDeniedError:
        pass
    else:
        raise AssertionError("expected PermissionDeniedError")
