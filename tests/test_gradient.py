from __future__ import annotations

import numpy as np
import pytest

from trackheat.errors import ConfigError
from trackheat.gradient import Gradient, parse_color


def test_parse_color_forms() -> None:
    assert parse_color("#ff8000") == (255.0, 128.0, 0.0)
    assert parse_color("FF8000") == (255.0, 128.0, 0.0)
    assert parse_color("White") == (255.0, 255.0, 255.0)
    assert parse_color((1, 2, 3)) == (1.0, 2.0, 3.0)


@pytest.mark.parametrize("value", ["#12345", "#gggggg", "purple-ish", (1, 2), (0, 0, 300)])
def test_parse_color_rejects_bad_values(value) -> None:
    with pytest.raises(ConfigError):
        parse_color(value)


def test_sample_endpoints_and_midpoint() -> None:
    gradient = Gradient.evenly_spaced(["#000000", "#ffffff"])
    samples = gradient.sample(np.array([0.0, 0.5, 1.0]))
    assert samples.shape == (3, 3)
    assert np.allclose(samples[0], 0.0)
    assert np.allclose(samples[1], 127.5)
    assert np.allclose(samples[2], 255.0)


def test_sample_clamps_out_of_range() -> None:
    gradient = Gradient.evenly_spaced(["#000000", "#ffffff"])
    assert gradient.stop(-3.0) == (0.0, 0.0, 0.0)
    assert gradient.stop(7.0) == (255.0, 255.0, 255.0)


def test_sample_preserves_shape() -> None:
    gradient = Gradient.evenly_spaced(["#191919", "#ffffff"])
    assert gradient.sample(np.zeros((4, 5))).shape == (4, 5, 3)


def test_multi_stop_gradient_hits_each_stop() -> None:
    gradient = Gradient.from_stops([(0.0, "#ff0000"), (0.25, "#00ff00"), (1.0, "#0000ff")])
    assert gradient.stop(0.25) == (0.0, 255.0, 0.0)
    red, green, blue = gradient.stop(0.625)
    assert red == pytest.approx(0.0)
    assert green == pytest.approx(127.5)
    assert blue == pytest.approx(127.5)


def test_linear_interpolation_keeps_endpoints_and_brightens_midpoint() -> None:
    rgb = Gradient.evenly_spaced(["#000000", "#ffffff"])
    linear = Gradient.evenly_spaced(["#000000", "#ffffff"], interpolation="linear")
    ends = linear.sample(np.array([0.0, 1.0]))
    assert np.allclose(ends[0], 0.0)
    assert np.allclose(ends[1], 255.0)
    assert linear.stop(0.5)[0] > rgb.stop(0.5)[0]


@pytest.mark.parametrize(
    ("positions", "colors"),
    [
        ((0.0,), ((0, 0, 0),)),
        ((0.1, 1.0), ((0, 0, 0), (1, 1, 1))),
        ((0.0, 0.9), ((0, 0, 0), (1, 1, 1))),
        ((0.0, 0.6, 0.4, 1.0), ((0, 0, 0),) * 4),
        ((0.0, 1.0), ((0, 0, 0),)),
    ],
)
def test_invalid_gradients(positions, colors) -> None:
    with pytest.raises(ConfigError):
        Gradient(positions, colors)


def test_unknown_interpolation() -> None:
    with pytest.raises(ConfigError, match="interpolation"):
        Gradient.evenly_spaced(["#000000", "#ffffff"], interpolation="hsv")


def test_as_dict_reports_hex_stops() -> None:
    gradient = Gradient.evenly_spaced(["#191919", "#8a1f62", "#ffffff"])
    payload = gradient.as_dict()
    assert payload["interpolation"] == "rgb"
    assert [stop["position"] for stop in payload["stops"]] == [0.0, 0.5, 1.0]
    assert payload["stops"][1]["color"] == "#8a1f62"
