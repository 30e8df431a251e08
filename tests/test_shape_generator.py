import numpy as np
import pytest

from core.errors import UnknownTemplate
from modules.shape_generator import (
    TEMPLATES,
    Template,
    background_stars,
    generate,
    list_templates,
    resolve_template,
    safe_normalize,
)


@pytest.mark.parametrize("template", list_templates())
def test_every_template_fills_all_buffers(template, rng):
    shape = generate(template, 500, rng)

    assert shape.count == 500
    assert shape.positions.shape == (500, 3)
    assert shape.colors.shape == (500, 3)
    assert shape.compressed.shape == (500, 3)
    assert shape.positions.dtype == np.float32
    assert np.isfinite(shape.positions).all()
    assert shape.colors.min() >= 0.0
    assert shape.colors.max() <= 1.0
    assert np.linalg.norm(shape.compressed, axis=1).max() < 30.0


def test_registry_covers_every_template():
    assert set(TEMPLATES) == set(Template)
    assert len(list_templates()) == 10


def test_heart_points_lie_on_the_curve(rng):
    shape = generate("heart", 8, rng)
    t = np.arange(8) / 8 * 2 * np.pi
    expected_x = 35 * 16 * np.sin(t) ** 3
    expected_y = -35 * (13 * np.cos(t) - 5 * np.cos(2 * t) - 2 * np.cos(3 * t) - np.cos(4 * t)) + 20

    np.testing.assert_allclose(shape.positions[:, 0], expected_x, atol=1e-3)
    np.testing.assert_allclose(shape.positions[:, 1], expected_y, atol=1e-3)
    assert np.abs(shape.positions[:, 2]).max() <= 2.5


def test_unknown_template_raises():
    with pytest.raises(UnknownTemplate) as excinfo:
        generate("pyramid", 10)
    assert excinfo.value.name == "pyramid"
    assert "pyramid" in str(excinfo.value)
    # 同时也是 KeyError，方便按字典查找的语义捕获
    assert isinstance(excinfo.value, KeyError)


@pytest.mark.parametrize("count", [0, -5])
def test_count_must_be_positive(count):
    with pytest.raises(ValueError):
        generate("galaxy", count)


def test_resolve_template_accepts_enum_and_string():
    assert resolve_template("saturn") is Template.SATURN
    assert resolve_template(Template.EARTH) is Template.EARTH


def test_same_seed_same_shape():
    a = generate("galaxy", 300, np.random.default_rng(7))
    b = generate("galaxy", 300, np.random.default_rng(7))
    np.testing.assert_array_equal(a.positions, b.positions)
    np.testing.assert_array_equal(a.colors, b.colors)


def test_sphere_radius_range(rng):
    radius = np.linalg.norm(generate("sphere", 2000, rng).positions, axis=1)
    assert radius.min() >= 20.0 - 1e-3
    assert radius.max() < 100.0 + 1e-3


def test_fireworks_inside_unit_ball(rng):
    radius = np.linalg.norm(generate("fireworks", 2000, rng).positions, axis=1)
    assert radius.max() < 100.0 + 1e-3


def test_earth_shell_and_atmosphere(rng):
    shape = generate("earth", 400, rng)
    radius = np.linalg.norm(shape.positions, axis=1)
    atmosphere = np.arange(400) % 20 == 0

    np.testing.assert_allclose(radius[atmosphere], 37.0, atol=1e-3)
    np.testing.assert_allclose(radius[~atmosphere], 35.0, atol=1e-3)
    # 大气层永远是白色
    np.testing.assert_allclose(shape.colors[atmosphere], 1.0)


def test_saturn_cassini_division_is_sparse():
    shape = generate("saturn", 20000, np.random.default_rng(3))
    radius = np.linalg.norm(shape.positions, axis=1)
    ring = radius > 35
    in_gap = (radius[ring] > 68.2) & (radius[ring] < 71.8)

    assert 0.6 < ring.mean() < 0.8
    # 均匀分布时约 7%，缝内只保留十分之一
    assert in_gap.mean() < 0.03


def test_saturn_body_is_inside_ring(rng):
    shape = generate("saturn", 3000, rng)
    radius = np.linalg.norm(shape.positions, axis=1)
    assert not ((radius > 30.5) & (radius < 39.5)).any()


def test_safe_normalize_zero_rows():
    points = np.array([[0.0, 0.0, 0.0], [3.0, 0.0, 4.0]])
    unit = safe_normalize(points)
    assert np.isfinite(unit).all()
    np.testing.assert_array_equal(unit[0], [0.0, 0.0, 0.0])
    np.testing.assert_allclose(unit[1], [0.6, 0.0, 0.8])


def test_background_stars_shell(rng):
    stars = background_stars(500, rng)
    radius = np.linalg.norm(stars, axis=1)
    assert stars.shape == (500, 3)
    assert radius.min() >= 400.0 - 1e-2
    assert radius.max() < 800.0 + 1e-2
