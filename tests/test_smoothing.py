import numpy as np
import pytest

from utils.smoothing import EmaSmoother, approach, approach_inplace


def test_approach_scalar_and_vector():
    assert approach(0.0, 10.0, 0.1) == pytest.approx(1.0)
    np.testing.assert_allclose(approach(np.zeros(3), np.array([1.0, 2.0, 3.0]), 0.5), [0.5, 1.0, 1.5])


def test_approach_inplace_writes_into_buffer():
    buf = np.zeros((2, 3), dtype=np.float32)
    out = approach_inplace(buf, np.ones((2, 3), dtype=np.float32), 0.25)
    assert out is buf
    np.testing.assert_allclose(buf, 0.25)


@pytest.mark.parametrize("rate", [0.0, -0.1, 1.5])
def test_rate_must_be_in_unit_interval(rate):
    with pytest.raises(ValueError):
        EmaSmoother(rate)


def test_first_push_initializes_without_initial():
    smoother = EmaSmoother(0.1)
    assert smoother.value is None
    np.testing.assert_allclose(smoother.push((4.0, 2.0)), [4.0, 2.0])
    np.testing.assert_allclose(smoother.push((14.0, 2.0)), [5.0, 2.0])


def test_reset_returns_to_initial():
    smoother = EmaSmoother(0.5, initial=(1.0,))
    smoother.push((3.0,))
    np.testing.assert_allclose(smoother.value, [2.0])

    smoother.reset((7.0,))
    np.testing.assert_allclose(smoother.value, [7.0])
    smoother.reset()
    np.testing.assert_allclose(smoother.value, [1.0])


def test_rate_one_jumps_to_target():
    smoother = EmaSmoother(1.0, initial=(0.0, 0.0))
    np.testing.assert_allclose(smoother.push((3.0, -3.0)), [3.0, -3.0])
