from typing import Optional, Sequence, Union

import numpy as np

Number = Union[float, np.ndarray]


def approach(current: Number, target: Number, rate: float) -> Number:
    """One exponential smoothing step: current + (target - current) * rate."""
    return current + (target - current) * rate


def approach_inplace(current: np.ndarray, target: np.ndarray, rate: float) -> np.ndarray:
    """Same as approach() but writes into ``current`` (no per-frame allocation of the result)."""
    current += (target - current) * rate
    return current


class EmaSmoother:
    """Fixed per-frame blend toward a moving target; scalar or vector."""

    def __init__(self, rate: float, initial: Optional[Sequence[float]] = None):
        if not 0.0 < rate <= 1.0:
            raise ValueError(f"rate must be in (0, 1], got {rate}")
        self.rate = rate
        self._initial = None if initial is None else np.array(initial, dtype=np.float64)
        self._state: Optional[np.ndarray] = None if self._initial is None else self._initial.copy()

    @property
    def value(self) -> Optional[np.ndarray]:
        return self._state

    def reset(self, value: Optional[Sequence[float]] = None) -> None:
        if value is not None:
            self._state = np.array(value, dtype=np.float64)
        elif self._initial is not None:
            self._state = self._initial.copy()
        else:
            self._state = None

    def push(self, target: Sequence[float]) -> np.ndarray:
        arr = np.array(target, dtype=np.float64)
        if self._state is None:
            self._state = arr
        else:
            self._state = approach(self._state, arr, self.rate)
        return self._state
