"""Ideal-gas equation of state.

All quantities are per unit mass: the specific internal energy ``e`` relates
to pressure through

    p = (gamma - 1) * rho * e
"""

from __future__ import annotations

import numpy as np

from mmhydro.core.bases import EquationOfState


class IdealGasEOS(EquationOfState):
    """Ideal gas with a constant adiabatic index.

    Works on scalars and on NumPy arrays alike.
    """

    def __init__(self, gamma: float = 5.0 / 3.0) -> None:
        if gamma <= 1.0:
            raise ValueError(f"gamma must be > 1, got {gamma}")
        self.gamma = gamma

    def dp2e(self, density, pressure, tracers=None):
        """Specific internal energy: e = p / ((gamma - 1) * rho)."""
        return pressure / ((self.gamma - 1.0) * np.maximum(density, 1e-30))

    def de2p(self, density, energy, tracers=None):
        """Pressure: p = (gamma - 1) * rho * e."""
        return (self.gamma - 1.0) * density * energy

    def dp2c(self, density, pressure, tracers=None):
        """Adiabatic sound speed."""
        return np.sqrt(self.gamma * pressure / np.maximum(density, 1e-30))

    def __repr__(self) -> str:
        return f"IdealGasEOS(gamma={self.gamma!r})"
