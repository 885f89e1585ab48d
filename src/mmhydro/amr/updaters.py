"""Conversions between primitive and conserved cell states during AMR.

``SimpleAMRExtensiveUpdater`` computes the conserved quantities of a cell
from its own primitive state and volume. ``SimpleAMRCellUpdater`` goes the
other way and uses the previous cell only for what the conserved state
cannot determine (stickers, and tracers of a massless cell).
``ConservativeAMRCellUpdater`` additionally refuses to produce a negative
pressure: if the kinetic energy swallows the total energy, the old
pressure is kept.
"""

from __future__ import annotations

import logging

import numpy as np

from mmhydro.core.bases import (
    AMRCellUpdater,
    AMRExtensiveUpdater,
    ComputationalCell,
    EquationOfState,
    Extensive,
)

logger = logging.getLogger(__name__)

# Mass below which velocity and tracers are taken from the old cell
TINY_MASS = 1e-300


class SimpleAMRExtensiveUpdater(AMRExtensiveUpdater):
    """extensive = primitive * volume, energy from the EOS."""

    def convert_primitive_to_extensive(
        self,
        cell: ComputationalCell,
        eos: EquationOfState,
        volume: float,
    ) -> Extensive:
        mass = cell.density * volume
        kinetic = 0.5 * float(np.dot(cell.velocity, cell.velocity))
        thermal = eos.dp2e(cell.density, cell.pressure, cell.tracers)
        return Extensive(
            mass=mass,
            energy=mass * (kinetic + thermal),
            momentum=mass * cell.velocity,
            tracers={name: value * mass for name, value in cell.tracers.items()},
        )


class SimpleAMRCellUpdater(AMRCellUpdater):
    """primitive = extensive / volume, pressure from the EOS."""

    def convert_extensive_to_primitive(
        self,
        extensive: Extensive,
        eos: EquationOfState,
        volume: float,
        old_cell: ComputationalCell,
    ) -> ComputationalCell:
        density = extensive.mass / volume
        if extensive.mass <= TINY_MASS:
            velocity = old_cell.velocity.copy()
            tracers = dict(old_cell.tracers)
        else:
            velocity = extensive.momentum / extensive.mass
            tracers = {name: value / extensive.mass for name, value in extensive.tracers.items()}
            for name, value in old_cell.tracers.items():
                tracers.setdefault(name, value)
        thermal = self._thermal_energy(extensive, velocity)
        return ComputationalCell(
            density=density,
            pressure=eos.de2p(density, thermal, tracers),
            velocity=velocity,
            tracers=tracers,
            stickers=dict(old_cell.stickers),
        )

    @staticmethod
    def _thermal_energy(extensive: Extensive, velocity: np.ndarray) -> float:
        if extensive.mass <= TINY_MASS:
            return 0.0
        return extensive.energy / extensive.mass - 0.5 * float(np.dot(velocity, velocity))


class ConservativeAMRCellUpdater(SimpleAMRCellUpdater):
    """Like ``SimpleAMRCellUpdater`` but never returns a non-positive pressure."""

    def convert_extensive_to_primitive(
        self,
        extensive: Extensive,
        eos: EquationOfState,
        volume: float,
        old_cell: ComputationalCell,
    ) -> ComputationalCell:
        cell = super().convert_extensive_to_primitive(extensive, eos, volume, old_cell)
        if not cell.pressure > 0.0:
            logger.debug(
                "Non-positive pressure %.3e after conversion; keeping old pressure %.3e",
                cell.pressure,
                old_cell.pressure,
            )
            cell.pressure = old_cell.pressure
        return cell
