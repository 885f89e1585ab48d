"""Fluid closures."""

from mmhydro.fluid.eos import IdealGasEOS

__all__ = ["IdealGasEOS"]
