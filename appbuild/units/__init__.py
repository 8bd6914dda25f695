"""Application unit module.

This module handles:
- Unit descriptors and source directory resolution
- Project file schema and loading
- Build order computation
"""

from appbuild.units.models import UnitDescriptor, resolve_src_dirs
from appbuild.units.order import compute_order

__all__ = ["UnitDescriptor", "compute_order", "resolve_src_dirs"]
