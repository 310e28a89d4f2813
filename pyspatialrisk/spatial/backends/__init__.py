"""
Optimizer backends for the spatial Poisson trend model.
"""

from pyspatialrisk.spatial.backends.cpu import CPUBFGSBackend

__all__ = ["CPUBFGSBackend"]
