"""
histnet - Network analysis for historical datasets.

This package builds graphs from tidy edge and node tables (law borrowing
between states, correspondence, court appointments) and computes node
centrality, communities, distances and bipartite projections, handing the
results back as polars tables for plotting.

Modules:
    common: Exceptions, ID mapping, validation and logging configuration
    network: Graph values, construction and analysis tools
"""

__version__ = "0.1.0"

from histnet.common.exceptions import (
    NetworkAnalysisError,
    ValidationError,
    DataError,
    DataFormatError,
    ConvergenceError,
    ConfigurationError,
    ComputationError
)
from histnet.network.graph import Edge, Graph
from histnet.network.construction import build_graph

__all__ = [
    "NetworkAnalysisError",
    "ValidationError",
    "DataError",
    "DataFormatError",
    "ConvergenceError",
    "ConfigurationError",
    "ComputationError",
    "Edge",
    "Graph",
    "build_graph",
]
