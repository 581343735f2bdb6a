"""
Network construction and analysis module.

This module provides the graph analysis toolkit:
- Immutable graph values and construction from edge / node tables
- Centrality measures (degree, betweenness, closeness, hub, authority)
- Community detection (components, edge betweenness, walktrap)
- BFS distances from origin nodes
- Bipartite graphs and their projections
- Export to tables, networkit and graph file formats
"""

from .graph import Edge, Graph, MODES

# Network construction functions
from .construction import (
    load_edge_table,
    load_node_table,
    build_graph,
    get_graph_info
)

from .paths import (
    UNREACHABLE,
    bfs_distances,
    distances_from,
    distance_table,
    shortest_path_counts
)

# Network analysis functions
from .analysis import (
    AVAILABLE_METRICS,
    DEFAULT_PRECISION,
    degree_centrality,
    betweenness_centrality,
    closeness_centrality,
    hub_score,
    authority_score,
    edge_betweenness,
    edge_betweenness_table,
    extract_centrality,
    get_centrality_summary,
    identify_central_nodes
)

# Community detection functions
from .communities import (
    AVAILABLE_ALGORITHMS,
    connected_components,
    edge_betweenness_communities,
    walktrap_communities,
    modularity,
    detect_communities,
    get_community_summary,
    compare_partitions
)

from .bipartite import (
    BipartiteGraph,
    build_bipartite_graph,
    project_bipartite,
    projection_summary,
    get_bipartite_info
)

from .conversion import to_networkit

from .export import (
    GraphTables,
    graph_to_tables,
    export_graph,
    export_node_table
)
