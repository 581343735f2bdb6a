#!/usr/bin/env python3
"""
Basic Network Analysis Example

This example walks through the histnet workflow on the spread of the
Field Code of civil procedure between American states. It shows how to:

1. Build a directed borrowing network from an edge table and a node table
2. Calculate centrality measures
3. Measure how far each state sits from the Northeast
4. Detect communities
5. Project a bipartite judge / court network
6. Export results for further analysis
7. Draw the network from the exported node and edge tables

An edge ``borrower -> lender`` records that ``borrower`` copied its code
from ``lender``.
"""

from pathlib import Path

import numpy as np
import polars as pl

from histnet.common.logging_config import configure_external_library_logging, setup_logging
from histnet.network import (
    build_bipartite_graph,
    build_graph,
    detect_communities,
    distance_table,
    export_graph,
    export_node_table,
    extract_centrality,
    get_community_summary,
    get_graph_info,
    graph_to_tables,
    identify_central_nodes,
    project_bipartite,
    projection_summary
)

try:
    import matplotlib.pyplot as plt
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False
    print("Note: matplotlib not available. Visualization will be skipped.")

DATA_DIR = Path(__file__).parent / "data"


def plot_network(tables, output_path):
    """Draw the borrowing network on a circle, sized by in-degree and coloured by community."""
    if not HAS_MATPLOTLIB:
        print("Skipping visualization - matplotlib not available")
        return

    nodes = tables.nodes
    angles = np.linspace(0, 2 * np.pi, nodes.height, endpoint=False)
    positions = {
        name: (np.cos(angle), np.sin(angle))
        for name, angle in zip(nodes["node_id"].to_list(), angles)
    }

    fig, ax = plt.subplots(figsize=(10, 10))

    for row in tables.edges.iter_rows(named=True):
        ax.annotate(
            "",
            xy=positions[row["target"]],
            xytext=positions[row["source"]],
            arrowprops={"arrowstyle": "->", "color": "gray", "alpha": 0.6}
        )

    xs = [positions[name][0] for name in nodes["node_id"]]
    ys = [positions[name][1] for name in nodes["node_id"]]
    sizes = 100 + 150 * nodes["in_degree_centrality"].to_numpy()
    ax.scatter(xs, ys, s=sizes, c=nodes["community"].to_list(), cmap="tab10", zorder=2)

    for name, (x, y) in positions.items():
        ax.text(1.08 * x, 1.08 * y, name, ha="center", va="center", fontsize=8)

    ax.set_title("Field Code borrowing (size = times borrowed from, colour = community)")
    ax.set_axis_off()

    plt.savefig(output_path, dpi=300, bbox_inches='tight')
    plt.close(fig)
    print(f"Saved network drawing to: {output_path}")


def main():
    """Main function demonstrating the analysis workflow."""
    setup_logging(level="WARNING")
    configure_external_library_logging()

    print("=" * 60)
    print("Field Code Borrowing Analysis")
    print("=" * 60)

    # Step 1: Build the network
    print("\n1. Building Borrowing Network")
    print("-" * 40)

    graph = build_graph(
        DATA_DIR / "field_code_borrowing.csv",
        nodes=DATA_DIR / "state_regions.csv",
        directed=True
    )
    info = get_graph_info(graph)
    print(f"Built graph with {info['num_nodes']} states and {info['num_edges']} borrowings")
    print(f"Network density: {info['density']:.3f}")
    print(f"States that neither borrowed nor lent: {', '.join(info['isolated_nodes'])}")

    # Step 2: Centrality
    print("\n2. Calculating Centrality Metrics")
    print("-" * 40)

    centrality_df = extract_centrality(
        graph,
        metrics=["in_degree", "out_degree", "betweenness", "closeness", "authority"]
    )

    scores = {row["node_id"]: row for row in centrality_df.iter_rows(named=True)}

    print("Most borrowed-from states (by in-degree):")
    for name in identify_central_nodes(centrality_df, "in_degree_centrality", top_k=3):
        print(f"  {name}: {scores[name]['in_degree_centrality']}")

    print("\nIntermediaries (by betweenness):")
    for name in identify_central_nodes(centrality_df, top_k=3):
        print(f"  {name}: {scores[name]['betweenness_centrality']:.4f}")

    # Step 3: Distance from the Northeast
    print("\n3. Distance From the Northeast")
    print("-" * 40)

    distances = distance_table(
        graph,
        lambda name, attrs: attrs.get("region") == "Northeast",
        mode="in"
    )
    by_distance = (
        distances.group_by("distance")
        .agg(pl.col("node_id").sort())
        .sort("distance")
    )
    for row in by_distance.iter_rows(named=True):
        label = "unreached" if row["distance"] < 0 else f"{row['distance']} steps"
        print(f"  {label}: {', '.join(row['node_id'])}")

    # Step 4: Communities
    print("\n4. Community Detection")
    print("-" * 40)

    communities_df = detect_communities(graph, algorithm="walktrap")
    summary = get_community_summary(communities_df, graph)
    print(f"Detected {summary['num_communities']} communities "
          f"(modularity {summary['modularity']:.4f})")

    members = (
        communities_df.group_by("community")
        .agg(pl.col("node_id"))
        .sort("community")
    )
    for row in members.iter_rows(named=True):
        print(f"  Community {row['community']}: {', '.join(row['node_id'])}")

    # Step 5: Bipartite projection
    print("\n5. Judges and Courts")
    print("-" * 40)

    appointments = build_bipartite_graph(DATA_DIR / "court_appointments.csv")
    judges, courts = project_bipartite(appointments)
    for side, counts in projection_summary(appointments).items():
        label = "courts" if side else "judges"
        print(f"  {label}: {counts['num_nodes']} nodes, {counts['num_edges']} shared-member ties")

    strongest = max(courts.edges, key=lambda e: e.attributes["weight"])
    print(f"  Strongest court tie: {strongest.source} - {strongest.target} "
          f"({strongest.attributes['weight']} shared judges)")

    # Step 6: Export
    print("\n6. Exporting Results")
    print("-" * 40)

    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    measures = centrality_df.join(communities_df, on="node_id").join(distances, on="node_id")
    graph_output = export_graph(graph, output_dir / "field_code.gexf", measures=measures,
                                overwrite=True)
    print(f"Exported graph to: {graph_output}")

    table_output = export_node_table(measures, output_dir / "field_code_measures.csv")
    print(f"Exported node measures to: {table_output}")

    judges_output = export_graph(judges, output_dir / "judges.graphml", format="graphml",
                                 overwrite=True)
    print(f"Exported judge projection to: {judges_output}")

    # Step 7: Visualization
    print("\n7. Drawing the Network")
    print("-" * 40)

    plot_network(graph_to_tables(graph, measures), output_dir / "field_code_network.png")

    print("\n" + "=" * 60)
    print("Network analysis complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
