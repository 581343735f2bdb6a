"""
Input validation for edge and node tables.

These checks run on polars DataFrames before any graph is built, so that a
malformed CSV fails with a :class:`DataError` naming the offending column,
row or node instead of surfacing later as a KeyError deep inside an
algorithm.
"""

from typing import Optional, Tuple
import warnings

import polars as pl

from .exceptions import DataError


def resolve_edge_columns(
    df: pl.DataFrame,
    source_col: Optional[str] = None,
    target_col: Optional[str] = None
) -> Tuple[str, str]:
    """
    Resolve the source and target column names of an edge table.

    When a name is not given, the first (source) or second (target) column
    of the table is used, matching the usual "from, to, ..." CSV layout.

    Raises
    ------
    DataError
        If the table has fewer than two columns or a named column is missing
    """
    columns = df.columns
    if (source_col is None or target_col is None) and len(columns) < 2:
        raise DataError(
            f"Edge table needs at least two columns, got {len(columns)}",
            field="columns",
            details={"available_columns": columns}
        )

    source = source_col if source_col is not None else columns[0]
    target = target_col if target_col is not None else columns[1]

    missing = [col for col in (source, target) if col not in columns]
    if missing:
        raise DataError(
            f"Missing required columns: {missing}",
            field="columns",
            details={"available_columns": columns, "missing": missing}
        )
    if source == target:
        raise DataError(
            f"Source and target columns must differ, both are '{source}'",
            field="columns"
        )

    return source, target


def validate_edge_table(
    df: pl.DataFrame,
    source_col: str,
    target_col: str,
    weight_col: Optional[str] = None
) -> None:
    """
    Validate an edge table.

    Parameters
    ----------
    df : pl.DataFrame
        Edge table to validate (may be empty)
    source_col : str
        Name of the source column
    target_col : str
        Name of the target column
    weight_col : str, optional
        Name of a numeric, non-negative weight column

    Raises
    ------
    DataError
        On missing columns, null endpoints, or invalid weights

    Examples
    --------
    >>> df = pl.DataFrame({"from": ["CA", "OR"], "to": ["NY", "CA"]})
    >>> validate_edge_table(df, "from", "to")
    """
    required = [source_col, target_col] + ([weight_col] if weight_col else [])
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise DataError(
            f"Missing required columns: {missing}",
            field="columns",
            details={"available_columns": df.columns, "missing": missing}
        )

    for col in (source_col, target_col):
        null_count = df[col].null_count()
        if null_count > 0:
            first_row = int(df[col].is_null().arg_true()[0])
            raise DataError(
                f"Column contains {null_count} null node identifiers",
                field=col,
                row=first_row,
                details={"null_count": null_count, "total_rows": df.height}
            )

    if weight_col is not None:
        weights = df[weight_col]
        if not weights.dtype.is_numeric():
            raise DataError(
                f"Weight column must be numeric, got {weights.dtype}",
                field=weight_col,
                details={"dtype": str(weights.dtype)}
            )
        if weights.null_count() > 0:
            first_row = int(weights.is_null().arg_true()[0])
            raise DataError(
                f"Weight column contains {weights.null_count()} null values",
                field=weight_col,
                row=first_row
            )
        negative = weights < 0
        if negative.any():
            first_row = int(negative.arg_true()[0])
            raise DataError(
                f"Weight column contains {int(negative.sum())} negative values",
                field=weight_col,
                row=first_row,
                details={"min_weight": weights.min()}
            )

    if df.height > 0:
        unique_edges = df.select([source_col, target_col]).n_unique()
        if unique_edges < df.height * 0.5:
            warnings.warn(
                f"High proportion of parallel edges ({1 - unique_edges / df.height:.1%}). "
                "Consider collapse=True to aggregate them into weights."
            )


def validate_node_table(df: pl.DataFrame, node_col: str) -> None:
    """
    Validate a node table.

    Raises
    ------
    DataError
        If the id column is missing, contains nulls, or repeats a name

    Examples
    --------
    >>> nodes = pl.DataFrame({"state": ["NY", "CA"], "region": ["NE", "W"]})
    >>> validate_node_table(nodes, "state")
    """
    if node_col not in df.columns:
        raise DataError(
            f"Node id column '{node_col}' not found",
            field="columns",
            details={"available_columns": df.columns}
        )

    ids = df[node_col]
    if ids.null_count() > 0:
        first_row = int(ids.is_null().arg_true()[0])
        raise DataError(
            f"Node id column contains {ids.null_count()} null values",
            field=node_col,
            row=first_row
        )

    duplicated = ids.is_duplicated()
    if duplicated.any():
        duplicate_names = sorted(set(ids.filter(duplicated).cast(pl.Utf8).to_list()))
        raise DataError(
            f"Node table contains {len(duplicate_names)} duplicate node names",
            field=node_col,
            node=duplicate_names[0],
            details={"duplicates": duplicate_names}
        )
