"""
Bidirectional mapping between node names and consecutive integer indices.

Graph algorithms in histnet work on integer indices (list positions, matrix
rows); tables and results are keyed by node name. :class:`IDMapper` keeps the
two in sync and is also what :func:`histnet.network.export.to_networkit`
hands back alongside a networkit graph.
"""

from typing import Any, Dict, Iterable, Iterator, List


class IDMapper:
    """
    Bidirectional mapping between node names and internal indices.

    Attributes
    ----------
    original_to_internal : Dict[str, int]
        Maps node names to indices (0, 1, 2, ...)
    internal_to_original : Dict[int, str]
        Maps indices back to node names

    Examples
    --------
    >>> mapper = IDMapper.from_names(["AK", "CA", "NY"])
    >>> mapper.get_internal("CA")
    1
    >>> mapper.get_original(2)
    'NY'
    """

    def __init__(self) -> None:
        self.original_to_internal: Dict[str, int] = {}
        self.internal_to_original: Dict[int, str] = {}

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "IDMapper":
        """
        Build a mapper assigning indices in iteration order.

        Raises
        ------
        ValueError
            If a name occurs twice
        """
        mapper = cls()
        for index, name in enumerate(names):
            mapper.add_mapping(name, index)
        return mapper

    def add_mapping(self, original_id: str, internal_id: int) -> None:
        """
        Add a single name/index pair.

        Raises
        ------
        ValueError
            If either side is already mapped to something else
        TypeError
            If internal_id is not an integer
        """
        if not isinstance(internal_id, int) or isinstance(internal_id, bool):
            raise TypeError(f"Internal ID must be integer, got {type(internal_id)}")
        if internal_id < 0:
            raise ValueError(f"Internal ID must be non-negative, got {internal_id}")

        existing_internal = self.original_to_internal.get(original_id)
        if existing_internal is not None and existing_internal != internal_id:
            raise ValueError(
                f"Original ID '{original_id}' already mapped to internal ID {existing_internal}"
            )
        existing_original = self.internal_to_original.get(internal_id)
        if existing_original is not None and existing_original != original_id:
            raise ValueError(
                f"Internal ID {internal_id} already mapped to original ID '{existing_original}'"
            )

        self.original_to_internal[original_id] = internal_id
        self.internal_to_original[internal_id] = original_id

    def get_internal(self, original_id: str) -> int:
        """
        Get the index of a node name.

        Raises
        ------
        KeyError
            If original_id is not mapped
        """
        try:
            return self.original_to_internal[original_id]
        except KeyError:
            raise KeyError(f"Original ID '{original_id}' not found in mapping") from None

    def get_original(self, internal_id: int) -> str:
        """
        Get the node name at an index.

        Raises
        ------
        KeyError
            If internal_id is not mapped
        TypeError
            If internal_id is not an integer
        """
        if not isinstance(internal_id, int):
            raise TypeError(f"Internal ID must be integer, got {type(internal_id)}")
        try:
            return self.internal_to_original[internal_id]
        except KeyError:
            raise KeyError(f"Internal ID {internal_id} not found in mapping") from None

    def get_internal_batch(self, original_ids: Iterable[str]) -> List[int]:
        """Get indices for several node names."""
        return [self.get_internal(original_id) for original_id in original_ids]

    def get_original_batch(self, internal_ids: Iterable[int]) -> List[str]:
        """Get node names for several indices."""
        return [self.get_original(internal_id) for internal_id in internal_ids]

    def has_original(self, original_id: Any) -> bool:
        return original_id in self.original_to_internal

    def size(self) -> int:
        return len(self.original_to_internal)

    def names(self) -> List[str]:
        """Node names ordered by index."""
        return [self.internal_to_original[i] for i in sorted(self.internal_to_original)]

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, item: Any) -> bool:
        return self.has_original(item)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IDMapper):
            return NotImplemented
        return self.original_to_internal == other.original_to_internal

    def __repr__(self) -> str:
        return f"IDMapper(size={self.size()})"
