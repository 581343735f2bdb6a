"""
Exception hierarchy for the histnet library.

Every error raised by histnet derives from :class:`NetworkAnalysisError`, so
callers can catch library failures with a single except clause while still
distinguishing the failure modes that matter in practice:

- :class:`DataError` for malformed or inconsistent input tables (dangling
  edge references, duplicate node names, same-side bipartite edges)
- :class:`DataFormatError` for files that cannot be read or parsed
- :class:`ConvergenceError` for iterative measures that hit their cap
- :class:`ConfigurationError` for invalid parameter values
- :class:`ComputationError` for unexpected failures inside an algorithm

Errors carry the offending node and edge identifiers in ``details`` so a
problem in a hand-curated CSV can be found without a debugger.
"""

from typing import Dict, Any, Optional, List, Tuple, Union


class NetworkAnalysisError(Exception):
    """
    Base exception for all histnet errors.

    Parameters
    ----------
    message : str
        Human-readable error message describing what went wrong
    details : Dict[str, Any], optional
        Structured information about the error (offending ids, counts)
    cause : Exception, optional
        The underlying exception that caused this error
    context : Dict[str, Any], optional
        Information about the operation that failed

    Examples
    --------
    >>> raise NetworkAnalysisError("Graph construction failed")
    >>> raise NetworkAnalysisError(
    ...     "Invalid network size",
    ...     details={"nodes": 0, "edges": 10}
    ... )
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        self.message = message
        self.details = details or {}
        self.cause = cause
        self.context = context or {}

        full_message = message

        if self.details:
            detail_parts = []
            for key, value in self.details.items():
                if isinstance(value, (list, dict, tuple)) and len(str(value)) > 100:
                    detail_parts.append(f"{key}=<{type(value).__name__} with {len(value)} items>")
                else:
                    detail_parts.append(f"{key}={value}")
            full_message += f" (Details: {', '.join(detail_parts)})"

        if self.context:
            context_parts = [f"{k}={v}" for k, v in self.context.items()]
            full_message += f" (Context: {', '.join(context_parts)})"

        super().__init__(full_message)

        if cause is not None:
            self.__cause__ = cause


class ValidationError(NetworkAnalysisError):
    """
    Exception raised when input does not meet histnet's requirements.

    Parameters
    ----------
    message : str
        Descriptive error message explaining the validation failure
    field : str, optional
        Name of the field or column that failed validation
    value : Any, optional
        The invalid value
    expected : str, optional
        Description of what was expected
    details : Dict[str, Any], optional
        Additional details about the validation failure

    Examples
    --------
    >>> raise ValidationError("Source column contains null values", field="source")
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> None:
        self.field = field
        self.value = value
        self.expected = expected

        enhanced_details = dict(details or {})
        if field is not None:
            enhanced_details["field"] = field
        if value is not None:
            enhanced_details["invalid_value"] = value
        if expected is not None:
            enhanced_details["expected"] = expected

        if field:
            enhanced_message = f"Validation error in field '{field}': {message}"
        else:
            enhanced_message = f"Validation error: {message}"

        super().__init__(enhanced_message, details=enhanced_details, **kwargs)


class DataError(ValidationError):
    """
    Exception raised for malformed or inconsistent graph data.

    Covers the structural problems of edge and node tables: an edge that
    references an undeclared node, a duplicated node name, a null endpoint,
    or an edge joining two nodes on the same side of a bipartite graph.

    Parameters
    ----------
    message : str
        Description of the inconsistency
    node : str, optional
        Offending node name
    edge : Tuple[str, str], optional
        Offending (source, target) pair
    row : int, optional
        Zero-based row of the input table where the problem was found

    Examples
    --------
    >>> raise DataError(
    ...     "Edge references undeclared node",
    ...     node="AK",
    ...     edge=("AK", "OR")
    ... )
    """

    def __init__(
        self,
        message: str,
        node: Optional[str] = None,
        edge: Optional[Tuple[Any, Any]] = None,
        row: Optional[int] = None,
        **kwargs
    ) -> None:
        self.node = node
        self.edge = edge
        self.row = row

        details = dict(kwargs.pop("details", None) or {})
        if node is not None:
            details["node"] = node
        if edge is not None:
            details["edge"] = tuple(edge)
        if row is not None:
            details["row"] = row

        super().__init__(message, details=details, **kwargs)


class DataFormatError(DataError):
    """
    Exception raised when an input file cannot be read or parsed.

    Parameters
    ----------
    message : str
        Description of the format error
    format_type : str, optional
        Expected format (e.g., "CSV", "DataFrame")
    file_path : str, optional
        Path to the problematic file

    Examples
    --------
    >>> raise DataFormatError(
    ...     "Edge list file not found",
    ...     format_type="CSV",
    ...     file_path="data/borrowing.csv"
    ... )
    """

    def __init__(
        self,
        message: str,
        format_type: Optional[str] = None,
        file_path: Optional[str] = None,
        **kwargs
    ) -> None:
        self.format_type = format_type
        self.file_path = file_path

        details = dict(kwargs.pop("details", None) or {})
        if format_type:
            details["format_type"] = format_type
        if file_path:
            details["file_path"] = str(file_path)

        super().__init__(message, details=details, **kwargs)


class ConvergenceError(NetworkAnalysisError):
    """
    Exception raised when an iterative measure fails to converge.

    Hub and authority scores are computed by power iteration with an explicit
    iteration cap. Hitting the cap is reported through this exception rather
    than returning a silently truncated vector.

    Parameters
    ----------
    message : str
        Description of the convergence failure
    algorithm : str, optional
        Name of the algorithm that failed to converge
    iterations : int, optional
        Number of iterations completed
    max_iterations : int, optional
        Maximum iterations allowed
    final_change : float, optional
        Change between the last two iterates
    threshold : float, optional
        Convergence threshold that was not met

    Examples
    --------
    >>> raise ConvergenceError(
    ...     "HITS did not converge",
    ...     algorithm="hits",
    ...     iterations=1000,
    ...     max_iterations=1000,
    ...     final_change=0.01,
    ...     threshold=1e-10
    ... )
    """

    def __init__(
        self,
        message: str,
        algorithm: Optional[str] = None,
        iterations: Optional[int] = None,
        max_iterations: Optional[int] = None,
        final_change: Optional[float] = None,
        threshold: Optional[float] = None,
        **kwargs
    ) -> None:
        self.algorithm = algorithm
        self.iterations = iterations
        self.max_iterations = max_iterations
        self.final_change = final_change
        self.threshold = threshold

        details = dict(kwargs.pop("details", None) or {})
        if algorithm:
            details["algorithm"] = algorithm
        if iterations is not None:
            details["iterations_completed"] = iterations
        if max_iterations is not None:
            details["max_iterations"] = max_iterations
        if final_change is not None:
            details["final_change"] = final_change
        if threshold is not None:
            details["convergence_threshold"] = threshold

        super().__init__(message, details=details, **kwargs)


class ConfigurationError(NetworkAnalysisError):
    """
    Exception raised for invalid parameter values.

    Parameters
    ----------
    message : str
        Description of the configuration error
    parameter : str, optional
        Name of the problematic parameter
    value : Any, optional
        The invalid parameter value
    valid_options : List[Any], optional
        Valid options for the parameter
    function : str, optional
        Name of the function where the error occurred

    Examples
    --------
    >>> raise ConfigurationError(
    ...     "Invalid mode",
    ...     parameter="mode",
    ...     value="sideways",
    ...     valid_options=["out", "in", "all"]
    ... )
    """

    def __init__(
        self,
        message: str,
        parameter: Optional[str] = None,
        value: Optional[Any] = None,
        valid_options: Optional[List[Any]] = None,
        function: Optional[str] = None,
        **kwargs
    ) -> None:
        self.parameter = parameter
        self.value = value
        self.valid_options = valid_options
        self.function = function

        details = dict(kwargs.pop("details", None) or {})
        if parameter:
            details["parameter"] = parameter
        if value is not None:
            details["invalid_value"] = value
        if function:
            details["function"] = function

        enhanced_message = message
        if parameter and valid_options:
            enhanced_message += f". Valid options for '{parameter}': {valid_options}"

        super().__init__(enhanced_message, details=details, **kwargs)


class ComputationError(NetworkAnalysisError):
    """
    Exception raised when an algorithm fails for reasons other than bad input.

    Parameters
    ----------
    message : str
        Description of the computational error
    operation : str, optional
        The operation that failed (e.g., "betweenness_centrality")
    error_type : str, optional
        Kind of failure (e.g., "numerical", "computation")
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        error_type: Optional[str] = None,
        **kwargs
    ) -> None:
        self.operation = operation
        self.error_type = error_type

        context = dict(kwargs.pop("context", None) or {})
        if operation:
            context["operation"] = operation
        if error_type:
            context["error_type"] = error_type

        super().__init__(message, context=context, **kwargs)


def validate_parameter(
    value: Any,
    valid_options: List[Any],
    parameter_name: str,
    function_name: Optional[str] = None
) -> None:
    """
    Validate that a parameter value is one of ``valid_options``.

    Raises
    ------
    ConfigurationError
        If value is not in valid_options
    """
    if value not in valid_options:
        raise ConfigurationError(
            f"Invalid value for parameter '{parameter_name}': {value}",
            parameter=parameter_name,
            value=value,
            valid_options=valid_options,
            function=function_name
        )


def require_positive(
    value: Union[int, float],
    parameter_name: str,
    allow_zero: bool = False
) -> None:
    """
    Validate that a numeric parameter is positive (or non-negative).

    Raises
    ------
    ConfigurationError
        If value is not positive (or negative when allow_zero=True)
    """
    if allow_zero and value < 0:
        raise ConfigurationError(
            f"Parameter '{parameter_name}' must be non-negative, got {value}",
            parameter=parameter_name,
            value=value
        )
    elif not allow_zero and value <= 0:
        raise ConfigurationError(
            f"Parameter '{parameter_name}' must be positive, got {value}",
            parameter=parameter_name,
            value=value
        )


def check_convergence(
    change: float,
    threshold: float,
    iteration: int,
    max_iterations: int,
    algorithm: str = "iterative algorithm"
) -> None:
    """
    Raise ConvergenceError once the iteration cap is reached without convergence.

    Raises
    ------
    ConvergenceError
        If iteration >= max_iterations and change > threshold
    """
    if iteration >= max_iterations and change > threshold:
        raise ConvergenceError(
            f"{algorithm} failed to converge within {max_iterations} iterations",
            algorithm=algorithm,
            iterations=iteration,
            max_iterations=max_iterations,
            final_change=change,
            threshold=threshold
        )
