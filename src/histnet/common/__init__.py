"""
Common utilities for the histnet library.

- Exception hierarchy shared by every module
- Name <-> index mapping
- Edge and node table validation
- Logging configuration
"""

from .exceptions import (
    NetworkAnalysisError,
    ValidationError,
    DataError,
    DataFormatError,
    ConvergenceError,
    ConfigurationError,
    ComputationError,
    validate_parameter,
    require_positive,
    check_convergence
)

from .id_mapper import IDMapper
from .validators import (
    resolve_edge_columns,
    validate_edge_table,
    validate_node_table
)

from .logging_config import (
    setup_logging,
    get_logger,
    configure_external_library_logging,
    log_function_entry,
    log_performance_metric,
    LoggingTimer,
    JSONFormatter,
    PerformanceFilter
)
