"""Service quota utilization monitoring: logging, configuration, a job pool, NAU calculation and handlers."""

__version__ = "0.1.0"