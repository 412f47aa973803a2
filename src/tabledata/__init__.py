"""Table data - hierarchical summary tables for survey-response widgets."""

__version__ = "0.1.0"
