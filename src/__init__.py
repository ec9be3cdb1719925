"""Link resolution across independent relational data sources."""

__version__ = "0.1.0"
