"""Export budget proposals from a Keystone GraphQL API into per-year files."""

__version__ = "0.1.0"
