"""Cassandra/ScyllaDB songs demo client."""

__version__ = "0.1.0"
