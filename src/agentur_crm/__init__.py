"""Agentur CRM: customers, pipeline, team and bookkeeping for a small agency."""

__version__ = "0.1.0"
