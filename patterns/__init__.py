"""Reusable building blocks shared by every business domain.

Each module is self-contained: rules engine, workflow state machines,
repository layer and business configuration.
"""
