"""
Core modules for Cloud Budget Guard.

This package contains cost aggregation, budget evaluation and currency
helpers. Everything here is a pure function of its arguments.
"""
