"""
Central version constant for Stepwise.
"""

__version__ = "0.4.0"

# Workflow model schema version (independent of the package version)
MODEL_VERSION = "0.1.0"
