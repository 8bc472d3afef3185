# AGPL-3.0 License

"""
Branch Guard: policy rules for pull requests, reported as GitHub check runs.
"""

__version__ = "0.1.0"
