"""Dependency installer for the multi-package workspace.

Core design goals:
- Verify prerequisite tools before touching any subproject
- Strictly ordered sections, fail-fast on the first error
- Every line of command output recorded in one log file
- Quiet console unless something breaks
"""

__all__ = []
