"""
Utility helpers shared across puppet-deptool.

Modules:
    - ``console``: Rich-backed logging setup and ``log_*`` helpers.
"""
