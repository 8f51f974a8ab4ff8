"""
Core Package.

Modules:
    - ``module``: The Puppet module model and its dependency table.
    - ``plugins``: Ruby plugin discovery under ``lib/puppet``.
    - ``state``: State snapshot persistence.
    - ``scanner``: The scan/resolve orchestrator.
"""
