"""
Analysis Package.

Modules:
    - ``registry``: Definition registry and the per-run `ResolverContext`.
    - ``builtins``: Seeds the registry with Puppet core symbols.
    - ``walker``: Syntax tree walker emitting definition/dependency facts.
    - ``resolver``: Module dependency resolution with category fallbacks.
"""

from puppet_deptool.analysis.registry import BUILTIN_MODULE, DefinitionRegistry, ResolverContext

__all__ = ["BUILTIN_MODULE", "DefinitionRegistry", "ResolverContext"]
