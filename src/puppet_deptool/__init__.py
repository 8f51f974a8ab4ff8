"""
puppet-deptool Package.

Computes, for each Puppet module in an environment, the set of other modules
it depends on, by resolving the classes, functions, types, providers and
namespaced variables it references against the definitions every module
provides.

Usage
-----

.. code-block:: python

    import puppet_deptool as pd
    result = pd.resolve_environment("controlrepo", modules=["apache"])
    print(result.line())
    # concat stdlib

The syntax trees of ``.pp`` files are read from JSON dumps next to each
source (``init.pp.json``); pass ``tree_loader`` to read them differently.
"""

from pathlib import Path
from typing import List, Optional, Union

from puppet_deptool.analysis.registry import DefinitionRegistry, ResolverContext
from puppet_deptool.analysis.resolver import ResolveResult, resolve
from puppet_deptool.config import DeptoolConfig
from puppet_deptool.core.scanner import Scanner
from puppet_deptool.enums import Category
from puppet_deptool.syntax.loader import TreeLoader

__version__ = "0.0.1"


def resolve_environment(
  path: Union[str, Path],
  modulepath: Optional[List[Union[str, Path]]] = None,
  modules: Optional[List[str]] = None,
  recursive: bool = False,
  tree_loader: Optional[TreeLoader] = None,
) -> ResolveResult:
  """
  Scans an environment and resolves module dependencies.

  Args:
      path: Module or control repository to analyze.
      modulepath: Modulepath entries. Discovered from the environment when omitted.
      modules: Modules to resolve. Defaults to every scanned module.
      recursive: Resolve dependencies transitively.
      tree_loader: Optional syntax tree loader.

  Returns:
      ResolveResult: Per-module and combined dependency lists.

  Raises:
      DeptoolError: On any fatal condition (unsupported syntax, missing paths ...).
  """
  config = DeptoolConfig.load(
    path=Path(path),
    modulepath=[Path(p) for p in modulepath] if modulepath else None,
    modules=modules,
    recurse=recursive,
  )
  return Scanner(config, tree_loader=tree_loader).run()


__all__ = [
  "Category",
  "DefinitionRegistry",
  "DeptoolConfig",
  "ResolveResult",
  "ResolverContext",
  "Scanner",
  "__version__",
  "resolve",
  "resolve_environment",
]
