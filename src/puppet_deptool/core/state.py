"""
State Snapshot.

Persists the registry and every scanned module's dependency table so later
runs can skip rescanning modules that have not changed. Builtin definitions
are never restored from a snapshot; the Builtin Loader re-seeds them.
"""

from pathlib import Path
from typing import Dict, Iterable, Optional

from pydantic import BaseModel, Field, ValidationError

from puppet_deptool.analysis.registry import BUILTIN_MODULE, ResolverContext
from puppet_deptool.core.module import Module, ModuleRecord
from puppet_deptool.enums import Category
from puppet_deptool.errors import DeptoolError
from puppet_deptool.utils.console import log_info


class StateSnapshot(BaseModel):
  """
  Serialized registry plus module tables.
  """

  definitions: Dict[Category, Dict[str, str]] = Field(
    default_factory=dict, description="Category -> symbol -> owning module."
  )
  modules: Dict[str, ModuleRecord] = Field(default_factory=dict, description="Scanned modules by name.")
  inherits: Dict[str, str] = Field(default_factory=dict, description="Child class -> parent class edges.")

  @classmethod
  def capture(cls, context: ResolverContext, modules: Dict[str, Module]) -> "StateSnapshot":
    """
    Snapshots a completed scan.

    Args:
        context: Context holding the registry.
        modules: Scanned modules by name.
    """
    return cls(
      definitions=context.registry.to_dict(),
      modules={name: module.to_record() for name, module in modules.items()},
      inherits=dict(context.inherits),
    )

  def save(self, path: Path) -> Path:
    """
    Writes the snapshot as JSON, creating parent directories.

    Returns:
        Path: The written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
    log_info(f"Wrote state file {path}")
    return path

  @classmethod
  def load(cls, path: Path) -> "StateSnapshot":
    """
    Reads a snapshot file.

    Raises:
        DeptoolError: If the file is missing or not a valid snapshot.
    """
    path = Path(path)
    log_info(f"Loading state file {path}")
    try:
      return cls.model_validate_json(path.read_text(encoding="utf-8"))
    except OSError as e:
      raise DeptoolError(f"Unable to read state file {path}: {e}") from e
    except ValidationError as e:
      raise DeptoolError(f"Invalid state file {path}: {e}") from e

  def restore(
    self,
    context: ResolverContext,
    modules: Dict[str, Module],
    exclude: Optional[Iterable[str]] = None,
  ) -> int:
    """
    Replays the snapshot into a context.

    Definitions owned by ``builtin`` or by an excluded module are skipped, as
    are excluded modules themselves; those are expected to be rescanned.

    Args:
        context: Context whose registry receives the definitions.
        modules: Module table receiving the restored modules.
        exclude: Names of modules to rescan.

    Returns:
        int: Number of modules restored.
    """
    skipped = {BUILTIN_MODULE, *(exclude or ())}
    for category, table in self.definitions.items():
      for name, owner in table.items():
        if owner not in skipped:
          context.registry.add_definition(category, name, owner)

    for child, parent in self.inherits.items():
      context.inherits.setdefault(child, parent)

    restored = 0
    for name, record in self.modules.items():
      if name in skipped:
        continue
      modules[name] = Module.from_record(record)
      restored += 1
    return restored
