"""
End-to-end tests of the Scan Orchestrator over on-disk environments.

Each environment is a control repository written by the ``trees`` fixture:
``.pp`` files with their JSON syntax dumps, ``metadata.json`` files and Ruby
plugins, laid out the way a real checkout is.
"""

import pytest

from puppet_deptool import resolve_environment
from puppet_deptool.config import DeptoolConfig
from puppet_deptool.core.scanner import Scanner
from puppet_deptool.diagnostics import ControlDependencyWarning, MissingDefinitionWarning, MissingMetadataWarning
from puppet_deptool.enums import Category
from puppet_deptool.errors import DeptoolError, ModulePathError, UnknownModuleError, UnsupportedShapeError

STDLIB_FUNCTION = """
Puppet::Functions.create_function(:'stdlib::merge') do
end
"""


@pytest.fixture
def environment(trees, pp):
  """
  control (site.pp includes role::web)
    site/role      role::web includes profile::web
    site/profile   profile::web includes apache, declares mysql::db, calls stdlib::merge
    modules/apache class apache ($port), declares concat::fragment
    modules/concat define concat::fragment
    modules/mysql  define mysql::db, class mysql::params inherited by mysql::server
    modules/stdlib Ruby function stdlib::merge
  """
  control = trees.control_repo(
    manifests={"manifests/site.pp": pp.program(pp.call("include", pp.name("role::web")))},
  )
  site = control / "site"
  modules = control / "modules"

  trees.module(
    "role",
    {"manifests/web.pp": pp.program(pp.klass("role::web", pp.call("include", pp.name("profile::web"))))},
    parent=site,
  )
  profile_body = [
    pp.call("include", pp.name("apache")),
    pp.resource("mysql::db", "app"),
    pp.assign("merged", pp.call("stdlib::merge", pp.var("a"), pp.var("b"))),
    pp.call("notice", pp.var("mysql::server::port")),
  ]
  trees.module(
    "profile",
    {"manifests/web.pp": pp.program(pp.klass("profile::web", *profile_body))},
    parent=site,
  )
  trees.module(
    "apache",
    {"manifests/init.pp": pp.program(pp.klass("apache", pp.resource("concat::fragment", "vhost"), parameters=["port"]))},
    parent=modules,
  )
  trees.module(
    "concat",
    {"manifests/fragment.pp": pp.program(pp.define("concat::fragment"))},
    parent=modules,
  )
  trees.module(
    "mysql",
    {
      "manifests/db.pp": pp.program(pp.define("mysql::db")),
      "manifests/params.pp": pp.program(pp.klass("mysql::params", pp.assign("port", pp.node("LiteralInteger", value=3306)))),
      "manifests/server.pp": pp.program(pp.klass("mysql::server", parent="mysql::params")),
    },
    parent=modules,
  )
  trees.module("stdlib", lib={"puppet/functions/stdlib/merge.rb": STDLIB_FUNCTION}, parent=modules)
  return control


def run(path, **overrides):
  scanner = Scanner(DeptoolConfig.load(path=path, **overrides))
  result = scanner.run()
  return scanner, result


def test_full_environment(environment):
  scanner, result = run(environment)

  assert set(scanner.modules) == {"control", "role", "profile", "apache", "concat", "mysql", "stdlib"}
  assert result.modules["control"] == ["role"]
  assert result.modules["role"] == ["profile"]
  assert result.modules["profile"] == ["apache", "mysql", "stdlib"]
  assert result.modules["apache"] == ["concat"]
  assert result.modules["concat"] == []
  assert result.dependencies == ["apache", "concat", "mysql", "profile", "role", "stdlib"]
  assert scanner.list_dependencies() == "apache concat mysql profile role stdlib"
  assert not scanner.diagnostics.warnings_encountered


def test_referencing_files_are_relative_to_basedir(environment):
  scanner, _ = run(environment)

  profile = scanner.modules["profile"]
  assert profile.dependencies[Category.CLASS]["apache"] == ["site/profile/manifests/web.pp"]


def test_single_module_recursive(environment):
  _, result = run(environment, modules=["profile"], recurse=True)

  assert result.modules == {"profile": ["apache", "concat", "mysql", "stdlib"]}
  assert result.dependencies == ["apache", "concat", "mysql", "stdlib"]


def test_restricted_scan(environment):
  scanner, result = run(environment, modules=["apache", "concat"], restrict_scan=True)

  assert set(scanner.modules) == {"apache", "concat"}
  assert result.modules == {"apache": ["concat"], "concat": []}


def test_scan_list_reports_unscanned(environment):
  scanner = Scanner(DeptoolConfig.load(path=environment, scan_modules=["apache", "nosuch"]))
  scanner.prepare()
  scanner.scan()

  assert "Failed to scan module(s) nosuch" in scanner.diagnostics.messages


def test_scan_is_idempotent(environment):
  """
  Scenario: the same environment scanned twice with fresh contexts.
  Expectation: identical registry contents and identical results.
  """
  first, first_result = run(environment)
  second, second_result = run(environment)

  assert first.context.registry.to_dict() == second.context.registry.to_dict()
  assert first_result == second_result


def test_resolving_unscanned_module_is_fatal(environment):
  with pytest.raises(UnknownModuleError):
    run(environment, modules=["nosuch"])


def test_standalone_module_with_fixtures(trees, pp):
  """
  Scenario: a module checkout whose dependencies live in spec/fixtures/modules.
  """
  path = trees.module(
    "app",
    {"manifests/init.pp": pp.program(pp.klass("app", pp.call("include", pp.name("ntp"))))},
    metadata={"name": "acme-app", "version": "1.0.0"},
  )
  trees.module(
    "ntp",
    {"manifests/init.pp": pp.program(pp.klass("ntp"))},
    parent=path / "spec" / "fixtures" / "modules",
  )

  result = resolve_environment(path)

  assert result.modules["app"] == ["ntp"]
  assert result.dependencies == ["ntp"]


def test_not_a_module_without_modulepath(tmp_path):
  (tmp_path / "empty").mkdir()
  scanner = Scanner(DeptoolConfig.load(path=tmp_path / "empty"))
  scanner.prepare()

  with pytest.raises(ModulePathError):
    scanner.scan()


def test_resolve_before_scan_is_fatal(environment):
  scanner = Scanner(DeptoolConfig.load(path=environment))

  with pytest.raises(ModulePathError):
    scanner.resolve()
  with pytest.raises(DeptoolError):
    scanner.list_dependencies()


def test_missing_syntax_dump_is_fatal(environment):
  (environment / "site" / "role" / "manifests" / "extra.pp").write_text("class role::extra {}", encoding="utf-8")

  with pytest.raises(DeptoolError) as excinfo:
    run(environment)

  assert "No syntax tree dump" in str(excinfo.value)


def test_unsupported_shape_aborts_scan(environment, trees, pp):
  bad = pp.node("ResourceExpression", type_name=pp.var("t"), bodies=[])
  trees.manifest(environment / "site" / "profile" / "manifests" / "bad.pp", pp.program(bad))

  with pytest.raises(UnsupportedShapeError) as excinfo:
    run(environment)

  assert excinfo.value.file == "site/profile/manifests/bad.pp"


def test_unknown_kinds_are_summarised(environment, trees, pp):
  odd = pp.node("ApplyExpression", body=pp.node("ApplyExpression", body=pp.node("Nop")))
  trees.manifest(environment / "site" / "profile" / "manifests" / "odd.pp", pp.program(odd))

  scanner, _ = run(environment)

  assert scanner.diagnostics.messages == ["The following unknown syntax node kinds were encountered: ApplyExpression (2)"]


def test_custom_tree_loader(environment, pp):
  """
  Scenario: a loader that ignores dumps and returns an empty program.
  Expectation: the loader is used for every .pp file.
  """
  seen = []

  def loader(path):
    seen.append(path.name)
    return pp.parsed(pp.program(), path=str(path))

  scanner = Scanner(DeptoolConfig.load(path=environment), tree_loader=loader)
  scanner.prepare()
  scanner.scan()

  assert sorted(seen) == ["db.pp", "fragment.pp", "init.pp", "params.pp", "server.pp", "site.pp", "web.pp", "web.pp"]


# --- Warnings ---


@pytest.fixture
def noisy_environment(environment, trees, pp):
  """Adds a missing class, a module without metadata and a control dependency."""
  trees.module(
    "legacy",
    {"manifests/init.pp": pp.program(pp.klass("legacy", pp.call("include", pp.name("profile::web"))))},
    parent=environment / "modules",
    with_metadata=False,
  )
  trees.manifest(
    environment / "site" / "profile" / "manifests" / "db.pp",
    pp.program(pp.klass("profile::db", pp.call("include", pp.name("nosuch")))),
  )
  return environment


def test_warnings_are_surfaced(noisy_environment):
  scanner, result = run(noisy_environment)

  found = scanner.diagnostics.found
  assert MissingMetadataWarning(name="legacy") in found
  assert ControlDependencyWarning(name="legacy") in found
  assert MissingDefinitionWarning(type=Category.CLASS, name="nosuch", source="site/profile/manifests/db.pp") in found
  assert scanner.diagnostics.warnings_encountered
  # Flagged, not removed
  assert result.modules["legacy"] == ["profile"]


def test_known_warnings_round_trip(noisy_environment):
  """
  Scenario: warnings of a run are written as known warnings, then the run is repeated.
  Expectation: the second run surfaces nothing.
  """
  scanner, _ = run(noisy_environment)
  count = scanner.generate_known_warnings()
  known_file = noisy_environment / ".deptool" / "known_warnings"

  assert count == len(scanner.diagnostics.found)
  assert known_file.is_file()

  second, _ = run(noisy_environment)
  assert second.diagnostics.known_count() == count
  assert not second.diagnostics.warnings_encountered


# --- State ---


def test_state_round_trip(environment):
  """
  Scenario: a snapshot is generated, then resolve runs from it.
  Expectation: only the control repo and control modules are rescanned; same result.
  """
  full, full_result = run(environment)
  full.generate_state()
  assert (environment / ".deptool" / "state").is_file()

  scanned = []

  class RecordingScanner(Scanner):
    def scan_module(self, module):
      scanned.append(module.name)
      return super().scan_module(module)

  scanner = RecordingScanner(DeptoolConfig.load(path=environment, use_state=True))
  result = scanner.run()

  assert sorted(scanned) == ["control", "profile", "role"]
  assert result == full_result
  assert not scanner.diagnostics.warnings_encountered


def test_state_rescans_listed_modules(environment):
  full, _ = run(environment)
  full.generate_state()

  scanner = Scanner(
    DeptoolConfig.load(path=environment, use_state=True, scan_modules=["apache"], rescan_listed_modules=True)
  )
  scanner.prepare()

  assert "apache" not in scanner.modules
  assert scanner.context.registry.owner(Category.CLASS, "apache") is None
  scanner.scan()
  assert scanner.context.registry.owner(Category.CLASS, "apache") == "apache"


def test_missing_state_file_scans_everything(environment):
  scanner, result = run(environment, use_state=True)

  assert scanner.diagnostics.messages[0].startswith("State file ")
  assert scanner.diagnostics.messages[0].endswith("does not exist. Scanning all modules.")
  assert result.modules["profile"] == ["apache", "mysql", "stdlib"]


def test_state_without_control_repo_is_fatal(trees, pp):
  path = trees.module("app", {"manifests/init.pp": pp.program(pp.klass("app"))})

  with pytest.raises(DeptoolError) as excinfo:
    run(path, use_state=True)

  assert "no control repository found" in str(excinfo.value)


# --- Separate control repository ---


def test_module_checked_against_control_repo(trees, pp):
  """
  Scenario: a module checkout outside the control repository, analyzed with control_dir.
  Expectation: dependencies come from the control repo's modulepath; sources are relative to it.
  """
  control = trees.control_repo()
  trees.module("ntp", {"manifests/init.pp": pp.program(pp.klass("ntp"))}, parent=control / "modules")
  app = trees.module(
    "app",
    {"manifests/init.pp": pp.program(pp.klass("app", pp.call("include", pp.name("ntp"))))},
    parent=trees.root,
  )

  scanner, result = run(app, control_dir=control)

  assert set(scanner.modules) == {"app", "ntp"}
  assert result.modules == {"app": ["ntp"], "ntp": []}
  assert result.dependencies == ["ntp"]
  assert scanner.modules["app"].dependencies[Category.CLASS]["ntp"] == ["../app/manifests/init.pp"]


def test_module_uses_control_repo_state(environment, trees, pp):
  """
  Scenario: the control repo's snapshot is used while analyzing an outside module.
  Expectation: only the module is rescanned; its references resolve against the snapshot.
  """
  full, _ = run(environment)
  full.generate_state()
  app = trees.module(
    "app",
    {"manifests/init.pp": pp.program(pp.klass("app", pp.call("include", pp.name("apache"))))},
    parent=trees.root,
  )

  scanned = []

  class RecordingScanner(Scanner):
    def scan_module(self, module):
      scanned.append(module.name)
      return super().scan_module(module)

  scanner = RecordingScanner(DeptoolConfig.load(path=app, control_dir=environment, use_state=True))
  result = scanner.run()

  assert scanned == ["app"]
  assert result.modules["app"] == ["apache"]
