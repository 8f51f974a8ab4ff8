"""
Tests for the Module Model.
"""

import json

import pytest

from puppet_deptool.core.module import Module, ModuleRecord, is_control_repo, is_module_directory
from puppet_deptool.diagnostics import Diagnostics, MissingMetadataWarning
from puppet_deptool.enums import Category
from puppet_deptool.errors import DeptoolError


def test_name_from_metadata_strips_author(trees):
  path = trees.module("apache_dir", metadata={"name": "puppetlabs-apache", "version": "5.0.0"})
  module = Module(path)

  assert module.name == "apache"
  assert module.author == "puppetlabs"
  assert module.version == "5.0.0"
  assert not module.is_control_repo


def test_name_with_slash_separator(trees):
  module = Module(trees.module("ntp", metadata={"name": "acme/ntp"}))

  assert module.name == "ntp"
  assert module.author == "acme"


def test_name_without_metadata_uses_directory(trees):
  """
  Scenario: a module directory with manifests/ but no metadata.json.
  Expectation: directory name, synthetic metadata, missing_metadata warning.
  """
  module = Module(trees.module("legacy", with_metadata=False))
  diagnostics = Diagnostics()

  assert module.name == "legacy"
  assert module.version == "0.0.1"
  assert module.author == "unknown"

  module.check_metadata(diagnostics)
  assert diagnostics.found == [MissingMetadataWarning(name="legacy")]
  assert diagnostics.messages[0].startswith("Missing metadata file ")


def test_control_repo_name_and_exemption(trees):
  path = trees.control_repo("control-repo")
  module = Module(path)
  diagnostics = Diagnostics()

  assert is_control_repo(path)
  assert module.is_control_repo
  assert module.name == "control-repo"
  module.check_metadata(diagnostics)
  assert diagnostics.found == []


def test_not_a_module(tmp_path):
  (tmp_path / "docs").mkdir()

  assert Module(tmp_path / "docs").name == ""


def test_path_is_required():
  with pytest.raises(DeptoolError):
    Module(None)


def test_corrupt_metadata_is_fatal(trees):
  path = trees.module("broken", with_metadata=False)
  (path / "metadata.json").write_text("{not json", encoding="utf-8")

  with pytest.raises(DeptoolError) as excinfo:
    Module(path).name

  assert "Unable to read metadata file" in str(excinfo.value)


def test_unknown_metadata_keys_are_kept(trees):
  path = trees.module("extra", metadata={"name": "a-extra", "license": "Apache-2.0"})

  assert json.loads(Module(path).metadata.model_dump_json())["license"] == "Apache-2.0"


@pytest.mark.parametrize(
  "name, expected",
  [("apache", True), ("mod_2", True), ("Apache", False), ("2mod", False), ("my-mod", False), (".git", False)],
)
def test_is_module_directory(tmp_path, name, expected):
  (tmp_path / name).mkdir()

  assert is_module_directory(name, tmp_path) is expected


def test_module_directory_must_be_a_directory(tmp_path):
  (tmp_path / "readme").write_text("", encoding="utf-8")

  assert is_module_directory("readme", tmp_path) is False


def test_add_dependency(tmp_path):
  module = Module(tmp_path, name="mod")
  module.add_dependency(Category.CLASS, "::apache", "a.pp")
  module.add_dependency(Category.CLASS, "apache", "b.pp")
  module.add_dependency(Category.CLASS, "apache", "a.pp")

  assert module.dependencies[Category.CLASS] == {"apache": ["a.pp", "b.pp"]}


def test_add_dependency_rejects_definition_only_categories(tmp_path):
  module = Module(tmp_path, name="mod")

  with pytest.raises(ValueError):
    module.add_dependency(Category.DEFINED_TYPE, "x", "a.pp")


def test_settings_variables_are_skipped(tmp_path):
  module = Module(tmp_path, name="mod")
  module.add_dependency(Category.VARIABLE, "::settings::confdir", "a.pp")

  assert module.dependencies[Category.VARIABLE] == {}


def test_record_round_trip(trees):
  module = Module(trees.module("web", metadata={"name": "acme-web", "version": "2.0.0"}))
  module.add_dependency(Category.FUNCTION, "lookup", "web/init.pp")

  record = ModuleRecord.model_validate_json(module.to_record().model_dump_json())
  restored = Module.from_record(record)

  assert record.name == "web"
  assert record.author == "acme"
  assert restored.name == "web"
  assert restored.dependencies[Category.FUNCTION] == {"lookup": ["web/init.pp"]}
  assert restored.is_control_repo is False


def test_record_keeps_version_and_author(trees):
  """
  Scenario: a snapshot record is restored after the module directory is gone.
  Expectation: version and author come from the record.
  """
  path = trees.module("web", metadata={"name": "acme-web", "version": "2.0.0"})
  record = Module(path).to_record()
  (path / "metadata.json").unlink()

  restored = Module.from_record(record)

  assert restored.version == "2.0.0"
  assert restored.author == "acme"
