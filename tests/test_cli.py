"""End-to-end tests for the py-dep-report command line."""

import json
import logging
import os

import pytest

from depreport import __version__
from depreport.__main__ import main
from depreport.config import KEYS


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Run in an empty directory with no config files, PDR_* variables or leaked log handlers."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in KEYS:
        monkeypatch.delenv("PDR_" + key.upper().replace("-", "_"), raising=False)

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield tmp_path
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def project(tmp_path):
    package = tmp_path / "src" / "myproj"
    package.mkdir(parents=True)
    (package / "__init__.py").write_text("import os\nimport yaml\nfrom . import core\n")
    (package / "core.py").write_text("import json\n")
    return package


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])

    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_csv_to_stdout(project, capsys):
    """Test the default CSV report on stdout."""
    assert main([str(project), "--depth", "1"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "Parent,Package,License"
    assert len(lines) == 2
    parent, package, license_name = lines[1].split(",", 2)
    assert (parent, package) == ("myproj", "yaml")
    assert license_name not in ("", "Unresolved")


def test_json_to_file(project, tmp_path, capsys):
    """Test writing a JSON report to a file."""
    out_file = tmp_path / "report.json"

    assert main([str(project), "-f", "json", "-o", str(out_file), "-d", "1"]) == 0

    entries = json.loads(out_file.read_text())
    assert [(e["parent"], e["package"]) for e in entries] == [("myproj", "yaml")]
    assert f"Output written to: {out_file}" in capsys.readouterr().out


def test_format_from_environment(project, monkeypatch, capsys):
    """Test that PDR_FORMAT selects the output format."""
    monkeypatch.setenv("PDR_FORMAT", "yaml")

    assert main([str(project), "-d", "1"]) == 0
    assert capsys.readouterr().out.startswith("- parent: myproj\n")


def test_unresolvable_root(capsys):
    """Test that a root that cannot be found fails the run."""
    assert main(["no_such_package_for_depreport"]) == 1

    err = capsys.readouterr().err
    assert "could not resolve root package no_such_package_for_depreport" in err
    assert "current directory" in err


def test_json_logs(capsys, isolated):
    """Test that --log-format json emits structured log lines."""
    assert main(["no_such_package_for_depreport", "-l", "json"]) == 1

    record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert record["level"] == "error"
    assert record["logger"] == "depreport.__main__"
    assert os.path.realpath(record["current_directory"]) == os.path.realpath(isolated)


def test_invalid_format(capsys):
    """Test that an unknown output format is rejected before any work."""
    assert main(["myproj", "-f", "xml"]) == 1
    assert "invalid format" in capsys.readouterr().err


def test_no_packages(capsys):
    """Test that at least one package is required."""
    assert main([]) == 1
    assert "expected 1 or more package names" in capsys.readouterr().err


def test_output_cannot_be_opened(project, tmp_path, capsys):
    """Test that an unwritable output path fails before resolution."""
    out_file = tmp_path / "missing" / "report.csv"

    assert main([str(project), "-o", str(out_file)]) == 1
    assert "Could not open output file" in capsys.readouterr().err
