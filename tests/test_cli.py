"""
Tests for the click command line.
"""

from __future__ import annotations

from click.testing import CliRunner
from rich.console import Console

from storefront.backend.cli import check_deps
from storefront.backend.cli.main import main


class TestSanitizeCommand:
    def test_prints_stored_name(self) -> None:
        result = CliRunner().invoke(main, ["sanitize", "my photo.png", "--owner", "co-a"])

        assert result.exit_code == 0
        assert "my_photo.png" in result.output
        assert "images/co-a/my_photo.png-" in result.output

    def test_requires_a_filename(self) -> None:
        result = CliRunner().invoke(main, ["sanitize"])
        assert result.exit_code != 0

    def test_missing_config_file(self) -> None:
        result = CliRunner().invoke(main, ["--config", "/nonexistent.yaml", "sanitize", "a.png"])
        assert result.exit_code == 2


class TestCheckDeps:
    def test_all_present(self) -> None:
        console = Console(record=True, width=120)
        assert check_deps.main(console) == 0
        assert "All dependencies present" in console.export_text()

    def test_reports_missing_distribution(self, monkeypatch) -> None:
        monkeypatch.setitem(check_deps.PACKAGES, "not_a_real_module_xyz", "not-a-real-dist")
        console = Console(record=True, width=120)

        assert check_deps.main(console) == 1
        assert "not-a-real-dist" in console.export_text()

    def test_missing_packages(self) -> None:
        assert check_deps.missing_packages({"json": "json", "nope_mod_xyz": "nope"}) == ["nope"]
