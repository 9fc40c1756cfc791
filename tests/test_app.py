"""Tests for the command-line interface."""

import io
import json
import logging

import pytest
import yaml

from comic_translator.app import run


@pytest.fixture
def cli(tmp_path, capsys):
    """Run CLI commands against a temporary storage root."""
    root = tmp_path / "uploads"
    config_path = tmp_path / "config.yaml"

    def invoke(*argv):
        code = run(["--config", str(config_path), "--root", str(root), *argv])
        out = capsys.readouterr().out
        return code, out

    invoke.root = root
    invoke.config_path = config_path
    return invoke


@pytest.fixture(autouse=True)
def restore_root_level():
    """Undo root log level changes made by the CLI."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)


def write_areas(path, areas):
    """Write an area list as JSON input for the save command."""
    path.write_text(json.dumps(areas, ensure_ascii=False), encoding="utf-8")
    return path


class TestGroupCommands:
    """Tests for group lifecycle commands."""

    def test_create_and_list(self, cli):
        """Test created groups are listed."""
        assert cli("create", "ch1")[0] == 0
        assert cli("create", "ch2")[0] == 0

        code, out = cli("list")

        assert code == 0
        assert out.splitlines() == ["ch1", "ch2"]

    def test_create_duplicate_fails(self, cli):
        """Test a duplicate create exits with an error."""
        cli("create", "ch1")

        code, _ = cli("create", "ch1")

        assert code == 1

    def test_create_invalid_name_fails(self, cli):
        """Test an invalid name exits with an error."""
        code, _ = cli("create", "../evil")

        assert code == 1
        assert not (cli.root.parent / "evil").exists()

    def test_rename(self, cli):
        """Test renaming a group."""
        cli("create", "ch1")

        code, out = cli("rename", "ch1", "chapter1")

        assert code == 0
        assert "Renamed group ch1 to chapter1" in out
        assert cli("list")[1].splitlines() == ["chapter1"]

    def test_delete(self, cli):
        """Test deleting a group."""
        cli("create", "ch1")

        assert cli("delete", "ch1")[0] == 0
        assert cli("list")[1] == ""
        assert cli("delete", "ch1")[0] == 1


class TestAreaCommands:
    """Tests for saving, showing and exporting areas."""

    def test_save_and_show(self, cli, tmp_path):
        """Test areas saved from a file are shown as JSON."""
        areas = [{"x": 10, "y": 20, "width": 30, "height": 40, "original": "你好", "translation": "Hello"}]
        input_path = write_areas(tmp_path / "areas.json", areas)

        assert cli("save", "ch1", "p1.png", "--input", str(input_path))[0] == 0

        code, out = cli("show", "ch1", "p1.png")

        assert code == 0
        assert json.loads(out) == areas

    def test_save_from_stdin(self, cli, monkeypatch):
        """Test areas can be piped in on stdin."""
        payload = '[{"x": 1, "y": 2, "width": 3, "height": 4, "original": "a", "translation": "b"}]'
        monkeypatch.setattr("sys.stdin", io.StringIO(payload))

        assert cli("save", "ch1", "p1.png")[0] == 0
        assert json.loads(cli("show", "ch1", "p1.png")[1])[0]["translation"] == "b"

    def test_save_invalid_json(self, cli, tmp_path):
        """Test malformed input exits with an error and writes nothing."""
        bad = tmp_path / "bad.json"
        bad.write_text("{oops")

        code, _ = cli("save", "ch1", "p1.png", "--input", str(bad))

        assert code == 1
        assert cli("list")[1] == ""

    def test_show_unknown(self, cli):
        """Test showing an unknown file prints an empty array."""
        code, out = cli("show", "nope", "p1.png")

        assert code == 0
        assert json.loads(out) == []

    def test_export_group_to_stdout(self, cli, tmp_path):
        """Test exporting one group prints the report."""
        areas = [{"x": 10, "y": 20, "width": 30, "height": 40, "original": "你好", "translation": "Hello"}]
        cli("save", "ch1", "p1.png", "--input", str(write_areas(tmp_path / "a.json", areas)))

        code, out = cli("export", "ch1")

        assert code == 0
        assert out.startswith("=== 分组 [ch1] ===\n")
        assert "区域 1 [位置: 10px, 20px 尺寸: 30x40]" in out

    def test_export_all_to_file(self, cli, tmp_path):
        """Test exporting every group into a file."""
        areas = [{"x": 0, "y": 0, "width": 1, "height": 1, "original": "o", "translation": "t"}]
        input_path = write_areas(tmp_path / "a.json", areas)
        cli("save", "ch1", "p1.png", "--input", str(input_path))
        cli("save", "ch2", "p1.png", "--input", str(input_path))
        output = tmp_path / "translations.txt"

        assert cli("export", "--output", str(output))[0] == 0

        report = output.read_text(encoding="utf-8")
        assert "=== 分组 [ch1] ===" in report
        assert "=== 分组 [ch2] ===" in report

    def test_export_to_directory(self, cli, tmp_path):
        """Test exporting into a directory uses the configured file name."""
        cli("create", "ch1")
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        assert cli("export", "-o", str(out_dir))[0] == 0

        assert (out_dir / "translations.txt").read_text(encoding="utf-8") == "=== 分组 [ch1] ===\n"

    def test_export_missing_group(self, cli):
        """Test exporting an unknown group exits with an error."""
        assert cli("export", "nope")[0] == 1


class TestFileCommands:
    """Tests for uploading and listing images."""

    def test_upload_and_files(self, cli, tmp_path):
        """Test uploaded images are listed with their area counts."""
        image = tmp_path / "p1.png"
        image.write_bytes(b"\x89PNG")
        areas = [{"x": 0, "y": 0, "width": 1, "height": 1}]
        cli("create", "ch1")

        assert cli("upload", "ch1", str(image))[0] == 0
        cli("save", "ch1", "p1.png", "--input", str(write_areas(tmp_path / "a.json", areas)))

        code, out = cli("files", "ch1")

        assert code == 0
        assert out.splitlines() == ["p1.png\t1"]
        assert (cli.root / "ch1" / "p1.png").read_bytes() == b"\x89PNG"

    def test_upload_to_missing_group(self, cli, tmp_path):
        """Test uploading to an unknown group exits with an error."""
        image = tmp_path / "p1.png"
        image.write_bytes(b"x")

        assert cli("upload", "nope", str(image))[0] == 1


class TestRobustness:
    """Tests for bad configuration and unexpected failures."""

    def test_wrong_type_config_value(self, cli):
        """Test a mistyped config value falls back to its default."""
        cli.config_path.write_text('jsonIndent: "2"\n')

        assert cli("create", "ch1")[0] == 0
        assert cli("list")[1].splitlines() == ["ch1"]

    def test_config_loading_is_logged(self, cli, caplog):
        """Test messages from loading the config are not filtered out."""
        logging.getLogger().setLevel(logging.WARNING)

        cli("list")

        assert "Config file not found" in caplog.text

    def test_log_level_option(self, cli):
        """Test --log-level sets the root logger level."""
        assert cli("--log-level", "DEBUG", "list")[0] == 0

        assert logging.getLogger().level == logging.DEBUG

    def test_unexpected_error_exits_with_error(self, cli, monkeypatch):
        """Test an unexpected exception is reported as exit code 1."""
        def explode(self, name):
            raise RuntimeError("boom")

        monkeypatch.setattr("comic_translator.app.GroupRegistry.create_group", explode)

        assert cli("create", "ch1")[0] == 1


def test_init_config(cli):
    """Test init-config writes the effective configuration."""
    assert cli("init-config")[0] == 0

    data = yaml.safe_load(cli.config_path.read_text())

    assert data["storageRoot"] == str(cli.root)
    assert data["sidecarFilename"] == "translations.json"
