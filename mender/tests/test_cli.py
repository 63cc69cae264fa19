import json

from mender import cli


def test_help_and_unknown_commands(capsys):
    assert cli.main(["help"]) == 0
    assert cli.main(["deploy"]) == 2

    assert "Unknown command: deploy" in capsys.readouterr().err


def test_list_prints_managed_tests(tmp_path, capsys):
    (tmp_path / "test_login.py").write_text("async def test_login(page):\n    # Step 1: Go\n    pass\n")
    (tmp_path / "test_other.py").write_text("def test_other():\n    pass\n")

    assert cli.main(["list", str(tmp_path)]) == 0

    out = capsys.readouterr().out
    assert "test_login.py" in out
    assert "test_other.py" not in out


def test_run_without_tests_writes_empty_summary(tmp_path):
    output = tmp_path / "out.json"

    code = cli.main(["run", str(tmp_path), "--output", str(output)])

    assert code == 0
    summary = json.loads(output.read_text(encoding="utf-8"))
    assert summary["test_count"] == 0
    assert summary["status"] == "success"


def test_app_config_applies_overrides(tmp_path):
    config_file = tmp_path / "playwright.json"
    config_file.write_text('{"browserType": "webkit"}', encoding="utf-8")
    args = cli._build_run_parser().parse_args(
        [str(tmp_path), "--playwright-config", str(config_file), "--headed", "--deflake-runs", "-3", "--max-workers", "5"]
    )

    config = cli._app_config(args)

    assert config.browser.browser_type == "webkit"
    assert config.browser.headless is False
    assert config.repair.deflake_run_count == 0
    assert config.pool.max_workers == 5
