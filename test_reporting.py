import hashlib
import json
import pytest
from unittest.mock import MagicMock
from branch_weight import (
    BranchWeightAnalyzer, ConfigResolver, ConfigurationError, MemoryMonitor,
    PerformanceMetrics, ProfilingContext, ProgressReporter, find_config_file,
    generate_manifest, load_config_file,
)


def test_progress_reporter(capsys):
    reporter = ProgressReporter(quiet=False, verbose=True, use_colors=False)
    reporter.stage_start("Attribution", "Collecting commits")
    reporter.info("info message")
    reporter.detail("detail message")
    reporter.warning("careful")
    reporter.success("done")
    elapsed = reporter.stage_complete("Attribution", {"Refs scanned": 3})
    reporter.summary({"Branches ranked": 2})
    reporter.error("boom")

    captured = capsys.readouterr()
    assert "Attribution" in captured.out
    assert "info message" in captured.out
    assert "detail message" in captured.out
    assert "Refs scanned: 3" in captured.out
    assert "BRANCH WEIGHT SUMMARY" in captured.out
    assert "ERROR: boom" in captured.err
    assert elapsed >= 0


def test_quiet_reporter_only_reports_errors(capsys, quiet_reporter):
    quiet_reporter.stage_start("Attribution")
    quiet_reporter.info("hidden")
    quiet_reporter.warning("hidden")
    quiet_reporter.detail("hidden")
    quiet_reporter.summary({"a": 1})
    assert quiet_reporter.create_progress_bar(total=10) is None
    quiet_reporter.error("shown")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "shown" in captured.err


def test_detail_needs_verbose(capsys):
    ProgressReporter(use_colors=False).detail("per-commit line")
    assert capsys.readouterr().out == ""


def test_progress_bar_created():
    bar = ProgressReporter(use_colors=False).create_progress_bar(total=2, desc="Estimating")
    assert bar.total == 2
    bar.close()


def test_memory_monitor(monkeypatch):
    mock_psutil = MagicMock()
    mock_psutil.Process.return_value.memory_info.return_value.rss = 100 * 1024 * 1024
    monkeypatch.setattr("branch_weight.psutil", mock_psutil)

    mm = MemoryMonitor()
    assert mm.check_memory() == 100.0
    assert mm.get_peak() == 100.0

    mm_limit = MemoryMonitor(limit_mb=50)
    with pytest.raises(MemoryError):
        mm_limit.check_memory()


def test_profiling_context(tmp_path, capsys):
    output = tmp_path / "stats.prof"
    with ProfilingContext(enabled=True, output_path=str(output), top_n=5):
        sum(range(1000))
    assert output.exists()
    assert "PROFILE: top 5 functions by cumulative time" in capsys.readouterr().out

    with ProfilingContext(enabled=False) as ctx:
        pass
    assert ctx.profiler is None


def test_performance_metrics_to_dict():
    metrics = PerformanceMetrics(commits_attributed=4, stage_times={"attribution": 0.12345})
    data = metrics.to_dict()
    assert data["commits_attributed"] == 4
    assert data["stage_times"] == {"attribution": 0.123}
    assert "total_time_seconds" in data


def test_config_loading(tmp_path):
    f = tmp_path / "config.json"
    f.write_text('{"trunk": "develop"}', encoding="utf-8")
    assert load_config_file(str(f)) == {"trunk": "develop"}

    y = tmp_path / "config.yaml"
    y.write_text("jobs: 4\nbinary_coefficients:\n  .png: 0.9\n", encoding="utf-8")
    assert load_config_file(str(y)) == {"jobs": 4, "binary_coefficients": {".png": 0.9}}

    empty = tmp_path / "empty.yml"
    empty.write_text("", encoding="utf-8")
    assert load_config_file(str(empty)) == {}

    with pytest.raises(FileNotFoundError):
        load_config_file(str(tmp_path / "nonexistent.json"))

    bad = tmp_path / "config.txt"
    bad.touch()
    with pytest.raises(ValueError):
        load_config_file(str(bad))

    listing = tmp_path / "list.yaml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config_file(str(listing))


def test_find_config_file(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    assert find_config_file(str(repo)) is None
    (repo / ".branch-weight.json").write_text("{}", encoding="utf-8")
    (repo / ".branch-weight.yaml").write_text("jobs: 2\n", encoding="utf-8")
    assert find_config_file(str(repo)) == str(repo / ".branch-weight.yaml")


def test_config_resolver_precedence(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / ".branch-weight.yml").write_text(
        "preset: uniform\naverage-line-size: 60\njobs: 3\n", encoding="utf-8"
    )

    cr = ConfigResolver({}, None, None, str(repo))
    assert cr.config_path == str(repo / ".branch-weight.yml")
    assert cr.preset_name == "uniform"
    assert cr.get("uniform_binary") is True
    assert cr.get("average_line_size") == 60

    # CLI > config > preset > default
    cr = ConfigResolver({"jobs": 8, "quiet": None}, None, "extension", str(repo))
    assert cr.get("jobs") == 8
    assert cr.get("uniform_binary") is False
    assert cr.get("quiet", False) is False
    assert cr.get("missing", "fallback") == "fallback"


def test_config_resolver_errors(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / ".branch-weight.json").write_text("{broken", encoding="utf-8")

    cr = ConfigResolver({}, None, None, str(repo))
    assert cr.config == {}
    assert cr.warnings and "failed to load" in cr.warnings[0]

    with pytest.raises(ConfigurationError):
        ConfigResolver({}, str(repo / ".branch-weight.json"), None, str(repo))
    with pytest.raises(ConfigurationError, match="Unknown preset"):
        ConfigResolver({}, None, "fastest", str(repo))


def test_generate_manifest(tmp_path, quiet_reporter):
    (tmp_path / "light.json").write_text("[]", encoding="utf-8")
    analyzer = BranchWeightAnalyzer("/fake/repo", "main", reporter=quiet_reporter)

    manifest = generate_manifest(
        str(tmp_path), analyzer, {"branches_light": "light.json", "gone": "gone.json"}
    )
    on_disk = json.loads((tmp_path / "manifest.json").read_text(encoding="utf-8"))
    assert on_disk == manifest
    assert manifest["trunk"] == "main"
    assert manifest["size_model"]["average_line_size"] == 40
    assert manifest["datasets"] == {
        "branches_light": {
            "file": "light.json",
            "file_size_bytes": 2,
            "sha256": hashlib.sha256(b"[]").hexdigest(),
        }
    }


def test_config_non_string_keys(tmp_path):
    config = tmp_path / "weights.yaml"
    config.write_text("1: x\ntrue: y\njobs: 2\n", encoding="utf-8")
    with pytest.raises(ValueError, match="keys must be strings"):
        load_config_file(str(config))

    repo = tmp_path / "repo"
    repo.mkdir()
    with pytest.raises(ConfigurationError, match="keys must be strings"):
        ConfigResolver({}, str(config), None, str(repo))

    (repo / ".branch-weight.yaml").write_text("1: x\n", encoding="utf-8")
    cr = ConfigResolver({}, None, None, str(repo))
    assert cr.config == {}
    assert "keys must be strings" in cr.warnings[0]
