import pytest

from rebalancer_app import main as main_module
from rebalancer_config import AppConfig


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(main_module, "configure_root_logger", lambda *args, **kwargs: None)
    monkeypatch.delenv("CONFIG_PATH", raising=False)


@pytest.fixture
def allocations_file(tmp_path):
    path = tmp_path / "targets.csv"
    path.write_text("AAPL_US_EQ,0.6\nMSFT_US_EQ,0.4\n")
    return path


def test_default_config_when_no_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert main_module.resolve_config(None) == AppConfig()


def test_explicit_config_must_exist(tmp_path):
    with pytest.raises(FileNotFoundError):
        main_module.resolve_config(str(tmp_path / "missing.yaml"))


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("trading:\n  deadband: 3.0\n")
    monkeypatch.setenv("CONFIG_PATH", str(path))

    assert main_module.resolve_config(None).trading.deadband == 3.0


def test_bad_allocation_file_exits_with_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "targets.csv"
    path.write_text("AAPL_US_EQ,0.5\n")

    assert main_module.main([str(path)]) == 1


@pytest.mark.parametrize("code", [0, 1])
def test_exit_code_comes_from_run(tmp_path, monkeypatch, allocations_file, code):
    monkeypatch.chdir(tmp_path)
    seen = {}

    async def fake_run(config, allocations, preview=False):
        seen["preview"] = preview
        seen["instruments"] = [a.instrument for a in allocations]
        return code

    monkeypatch.setattr(main_module, "run", fake_run)

    assert main_module.main([str(allocations_file), "--preview"]) == code
    assert seen == {"preview": True, "instruments": ["AAPL_US_EQ", "MSFT_US_EQ"]}


def test_unexpected_failure_exits_with_error(tmp_path, monkeypatch, allocations_file):
    monkeypatch.chdir(tmp_path)

    async def broken_run(config, allocations, preview=False):
        raise RuntimeError("boom")

    monkeypatch.setattr(main_module, "run", broken_run)

    assert main_module.main([str(allocations_file)]) == 1
