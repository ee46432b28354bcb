import pytest

from mrcdemo.config import Config

INI_TEXT = """\
; leading comment
# another comment
top = level

[ipc]
host = 127.0.0.1
port=45678

[fault]
enable = yes
extra_delay_ms = 25

[algo]
gain = 0.6
"""


@pytest.fixture
def ini_path(tmp_path):
    path = tmp_path / "app.ini"
    path.write_text(INI_TEXT, encoding="utf-8")
    return path


def test_load_reads_sections_and_keys(ini_path):
    cfg = Config()
    cfg.load(ini_path)
    assert cfg.get_string("top", "") == "level"
    assert cfg.get_string("ipc.host", "x") == "127.0.0.1"
    assert cfg.get_int("ipc.port", 0) == 45678
    assert cfg.get_bool("fault.enable", False) is True
    assert cfg.get_int("fault.extra_delay_ms", 0) == 25
    assert cfg.get_double("algo.gain", 0.0) == 0.6


def test_keys_are_case_insensitive(ini_path):
    cfg = Config()
    cfg.load(ini_path)
    assert cfg.get_string("IPC.Host", "") == "127.0.0.1"


def test_comment_lines_are_not_keys(ini_path):
    cfg = Config()
    cfg.load(ini_path)
    assert cfg.get_string("; leading comment", "absent") == "absent"


def test_load_replaces_previous_values(ini_path):
    cfg = Config({"only.here": "1"})
    cfg.load(ini_path)
    assert cfg.get_string("only.here", "gone") == "gone"


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config().load(tmp_path / "missing.ini")


def test_empty_config_returns_defaults():
    cfg = Config()
    assert cfg.get_string("ipc.host", "127.0.0.1") == "127.0.0.1"
    assert cfg.get_int("ipc.port", 45678) == 45678
    assert cfg.get_double("algo.gain", 0.5) == 0.5
    assert cfg.get_bool("fault.enable", True) is True


def test_values_from_mapping():
    cfg = Config({"sensor.rate_hz": 200, "fault.enable": True})
    assert cfg.get_int("sensor.rate_hz", 0) == 200
    assert cfg.get_bool("fault.enable", False) is True


@pytest.mark.parametrize("text", ["true", "YES", "on", "1", "7"])
def test_bool_true_spellings(text):
    assert Config({"k": text}).get_bool("k", False) is True


@pytest.mark.parametrize("text", ["false", "No", "OFF", "0"])
def test_bool_false_spellings(text):
    assert Config({"k": text}).get_bool("k", True) is False


def test_invalid_bool_raises():
    with pytest.raises(ValueError):
        Config({"k": "maybe"}).get_bool("k", False)


def test_hex_integer():
    assert Config({"k": "0x10"}).get_int("k", 0) == 16


def test_negative_integer():
    assert Config({"k": "-5"}).get_int("k", 0) == -5


@pytest.mark.parametrize("text", ["abc", "1.5", "", "1_000"])
def test_invalid_int_raises(text):
    with pytest.raises(ValueError):
        Config({"k": text}).get_int("k", 0)


def test_invalid_double_raises():
    with pytest.raises(ValueError):
        Config({"k": "fast"}).get_double("k", 0.0)