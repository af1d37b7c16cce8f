"""Tests for YAML configuration loading."""

from sony_xm4_mcp.config import SONY_SERVICE_UUID, XM4Config, load_config


def test_defaults():
    cfg = load_config()
    assert cfg == XM4Config()
    assert cfg.device.cycle_modes == ["noiseCancelling", "ambient", "off"]
    assert cfg.session.notification_cooldown_s == 3.0
    assert cfg.session.battery_query == "single"
    assert cfg.discovery.service_uuid == SONY_SERVICE_UUID
    assert cfg.discovery.preferred_channel == 9


def test_missing_file(tmp_path):
    assert load_config(tmp_path / "nope.yaml") == XM4Config()


def test_load_sections(tmp_path):
    path = tmp_path / "xm4.yaml"
    path.write_text(
        "device:\n"
        "  address: \"AC:80:0A:12:34:56\"\n"
        "  channel: 15\n"
        "  cycle_modes: [noiseCancelling, \"off\"]\n"
        "session:\n"
        "  notification_cooldown_s: 5.0\n"
        "  battery_query: dual\n"
        "logging:\n"
        "  level: DEBUG\n"
    )
    cfg = load_config(path)
    assert cfg.device.address == "AC:80:0A:12:34:56"
    assert cfg.device.channel == 15
    assert cfg.device.cycle_modes == ["noiseCancelling", "off"]
    assert cfg.session.notification_cooldown_s == 5.0
    assert cfg.session.battery_query == "dual"
    assert cfg.session.status_step_delay_s == 0.1
    assert cfg.logging.level == "DEBUG"
    assert cfg.discovery.default_channel == 9


def test_unknown_key_ignored(tmp_path):
    path = tmp_path / "xm4.yaml"
    path.write_text("device:\n  colour: blue\n  auto_connect: false\n")
    cfg = load_config(path)
    assert cfg.device.auto_connect is False
    assert not hasattr(cfg.device, "colour")


def test_empty_file(tmp_path):
    path = tmp_path / "xm4.yaml"
    path.write_text("")
    assert load_config(path) == XM4Config()


def test_invalid_yaml_uses_defaults(tmp_path):
    path = tmp_path / "xm4.yaml"
    path.write_text("device: [unclosed\n")
    assert load_config(path) == XM4Config()
