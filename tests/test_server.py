"""
MCP 工具测试（地理编码和排盘均使用替身）
"""

import json
import os

import pytest
from mcp.server.fastmcp.exceptions import ToolError

import server
from conftest import BEIJING, URUMQI, StubAstrolabe, StubGeocoder


pytestmark = pytest.mark.anyio


@pytest.fixture
def astrolabe(monkeypatch):
    stub = StubAstrolabe()
    monkeypatch.setattr(server, "astrolabe_generator", stub)
    return stub


@pytest.fixture
def use_geocoder(monkeypatch):
    def _use(geocoder):
        monkeypatch.setattr(server, "geocoder", geocoder)
        return geocoder
    return _use


async def test_geocode_location(use_geocoder):
    use_geocoder(StubGeocoder(coordinate=BEIJING))

    data = json.loads(await server._geocode_location_internal("北京"))

    assert data["longitude"] == 116.4
    assert data["latitude"] == 39.9
    assert data["formatted_address"] == "北京市"
    assert "经度 116.4°" in data["message"]


async def test_geocode_location_failure(use_geocoder):
    use_geocoder(StubGeocoder(error="地理编码API调用超时（5.0 秒）"))

    text = await server._geocode_location_internal("北京")

    assert text.startswith("地理编码失败:")
    assert "超时" in text


async def test_geocode_location_missing_argument(use_geocoder):
    geocoder = use_geocoder(StubGeocoder(coordinate=BEIJING))

    text = await server._geocode_location_internal("")

    assert text.startswith("地理编码失败:")
    assert geocoder.calls == []


def test_convert_to_apparent_solar_time():
    data = json.loads(server._convert_to_apparent_solar_time_internal("2024-06-01 12:00:00", 116.4, 39.9))

    assert data["apparent_solar_time"].startswith("2024-06-01 11:47:")
    assert data["longitude_correction_minutes"] == -14.4
    assert data["latitude"] == 39.9


@pytest.mark.parametrize("args", [
    ("2024-06-01", 116.4, None),
    ("", 116.4, None),
    ("2024-06-01 12:00:00", None, None),
    ("2024-06-01 12:00:00", 200.0, None),
    ("2024-06-01 12:00:00", 116.4, 95.0),
])
def test_convert_to_apparent_solar_time_errors(args):
    assert server._convert_to_apparent_solar_time_internal(*args).startswith("真太阳时转换失败:")


async def test_generate_without_location(astrolabe, use_geocoder):
    geocoder = use_geocoder(StubGeocoder(coordinate=BEIJING))

    data = json.loads(await server._generate_astrolabe_internal("2000/08/16", 2, "female"))

    assert astrolabe.calls == [("2000-08-16", 2, "女", "solar", False, "zh-CN")]
    assert data["input_parameters"]["original_birthday"] == "2000/08/16"
    assert data["input_parameters"]["original_birth_time_name"] == "寅时"
    assert data["chart_parameters"] == {"birthday": "2000-08-16", "birth_time": 2}
    assert "location_processing" not in data
    assert geocoder.calls == []


async def test_generate_with_location_adjusts_time(astrolabe, use_geocoder):
    use_geocoder(StubGeocoder(coordinate=URUMQI))

    data = json.loads(await server._generate_astrolabe_internal(
        "2024-06-01", 6, "男", location="乌鲁木齐"
    ))

    assert astrolabe.calls[0][:2] == ("2024-06-01", 5)
    processing = data["location_processing"]
    assert processing["geocode_info"]["longitude"] == 87.6
    assert processing["apparent_time_conversion"]["original_beijing_time"] == "2024-06-01 12:00:00"
    assert processing["apparent_time_conversion"]["adjusted_birth_time_slot"] == 5
    assert processing["adjusted_parameters"]["adjusted_birth_time_name"] == "巳时"


async def test_generate_late_rat_hour_after_adjustment(astrolabe, use_geocoder):
    use_geocoder(StubGeocoder(coordinate=BEIJING))

    data = json.loads(await server._generate_astrolabe_internal(
        "2024-06-01", 0, "男", location="北京"
    ))

    assert astrolabe.calls[0][:2] == ("2024-05-31", 12)
    assert data["location_processing"]["adjusted_parameters"]["adjusted_birth_time"] == 12
    assert data["chart_parameters"] == {"birthday": "2024-06-01", "birth_time": 0}


async def test_generate_geocode_failure_uses_original(astrolabe, use_geocoder):
    use_geocoder(StubGeocoder(error="无法找到地点 \"火星\" 的地理位置信息"))

    data = json.loads(await server._generate_astrolabe_internal(
        "2024-06-01", 6, "男", location="火星"
    ))

    assert astrolabe.calls[0][:2] == ("2024-06-01", 6)
    assert "无法找到地点" in data["location_processing"]["error"]
    assert "geocode_info" not in data["location_processing"]


async def test_generate_lunar_skips_adjustment(astrolabe, use_geocoder):
    geocoder = use_geocoder(StubGeocoder(coordinate=BEIJING))

    data = json.loads(await server._generate_astrolabe_internal(
        "2024-05-01", 6, "女", calendar_type="农历", is_leap_month=True, location="北京"
    ))

    assert astrolabe.calls == [("2024-05-01", 6, "女", "lunar", True, "zh-CN")]
    assert geocoder.calls == []
    assert "农历" in data["location_processing"]["error"]


@pytest.mark.parametrize("kwargs", [
    {"birthday": "", "birth_time": 2, "gender": "男"},
    {"birthday": "2024-6-1", "birth_time": 2, "gender": "男"},
    {"birthday": "2024-06-01", "birth_time": 13, "gender": "男"},
    {"birthday": "2024-06-01", "birth_time": None, "gender": "男"},
    {"birthday": "2024-06-01", "birth_time": 2, "gender": "其他"},
    {"birthday": "2024-06-01", "birth_time": 2, "gender": "男", "calendar_type": "julian"},
    {"birthday": "2024-06-01", "birth_time": 2, "gender": "男", "language": "fr-FR"},
])
async def test_generate_validation_errors(astrolabe, kwargs):
    text = await server._generate_astrolabe_internal(**kwargs)

    assert text.startswith("生成星盘时发生错误:")
    assert astrolabe.calls == []


async def test_call_tool_by_name(use_geocoder):
    use_geocoder(StubGeocoder(coordinate=BEIJING))

    geocode_text = await server.call_tool("geocode_location", {"location": "北京"})
    solar_text = await server.call_tool(
        "convert_to_apparent_solar_time",
        {"beijing_time": "2024-06-01 12:00:00", "longitude": 116.4}
    )

    assert json.loads(geocode_text)["longitude"] == 116.4
    assert json.loads(solar_text)["apparent_solar_time"].startswith("2024-06-01 11:47:")


def test_http_api(monkeypatch):
    from fastapi.testclient import TestClient

    monkeypatch.setattr(server, "geocoder", StubGeocoder(coordinate=BEIJING))
    client = TestClient(server.create_app())

    tools = client.get("/api/tools").json()
    assert set(tools["tools"]) == {"geocode_location", "convert_to_apparent_solar_time", "generate_astrolabe"}

    resp = client.post("/api/call", json={"tool": "geocode_location", "params": {"location": "北京"}}).json()
    assert resp["success"] is True
    assert json.loads(resp["result"])["formatted_address"] == "北京市"

    resp = client.post("/api/call", json={"tool": "unknown", "params": {}}).json()
    assert resp["success"] is False


async def test_mcp_tool_failure_sets_error_flag():
    with pytest.raises(ToolError, match="真太阳时转换失败"):
        await server.mcp.call_tool(
            "convert_to_apparent_solar_time",
            {"beijing_time": "not a time", "longitude": 116.4}
        )


async def test_mcp_geocode_failure_sets_error_flag(use_geocoder):
    use_geocoder(StubGeocoder(error="连接被拒绝"))

    with pytest.raises(ToolError, match="地理编码失败: 连接被拒绝"):
        await server.geocode_location("北京")


async def test_mcp_generate_failure_sets_error_flag(astrolabe):
    with pytest.raises(ToolError, match="生成星盘时发生错误"):
        await server.generate_astrolabe("2024-06-01", 2, "其他")


def test_mcp_convert_success_returns_text():
    text = server.convert_to_apparent_solar_time("2024-06-01 12:00:00", 116.4)
    assert json.loads(text)["apparent_solar_time"].startswith("2024-06-01 11:47:")


async def test_http_call_still_returns_labelled_text(use_geocoder):
    use_geocoder(StubGeocoder(error="连接被拒绝"))

    text = await server.call_tool("geocode_location", {"location": "北京"})

    assert text == "地理编码失败: 连接被拒绝"


def test_load_config_prefers_working_directory(tmp_path, monkeypatch):
    (tmp_path / "config.yaml").write_text(
        "server:\n  port: 9001\ngeocode:\n  timeout: \"3\"\n", encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)

    config, path = server.load_config()

    assert path == str(tmp_path / "config.yaml")
    assert config["server"]["port"] == 9001
    assert server.GeocodeConfig.from_config(config).timeout == 3.0


def test_load_config_falls_back_to_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    (home / ".ziwei-iztro-mcp.yaml").write_text("logging:\n  level: DEBUG\n", encoding="utf-8")
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.setenv("HOME", str(home))

    paths = [p for p in server.config_search_paths() if not p.startswith(os.path.dirname(server.__file__))]
    config, path = server.load_config(paths)

    assert path == str(home / ".ziwei-iztro-mcp.yaml")
    assert config["logging"]["level"] == "DEBUG"


def test_load_config_nothing_found(tmp_path):
    assert server.load_config([str(tmp_path / "missing.yaml")]) == ({}, None)
