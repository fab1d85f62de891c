"""
MCP 服务器 - 紫微斗数排盘（支持真太阳时校正）

运行方式:
    python3.11 server.py            # stdio 传输（默认）
    python3.11 server.py --http     # HTTP 传输

访问地址（HTTP 模式）:
    MCP 端点: http://localhost:8634/mcp
    工具调用: http://localhost:8634/api/call

Copyright (c) 2025 Miyang Tech (Zhuhai Hengqin) Co., Ltd.
MIT License
"""

import os
import sys
import json
import inspect
import logging
from typing import Optional
import yaml

# 加载环境变量（优先当前工作目录）
from dotenv import find_dotenv, load_dotenv
load_dotenv(find_dotenv(usecwd=True))

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ziwei_tools import (
    AmapGeocoder,
    AstrolabeGenerator,
    GeocodeConfig,
    adjust_birth_time,
    convert_to_apparent_solar_time as convert_solar_time,
    to_chart_slot,
)
from ziwei_tools.errors import ValidationError
from ziwei_tools.time_slot import slot_name, validate_slot
from ziwei_tools.validators import (
    normalize_birthday,
    normalize_calendar_type,
    normalize_gender,
    validate_language,
)


# ==================== 配置加载 ====================

def config_search_paths() -> list:
    """配置文件查找顺序：当前工作目录 > 项目目录 > 用户主目录"""
    return [
        os.path.join(os.getcwd(), "config.yaml"),
        os.path.join(os.path.dirname(os.path.abspath(__file__)), "config.yaml"),
        os.path.join(os.path.expanduser("~"), ".ziwei-iztro-mcp.yaml"),
    ]


def load_config(paths: Optional[list] = None) -> tuple:
    """加载配置文件，返回 (配置, 配置文件路径)"""
    for config_path in paths or config_search_paths():
        if os.path.exists(config_path):
            with open(config_path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}, config_path
    return {}, None


config, config_path = load_config()

# 服务器配置
SERVER_NAME = config.get("server", {}).get("name", "ziwei_iztro-mcpserver")
SERVER_HOST = config.get("server", {}).get("host", "0.0.0.0")
SERVER_PORT = config.get("server", {}).get("port", 8634)
SERVER_TRANSPORT = config.get("server", {}).get("transport", "stdio")

# 日志只写 stderr，stdout 留给 stdio 传输
LOG_LEVEL = config.get("logging", {}).get("level", "INFO")
logging.basicConfig(
    level=getattr(logging, str(LOG_LEVEL).upper(), logging.INFO),
    stream=sys.stderr,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# 创建地理编码器和排盘器
geocoder = AmapGeocoder(GeocodeConfig.from_config(config))
astrolabe_generator = AstrolabeGenerator()


# ==================== MCP 服务器实例 ====================

SERVER_INSTRUCTIONS = (
    "这个工具可以根据用户的生辰信息生成紫微斗数星盘，支持地理编码和真太阳时转换。"
    "需要用户提供生日、出生时辰和性别，可选择提供出生地点进行真太阳时转换。"
)

mcp = FastMCP(SERVER_NAME, instructions=SERVER_INSTRUCTIONS, host=SERVER_HOST, port=SERVER_PORT)


def _dumps(data) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


def _failure(tool_name: str, label: str, error: Exception, raise_error: bool) -> str:
    """工具失败：MCP 调用抛出 ToolError（isError=True），HTTP 调用返回文本"""
    logger.error(f"{tool_name} 失败: {error}")
    text = f"{label}: {str(error)}"
    if raise_error:
        raise ToolError(text) from error
    return text


# ==================== 排盘工具 ====================

@mcp.tool()
async def geocode_location(location: str) -> str:
    """
    将地点名称转换为经纬度坐标

    Args:
        location: 地点名称，如 "安徽省合肥市庐江县金牛镇"

    Returns:
        JSON 文本，包含经度、纬度和标准化地址
    """
    return await _geocode_location_internal(location, raise_error=True)


@mcp.tool()
def convert_to_apparent_solar_time(
    beijing_time: str,
    longitude: float,
    latitude: Optional[float] = None
) -> str:
    """
    将北京时间根据经纬度转换为真太阳时

    Args:
        beijing_time: 北京时间，格式为 YYYY-MM-DD HH:mm:ss
        longitude: 经度（东经为正，西经为负）
        latitude: 纬度（北纬为正，南纬为负，可选参数，不参与计算）

    Returns:
        JSON 文本，包含真太阳时及经度修正、均时差（分钟）
    """
    return _convert_to_apparent_solar_time_internal(beijing_time, longitude, latitude, raise_error=True)


@mcp.tool()
async def generate_astrolabe(
    birthday: str,
    birth_time: int,
    gender: str,
    calendar_type: str = "solar",
    is_leap_month: bool = False,
    language: str = "zh-CN",
    location: Optional[str] = None
) -> str:
    """
    根据用户的生日、性别等信息生成紫微斗数星盘，支持地点参数进行真太阳时转换

    Args:
        birthday: 用户生日，格式为 YYYY-MM-DD 或 YYYY/MM/DD
        birth_time: 出生时辰序号 (0-12)：
                    早子时为0，丑时为1，寅时为2，卯时为3，辰时为4，巳时为5，午时为6，
                    未时为7，申时为8，酉时为9，戌时为10，亥时为11，晚子时为12
        gender: 性别，"男"、"女"、"male" 或 "female"
        calendar_type: 日历类型：阳历(solar/gregorian/阳历)或农历(lunar/阴历/农历)，默认为阳历
        is_leap_month: 是否闰月（仅在农历时有效）
        language: 输出语言：zh-CN、zh-TW、en-US、ja-JP、ko-KR、vi-VN
        location: 出生地点（可选），如 "安徽省合肥市庐江县金牛镇"，
                  提供后将自动进行真太阳时转换（仅阳历生日）

    Returns:
        JSON 文本，包含星盘数据、输入参数和地点处理信息
    """
    return await _generate_astrolabe_internal(
        birthday, birth_time, gender, calendar_type, is_leap_month, language, location,
        raise_error=True
    )


# ==================== 工具内部函数 ====================

async def _geocode_location_internal(location: str, raise_error: bool = False) -> str:
    """地理编码（内部函数）"""
    try:
        if not location:
            raise ValidationError("缺少地点参数，请提供地点名称")

        result = await geocoder.geocode(location)

        return _dumps({
            "location": location,
            "longitude": result.longitude,
            "latitude": result.latitude,
            "formatted_address": result.formatted_address,
            "message": f"地点 \"{location}\" 的坐标为：经度 {result.longitude}°，纬度 {result.latitude}°"
        })

    except Exception as e:
        return _failure("geocode_location", "地理编码失败", e, raise_error)


def _convert_to_apparent_solar_time_internal(
    beijing_time: str,
    longitude: float,
    latitude: Optional[float] = None,
    raise_error: bool = False
) -> str:
    """真太阳时转换（内部函数）"""
    try:
        if not beijing_time:
            raise ValidationError("缺少北京时间参数，请提供时间（格式：YYYY-MM-DD HH:mm:ss）")
        if longitude is None:
            raise ValidationError("缺少经度参数，请提供经度坐标")
        if latitude is not None and not -90 <= latitude <= 90:
            raise ValidationError(f"纬度应在 -90 到 90 之间: {latitude}")

        conversion = convert_solar_time(beijing_time, longitude)

        return _dumps({
            **conversion.to_dict(),
            "latitude": latitude,
            "message": f"北京时间 {conversion.beijing_time} 在经度 {longitude}° 处的真太阳时为：{conversion.apparent_solar_time}"
        })

    except Exception as e:
        return _failure("convert_to_apparent_solar_time", "真太阳时转换失败", e, raise_error)


async def _generate_astrolabe_internal(
    birthday: str,
    birth_time: int,
    gender: str,
    calendar_type: str = "solar",
    is_leap_month: bool = False,
    language: str = "zh-CN",
    location: Optional[str] = None,
    raise_error: bool = False
) -> str:
    """生成星盘（内部函数）"""
    try:
        if birth_time is None:
            raise ValidationError("缺少出生时辰参数，请提供出生时辰（0-12的数字，早子时为0）")

        final_calendar_type = normalize_calendar_type(calendar_type)
        final_gender = normalize_gender(gender)
        final_language = validate_language(language)
        final_birthday = normalize_birthday(birthday, final_calendar_type)
        final_birth_time = validate_slot(birth_time)

        logger.info(
            f"排盘参数: {final_birthday} 时辰 {final_birth_time} {final_gender} "
            f"{final_calendar_type} 闰月={is_leap_month} {final_language} 地点={location}"
        )

        # 处理地点参数和真太阳时转换
        adjustment = None
        location_error = None
        if location and final_calendar_type == "solar":
            adjustment = await adjust_birth_time(final_birthday, final_birth_time, location, geocoder)
            if not adjustment.adjusted:
                location_error = adjustment.error
        elif location:
            location_error = "农历生日不进行真太阳时转换"

        adjusted_birthday = adjustment.adjusted_date if adjustment else final_birthday
        adjusted_birth_time = adjustment.adjusted_slot if adjustment else final_birth_time

        # 生成星盘
        astrolabe = astrolabe_generator.generate(
            adjusted_birthday,
            adjusted_birth_time,
            final_gender,
            final_calendar_type,
            bool(is_leap_month),
            final_language
        )
        chart_birthday, chart_birth_time = to_chart_slot(
            adjusted_birthday, adjusted_birth_time, final_calendar_type
        )

        # 构建返回结果
        result = {
            "astrolabe": astrolabe,
            "input_parameters": {
                "original_birthday": birthday,
                "original_birth_time": final_birth_time,
                "original_birth_time_name": slot_name(final_birth_time),
                "gender": final_gender,
                "calendar_type": final_calendar_type,
                "is_leap_month": bool(is_leap_month),
                "language": final_language,
                "location": location
            },
            "chart_parameters": {
                "birthday": chart_birthday,
                "birth_time": chart_birth_time
            }
        }

        # 如果进行了地点处理，添加相关信息
        if adjustment and adjustment.adjusted:
            result["location_processing"] = {
                "geocode_info": adjustment.coordinate.to_dict(),
                "apparent_time_conversion": adjustment.to_dict(),
                "adjusted_parameters": {
                    "adjusted_birthday": adjustment.adjusted_date,
                    "adjusted_birth_time": adjustment.adjusted_slot,
                    "adjusted_birth_time_name": slot_name(adjustment.adjusted_slot)
                }
            }
        elif location_error:
            result["location_processing"] = {
                "error": location_error,
                "message": "地点处理失败，已使用原始出生时间排盘"
            }

        return _dumps(result)

    except Exception as e:
        return _failure("generate_astrolabe", "生成星盘时发生错误", e, raise_error)


# ==================== 工具调用映射（HTTP 调用用） ====================

TOOL_MAP = {
    "geocode_location": lambda p: _geocode_location_internal(p.get("location", "")),
    "convert_to_apparent_solar_time": lambda p: _convert_to_apparent_solar_time_internal(
        p.get("beijing_time", ""),
        p.get("longitude"),
        p.get("latitude")
    ),
    "generate_astrolabe": lambda p: _generate_astrolabe_internal(
        p.get("birthday", ""),
        p.get("birth_time"),
        p.get("gender", ""),
        p.get("calendar_type", "solar"),
        p.get("is_leap_month", False),
        p.get("language", "zh-CN"),
        p.get("location")
    ),
}


async def call_tool(tool_name: str, params: dict) -> str:
    """按名称调用工具"""
    result = TOOL_MAP[tool_name](params or {})
    if inspect.isawaitable(result):
        result = await result
    return result


# ==================== 运行服务器 ====================

def create_app():
    """创建 HTTP 应用（MCP + 工具调用 API）"""
    from contextlib import asynccontextmanager
    from fastapi import FastAPI, Request
    from fastapi.responses import JSONResponse
    from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
    from pydantic import BaseModel
    import time as time_module

    class ToolCallRequest(BaseModel):
        tool: str
        params: dict = {}

    # MCP Session Manager
    session_manager = StreamableHTTPSessionManager(
        app=mcp._mcp_server,
        json_response=False,
        stateless=True,
    )

    @asynccontextmanager
    async def lifespan(app):
        async with session_manager.run():
            yield

    app = FastAPI(
        title=SERVER_NAME,
        description="紫微斗数排盘 MCP 服务",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan
    )

    # 请求日志中间件
    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        path = request.url.path
        if not (path.startswith("/api") or path == "/mcp"):
            return await call_next(request)

        start_time = time_module.time()
        response = await call_next(request)
        duration_ms = int((time_module.time() - start_time) * 1000)

        client_ip = request.client.host if request.client else None
        logger.info(f"{request.method} {path} {response.status_code} {duration_ms}ms {client_ip}")
        return response

    @app.get("/api/tools")
    async def list_tools():
        """列出所有工具"""
        return JSONResponse({"success": True, "tools": list(TOOL_MAP.keys())})

    @app.post("/api/call")
    async def api_call(data: ToolCallRequest):
        """调用工具 API"""
        if data.tool not in TOOL_MAP:
            return JSONResponse({
                "success": False,
                "error": f"未知工具: {data.tool}"
            })

        try:
            result = await call_tool(data.tool, data.params)
            return JSONResponse({
                "success": True,
                "result": result
            })
        except Exception as e:
            return JSONResponse({
                "success": False,
                "error": str(e)
            })

    # ==================== MCP 路由 ====================

    async def handle_mcp(request: Request):
        """处理 MCP 请求"""
        await session_manager.handle_request(
            request.scope, request.receive, request._send
        )

    app.add_api_route("/mcp", handle_mcp, methods=["GET", "POST", "DELETE"])

    return app


def run_server():
    """运行 HTTP + MCP 服务器"""
    import uvicorn

    app = create_app()

    logger.info(f"{SERVER_NAME} 已启动")
    logger.info(f"MCP 端点: http://localhost:{SERVER_PORT}/mcp")
    logger.info(f"工具调用: http://localhost:{SERVER_PORT}/api/call")

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)


def main():
    if "--http" in sys.argv or SERVER_TRANSPORT == "http":
        run_server()
    else:
        mcp.run()


if __name__ == "__main__":
    main()
