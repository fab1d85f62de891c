"""
地理编码模块

使用高德地图 Web 服务 API 将地点名称转换为经纬度。
每次调用只请求一次，不自动重试；超时时间由配置决定。

Copyright (c) 2025 Miyang Tech (Zhuhai Hengqin) Co., Ltd.
MIT License
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from models import GeoCoordinate, GeocodeOutcome
from .errors import GeocodeError


logger = logging.getLogger(__name__)

AMAP_GEOCODE_URL = "https://restapi.amap.com/v3/geocode/geo"

MISSING_KEY_MESSAGE = """请配置高德地图API KEY，可通过以下方式之一：
1. 设置环境变量：export AMAP_API_KEY="your_api_key"
2. 在 config.yaml（当前目录）或 ~/.ziwei-iztro-mcp.yaml 中配置：
   geocode:
     api_key: "your_api_key"
3. 申请API KEY：https://console.amap.com/dev/key/app"""


@dataclass(frozen=True)
class GeocodeConfig:
    """地理编码配置"""
    api_key: Optional[str] = None
    timeout: float = 5.0  # 秒
    base_url: str = AMAP_GEOCODE_URL
    provider: str = "amap"

    @classmethod
    def from_config(cls, config: dict) -> "GeocodeConfig":
        """
        从配置字典构建

        优先级：环境变量 > 配置文件
        """
        geocode_config = (config or {}).get("geocode", {}) or {}
        raw_timeout = geocode_config.get("timeout") or 5.0
        try:
            timeout = float(raw_timeout)
        except (TypeError, ValueError):
            raise ValueError(f"geocode.timeout 应为数字（秒）: {raw_timeout!r}")
        # 大于 100 的值按毫秒处理
        if timeout > 100:
            timeout = timeout / 1000
        return cls(
            api_key=os.environ.get("AMAP_API_KEY") or geocode_config.get("api_key") or None,
            timeout=timeout,
            base_url=geocode_config.get("base_url", AMAP_GEOCODE_URL),
            provider=geocode_config.get("provider", "amap"),
        )


class AmapGeocoder:
    """高德地图地理编码客户端"""

    def __init__(self, config: GeocodeConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        if config.provider != "amap":
            raise ValueError(f"不支持的地理编码服务: {config.provider}")
        self.config = config
        self._transport = transport

    async def geocode(self, location: str) -> GeoCoordinate:
        """
        地理编码

        Args:
            location: 地点名称，如 "安徽省合肥市庐江县金牛镇"

        Returns:
            坐标信息

        Raises:
            GeocodeError: 缺少 API KEY、网络失败、超时或地点无法解析
        """
        if not location or not location.strip():
            raise GeocodeError("缺少地点参数，请提供地点名称")
        if not self.config.api_key:
            raise GeocodeError(MISSING_KEY_MESSAGE)

        params = {
            "key": self.config.api_key,
            "address": location.strip(),
            "output": "json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
                resp = await client.get(self.config.base_url, params=params)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException:
            raise GeocodeError(f"地理编码API调用超时（{self.config.timeout} 秒）")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise GeocodeError(f"地理编码API调用失败: {e}")
        except ValueError as e:
            raise GeocodeError(f"地理编码API返回了无法解析的数据: {e}")

        return self._parse_response(location, data)

    def _parse_response(self, location: str, data) -> GeoCoordinate:
        """解析高德返回的 JSON"""
        geocodes = data.get("geocodes") if isinstance(data, dict) else None
        if not isinstance(data, dict) or data.get("status") != "1" or not geocodes:
            info = data.get("info") if isinstance(data, dict) else None
            detail = f"（{info}）" if info and info != "OK" else ""
            raise GeocodeError(f"无法找到地点 \"{location}\" 的地理位置信息{detail}")

        first = geocodes[0] if isinstance(geocodes, list) else None
        if not isinstance(first, dict):
            raise GeocodeError(f"地理编码API返回了无法解析的数据: {first!r}")
        try:
            longitude, latitude = (float(v) for v in first["location"].split(","))
        except (KeyError, AttributeError, TypeError, ValueError):
            raise GeocodeError(f"地点 \"{location}\" 的坐标格式无效: {first.get('location')}")

        if not -180 <= longitude <= 180 or not -90 <= latitude <= 90:
            raise GeocodeError(f"地点 \"{location}\" 的坐标超出范围: {longitude},{latitude}")

        formatted_address = first.get("formatted_address") or location
        # 高德在无结果字段时会返回空列表
        if isinstance(formatted_address, list):
            formatted_address = location

        return GeoCoordinate(
            longitude=longitude,
            latitude=latitude,
            formatted_address=formatted_address
        )

    async def lookup(self, location: str) -> GeocodeOutcome:
        """地理编码，失败时返回带错误信息的结果而不是抛出异常"""
        try:
            coordinate = await self.geocode(location)
        except GeocodeError as e:
            logger.warning(f"地理编码失败 {location!r}: {e}")
            return GeocodeOutcome(error=str(e))
        logger.info(f"地理编码 {location!r} -> {coordinate.longitude},{coordinate.latitude}")
        return GeocodeOutcome(coordinate=coordinate)
