"""
数据模型定义

紫微斗数排盘 MCP 服务中在各模块间传递的数据结构，
每次工具调用时创建，调用结束即丢弃。

Copyright (c) 2025 Miyang Tech (Zhuhai Hengqin) Co., Ltd.
MIT License
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class GeoCoordinate:
    """地理坐标"""
    longitude: float  # 东经为正，西经为负
    latitude: float   # 北纬为正，南纬为负
    formatted_address: str

    def to_dict(self) -> Dict:
        return {
            "longitude": self.longitude,
            "latitude": self.latitude,
            "formatted_address": self.formatted_address
        }


@dataclass(frozen=True)
class GeocodeOutcome:
    """地理编码结果：成功时带坐标，失败时带错误信息"""
    coordinate: Optional[GeoCoordinate] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.coordinate is not None


@dataclass(frozen=True)
class AdjustmentResult:
    """
    出生时间校正结果

    未提供地点或校正失败时，adjusted_* 与 original_* 相同，
    adjusted 为 False，失败原因记录在 error 中。
    """
    original_date: str
    original_slot: int
    adjusted_date: str
    adjusted_slot: int
    location: Optional[str] = None
    coordinate: Optional[GeoCoordinate] = None
    original_beijing_time: Optional[str] = None
    apparent_solar_time: Optional[str] = None
    adjusted: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "original_birthday": self.original_date,
            "original_birth_time_slot": self.original_slot,
            "adjusted_birthday": self.adjusted_date,
            "adjusted_birth_time_slot": self.adjusted_slot,
            "location": self.location,
            "longitude": self.coordinate.longitude if self.coordinate else None,
            "latitude": self.coordinate.latitude if self.coordinate else None,
            "formatted_address": self.coordinate.formatted_address if self.coordinate else None,
            "original_beijing_time": self.original_beijing_time,
            "apparent_solar_time": self.apparent_solar_time,
            "adjusted": self.adjusted,
            "error": self.error
        }
