"""
紫微斗数工具模块

提供地理编码、真太阳时转换、时辰映射和排盘功能

Copyright (c) 2025 Miyang Tech (Zhuhai Hengqin) Co., Ltd.
MIT License
"""

from .adjustment import adjust_birth_time
from .astrolabe import AstrolabeGenerator, to_chart_slot
from .errors import GeocodeError, ValidationError, ZiweiError
from .geocoder import AmapGeocoder, GeocodeConfig
from .solar_time import (
    calculate_apparent_solar_time,
    convert_to_apparent_solar_time,
    equation_of_time,
    julian_day,
)
from .time_slot import SLOT_NAMES, hour_to_slot, slot_to_hour

__all__ = [
    "adjust_birth_time",
    "AstrolabeGenerator",
    "to_chart_slot",
    "GeocodeError",
    "ValidationError",
    "ZiweiError",
    "AmapGeocoder",
    "GeocodeConfig",
    "calculate_apparent_solar_time",
    "convert_to_apparent_solar_time",
    "equation_of_time",
    "julian_day",
    "SLOT_NAMES",
    "hour_to_slot",
    "slot_to_hour",
]
