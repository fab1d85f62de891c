"""
真太阳时计算模块

北京时间 -> 儒略日 -> 均时差 -> 真太阳时

均时差采用 Jean Meeus《Astronomical Algorithms》中的低精度太阳位置级数，
精度约 0.1 分钟，足以确定出生时辰。

Copyright (c) 2025 Miyang Tech (Zhuhai Hengqin) Co., Ltd.
MIT License
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict

from .errors import ValidationError


# 北京时间基准经度（东八区中央经线）
REFERENCE_LONGITUDE = 120.0

# 每度经度对应的分钟数
MINUTES_PER_DEGREE = 4.0

# J2000.0 历元的儒略日
J2000 = 2451545.0

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class SolarTimeConversion:
    """真太阳时转换结果"""
    beijing_time: str
    longitude: float
    apparent_solar_time: str
    julian_day: float
    longitude_correction_minutes: float
    equation_of_time_minutes: float

    @property
    def correction_minutes(self) -> float:
        return self.longitude_correction_minutes + self.equation_of_time_minutes

    def to_dict(self) -> Dict:
        return {
            "beijing_time": self.beijing_time,
            "longitude": self.longitude,
            "apparent_solar_time": self.apparent_solar_time,
            "julian_day": self.julian_day,
            "longitude_correction_minutes": round(self.longitude_correction_minutes, 4),
            "equation_of_time_minutes": round(self.equation_of_time_minutes, 4),
            "correction_minutes": round(self.correction_minutes, 4)
        }


def parse_beijing_time(value: str) -> datetime:
    """解析 YYYY-MM-DD HH:mm:ss 格式的北京时间"""
    if not isinstance(value, str):
        raise ValidationError("无效的时间格式，应为 YYYY-MM-DD HH:mm:ss")
    try:
        return datetime.strptime(value.strip(), TIME_FORMAT)
    except ValueError:
        raise ValidationError(f"无效的时间格式: {value!r}，应为 YYYY-MM-DD HH:mm:ss")


def format_beijing_time(value: datetime) -> str:
    return value.strftime(TIME_FORMAT)


def julian_day(moment: datetime) -> float:
    """
    计算儒略日（Fliegel–Van Flandern 公式）

    直接使用北京时间的年月日时分秒，不换算到 UTC。
    1、2 月视为上一年的 13、14 月；日内小数部分以正午为起点。
    """
    a = (14 - moment.month) // 12
    y = moment.year + 4800 - a
    m = moment.month + 12 * a - 3

    jdn = (moment.day + (153 * m + 2) // 5 + 365 * y
           + y // 4 - y // 100 + y // 400 - 32045)
    return (jdn + (moment.hour - 12) / 24
            + moment.minute / 1440 + moment.second / 86400)


def equation_of_time(jd: float) -> float:
    """
    计算均时差（分钟）

    正值表示真太阳时快于平太阳时。

    Args:
        jd: 儒略日

    Returns:
        均时差（分钟）
    """
    # 儒略世纪数
    t = (jd - J2000) / 36525.0

    # 平黄赤交角（角秒 -> 弧度）
    epsilon = (84381.406 + t * (-46.836769 + t * (-0.0001831 + t * (
        0.0020034 + t * (-0.000000576 - t * 0.0000000434))))) * math.pi / (180 * 3600)

    # 太阳几何平黄经（度）
    l0 = 280.4664567 + t * (36000.76982779 + t * (0.0003032028 + t * (
        1 / 49931 - t * (t / 15300000 + t / 2000000))))
    l0 = math.radians(l0 % 360)

    # 地球轨道偏心率（系数按儒略世纪）
    e = 0.0167086342 + t * (-0.00004203654 + t * (-0.000000126734 + t * (
        1.444e-10 + t * (-2e-15 + t * 3e-17))))

    # 太阳平近点角（角秒 -> 度）
    m = (1287104.79305 + t * (129596581.0481 + t * (-0.5532 + t * (
        0.000136 - t * 0.00001149)))) / 3600
    m = math.radians(m % 360)

    y = math.tan(epsilon / 2) ** 2

    e_rad = (y * math.sin(2 * l0)
             - 2 * e * math.sin(m)
             + 4 * e * y * math.sin(m) * math.cos(2 * l0)
             - 0.5 * y * y * math.sin(4 * l0)
             - 1.25 * e * e * math.sin(2 * m))

    return MINUTES_PER_DEGREE * math.degrees(e_rad)


def convert_to_apparent_solar_time(beijing_time: str, longitude: float) -> SolarTimeConversion:
    """
    将北京时间转换为指定经度处的真太阳时

    真太阳时 = 北京时间 + (经度 - 120) × 4 分钟 + 均时差

    Args:
        beijing_time: 北京时间，格式 YYYY-MM-DD HH:mm:ss
        longitude: 经度（东经为正，西经为负）

    Returns:
        转换结果，真太阳时同样以 YYYY-MM-DD HH:mm:ss 的本地时间表示

    Raises:
        ValidationError: 时间格式或经度无效
    """
    moment = parse_beijing_time(beijing_time)
    if isinstance(longitude, bool) or not isinstance(longitude, (int, float)) \
            or math.isnan(longitude) or not -180 <= longitude <= 180:
        raise ValidationError(f"经度应在 -180 到 180 之间: {longitude}")

    jd = julian_day(moment)
    eot = equation_of_time(jd)
    longitude_correction = (longitude - REFERENCE_LONGITUDE) * MINUTES_PER_DEGREE

    # 日期进位交给 datetime 处理
    apparent = moment + timedelta(minutes=longitude_correction + eot)

    return SolarTimeConversion(
        beijing_time=format_beijing_time(moment),
        longitude=longitude,
        apparent_solar_time=format_beijing_time(apparent),
        julian_day=jd,
        longitude_correction_minutes=longitude_correction,
        equation_of_time_minutes=eot
    )


def calculate_apparent_solar_time(beijing_time: str, longitude: float) -> str:
    """计算真太阳时，仅返回时间字符串"""
    return convert_to_apparent_solar_time(beijing_time, longitude).apparent_solar_time
