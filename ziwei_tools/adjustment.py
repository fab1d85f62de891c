"""
出生时间真太阳时校正

生日 + 时辰 + 出生地点 -> 校正后的生日 + 时辰

地点缺失时原样返回；地理编码或时间换算失败时回退到原始值，
并在结果中记录失败原因，不中断排盘。

Copyright (c) 2025 Miyang Tech (Zhuhai Hengqin) Co., Ltd.
MIT License
"""

import logging
from dataclasses import replace
from typing import Optional

from models import AdjustmentResult
from .errors import ValidationError
from .solar_time import convert_to_apparent_solar_time, parse_beijing_time
from .time_slot import hour_to_slot, slot_to_hour, validate_slot
from .validators import normalize_birthday


logger = logging.getLogger(__name__)


async def adjust_birth_time(
    birthday: str,
    birth_time: int,
    location: Optional[str],
    geocoder
) -> AdjustmentResult:
    """
    根据出生地点对生日和时辰做真太阳时校正

    Args:
        birthday: 阳历生日 YYYY-MM-DD
        birth_time: 时辰序号 0-12
        location: 出生地点，为空时不做校正
        geocoder: 提供 async lookup(location) -> GeocodeOutcome 的地理编码器

    Returns:
        校正结果

    Raises:
        ValidationError: 生日或时辰参数无效
    """
    birthday = normalize_birthday(birthday)
    birth_time = validate_slot(birth_time)

    unadjusted = AdjustmentResult(
        original_date=birthday,
        original_slot=birth_time,
        adjusted_date=birthday,
        adjusted_slot=birth_time,
        location=location or None
    )

    if not location or not location.strip():
        return unadjusted

    outcome = await geocoder.lookup(location)
    if not outcome.ok:
        logger.warning(f"地点处理失败，使用原始时间: {outcome.error}")
        return replace(unadjusted, error=outcome.error)

    coordinate = outcome.coordinate
    beijing_time = f"{birthday} {slot_to_hour(birth_time):02d}:00:00"

    try:
        conversion = convert_to_apparent_solar_time(beijing_time, coordinate.longitude)
    except (ValidationError, OverflowError) as e:
        logger.warning(f"真太阳时计算失败，使用原始时间: {e}")
        return replace(unadjusted, error=f"真太阳时计算失败: {e}")

    apparent = parse_beijing_time(conversion.apparent_solar_time)
    result = AdjustmentResult(
        original_date=birthday,
        original_slot=birth_time,
        adjusted_date=apparent.strftime("%Y-%m-%d"),
        adjusted_slot=hour_to_slot(apparent.hour),
        location=location,
        coordinate=coordinate,
        original_beijing_time=beijing_time,
        apparent_solar_time=conversion.apparent_solar_time,
        adjusted=True
    )
    logger.info(
        f"真太阳时校正: {beijing_time} -> {conversion.apparent_solar_time} "
        f"(时辰 {birth_time} -> {result.adjusted_slot})"
    )
    return result
