"""
紫微斗数排盘模块

排盘本身交给 py-iztro（iztro 的 Python 版本）完成，
本模块只负责把内部 13 时辰序号转换为排盘库使用的时辰序号。

Copyright (c) 2025 Miyang Tech (Zhuhai Hengqin) Co., Ltd.
MIT License
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Dict, Tuple

from .errors import ValidationError
from .time_slot import EARLY_RAT_SLOT, LATE_RAT_SLOT, validate_slot


logger = logging.getLogger(__name__)


def to_chart_slot(birthday: str, birth_time: int, calendar_type: str = "solar") -> Tuple[str, int]:
    """
    内部时辰序号 -> 排盘库时辰序号

    排盘库的子时（0）覆盖 23:00-01:00 整段。晚子时属于次日子时，
    所以阳历 (D, 12) 转换为 (D+1, 0)，其余时辰原样传递。
    农历日期不做日期推算，晚子时直接视为参数错误。

    Returns:
        (生日, 时辰序号 0-11)
    """
    birth_time = validate_slot(birth_time)
    if birth_time != LATE_RAT_SLOT:
        return birthday, birth_time

    if calendar_type == "lunar":
        raise ValidationError("农历生日不支持晚子时（12），请改用次日的子时（0）")

    next_day = datetime.strptime(birthday, "%Y-%m-%d") + timedelta(days=1)
    return next_day.strftime("%Y-%m-%d"), EARLY_RAT_SLOT


class AstrolabeGenerator:
    """星盘生成器"""

    def __init__(self):
        self._astro = None

    def _get_astro(self):
        if self._astro is None:
            from py_iztro import Astro
            self._astro = Astro()
        return self._astro

    def generate(
        self,
        birthday: str,
        birth_time: int,
        gender: str,
        calendar_type: str = "solar",
        is_leap_month: bool = False,
        language: str = "zh-CN"
    ) -> Dict:
        """
        生成星盘

        Args:
            birthday: 生日 YYYY-MM-DD（阳历或农历）
            birth_time: 内部时辰序号 0-12
            gender: "男" 或 "女"
            calendar_type: "solar" 或 "lunar"
            is_leap_month: 是否闰月（仅农历有效）
            language: 输出语言

        Returns:
            星盘数据（字典）
        """
        chart_date, chart_slot = to_chart_slot(birthday, birth_time, calendar_type)
        if (chart_date, chart_slot) != (birthday, birth_time):
            logger.info(f"晚子时换日: {birthday} 时辰 {birth_time} -> {chart_date} 时辰 {chart_slot}")

        astro = self._get_astro()
        if calendar_type == "lunar":
            astrolabe = astro.by_lunar(chart_date, chart_slot, gender, is_leap_month, True, language)
        else:
            astrolabe = astro.by_solar(chart_date, chart_slot, gender, True, language)

        return json.loads(astrolabe.model_dump_json(by_alias=True))
