"""
参数校验与规范化

Copyright (c) 2025 Miyang Tech (Zhuhai Hengqin) Co., Ltd.
MIT License
"""

import re
from datetime import datetime

from .errors import ValidationError


GENDER_MAP = {
    "男": "男",
    "女": "女",
    "male": "男",
    "female": "女",
}

CALENDAR_MAP = {
    "solar": "solar",
    "gregorian": "solar",
    "阳历": "solar",
    "lunar": "lunar",
    "阴历": "lunar",
    "农历": "lunar",
}

LANGUAGES = ["zh-CN", "zh-TW", "en-US", "ja-JP", "ko-KR", "vi-VN"]

_DATE_PATTERN = re.compile(r"^\d{4}[-/]\d{2}[-/]\d{2}$")


def normalize_birthday(birthday: str, calendar_type: str = "solar") -> str:
    """
    校验并规范化生日

    接受 YYYY-MM-DD 或 YYYY/MM/DD，统一返回 YYYY-MM-DD。
    阳历日期需是真实存在的日期；农历日期只校验格式。
    """
    if not birthday:
        raise ValidationError("缺少生日参数，请提供生日信息（格式：YYYY-MM-DD）")
    birthday = str(birthday).strip()
    if not _DATE_PATTERN.match(birthday) or ("-" in birthday and "/" in birthday):
        raise ValidationError("生日格式不正确，应为 YYYY-MM-DD 或 YYYY/MM/DD 格式")

    birthday = birthday.replace("/", "-")
    if calendar_type == "solar":
        try:
            datetime.strptime(birthday, "%Y-%m-%d")
        except ValueError:
            raise ValidationError(f"生日不是有效的阳历日期: {birthday}")
    return birthday


def normalize_gender(gender: str) -> str:
    if not gender:
        raise ValidationError("缺少性别参数，请提供性别（\"男\" 或 \"女\"）")
    value = GENDER_MAP.get(str(gender).strip().lower()) or GENDER_MAP.get(str(gender).strip())
    if not value:
        raise ValidationError(f"性别应为 男/女/male/female: {gender}")
    return value


def normalize_calendar_type(calendar_type: str) -> str:
    if not calendar_type:
        return "solar"
    value = CALENDAR_MAP.get(str(calendar_type).strip().lower()) or CALENDAR_MAP.get(str(calendar_type).strip())
    if not value:
        raise ValidationError(f"日历类型应为 solar/lunar/gregorian/阳历/阴历/农历: {calendar_type}")
    return value


def validate_language(language: str) -> str:
    if not language:
        return "zh-CN"
    if language not in LANGUAGES:
        raise ValidationError(f"不支持的语言: {language}，可选值: {', '.join(LANGUAGES)}")
    return language
