"""
时辰映射模块

本服务内部统一使用 13 时辰序号（子时分早晚）：

    0  早子时  00:00-01:00
    1  丑时    01:00-03:00
    2  寅时    03:00-05:00
    ...
    11 亥时    21:00-23:00
    12 晚子时  23:00-00:00

Copyright (c) 2025 Miyang Tech (Zhuhai Hengqin) Co., Ltd.
MIT License
"""

from .errors import ValidationError


SLOT_NAMES = [
    "早子时", "丑时", "寅时", "卯时", "辰时", "巳时", "午时",
    "未时", "申时", "酉时", "戌时", "亥时", "晚子时",
]

# 时辰对应的代表时刻（整点），早子时取 0 点，晚子时取 23 点
SLOT_HOURS = [0, 2, 4, 6, 8, 10, 12, 14, 16, 18, 20, 22, 23]

EARLY_RAT_SLOT = 0
LATE_RAT_SLOT = 12


def hour_to_slot(hour: int) -> int:
    """将小时（0-23）转换为时辰序号（0-12）"""
    if hour == 0:
        return EARLY_RAT_SLOT
    if hour == 23:
        return LATE_RAT_SLOT
    return (hour + 1) // 2


def slot_to_hour(slot: int) -> int:
    """时辰序号对应的代表小时"""
    return SLOT_HOURS[validate_slot(slot)]


def slot_name(slot: int) -> str:
    return SLOT_NAMES[validate_slot(slot)]


def validate_slot(slot) -> int:
    """校验时辰序号，返回整数序号"""
    if isinstance(slot, bool):
        raise ValidationError(f"出生时辰应为 0-12 的整数: {slot}")
    if isinstance(slot, float) and slot.is_integer():
        slot = int(slot)
    if not isinstance(slot, int) or not 0 <= slot <= LATE_RAT_SLOT:
        raise ValidationError(
            f"出生时辰应在 0-12 之间（早子时为 0，丑时为 1，以此类推，晚子时为 12）: {slot}"
        )
    return slot
