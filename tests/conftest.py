"""
测试公共配置

Copyright (c) 2025 Miyang Tech (Zhuhai Hengqin) Co., Ltd.
MIT License
"""

import pytest

from models import GeoCoordinate, GeocodeOutcome
from ziwei_tools.errors import GeocodeError


BEIJING = GeoCoordinate(longitude=116.4, latitude=39.9, formatted_address="北京市")
URUMQI = GeoCoordinate(longitude=87.6, latitude=43.8, formatted_address="新疆维吾尔自治区乌鲁木齐市")
HARBIN = GeoCoordinate(longitude=126.6, latitude=45.8, formatted_address="黑龙江省哈尔滨市")
FUYUAN = GeoCoordinate(longitude=135.0, latitude=48.4, formatted_address="黑龙江省佳木斯市抚远市")


class StubGeocoder:
    """固定返回同一结果的地理编码器"""

    def __init__(self, coordinate: GeoCoordinate = None, error: str = None):
        self.coordinate = coordinate
        self.error = error
        self.calls = []

    async def geocode(self, location: str) -> GeoCoordinate:
        self.calls.append(location)
        if self.error:
            raise GeocodeError(self.error)
        return self.coordinate

    async def lookup(self, location: str) -> GeocodeOutcome:
        self.calls.append(location)
        if self.error:
            return GeocodeOutcome(error=self.error)
        return GeocodeOutcome(coordinate=self.coordinate)


class StubAstrolabe:
    """记录调用参数的排盘器"""

    def __init__(self):
        self.calls = []

    def generate(self, birthday, birth_time, gender, calendar_type="solar",
                 is_leap_month=False, language="zh-CN"):
        self.calls.append((birthday, birth_time, gender, calendar_type, is_leap_month, language))
        return {"solarDate": birthday, "time_index": birth_time, "gender": gender}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def beijing_geocoder():
    return StubGeocoder(coordinate=BEIJING)


@pytest.fixture
def failing_geocoder():
    return StubGeocoder(error="无法找到地点 \"不存在的地方\" 的地理位置信息")
