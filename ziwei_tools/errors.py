"""
异常定义

Copyright (c) 2025 Miyang Tech (Zhuhai Hengqin) Co., Ltd.
MIT License
"""


class ZiweiError(Exception):
    """本服务所有异常的基类"""


class ValidationError(ZiweiError, ValueError):
    """输入参数校验失败（时间格式、时辰序号、缺少必填项等）"""


class GeocodeError(ZiweiError):
    """地理编码失败（网络错误、超时、地点无法解析、缺少 API KEY）"""
