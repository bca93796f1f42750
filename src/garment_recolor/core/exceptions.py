"""项目内使用的自定义异常定义。"""


class RecolorError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(RecolorError):
    """配置不合法时抛出。"""


class ServiceError(RecolorError):
    """外部生成服务返回的失败，消息即服务给出的原始错误描述。"""


class SamplingError(RecolorError):
    """取色坐标无法映射到图像像素时抛出。"""


class BatchRejected(RecolorError):
    """批处理启动前置检查未通过。"""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
