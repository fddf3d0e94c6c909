"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在协议层或补全层做统一捕获并转换为错误响应。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "RESOURCE_NOT_FOUND"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 uri、url 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ResourceNotFoundError(BusinessError):
    """uri 在资源表中不存在。"""

    def __init__(self, uri: str):
        super().__init__(code="RESOURCE_NOT_FOUND", message=f"Resource not found: {uri}", http_status=404, uri=uri)


class ResourceUnavailableError(BusinessError):
    """资源存在，但内容无法通过 ContentSource 解析。

    原始异常通过 ``raise ... from`` 挂在 ``__cause__`` 上。
    """

    def __init__(self, uri: str, reason: str):
        super().__init__(
            code="RESOURCE_UNAVAILABLE",
            message=f"Failed to read resource content: {reason}",
            http_status=503,
            uri=uri,
        )


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回错误时使用。"""
