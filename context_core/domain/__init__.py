"""领域层模型与协议。

包含：
- models: ContextResource / ResourceKind / ChatMessage 模型。
- protocol: 资源管理协议的请求、响应与错误码。
- exceptions: 业务异常类型定义。
"""
