"""资源管理协议的本地处理器 (dispatcher) 与远程客户端 (client)。"""
