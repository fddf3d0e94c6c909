"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
各组件通过构造函数显式接收 settings，模块级的 ``settings`` 实例只作为默认值使用。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CONTEXT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class ContextSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 补全服务 ----
    llm_base_url: str = Field(
        default="http://localhost:11434",
        description="chat-completion 服务的基础URL，请求路径为 {base}/v1/chat/completions",
    )
    llm_model: str = Field(default="qwen:7b", description="请求体中的 model 字段")
    llm_api_key: Optional[str] = Field(default=None, description="Bearer token，未配置则不发送认证头")

    # ---- HTTP 超时（秒）----
    connect_timeout: float = Field(default=30.0, ge=1.0, description="连接超时")
    write_timeout: float = Field(default=30.0, ge=1.0, description="写超时")
    read_timeout: float = Field(default=300.0, ge=1.0, description="补全读超时，流式响应需要较长时间")
    remote_read_timeout: float = Field(default=120.0, ge=1.0, description="远程协议调用读超时")

    # ---- 远程协议 ----
    remote_max_workers: Optional[int] = Field(
        default=None,
        ge=1,
        description="批量拉取资源时的并发上限，为空表示每个 uri 一个线程",
    )

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    workspace_root: str = Field(
        default_factory=lambda: str(Path.cwd()),
        description="项目根目录，相对路径的资源以此为基准",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("llm_api_key")
    @classmethod
    def normalize_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("llm_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = ContextSettings()

Settings = ContextSettings
