"""
编译器配置
"""
import os
from dataclasses import dataclass


DEFAULT_COMPATIBILITY_DATE = "2024-01-01"


@dataclass(frozen=True)
class CompilerSettings:
    """编译器与服务配置"""
    indent: int = 2
    compatibility_date: str = DEFAULT_COMPATIBILITY_DATE
    default_name: str = "workflow"
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False
    api_workers: int = 1

    @classmethod
    def from_env(cls) -> "CompilerSettings":
        """从环境变量读取配置"""
        return cls(
            indent=int(os.getenv("WORKFLOW_COMPILER_INDENT", "2")),
            compatibility_date=os.getenv("WORKFLOW_COMPILER_COMPATIBILITY_DATE", DEFAULT_COMPATIBILITY_DATE),
            default_name=os.getenv("WORKFLOW_COMPILER_DEFAULT_NAME", "workflow"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "8000")),
            api_reload=os.getenv("API_RELOAD", "false").lower() == "true",
            api_workers=int(os.getenv("API_WORKERS", "1"))
        )
