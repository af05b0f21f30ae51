"""
Workflow Graph Compiler API 主入口
"""
import logging
import uvicorn
from dotenv import load_dotenv

# 加载环境变量
load_dotenv()

from workflow_compiler.config import CompilerSettings

settings = CompilerSettings.from_env()

# 配置日志
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# 导入应用
from workflow_compiler.api import app


if __name__ == "__main__":
    if settings.api_reload:
        # 开发模式
        uvicorn.run(
            "workflow_compiler.api:app",
            host=settings.api_host,
            port=settings.api_port,
            reload=True,
            log_level="info"
        )
    else:
        # 生产模式
        uvicorn.run(
            "workflow_compiler.api:app",
            host=settings.api_host,
            port=settings.api_port,
            workers=settings.api_workers,
            log_level="info"
        )
