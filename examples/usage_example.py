"""
工作流编译器使用示例
"""
from pathlib import Path
import json
import logging

from workflow_compiler import WorkflowCompiler, WorkflowLoader, build_default_registry
from workflow_compiler.exceptions import WorkflowCompilerError


# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

EXAMPLES_DIR = Path(__file__).parent / "workflows"


def example_compile(compiler: WorkflowCompiler, loader: WorkflowLoader) -> str:
    """正向编译示例"""
    print("\n=== 正向编译 ===")

    request = loader.load(EXAMPLES_DIR / "fetch_and_store.yaml")
    result = compiler.compile(request)

    print(f"类名: {result['className']}")
    print(f"绑定: {json.dumps(result['bindings'], ensure_ascii=False)}")
    print(result["wranglerConfig"])
    return result["tsCode"]


def example_branch_and_loop(compiler: WorkflowCompiler, loader: WorkflowLoader):
    """分支与循环示例"""
    print("\n=== 分支与循环 ===")

    request = loader.load(EXAMPLES_DIR / "route_orders.yaml")
    result = compiler.compile(request)
    for warning in result["warnings"]:
        print(f"警告: {warning['message']}")
    print(f"生成 {len(result['tsCode'].splitlines())} 行代码")


def example_templates(compiler: WorkflowCompiler, loader: WorkflowLoader):
    """模板解析示例"""
    print("\n=== 模板解析 ===")

    request = loader.load(EXAMPLES_DIR / "fetch_and_store.yaml")
    request["samples"] = {"n2": {"input": {}, "output": {"status": 200, "body": {"name": "steve", "age": 62}}}}
    resolved = compiler.resolve_node("n4", request)
    print(json.dumps(resolved, ensure_ascii=False, indent=2))


def example_reverse(compiler: WorkflowCompiler, ts_code: str):
    """反向编译示例"""
    print("\n=== 反向编译 ===")

    for span in compiler.parse_structure(ts_code):
        print(f"{span.node_id}: {span.start_line}-{span.end_line}")

    skeleton = compiler.reverse_codegen({"code": ts_code})
    print(f"恢复节点: {[node['id'] for node in skeleton['nodes']]}")


def main():
    """运行所有示例"""
    compiler = WorkflowCompiler(build_default_registry())
    loader = WorkflowLoader()

    try:
        ts_code = example_compile(compiler, loader)
        example_branch_and_loop(compiler, loader)
        example_templates(compiler, loader)
        example_reverse(compiler, ts_code)
    except WorkflowCompilerError as e:
        print(f"编译失败: {json.dumps(e.to_dict(), ensure_ascii=False)}")
        raise


if __name__ == "__main__":
    main()
