"""
Workflow Graph Compiler CLI
"""
import click
import yaml
import json
import logging
from pathlib import Path

from .config import CompilerSettings
from .core.compiler import WorkflowCompiler
from .core.loader import WorkflowLoader
from .node_types import build_default_registry
from .exceptions import WorkflowCompilerError, GraphValidationError, BindingConflictError


def _fail(error: WorkflowCompilerError):
    """输出编译器错误并以非零状态退出"""
    if isinstance(error, GraphValidationError):
        for item in error.errors:
            click.echo(f"  [{item.code}] {item.message}", err=True)
    elif isinstance(error, BindingConflictError):
        for conflict in error.conflicts:
            click.echo(f"  [ConflictingBindingType] {conflict['message']}", err=True)
    raise click.ClickException(error.message)


def _dump(data, output_format: str) -> str:
    if output_format == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, ensure_ascii=False)


@click.group()
@click.option('--log-level', default=None, help='Logging level (defaults to LOG_LEVEL)')
@click.pass_context
def cli(ctx, log_level):
    """Workflow Graph Compiler CLI"""
    settings = CompilerSettings.from_env()
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    ctx.obj = {
        "settings": settings,
        "compiler": WorkflowCompiler(build_default_registry(), settings),
        "loader": WorkflowLoader()
    }


@cli.command(name="compile")
@click.argument('workflow_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write program text to this file')
@click.option('--wrangler', type=click.Path(dir_okay=False), help='Write deployment manifest to this file')
@click.option('--class-name', default=None, help='Override the generated class name')
@click.option('--json', 'as_json', is_flag=True, help='Print the full compile result as JSON')
@click.pass_context
def compile_workflow(ctx, workflow_file, output, wrangler, class_name, as_json):
    """Compile a workflow file into program text"""
    compiler: WorkflowCompiler = ctx.obj["compiler"]
    try:
        request = ctx.obj["loader"].load(Path(workflow_file))
        if class_name:
            request = {**request, "options": {**(request.get("options") or {}), "className": class_name}}
        result = compiler.compile(request)
    except WorkflowCompilerError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps(result, indent=2, ensure_ascii=False))
    elif output:
        Path(output).write_text(result["tsCode"], encoding="utf-8")
        click.echo(f"Wrote {result['className']} to {output}")
    else:
        click.echo(result["tsCode"], nl=False)

    if wrangler:
        Path(wrangler).write_text(result["wranglerConfig"], encoding="utf-8")
        click.echo(f"Wrote deployment manifest to {wrangler}")

    for warning in result["warnings"]:
        click.echo(f"Warning: {warning['message']}", err=True)


@cli.command()
@click.argument('workflow_file', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def validate(ctx, workflow_file):
    """Validate a workflow file without generating code"""
    try:
        result = ctx.obj["compiler"].validate(ctx.obj["loader"].load(Path(workflow_file)))
    except WorkflowCompilerError as e:
        _fail(e)

    if result["valid"]:
        click.echo("Workflow is valid")
        return
    for error in result["errors"]:
        click.echo(f"  [{error['code']}] {error['message']}", err=True)
    raise click.ClickException(f"Workflow has {len(result['errors'])} error(s)")


@cli.command()
@click.argument('workflow_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--available', type=click.Path(exists=True, dir_okay=False),
              help='YAML/JSON list of bindings that already exist')
@click.pass_context
def bindings(ctx, workflow_file, available):
    """List the bindings a workflow requires"""
    loader: WorkflowLoader = ctx.obj["loader"]
    try:
        workflow = loader.load(Path(workflow_file))
        available_bindings = []
        if available:
            available_bindings = yaml.safe_load(Path(available).read_text(encoding="utf-8")) or []
        result = ctx.obj["compiler"].validate_bindings({
            "workflow": workflow,
            "availableBindings": available_bindings
        })
    except WorkflowCompilerError as e:
        _fail(e)

    click.echo(json.dumps(result, indent=2, ensure_ascii=False))
    if available and not result["valid"]:
        raise click.ClickException(f"{len(result['missing'])} required binding(s) missing")


@cli.command()
@click.argument('workflow_file', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def templates(ctx, workflow_file):
    """Check template references in a workflow file"""
    try:
        result = ctx.obj["compiler"].validate_templates(ctx.obj["loader"].load(Path(workflow_file)))
    except WorkflowCompilerError as e:
        _fail(e)

    for reference in result["references"]:
        click.echo(f"{reference['nodeId']}.{reference['field']}: {reference['expression']}")
    if not result["valid"]:
        for error in result["errors"]:
            click.echo(f"  [{error['nodeId']}.{error['field']}] {error['message']}", err=True)
        raise click.ClickException(f"{len(result['errors'])} template error(s) found")
    click.echo("Templates are valid")


@cli.command()
@click.argument('program_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--format', 'output_format', type=click.Choice(['yaml', 'json']), default='yaml')
@click.pass_context
def reverse(ctx, program_file, output_format):
    """Recover a workflow skeleton from program text"""
    try:
        result = ctx.obj["compiler"].reverse_codegen({"code": Path(program_file).read_text(encoding="utf-8")})
    except WorkflowCompilerError as e:
        _fail(e)

    click.echo(_dump({"workflow": result}, output_format), nl=False)


@cli.command()
@click.argument('program_file', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def spans(ctx, program_file):
    """Show which lines of program text belong to which node"""
    parsed = ctx.obj["compiler"].parse_structure(Path(program_file).read_text(encoding="utf-8"))
    for span in sorted(parsed, key=lambda item: item.start_line):
        click.echo(
            f"{span.start_line:>5}-{span.end_line:<5} {span.node_id} "
            f"({span.node_type}) {span.node_label}"
        )


@cli.command()
@click.option('--host', default=None, help='Host to bind to')
@click.option('--port', default=None, type=int, help='Port to bind to')
@click.option('--reload', is_flag=True, help='Enable auto-reload')
@click.pass_context
def serve(ctx, host, port, reload):
    """Start the API server"""
    import uvicorn

    settings: CompilerSettings = ctx.obj["settings"]
    host = host or settings.api_host
    port = port or settings.api_port
    click.echo(f"Starting API server on {host}:{port}")
    uvicorn.run(
        "workflow_compiler.api:app",
        host=host,
        port=port,
        reload=reload or settings.api_reload
    )


def main():
    """Main entry point"""
    cli()


if __name__ == '__main__':
    main()
