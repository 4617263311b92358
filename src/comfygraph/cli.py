import asyncio
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .client import ComfyApiClient
from .errors import ComfyGraphError
from .graph import Graph
from .runner import prompt_for_image
from .schema import NodeTypeSchema, parse_schema_response
from .storage import dump_document, load_document, save_document
from .validator import validate_graph
from .visualize import ascii_plan
from .workflow import convert_workflow_to_graph, parse_workflow

app = typer.Typer(no_args_is_help=True, help="comfy-graph CLI — build, convert and queue prompt graphs")

@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging.")):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format="%(message)s", handlers=[RichHandler(console=Console(stderr=True), show_path=False)])

@contextmanager
def _reported_errors():
    try:
        yield
    except ComfyGraphError as e:
        rprint(Panel.fit(f"[bold red]{type(e).__name__}[/]: {escape(str(e))}"))
        raise typer.Exit(code=1)

def _load_schemas(path: Optional[Path]) -> Optional[Dict[str, NodeTypeSchema]]:
    if path is None:
        return None
    return parse_schema_response(load_document(path))

def _load_graph(file: Path, schemas: Optional[Dict[str, NodeTypeSchema]]) -> Graph:
    """Load either an editor workflow (nodes + links) or an API prompt."""
    data = load_document(file)
    if isinstance(data, dict) and "nodes" in data and "links" in data:
        return convert_workflow_to_graph(parse_workflow(data), schemas or {})
    return Graph.from_api_prompt(data)

@app.command()
def convert(workflow: Path,
            object_info: Path = typer.Argument(..., help="Saved /object_info response (JSON or YAML)."),
            out: Optional[Path] = typer.Option(None, help="Write the API prompt here (.json/.yaml) instead of stdout."),
    ):
    """Convert an editor workflow into an API prompt."""
    with _reported_errors():
        graph = convert_workflow_to_graph(parse_workflow(load_document(workflow)), _load_schemas(object_info))
        prompt = graph.to_api_prompt()
    if out is None:
        print(dump_document(prompt))
        return
    save_document(prompt, out)
    rprint(Panel.fit(f"Saved [bold]{len(graph)}[/] nodes to [cyan]{out}[/]"))

@app.command()
def validate(file: Path,
             object_info: Optional[Path] = typer.Argument(None, help="Saved /object_info response.")):
    """Validate a workflow or API prompt (references, sockets, cycles)."""
    with _reported_errors():
        schemas = _load_schemas(object_info)
        ok, messages = validate_graph(_load_graph(file, schemas), schemas)
    table = Table(title="Validation Report", show_lines=True)
    table.add_column("Status", justify="center", style="bold")
    table.add_column("Message")
    for m in messages:
        status = "OK" if m.startswith("OK:") else "ERR"
        table.add_row(status, m)
    rprint(table)
    if not ok:
        raise typer.Exit(code=1)

@app.command()
def explain(file: Path,
            object_info: Optional[Path] = typer.Argument(None, help="Saved /object_info response.")):
    """Print an ASCII plan of the prompt graph."""
    with _reported_errors():
        print(ascii_plan(_load_graph(file, _load_schemas(object_info))))

@app.command("object-info")
def object_info(host: Optional[str] = typer.Option(None, help="Server host:port."),
                out: Optional[Path] = typer.Option(None, help="Write the raw response here.")):
    """Fetch the node type schemas from a server."""
    with _reported_errors():
        raw = asyncio.run(ComfyApiClient(host).get_object_info_raw())
    if out is None:
        print(dump_document(raw))
        return
    save_document(raw, out)
    rprint(Panel.fit(f"Saved [bold]{len(raw)}[/] node types to [cyan]{out}[/]"))

@app.command()
def queue(file: Path,
          object_info: Optional[Path] = typer.Option(None, help="Saved /object_info, needed for workflows."),
          host: Optional[str] = typer.Option(None, help="Server host:port."),
          image_node: Optional[str] = typer.Option(None, help="Wait for the image sent by this node."),
          output: Path = typer.Option(Path("output.png"), help="Where to save the received image.")):
    """Queue a workflow or API prompt on a server."""
    async def _run() -> None:
        graph = _load_graph(file, _load_schemas(object_info))
        client = ComfyApiClient(host)
        if image_node is None:
            response = await client.queue_prompt(graph)
            rprint(Panel.fit(f"Queued prompt [bold]{response.prompt_id}[/] (#{response.number})"))
            return
        async with client:
            await client.wait_ready()
            data = await prompt_for_image(client, graph, image_node)
        output.write_bytes(data)
        rprint(Panel.fit(f"Saved [bold]{len(data)}[/] bytes to [cyan]{output}[/]"))

    with _reported_errors():
        asyncio.run(_run())

if __name__ == "__main__":
    app()
