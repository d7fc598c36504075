import os
import json
import asyncio

from typer import Typer, Option, Argument, Exit, BadParameter
from typing import Annotated, Any, Awaitable, Callable, Optional
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .cache import TTLEmbeddingCache
from .embeddings import EmbeddingProvider, GenAIEmbeddingProvider
from .errors import HybridStoreError
from .filters import supported_filter_syntax
from .logs import configure_logging
from .models import SearchResult
from .store import HybridStore, open_store

app = Typer(help="Hybrid document store: vector, lexical and fused search.")
console = Console()

DbPathOption = Annotated[
    Optional[str],
    Option("--db-path", help="DuckDB file (defaults to $HYBRID_STORE_DB_PATH)."),
]
DimensionsOption = Annotated[
    Optional[int],
    Option("--dimensions", help="Embedding dimensions for the store."),
]
MetricOption = Annotated[
    Optional[str],
    Option("--metric", help="Distance metric: cosine, l2 or inner_product."),
]
FilterOption = Annotated[
    Optional[str],
    Option("--filter", help=f"Metadata filter. {supported_filter_syntax()}"),
]
LimitOption = Annotated[int, Option("--limit", help="Maximum number of results.")]


def build_embedding_provider() -> EmbeddingProvider | None:
    """Return the GenAI provider when credentials are configured."""
    if not os.getenv("GOOGLE_API_KEY"):
        return None
    return GenAIEmbeddingProvider()


def _parse_json(raw: str | None, option: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise BadParameter(f"invalid JSON: {exc}", param_hint=option)


def _with_store(
    action: Callable[[HybridStore], Awaitable[Any]],
    *,
    db_path: str | None,
    dimensions: int | None,
    metric: str | None,
) -> Any:
    async def runner() -> Any:
        store = await open_store(
            db_path=db_path,
            dimensions=dimensions,
            distance_metric=metric,
            embedding_provider=build_embedding_provider(),
            embedding_cache=TTLEmbeddingCache(),
        )
        try:
            return await action(store)
        finally:
            await store.close()

    try:
        return asyncio.run(runner())
    except HybridStoreError as exc:
        console.print(f"[bold red]Error:[/] {escape(str(exc))}")
        raise Exit(code=1)


def _render_results(results: list[SearchResult], *, hybrid: bool) -> None:
    if not results:
        console.print("[yellow]No matching documents.[/]")
        return
    table = Table(title="Search Results", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("ID", style="cyan")
    if hybrid:
        table.add_column("Fused", justify="right")
        table.add_column("Text", justify="right")
        table.add_column("Vector", justify="right")
    else:
        table.add_column("Similarity", justify="right")
    table.add_column("Content")
    table.add_column("Metadata")

    for position, result in enumerate(results, start=1):
        content = result.content or ""
        if len(content) > 80:
            content = content[:77] + "..."
        scores = (
            [f"{result.fused_score:.4f}", f"{result.text_rank:.4f}", f"{result.vector_rank:.4f}"]
            if hybrid
            else [f"{result.similarity:.4f}"]
        )
        table.add_row(
            str(position),
            result.id,
            *scores,
            escape(content),
            escape(json.dumps(result.metadata)) if result.metadata is not None else "",
        )
    console.print(table)


@app.callback()
def main(
    log_level: Annotated[
        Optional[str],
        Option("--log-level", help="Log level (defaults to $HYBRID_STORE_LOG_LEVEL)."),
    ] = None,
) -> None:
    configure_logging(level=log_level)


@app.command()
def stats(
    db_path: DbPathOption = None,
    dimensions: DimensionsOption = None,
    metric: MetricOption = None,
) -> None:
    """Show document count and store configuration."""

    async def action(store: HybridStore):
        return await store.stats()

    result = _with_store(action, db_path=db_path, dimensions=dimensions, metric=metric)
    table = Table(title="Store Stats")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Documents", str(result.total_documents))
    table.add_row("Dimensions", str(result.dimensions))
    table.add_row("Distance metric", result.distance_metric)
    table.add_row("Backend", result.backend)
    console.print(table)


@app.command()
def add(
    content: Annotated[str, Argument(help="Document text.")],
    doc_id: Annotated[Optional[str], Option("--id", help="Explicit document id.")] = None,
    metadata: Annotated[
        Optional[str], Option("--metadata", help="Metadata as a JSON object.")
    ] = None,
    embedding: Annotated[
        Optional[str], Option("--embedding", help="Precomputed embedding as a JSON list.")
    ] = None,
    db_path: DbPathOption = None,
    dimensions: DimensionsOption = None,
    metric: MetricOption = None,
) -> None:
    """Insert one document."""
    document: dict[str, Any] = {"content": content}
    if doc_id is not None:
        document["id"] = doc_id
    if metadata is not None:
        document["metadata"] = _parse_json(metadata, "--metadata")
    if embedding is not None:
        document["embedding"] = _parse_json(embedding, "--embedding")

    async def action(store: HybridStore):
        return await store.insert([document])

    [new_id] = _with_store(action, db_path=db_path, dimensions=dimensions, metric=metric)
    console.print(f"[bold green]Added[/] {escape(new_id)}")


@app.command()
def get(
    doc_id: Annotated[str, Argument(help="Document id.")],
    db_path: DbPathOption = None,
    dimensions: DimensionsOption = None,
    metric: MetricOption = None,
) -> None:
    """Print one document."""

    async def action(store: HybridStore):
        return await store.get(doc_id)

    document = _with_store(action, db_path=db_path, dimensions=dimensions, metric=metric)
    if document is None:
        console.print(f"[bold red]Document not found:[/] {escape(doc_id)}")
        raise Exit(code=1)
    body = (
        f"{escape(document.content)}\n\n"
        f"[bold]Metadata:[/] {escape(json.dumps(document.metadata))}\n"
        f"[bold]Created:[/] {document.created_at}  [bold]Updated:[/] {document.updated_at}"
    )
    console.print(
        Panel(body, title=escape(document.id), title_align="left", border_style="bold cyan")
    )


@app.command()
def delete(
    doc_id: Annotated[str, Argument(help="Document id.")],
    db_path: DbPathOption = None,
    dimensions: DimensionsOption = None,
    metric: MetricOption = None,
) -> None:
    """Delete one document."""

    async def action(store: HybridStore):
        await store.delete(doc_id)

    _with_store(action, db_path=db_path, dimensions=dimensions, metric=metric)
    console.print(f"[bold green]Deleted[/] {escape(doc_id)}")


@app.command()
def search(
    query: Annotated[Optional[str], Argument(help="Query text to embed.")] = None,
    embedding: Annotated[
        Optional[str],
        Option("--embedding", help="Search with a JSON query vector instead of text."),
    ] = None,
    limit: LimitOption = 10,
    threshold: Annotated[
        Optional[float], Option("--threshold", help="Minimum similarity (inclusive).")
    ] = None,
    filter_expr: FilterOption = None,
    db_path: DbPathOption = None,
    dimensions: DimensionsOption = None,
    metric: MetricOption = None,
) -> None:
    """Vector similarity search."""
    if query is None and embedding is None:
        raise BadParameter("provide QUERY or --embedding")
    vector = _parse_json(embedding, "--embedding")

    async def action(store: HybridStore):
        options = {
            "limit": limit,
            "threshold": threshold,
            "filter": filter_expr,
        }
        if vector is not None:
            return await store.search_by_embedding(vector, options)
        return await store.search(query, options)

    results = _with_store(action, db_path=db_path, dimensions=dimensions, metric=metric)
    _render_results(results, hybrid=False)


@app.command()
def hybrid(
    query: Annotated[str, Argument(help="Query text.")],
    limit: LimitOption = 10,
    text_weight: Annotated[float, Option("--text-weight", help="Lexical weight.")] = 0.5,
    vector_weight: Annotated[float, Option("--vector-weight", help="Vector weight.")] = 0.5,
    filter_expr: FilterOption = None,
    db_path: DbPathOption = None,
    dimensions: DimensionsOption = None,
    metric: MetricOption = None,
) -> None:
    """Lexical and vector search fused by weighted score."""

    async def action(store: HybridStore):
        return await store.hybrid_search(
            query,
            {
                "limit": limit,
                "text_weight": text_weight,
                "vector_weight": vector_weight,
                "filter": filter_expr,
            },
        )

    results = _with_store(action, db_path=db_path, dimensions=dimensions, metric=metric)
    _render_results(results, hybrid=True)
