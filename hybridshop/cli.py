"""
hybridshop CLI

Operational commands over the hybrid product repository.

    hybridshop health
    hybridshop search "red leather wallet" --limit 5 --threshold 0.8
    hybridshop similar <product-id>
    hybridshop sync <product-id>
    hybridshop build-similarity
"""

import asyncio
import json
import sys
from contextlib import asynccontextmanager
from typing import List

import click

from hybridshop import __version__
from hybridshop.config import get_current_environment, load_search_weights
from hybridshop.llm import LLMConfig, OllamaCompletionService
from hybridshop.logging_config import configure_logging
from hybridshop.models import Product
from hybridshop.services import KnowledgeGraphService
from hybridshop.storage import (
    DocumentStore,
    DocumentStoreConfig,
    EmbeddingConfig,
    FalkorDBClient,
    FalkorDBConfig,
    GraphStore,
    HybridProductRepository,
    HybridStoreError,
    OllamaEmbeddingProvider,
    VectorStore,
    VectorStoreConfig,
)


def run_async(coro):
    """Run async coroutine and return result."""
    return asyncio.run(coro)


@asynccontextmanager
async def open_repository():
    """Wire and connect the stores for the current environment (HYBRIDSHOP_ENV)."""
    env = get_current_environment()
    documents = DocumentStore(DocumentStoreConfig.from_environment(env))
    vectors = VectorStore(VectorStoreConfig.from_environment(env))
    graph = GraphStore(FalkorDBClient(FalkorDBConfig.from_environment(env)))
    embeddings = OllamaEmbeddingProvider(EmbeddingConfig())

    # close() is a no-op on a store that never connected
    try:
        await documents.connect()
        await documents.ensure_table_exists()
        await vectors.connect()
        await graph.connect()
        yield HybridProductRepository(documents, vectors, graph, embeddings, load_search_weights())
    finally:
        await embeddings.close()
        await graph.close()
        await vectors.close()
        await documents.close()


def _print_products(products: List[Product], output_format: str):
    if output_format == "json":
        click.echo(json.dumps([p.model_dump(mode="json") for p in products], indent=2))
        return

    click.echo("=" * 80)
    click.echo(f"{'ID':<38} {'Name':<30} {'Price':>10}")
    click.echo("=" * 80)
    for p in products:
        click.echo(f"{p.id:<38} {p.name[:30]:<30} {p.price:>10.2f}")
    click.echo("=" * 80)
    click.echo(f"Total: {len(products)} products")


@click.group()
@click.version_option(version=__version__, prog_name="hybridshop")
@click.option("--log-level", default="WARNING", help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines")
def cli(log_level, json_logs):
    """hybridshop - hybrid document/vector/graph product store."""
    configure_logging(log_level, json=json_logs)


@cli.command()
def health():
    """Show per-store health."""
    async def check():
        async with open_repository() as repo:
            return await repo.health_check()

    try:
        status = run_async(check())
    except HybridStoreError as e:
        click.echo(f"Error connecting to stores: {e}", err=True)
        sys.exit(1)

    for store, ok in status.items():
        click.echo(f"{store:<10} {'ok' if ok else 'DOWN'}")
    if not all(status.values()):
        sys.exit(1)


@cli.command()
@click.argument("query")
@click.option("--limit", default=10, show_default=True, help="Maximum results")
@click.option("--threshold", default=0.7, show_default=True, type=click.FloatRange(0.0, 1.0), help="Starting similarity threshold")
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table")
def search(query, limit, threshold, output_format):
    """Semantic search with the adaptive-threshold cascade.

    Example:
        hybridshop search "waterproof hiking boots" --threshold 0.8
    """
    async def run():
        async with open_repository() as repo:
            return await repo.semantic_search(query, limit=limit, threshold=threshold)

    try:
        products = run_async(run())
    except HybridStoreError as e:
        click.echo(f"Search failed: {e}", err=True)
        sys.exit(1)

    if not products:
        click.echo("No matching products.")
        return
    _print_products(products, output_format)


@cli.command()
@click.argument("product_id")
@click.option("--limit", default=10, show_default=True)
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table")
def similar(product_id, limit, output_format):
    """Products similar to PRODUCT_ID (graph first, vectors as fallback)."""
    async def run():
        async with open_repository() as repo:
            return await repo.find_similar_products(product_id, limit=limit)

    try:
        products = run_async(run())
    except HybridStoreError as e:
        click.echo(f"Similarity lookup failed: {e}", err=True)
        sys.exit(1)

    if not products:
        click.echo("No similar products.")
        return
    _print_products(products, output_format)


@cli.command()
@click.argument("product_id")
def sync(product_id):
    """Rewrite the vector and graph copies of PRODUCT_ID from its document."""
    async def run():
        async with open_repository() as repo:
            return await repo.sync_product_to_all_stores(product_id)

    try:
        report = run_async(run())
    except HybridStoreError as e:
        click.echo(f"Sync failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"vector: {'ok' if report.vector_synced else 'FAILED'}")
    click.echo(f"graph:  {'ok' if report.graph_synced else 'FAILED'}")
    for failure in report.failures:
        click.echo(f"  {failure.store}: {failure.error}", err=True)
    if not report.ok:
        sys.exit(1)


@cli.command("build-similarity")
@click.option("--product-id", "product_ids", multiple=True, help="Restrict to these products (repeatable)")
def build_similarity(product_ids):
    """Compute pairwise similarity and write SIMILAR_TO edges."""
    async def run():
        async with open_repository() as repo:
            llm = OllamaCompletionService(LLMConfig())
            service = KnowledgeGraphService(
                repo.graph, repo.vectors, repo.documents, repo.embeddings, llm, repo.weights
            )
            try:
                return await service.build_similarity_graph(list(product_ids) or None)
            finally:
                await llm.close()

    try:
        linked = run_async(run())
    except HybridStoreError as e:
        click.echo(f"Similarity build failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"Created or refreshed {linked} SIMILAR_TO edges")


if __name__ == "__main__":
    cli()
