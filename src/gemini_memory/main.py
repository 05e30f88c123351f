"""
Wiring of the memory components and the command-line entry point.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .config import MemoryConfig
from .core.optimizer import HistoryOptimizer
from .models.gateway import ModelGateway
from .services.cache import EmbeddingCache
from .services.compressor import HistoryCompressor
from .services.embeddings import Embedder
from .services.formatter import TurnFormatter
from .services.indexer import BackgroundIndexer
from .services.retriever import ContextRetriever
from .services.store import JsonFileStore, MemoryStore

logger = logging.getLogger(__name__)

__version__ = "1.0.0"


class MemorySystem:
    """Owns one instance of every memory component."""

    def __init__(
        self,
        config: MemoryConfig,
        store: Optional[MemoryStore] = None,
        gateway: Optional[ModelGateway] = None,
    ):
        self.config = config
        self.gateway = gateway or ModelGateway(
            config.api_keys, backoff_seconds=config.retry_backoff_seconds
        )
        self.store = store or JsonFileStore(config.store_dir)
        self.cache = EmbeddingCache(max_size=config.embedding_cache_size)
        self.embedder = Embedder(self.gateway, self.cache, model_name=config.embedding_model)
        self.indexer = BackgroundIndexer(
            self.embedder,
            self.store,
            batch_size=config.index_batch_size,
            keep_recent=config.max_full_messages,
        )
        self.retriever = ContextRetriever(
            self.embedder, self.store, relevance_floor=config.relevance_floor
        )
        self.optimizer = HistoryOptimizer(
            gateway=self.gateway,
            store=self.store,
            indexer=self.indexer,
            retriever=self.retriever,
            compressor=HistoryCompressor(self.gateway),
            formatter=TurnFormatter(),
            config=config,
        )

    async def start(self) -> None:
        self.gateway.start_usage_reporter(self.config.usage_report_seconds)

    async def shutdown(self) -> None:
        """Finish pending indexing and log the final key usage snapshot."""
        await self.indexer.drain()
        await self.gateway.close()

    async def assemble(self, history_id: str, query: str, model: Optional[str] = None):
        return await self.optimizer.assemble(history_id, query, model)

    def get_status(self) -> Dict[str, Any]:
        return {
            "version": __version__,
            "queue": self.optimizer.get_queue_status(),
            "cache": self.cache.get_stats(),
            "gateway": self.gateway.get_stats(),
        }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gemini-memory", description="Inspect and maintain conversation memory"
    )
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show cache, indexing and API key status")

    index = sub.add_parser("index", help="Force-index a history")
    index.add_argument("history_id")

    assemble = sub.add_parser("assemble", help="Print the assembled context for a query")
    assemble.add_argument("history_id")
    assemble.add_argument("query")
    assemble.add_argument("--model", default=None)

    prune = sub.add_parser("prune", help="Delete old memory entries")
    prune.add_argument("--days", type=int, default=30)

    return parser


async def run_command(system: MemorySystem, args: argparse.Namespace) -> Any:
    await system.start()
    try:
        if args.command == "index":
            return await system.optimizer.force_index_now(args.history_id)
        if args.command == "assemble":
            return await system.assemble(args.history_id, args.query, args.model)
        if args.command == "prune":
            return {"removed": await system.optimizer.prune_memories(args.days)}
        return system.get_status()
    finally:
        await system.shutdown()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    args = build_parser().parse_args(argv)

    try:
        config = MemoryConfig.from_env(args.env_file)
        system = MemorySystem(config)
        result = asyncio.run(run_command(system, args))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return
    except Exception as e:
        logger.error(f"Command {args.command} failed: {e}")
        sys.exit(1)

    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
