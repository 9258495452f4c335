"""
Ask one question through the full hybrid pipeline and print the cited answer.

Usage:
  uv run python -m scripts.ask "What PPE is required in the lab?"
  uv run python -m scripts.ask "..." --user-id alice --top-k 3 --show-chunks
"""

from __future__ import annotations

import argparse
import asyncio

from hybridrag.api.deps import build_services
from hybridrag.logging_config import setup_logging


async def run(query: str, *, user_id: str, top_k: int, show_chunks: bool = False) -> None:
    services = await build_services()
    try:
        resp = await services.agent.answer(query, user_id=user_id, top_k=top_k)
    finally:
        await services.aclose()

    print(resp.answer)
    print(f"\ncitations={resp.citations}")
    print(f"vector={resp.vector_count} graph={resp.graph_count} rerank_tier={resp.rerank_tier}")
    if show_chunks:
        print("\nchunks:")
        for chunk in resp.chunks:
            meta = ""
            if chunk.rank_meta is not None:
                meta = f" (winner={chunk.rank_meta.winner_strategy}, {chunk.rank_meta.latency_ms:.0f} ms)"
            print(f"- [{chunk.origin.value}] {chunk.id}{meta}: {chunk.text[:120]!r}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Answer a question from a user's documents.")
    parser.add_argument("query", type=str, help="Question to answer")
    parser.add_argument("--user-id", type=str, default="default-user", help="Namespace / graph partition")
    parser.add_argument("--top-k", type=int, default=5, help="Chunks kept after reranking")
    parser.add_argument("--show-chunks", action="store_true", help="Print the reranked chunks")
    parser.add_argument("--log-level", type=str, default=None, help="Override LOG_LEVEL")
    args = parser.parse_args()
    setup_logging(args.log_level)
    asyncio.run(run(args.query, user_id=args.user_id, top_k=max(1, args.top_k), show_chunks=args.show_chunks))


if __name__ == "__main__":
    main()
