"""
Print graph database size and free-tier capacity warnings.

Usage:
  uv run python -m scripts.check_graph
"""

from __future__ import annotations

import asyncio

import httpx

from hybridrag.config import Settings
from hybridrag.rag.graph import Neo4jGraphStore


async def main() -> None:
    async with httpx.AsyncClient(timeout=10.0) as http:
        store = Neo4jGraphStore.from_settings(Settings.from_env(), http=http)
        try:
            stats = await store.database_stats()
        finally:
            await store.close()
    print(f"nodes={stats.node_count:,}")
    print(f"relationships={stats.relationship_count:,}")
    for warning in stats.warnings:
        print(f"WARNING: {warning}")


if __name__ == "__main__":
    asyncio.run(main())
