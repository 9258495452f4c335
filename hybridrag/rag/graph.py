"""
Graph branch: similarity-matched node -> document root -> linearized shortest path.

The branch yields at most one chunk. When the similarity index itself is missing,
it degrades to an unranked single-node lookup scoped to the user.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import httpx
from neo4j import AsyncDriver, AsyncGraphDatabase, Auth, basic_auth, bearer_auth

from hybridrag.config import Settings
from hybridrag.errors import ConfigurationError

from .chunk import Chunk, Origin

logger = logging.getLogger(__name__)

VECTOR_INDEX_NAME = "chunkEmbedding"
NODE_LIMIT_FREE_TIER = 200_000
RELATIONSHIP_LIMIT_FREE_TIER = 400_000
NEO4J_OAUTH_TOKEN_URL = "https://api.neo4j.io/oauth/token"
DEFAULT_TOKEN_TTL_S = 3600.0
TOKEN_REFRESH_MARGIN_S = 100.0


@dataclass
class GraphNode:
    """A node returned by the similarity match or the degraded lookup."""

    id: str
    text: str = ""
    score: Optional[float] = None


@dataclass
class GraphRoot:
    """Document root that owns a target node."""

    id: str
    title: str = "Document"


@dataclass
class PathNode:
    """One hop on the root -> target path."""

    label: str
    content: str


@dataclass
class GraphStats:
    """Node/relationship counts with free-tier warnings."""

    node_count: int = 0
    relationship_count: int = 0
    warnings: List[str] = field(default_factory=list)


class GraphStore(Protocol):
    """Protocol for the graph database used by the graph branch."""

    async def match_similar_node(self, vector: Sequence[float], user_id: str) -> Optional[GraphNode]:
        ...

    async def find_root_for(self, node_id: str, user_id: str) -> Optional[GraphRoot]:
        ...

    async def shortest_path(self, root_id: str, node_id: str, user_id: str) -> List[PathNode]:
        ...

    async def find_any_node(self, user_id: str) -> Optional[GraphNode]:
        ...


def _node_label(node: Any) -> str:
    labels = sorted(getattr(node, "labels", ()) or ())
    return labels[0] if labels else "Node"


def _node_content(node: Any) -> str:
    for key in ("text", "title", "name"):
        value = node.get(key)
        if value:
            return str(value)
    return ""


class AuraTokenProvider:
    """
    OAuth client-credentials tokens for Neo4j AuraDB.

    A token is cached until TOKEN_REFRESH_MARGIN_S before it expires. Any failure
    to obtain one returns None so the caller can fall back to username/password.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        http: httpx.AsyncClient,
        token_url: str = NEO4J_OAUTH_TOKEN_URL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.http = http
        self.token_url = token_url
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at = 0.0

    @property
    def expired(self) -> bool:
        return self._token is None or self._clock() >= self._expires_at

    async def get_token(self) -> Optional[str]:
        if not self.expired:
            return self._token
        try:
            response = await self.http.post(
                self.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.warning("Neo4j OAuth token request failed (%s); falling back to username/password", e)
            return None
        if response.status_code >= 400:
            logger.warning(
                "Neo4j OAuth token request failed: %d - %s; falling back to username/password",
                response.status_code,
                response.text[:200],
            )
            return None
        try:
            payload = response.json()
            token = payload["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Neo4j OAuth token response unusable (%s); falling back to username/password", e)
            return None

        expires_in = float(payload.get("expires_in") or DEFAULT_TOKEN_TTL_S)
        self._token = token
        self._expires_at = self._clock() + max(expires_in - TOKEN_REFRESH_MARGIN_S, 0.0)
        logger.info("Neo4j OAuth token obtained (expires in %.0fs)", expires_in)
        return token


class Neo4jGraphStore:
    """
    Neo4j-backed graph store (async driver, pooled across requests).

    The driver is created on first use. With AuraDB OAuth credentials it
    authenticates with a bearer token and is rebuilt once that token expires;
    otherwise, or when no token can be obtained, it uses username/password.
    """

    def __init__(
        self,
        driver: Optional[AsyncDriver] = None,
        database: str = "neo4j",
        index_name: str = VECTOR_INDEX_NAME,
        candidates: int = 10,
        *,
        uri: str = "",
        credentials: Optional[Tuple[str, str]] = None,
        token_provider: Optional[AuraTokenProvider] = None,
    ):
        self.driver = driver
        self.database = database
        self.index_name = index_name
        self.candidates = candidates
        self.uri = uri
        self.credentials = credentials
        self.token_provider = token_provider
        self._uses_token = False
        self._driver_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, http: Optional[httpx.AsyncClient] = None) -> "Neo4jGraphStore":
        """
        Build a store from settings. OAuth is attempted only when an http client
        is supplied to fetch tokens with.
        """
        if not settings.graph_configured:
            raise ConfigurationError(
                "NEO4J_URI plus NEO4J_PASSWORD or NEO4J_CLIENT_ID/NEO4J_CLIENT_SECRET are required for graph search."
            )
        token_provider = None
        if settings.neo4j_oauth_configured and http is not None:
            token_provider = AuraTokenProvider(settings.neo4j_client_id, settings.neo4j_client_secret, http)
        credentials = None
        if settings.neo4j_password:
            credentials = (settings.neo4j_username, settings.neo4j_password)
        if token_provider is None and credentials is None:
            raise ConfigurationError("NEO4J_PASSWORD is required when no OAuth token source is available.")
        return cls(
            database=settings.neo4j_database,
            uri=settings.neo4j_uri,
            credentials=credentials,
            token_provider=token_provider,
        )

    async def resolve_auth(self) -> Auth:
        """Bearer token when one can be obtained, else basic auth."""
        if self.token_provider is not None:
            token = await self.token_provider.get_token()
            if token:
                return bearer_auth(token)
        if self.credentials is not None:
            return basic_auth(*self.credentials)
        raise ConfigurationError(
            "No Neo4j authentication available: set NEO4J_CLIENT_ID/NEO4J_CLIENT_SECRET or NEO4J_PASSWORD."
        )

    async def _get_driver(self) -> AsyncDriver:
        async with self._driver_lock:
            if self.driver is not None and self._uses_token and self.token_provider.expired:
                logger.info("Neo4j OAuth token expired, reconnecting")
                try:
                    await self.driver.close()
                except Exception as e:
                    logger.warning("Error closing expired Neo4j driver: %s", e)
                self.driver = None
            if self.driver is None:
                auth = await self.resolve_auth()
                self.driver = AsyncGraphDatabase.driver(self.uri, auth=auth)
                self._uses_token = auth.scheme == "bearer"
                logger.info("Neo4j driver initialized (%s auth)", auth.scheme)
            return self.driver

    async def _single(self, query: str, **params: Any) -> Optional[Any]:
        driver = await self._get_driver()
        async with driver.session(database=self.database) as session:
            result = await session.run(query, **params)
            return await result.single()

    async def match_similar_node(self, vector: Sequence[float], user_id: str) -> Optional[GraphNode]:
        record = await self._single(
            """
            CALL db.index.vector.queryNodes($indexName, $candidates, $embedding)
            YIELD node, score
            WHERE node.userId = $userId
            RETURN node.id AS targetId, node.text AS targetText, score
            ORDER BY score DESC
            LIMIT 1
            """,
            indexName=self.index_name,
            candidates=self.candidates,
            embedding=list(vector),
            userId=user_id,
        )
        if record is None:
            return None
        return GraphNode(id=str(record["targetId"]), text=record["targetText"] or "", score=record["score"])

    async def find_root_for(self, node_id: str, user_id: str) -> Optional[GraphRoot]:
        record = await self._single(
            """
            MATCH (target:Chunk {id: $targetId})
            MATCH (head:Document)-[*]->(target)
            WHERE head.userId = $userId
            RETURN head.id AS headId, head.title AS headTitle
            LIMIT 1
            """,
            targetId=node_id,
            userId=user_id,
        )
        if record is None:
            return None
        return GraphRoot(id=str(record["headId"]), title=record["headTitle"] or "Document")

    async def shortest_path(self, root_id: str, node_id: str, user_id: str) -> List[PathNode]:
        record = await self._single(
            """
            MATCH path = shortestPath((head:Document {id: $headId})-[*]->(target:Chunk {id: $targetId}))
            WHERE head.userId = $userId
            RETURN path
            LIMIT 1
            """,
            headId=root_id,
            targetId=node_id,
            userId=user_id,
        )
        if record is None:
            return []
        path = record["path"]
        return [PathNode(label=_node_label(n), content=_node_content(n)) for n in path.nodes]

    async def find_any_node(self, user_id: str) -> Optional[GraphNode]:
        record = await self._single(
            """
            MATCH (chunk:Chunk {userId: $userId})
            RETURN chunk.id AS id, chunk.text AS text
            LIMIT 1
            """,
            userId=user_id,
        )
        if record is None:
            return None
        return GraphNode(id=str(record["id"]), text=record["text"] or "")

    async def database_stats(self) -> GraphStats:
        """Count nodes and relationships, warning near the AuraDB free-tier limits."""
        nodes = await self._single("MATCH (n) RETURN count(n) AS count")
        rels = await self._single("MATCH ()-[r]->() RETURN count(r) AS count")
        node_count = int(nodes["count"]) if nodes else 0
        rel_count = int(rels["count"]) if rels else 0
        return GraphStats(
            node_count=node_count,
            relationship_count=rel_count,
            warnings=capacity_warnings(node_count, rel_count),
        )

    async def close(self) -> None:
        if self.driver is not None:
            await self.driver.close()
            self.driver = None


def capacity_warnings(
    node_count: int,
    relationship_count: int,
    node_limit: int = NODE_LIMIT_FREE_TIER,
    relationship_limit: int = RELATIONSHIP_LIMIT_FREE_TIER,
) -> List[str]:
    """Warnings at 90% and 100% of the node/relationship limits."""
    warnings: List[str] = []
    for name, count, limit in (
        ("Node", node_count, node_limit),
        ("Relationship", relationship_count, relationship_limit),
    ):
        if count >= limit:
            warnings.append(f"{name} limit exceeded: {count:,} of {limit:,}")
        elif count >= limit * 0.9:
            warnings.append(f"{name} count ({count:,}) is approaching the limit ({limit:,})")
    return warnings


def linearize_path(root: GraphRoot, nodes: Sequence[PathNode]) -> str:
    """Render 'Document: <title> > Label: content > ...'."""
    path_text = " > ".join(f"{n.label}: {n.content}" for n in nodes)
    return f"Document: {root.title} > {path_text}"


def _is_index_unavailable(error: Exception) -> bool:
    return "index" in str(error).lower()


async def _fallback_search(store: GraphStore, user_id: str) -> List[Chunk]:
    try:
        node = await store.find_any_node(user_id)
    except Exception as e:
        logger.error("Graph fallback lookup failed: %s", e)
        return []
    if node is None:
        return []
    return [Chunk(id=f"graph_{node.id}", text=node.text, origin=Origin.GRAPH)]


async def graph_search(
    store: Optional[GraphStore],
    query_embedding: Sequence[float],
    user_id: str,
) -> List[Chunk]:
    """
    Find the best-matching node, walk to its document root and return the path as one chunk.

    Never raises. If the similarity index is missing, falls back to an unranked
    single-node lookup without path metadata.
    """
    if store is None:
        logger.warning("Graph store not configured, skipping graph search")
        return []

    try:
        target = await store.match_similar_node(query_embedding, user_id)
        if target is None:
            logger.warning("No target node found in graph for user %s", user_id)
            return []

        root = await store.find_root_for(target.id, user_id)
        if root is None:
            logger.warning("No document root found for target %s", target.id)
            return []

        nodes = await store.shortest_path(root.id, target.id, user_id)
        if not nodes:
            logger.warning("No path found between %s and %s", root.id, target.id)
            return []
    except Exception as e:
        if _is_index_unavailable(e):
            logger.warning("Graph similarity index unavailable (%s), using single-node fallback", e)
            return await _fallback_search(store, user_id)
        logger.error("Graph search failed: %s", e)
        return []

    metadata: Dict[str, Any] = {
        "root_id": root.id,
        "target_id": target.id,
        "path_length": max(len(nodes) - 1, 0),
    }
    chunk = Chunk(
        id=f"graph_{root.id}_{target.id}",
        text=linearize_path(root, nodes),
        origin=Origin.GRAPH,
        score=target.score,
        metadata=metadata,
    )
    logger.info("Graph search returned 1 path chunk (%d hops)", metadata["path_length"])
    return [chunk]
