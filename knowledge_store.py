"""
knowledge_store.py

In-process vector store for the knowledge base.

Named collections of documents, each backed by a FAISS flat inner-product
index over L2-normalized embeddings (cosine similarity). Nothing is written
to disk; the store lives as long as the process.

Adapted from utils/faiss_builder.py (single-index mode, no persistence).

Usage:
    store = KnowledgeStore(embedding_function=embed)
    collection = store.get_or_create_collection("knowledge")

    doc = collection.add_document("FAISS is a similarity search library",
                                  metadata={"source": "user_input"})
    results = collection.search("what is faiss?", top_k=3)
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np
import faiss

from errors import StoreError
import config

logger = logging.getLogger(__name__)

EmbeddingFunction = Callable[[List[str]], List[List[float]]]


@dataclass
class Document:
    """Stored unit of text with its identifier and metadata."""
    id: str
    content: str
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class SearchResult:
    """Single search result with cosine score."""
    document: Document
    score: float


class Collection:
    """
    Named group of documents with a FAISS index.

    Document IDs come from a per-collection counter that is read and
    incremented under the same lock as the index append, so concurrent
    writers never receive the same ID.
    """

    def __init__(
        self,
        name: str,
        embedding_function: EmbeddingFunction,
        id_prefix: str = config.DOCUMENT_ID_PREFIX
    ):
        self.name = name
        self.embedding_function = embedding_function
        self.id_prefix = id_prefix

        self._lock = threading.Lock()
        self._index: Optional[faiss.Index] = None  # created on first add, when the dimension is known
        self._documents: List[Document] = []
        self._ids = set()
        self._next_id = 0

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def _embed(self, texts: List[str], operation: str) -> np.ndarray:
        try:
            embeddings = np.asarray(self.embedding_function(texts), dtype=np.float32)
        except Exception as e:
            raise StoreError(operation, f"embedding failed: {e}")

        if embeddings.ndim != 2 or embeddings.shape[0] != len(texts) or embeddings.shape[1] == 0:
            raise StoreError(
                operation,
                f"embedding function returned shape {embeddings.shape} for {len(texts)} texts"
            )
        embeddings = np.ascontiguousarray(embeddings)

        # Normalize embeddings for cosine similarity
        faiss.normalize_L2(embeddings)
        return embeddings

    def add_documents(
        self,
        contents: List[str],
        metadatas: Optional[List[Dict[str, str]]] = None,
        ids: Optional[List[str]] = None
    ) -> List[Document]:
        """
        Embed and add documents.

        Args:
            contents: Document texts
            metadatas: Per-document string metadata
            ids: Explicit IDs (generated from the collection counter if None)

        Returns:
            The stored documents, in input order

        Raises:
            StoreError: duplicate ID, dimension mismatch, or embedding failure
        """
        if not contents:
            return []

        metadatas = metadatas or [{} for _ in contents]
        if len(metadatas) != len(contents) or (ids is not None and len(ids) != len(contents)):
            raise StoreError("add", "contents, metadatas and ids must have the same length")
        if ids is not None and len(set(ids)) != len(ids):
            raise StoreError("add", "duplicate IDs in batch")

        # Embedding is a network call; keep it outside the lock
        embeddings = self._embed(list(contents), "add")

        with self._lock:
            if self._index is None:
                self._index = faiss.IndexFlatIP(embeddings.shape[1])
            elif embeddings.shape[1] != self._index.d:
                raise StoreError(
                    "add",
                    f"Embedding dimension mismatch: expected {self._index.d}, got {embeddings.shape[1]}"
                )

            if ids is None:
                ids = [f"{self.id_prefix}{self._next_id + i}" for i in range(len(contents))]

            duplicates = [doc_id for doc_id in ids if doc_id in self._ids]
            if duplicates:
                raise StoreError("add", f"document with ID {duplicates[0]!r} already exists")

            self._index.add(embeddings)
            documents = [
                Document(id=doc_id, content=content, metadata=dict(meta))
                for doc_id, content, meta in zip(ids, contents, metadatas)
            ]
            self._documents.extend(documents)
            self._ids.update(ids)
            self._next_id += len(documents)

        logger.debug(f"Added {len(documents)} documents to '{self.name}' (total {len(self._documents)})")
        return documents

    def add_document(
        self,
        content: str,
        metadata: Optional[Dict[str, str]] = None,
        doc_id: Optional[str] = None
    ) -> Document:
        ids = [doc_id] if doc_id is not None else None
        return self.add_documents([content], [metadata or {}], ids)[0]

    def search(self, query: str, top_k: int = config.DEFAULT_TOP_K) -> List[SearchResult]:
        """
        Return up to top_k documents most similar to query, best first.
        """
        if top_k <= 0 or self.count() == 0:
            return []

        query_embedding = self._embed([query], "search")

        with self._lock:
            if self._index is None:
                return []
            if query_embedding.shape[1] != self._index.d:
                raise StoreError(
                    "search",
                    f"Embedding dimension mismatch: expected {self._index.d}, got {query_embedding.shape[1]}"
                )
            k = min(top_k, self._index.ntotal)
            similarities, indices = self._index.search(query_embedding, k)

            results = []
            for similarity, idx in zip(similarities[0], indices[0]):
                if idx < 0 or idx >= len(self._documents):
                    continue
                results.append(SearchResult(document=self._documents[idx], score=float(similarity)))

        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def clear(self):
        with self._lock:
            self._index = None
            self._documents = []
            self._ids = set()
            self._next_id = 0


class KnowledgeStore:
    """Process-local registry of collections."""

    def __init__(self, embedding_function: EmbeddingFunction):
        self.default_embedding_function = embedding_function
        self._collections: Dict[str, Collection] = {}
        self._lock = threading.Lock()

    def get_or_create_collection(
        self,
        name: str,
        embedding_function: Optional[EmbeddingFunction] = None
    ) -> Collection:
        if not name:
            raise StoreError("get_or_create_collection", "collection name must not be empty")

        with self._lock:
            collection = self._collections.get(name)
            if collection is None:
                collection = Collection(name, embedding_function or self.default_embedding_function)
                self._collections[name] = collection
                logger.info(f"Created collection '{name}'")
            return collection

    def get_collection(self, name: str) -> Optional[Collection]:
        with self._lock:
            return self._collections.get(name)
