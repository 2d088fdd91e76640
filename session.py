"""
session.py - Chat Session Controller

Owns the Ollama client and the knowledge store for the lifetime of the
process and exposes the operations behind the console commands:

- converse: one memoryless [system, user] exchange, streamed and accumulated
- ingest: store one piece of text in the "knowledge" collection
- search / index_directory / count / clear: knowledge base helpers

No conversation history is kept between turns.
"""

import logging
import queue
import threading
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from tqdm import tqdm

from config import Settings, load_config
from errors import (
    ChatCancelledError,
    ChatRequestError,
    IndexingError,
    IngestError,
    SearchError,
    StoreError,
)
from indexer import IndexReport, chunk_text, collect_files
from knowledge_store import KnowledgeStore, SearchResult
from ollama_client import OllamaClient
import config

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05  # seconds between cancel checks while waiting for a fragment

_FRAGMENT, _DONE, _FAILED = "fragment", "done", "failed"


def build_messages(system_prompt: str, user_text: str) -> List[Dict[str, str]]:
    """System message first, then the single user turn. Both verbatim."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_text},
    ]


def _pump(iterator: Iterator[str], out: "queue.Queue", stop: threading.Event):
    """Drain iterator into out on a worker thread; close it when finished or stopped."""
    try:
        for fragment in iterator:
            if stop.is_set():
                break
            out.put((_FRAGMENT, fragment))
        else:
            out.put((_DONE, None))
    except BaseException as e:
        out.put((_FAILED, e))
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            close()


def accumulate_fragments(
    fragments: Iterable[str],
    cancel_event: Optional[threading.Event] = None,
    poll_interval: float = POLL_INTERVAL
) -> str:
    """
    Fold streamed fragments into one string, in arrival order.

    The stream is consumed on a worker thread so cancel_event is watched
    while waiting for the next fragment, not only when one arrives. On
    cancellation ChatCancelledError is raised at once and nothing
    accumulated so far is returned; the worker closes the stream (and with
    it the HTTP response) as soon as its pending read returns.
    """
    iterator = iter(fragments)
    if cancel_event is not None and cancel_event.is_set():
        close = getattr(iterator, "close", None)
        if close is not None:
            close()
        raise ChatCancelledError()

    out = queue.Queue()
    stop = threading.Event()
    worker = threading.Thread(target=_pump, args=(iterator, out, stop), name="chat-stream", daemon=True)
    worker.start()

    parts = []
    try:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise ChatCancelledError(details={"fragments_received": len(parts)})
            try:
                kind, value = out.get(timeout=poll_interval)
            except queue.Empty:
                continue
            if kind == _FRAGMENT:
                parts.append(value)
            elif kind == _DONE:
                break
            else:
                raise value
    finally:
        stop.set()
    return "".join(parts)


class Session:
    """
    Session controller holding exclusive handles to the model client and store.

    Usage:
        session = Session.from_config()
        reply = session.converse("hello")
        session.ingest("Paris is the capital of France", "user_input")
    """

    def __init__(self, settings: Settings, client: OllamaClient, store: KnowledgeStore):
        self.settings = settings
        self.client = client
        self.store = store

    @classmethod
    def from_config(
        cls,
        settings: Optional[Settings] = None,
        client: Optional[OllamaClient] = None
    ) -> "Session":
        """
        Build a session: settings, Ollama client, storage directories, empty store.

        Raises:
            ConfigReadError, ConfigParseError: settings could not be loaded
            ClientInitError: Ollama client could not be constructed
        """
        settings = settings or load_config()
        client = client or OllamaClient.from_environment()

        if not client.is_healthy():
            logger.warning(f"Ollama service not available at {client.host} - chat will fail")
        elif not client.validate_model(settings.llm.model):
            logger.warning(f"Model '{settings.llm.model}' not found on {client.host}. Pull it with: ollama pull {settings.llm.model}")

        for path in (settings.storage.vector_db_path, settings.storage.chat_history_path):
            if not path:
                continue
            try:
                Path(path).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning(f"Could not create directory {path}: {e}")

        embedding_model = settings.rag.embedding_model
        store = KnowledgeStore(
            embedding_function=lambda texts: client.embed(texts, model=embedding_model)
        )
        logger.info(f"Session ready: model={settings.llm.model}")
        return cls(settings, client, store)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    def converse(self, user_text: str, cancel_event: Optional[threading.Event] = None) -> str:
        """
        Send one [system, user] exchange and return the full streamed reply.

        Raises:
            ChatCancelledError: cancel_event was set or the user hit Ctrl-C
            ChatRequestError: the request or the stream failed
        """
        messages = build_messages(self.settings.system_prompt, user_text)
        options = {"temperature": self.settings.llm.temperature}

        logger.info(f"Chat request: model={self.settings.llm.model}, {len(user_text)} chars")
        try:
            stream = self.client.chat_stream(messages, model=self.settings.llm.model, options=options)
            response = accumulate_fragments(stream, cancel_event)
        except ChatCancelledError:
            logger.info("Chat request cancelled")
            raise
        except KeyboardInterrupt:
            logger.info("Chat request interrupted")
            raise ChatCancelledError()
        except Exception as e:
            raise ChatRequestError(str(e), details={"model": self.settings.llm.model}) from e

        logger.info(f"Chat response: {len(response)} chars")
        return response

    # ------------------------------------------------------------------
    # Knowledge base
    # ------------------------------------------------------------------

    def ingest(self, text: str, source_label: str = config.USER_INPUT_SOURCE) -> int:
        """
        Store text as a single document (no chunking).

        Returns:
            Number of documents in the knowledge collection after the add

        Raises:
            IngestError: collection unavailable or document rejected
        """
        try:
            collection = self.store.get_or_create_collection(config.KNOWLEDGE_COLLECTION)
            document = collection.add_document(text, metadata={"source": source_label})
        except StoreError as e:
            raise IngestError(e.message, details=e.details) from e

        logger.info(f"Ingested {document.id} from {source_label}")
        return collection.count()

    def search(self, query: str, top_k: Optional[int] = None) -> List[SearchResult]:
        """
        Return the stored documents most similar to query.

        A top_k of None falls back to rag.top_k, then to DEFAULT_TOP_K; 0 returns nothing.
        """
        if top_k is None:
            top_k = self.settings.rag.top_k or config.DEFAULT_TOP_K
        collection = self.store.get_collection(config.KNOWLEDGE_COLLECTION)
        if collection is None:
            return []
        try:
            return collection.search(query, top_k=top_k)
        except StoreError as e:
            raise SearchError(query, e.message) from e

    def index_directory(self, dir_path: str, show_progress: bool = False) -> IndexReport:
        """
        Chunk and store every indexable file under dir_path.

        Each chunk becomes one document with metadata {source: <file>, chunk: <n>}.

        Raises:
            IndexingError: directory missing, bad chunk settings, or store failure
        """
        rag = self.settings.rag
        try:
            files = collect_files(dir_path)
        except FileNotFoundError as e:
            raise IndexingError(dir_path, str(e)) from e

        try:
            collection = self.store.get_or_create_collection(config.KNOWLEDGE_COLLECTION)
        except StoreError as e:
            raise IndexingError(dir_path, e.message) from e

        report = IndexReport(files_indexed=0, chunks_added=0)
        for indexed_file in tqdm(files, desc="Indexing", unit="file", disable=not show_progress):
            try:
                chunks = chunk_text(indexed_file.content, rag.chunk_size, rag.chunk_overlap)
            except ValueError as e:
                raise IndexingError(dir_path, str(e)) from e

            if not chunks:
                report.files_skipped += 1
                continue

            source = str(indexed_file.path)
            metadatas = [{"source": source, "chunk": str(i)} for i in range(len(chunks))]
            try:
                collection.add_documents(chunks, metadatas)
            except StoreError as e:
                raise IndexingError(dir_path, f"{source}: {e.message}") from e

            report.files_indexed += 1
            report.chunks_added += len(chunks)
            logger.info(f"Indexed {source} ({len(chunks)} chunks)")

        return report

    def count(self) -> int:
        collection = self.store.get_collection(config.KNOWLEDGE_COLLECTION)
        return collection.count() if collection is not None else 0

    def clear(self):
        collection = self.store.get_collection(config.KNOWLEDGE_COLLECTION)
        if collection is not None:
            collection.clear()
            logger.info("Knowledge base cleared")
