"""
ollama_client.py - Ollama LLM Interface (Official Library)

Thin wrapper around the official Ollama Python library.

Features:
- Host discovered from the environment (OLLAMA_HOST) by the ollama library
- Streaming multi-turn chat
- Batch embeddings for the knowledge store
- Health check, model listing and installed-model validation

Ollama Python Library: https://github.com/ollama/ollama-python
"""

import logging
from typing import Dict, List, Optional, Iterator, Any

import ollama
import requests

from errors import ClientInitError

logger = logging.getLogger(__name__)


class OllamaClient:
    """
    Client for interacting with an Ollama LLM server.

    Usage:
        client = OllamaClient.from_environment()

        for fragment in client.chat_stream(messages, model="phi3", options={"temperature": 0.7}):
            print(fragment, end="", flush=True)
    """

    def __init__(self, host: Optional[str] = None, timeout: Optional[float] = None):
        """
        Initialize Ollama client.

        Args:
            host: Ollama server URL (None: OLLAMA_HOST, then the library default)
            timeout: Request timeout in seconds (None: wait for the stream to finish)
        """
        try:
            self.client = ollama.Client(host=host, timeout=timeout)
        except Exception as e:
            raise ClientInitError(str(e), details={"host": host})

        # Resolved by the library; httpx keeps it with a trailing slash
        self.host = str(self.client._client.base_url).rstrip("/")
        logger.info(f"OllamaClient initialized: {self.host}")

    @classmethod
    def from_environment(cls) -> "OllamaClient":
        return cls()

    def is_healthy(self) -> bool:
        """
        Check if Ollama server is running and responsive.

        Returns:
            True if healthy, False otherwise
        """
        try:
            response = requests.get(f"{self.host}/api/tags", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False

    def list_models(self) -> List[str]:
        """
        List installed models, e.g. ['mistral:latest', 'phi3:latest'].

        Raises:
            requests.exceptions.RequestException: If server is unreachable
        """
        response = requests.get(f"{self.host}/api/tags", timeout=10)
        response.raise_for_status()
        data = response.json()
        models = [model['name'] for model in data.get('models', [])]
        logger.debug(f"Found {len(models)} models: {models}")
        return models

    def validate_model(self, model_name: str) -> bool:
        """
        Check if a model is installed. A bare name matches its ':latest' tag.

        Returns:
            True if the model exists, False otherwise (including when the server is unreachable)
        """
        try:
            models = self.list_models()
        except requests.exceptions.RequestException as e:
            logger.debug(f"Error listing models: {e}")
            return False
        return model_name in models or f"{model_name}:latest" in models

    def chat_stream(
        self,
        messages: List[Dict[str, str]],
        model: str,
        options: Optional[Dict[str, Any]] = None
    ) -> Iterator[str]:
        """
        Multi-turn chat completion with streaming.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model name
            options: Decoding options passed through to Ollama

        Yields:
            Text fragments in arrival order

        Errors from the transport propagate unchanged; callers wrap them.
        """
        logger.debug(f"Chat stream with {model} ({len(messages)} messages)")

        stream = self.client.chat(
            model=model,
            messages=messages,
            stream=True,
            options=options or {}
        )

        for chunk in stream:
            message = chunk['message']
            if message is not None and message['content']:
                yield message['content']

    def embed(self, texts: List[str], model: str) -> List[List[float]]:
        """
        Embed a batch of texts.

        Returns:
            One vector per input text
        """
        logger.debug(f"Embedding {len(texts)} texts with {model}")
        response = self.client.embed(model=model, input=texts)
        return [list(vector) for vector in response['embeddings']]
