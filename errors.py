"""
errors.py

Error handling framework for the local LLM chat client.

Centralized exception definitions and error handling utilities.
"""
from enum import Enum
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification"""
    FILE_IO = "file_io"
    NETWORK = "network"
    PROCESSING = "processing"
    USER_INPUT = "user_input"
    CONFIGURATION = "configuration"


class LLMAppError(Exception):
    """Base exception for all chat client errors"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True
    ):
        self.message = message
        self.category = category
        self.details = details or {}
        self.recoverable = recoverable
        super().__init__(message)


# === Configuration Errors ===

class ConfigReadError(LLMAppError):
    """Configuration file missing or unreadable"""
    def __init__(self, path: str, reason: str, details: Optional[Dict] = None):
        super().__init__(
            f"failed to load config: cannot read {path}: {reason}",
            ErrorCategory.CONFIGURATION,
            details or {"path": path, "reason": reason},
            recoverable=False
        )


class ConfigParseError(LLMAppError):
    """Configuration content does not match the expected structure"""
    def __init__(self, path: str, reason: str, details: Optional[Dict] = None):
        super().__init__(
            f"failed to load config: {path}: {reason}",
            ErrorCategory.CONFIGURATION,
            details or {"path": path, "reason": reason},
            recoverable=False
        )


# === Network Errors ===

class ClientInitError(LLMAppError):
    """Cannot construct the Ollama client"""
    def __init__(self, reason: str, details: Optional[Dict] = None):
        super().__init__(
            f"failed to create Ollama client: {reason}",
            ErrorCategory.NETWORK,
            details or {"reason": reason, "solution": "Check OLLAMA_HOST"},
            recoverable=False
        )


class ChatRequestError(LLMAppError):
    """Streaming chat request failed"""
    def __init__(self, reason: str, details: Optional[Dict] = None):
        super().__init__(
            f"chat failed: {reason}",
            ErrorCategory.NETWORK,
            details or {"reason": reason},
            recoverable=True
        )


class ChatCancelledError(ChatRequestError):
    """Chat request cancelled before the stream finished"""
    def __init__(self, details: Optional[Dict] = None):
        super().__init__("request cancelled", details)
        self.category = ErrorCategory.USER_INPUT


# === Processing Errors ===

class StoreError(LLMAppError):
    """Knowledge store operation failed"""
    def __init__(self, operation: str, reason: str, details: Optional[Dict] = None):
        super().__init__(
            f"store {operation} failed: {reason}",
            ErrorCategory.PROCESSING,
            details or {"operation": operation, "reason": reason},
            recoverable=True
        )


class IngestError(LLMAppError):
    """Document could not be added to the knowledge base"""
    def __init__(self, reason: str, details: Optional[Dict] = None):
        super().__init__(
            reason,
            ErrorCategory.PROCESSING,
            details or {"reason": reason},
            recoverable=True
        )


class SearchError(LLMAppError):
    """Similarity search over the knowledge base failed"""
    def __init__(self, query: str, reason: str, details: Optional[Dict] = None):
        super().__init__(
            f"search failed for '{query}': {reason}",
            ErrorCategory.PROCESSING,
            details or {"query": query, "reason": reason},
            recoverable=True
        )


class IndexingError(LLMAppError):
    """Directory indexing failed"""
    def __init__(self, path: str, reason: str, details: Optional[Dict] = None):
        super().__init__(
            f"indexing {path} failed: {reason}",
            ErrorCategory.FILE_IO,
            details or {"path": path, "reason": reason},
            recoverable=True
        )


# === Error Handler Utilities ===

def handle_error(error: Exception, context: Optional[Dict] = None):
    """
    Log an error with its traceback and operation context.

    Args:
        error: Exception that occurred
        context: Additional context (operation, command, etc.)
    """
    context = context or {}
    operation = context.get('operation', 'unknown')

    if isinstance(error, LLMAppError):
        logger.error(
            f"Error in {operation}: {error} "
            f"[{error.category.value}, recoverable={error.recoverable}] {error.details}",
            exc_info=error
        )
    else:
        logger.error(f"Error in {operation}: {error.__class__.__name__}: {error}", exc_info=error)
