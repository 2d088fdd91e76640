# main.py
"""
Entry point for the local LLM chat client - Ollama chat plus an in-process FAISS knowledge base.
"""

import logging
import sys

from conversation import print_banner, start_conversation
from errors import LLMAppError
from session import Session
from config import LOG_FILE, LOG_LEVEL

logger = logging.getLogger(__name__)


def setup_logging():
    # Log to a file so records do not interleave with the chat transcript
    logging.basicConfig(
        level=LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        filename=str(LOG_FILE),
    )


def main() -> int:
    setup_logging()

    try:
        session = Session.from_config()
    except LLMAppError as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        print(f"Failed to initialize app: {e.message}", file=sys.stderr)
        return 1

    print_banner(session)
    try:
        start_conversation(session)
    except KeyboardInterrupt:
        print()
        logger.info("Interrupted at prompt")
    return 0


if __name__ == "__main__":
    sys.exit(main())
