"""Line-respecting splitting of oversized statement text."""

import logging

from finflow.parsers.document_types import Chunk

logger = logging.getLogger(__name__)


def chunk_text(text: str, max_size: int) -> list[Chunk]:
    """
    Split text into chunks of at most max_size characters.

    Lines are never split: a buffer is flushed as soon as the next line
    would push it past max_size, and a single line longer than max_size
    becomes its own oversized chunk. Each chunk is stripped of leading and
    trailing whitespace; whitespace-only chunks are not emitted.

    Args:
        text: Normalized statement text
        max_size: Size budget per chunk, in characters

    Returns:
        Chunks in document order, indexed from 0

    Raises:
        ValueError: If max_size is not positive
    """
    if max_size <= 0:
        raise ValueError(f"max_size must be positive, got {max_size}")

    pieces: list[str] = []
    current = ""

    for line in text.split("\n"):
        if current and len(current) + 1 + len(line) > max_size:
            pieces.append(current)
            current = line
        else:
            current = f"{current}\n{line}" if current else line

    if current:
        pieces.append(current)

    chunks = []
    for piece in pieces:
        piece = piece.strip()
        if piece:
            chunks.append(Chunk(index=len(chunks), text=piece))

    oversized = sum(1 for chunk in chunks if len(chunk) > max_size)
    if oversized:
        logger.warning(f"{oversized} chunk(s) exceed {max_size} chars because a single line is longer")

    logger.debug(f"Split {len(text)} chars into {len(chunks)} chunks (max {max_size})")
    return chunks
