"""
File operation utilities

This module reads local playlist and guide files for import.
"""
import logging
from pathlib import Path

import aiofiles


logger = logging.getLogger(__name__)


async def read_text_file(file_path: Path | str, encoding: str = "utf-8") -> str:
    """
    Read a local text file without blocking the event loop

    Undecodable bytes are replaced rather than failing the whole import.

    Args:
        file_path: Path to the playlist or XMLTV file
        encoding: Text encoding

    Returns:
        File contents

    Raises:
        FileNotFoundError: If file doesn't exist
        OSError: If file can't be read
    """
    path = Path(file_path)
    logger.info(f"Reading {path}...")

    async with aiofiles.open(path, 'r', encoding=encoding, errors='replace') as f:
        content = await f.read()

    logger.debug(f"Read {len(content) / 1024:.1f} KB from {path}")
    return content
