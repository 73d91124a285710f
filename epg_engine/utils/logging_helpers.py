"""
Log lines shared by the import pipeline, so every import reads the same in the log.
"""
import logging
from datetime import datetime, timezone


def log_import_start(logger: logging.Logger, source_kind: str) -> None:
    """Log that a playlist or XMLTV import began."""
    logger.info(f"{source_kind} import started at {datetime.now(timezone.utc).isoformat()}")


def log_import_end(logger: logging.Logger, source_kind: str) -> None:
    """Log that a playlist or XMLTV import finished."""
    logger.info(f"{source_kind} import completed at {datetime.now(timezone.utc).isoformat()}")


def log_merge_summary(logger: logging.Logger, channels_count: int, programs_count: int) -> None:
    """
    Log the size of the guide produced by reconciliation.

    Args:
        logger: Logger of the calling module
        channels_count: Channels after merge and placeholder fill
        programs_count: Events across those channels
    """
    logger.info(f"Reconciled guide: {channels_count} channels, {programs_count} programs")


def log_storage_stats(logger: logging.Logger, store_key: str, total_channels: int, total_programs: int) -> None:
    """Log what is about to be written to the guide store."""
    logger.info(f"Saving guide under {store_key}: {total_channels} channels, {total_programs} programs")
