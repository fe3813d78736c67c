"""
Timeouts and retry limits for transfer operations.
"""


class TimeoutConstants:
    """
    Centralized timeout configuration, in seconds.
    """

    # Backend command timeouts
    UPLOAD_TIMEOUT = 600.0
    BATCH_UPLOAD_TIMEOUT = 600.0
    DOWNLOAD_TIMEOUT = 300.0
    DOWNLOAD_DIRECTORY_TIMEOUT = 300.0
    EXISTS_TIMEOUT = 15.0
    LIST_TIMEOUT = 60.0
    RENAME_TIMEOUT = 120.0
    VERSION_TIMEOUT = 15.0

    # Transfer retries (fixed delay)
    RETRY_ATTEMPTS = 3
    RETRY_DELAY = 2.0

    # Manifest I/O retries (exponential backoff)
    MANIFEST_IO_ATTEMPTS = 3
    MANIFEST_IO_BACKOFF = 0.5

    # Local restore copy retries
    COPY_ATTEMPTS = 3
    COPY_DELAY = 0.5
