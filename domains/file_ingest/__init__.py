"""
File Ingestion Domain

Watches a directory for files dropped into it and ships them to S3:
- collectors/ - Directory producers (periodic scan or watchdog events)
- processors/ - Compress, encrypt, upload and clean up a single file
- work_queue.py, locks.py, workers.py - Bounded queue, in-flight registry, worker pool
- lifecycle.py - Startup and orderly shutdown of the whole pipeline
"""

__all__ = ["collectors", "processors"]
