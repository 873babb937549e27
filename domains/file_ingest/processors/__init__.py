"""
File Ingestion Processors

Per-file stages run by the workers:
- transform.py - tar+gzip compression and gpg encryption
- transfer.py - S3, fake and copy uploaders
- pipeline.py - compress -> encrypt -> upload -> cleanup
"""
