"""
MailTrack Backend: Middleware Package
=======================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    The request ID is assigned first so the access log line and every log
    record emitted while handling the request carry the same ID.
"""
