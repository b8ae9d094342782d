"""
MailTrack Backend: HTTP Routes
================================

Route handlers stay thin: parse the request, resolve the caller, delegate
to a service, wrap the result in its response schema. Every resource
router is mounted under /api/v1 and under the unversioned /api alias.
"""
