# Services package init
"""
MailTrack Backend: Services Layer
===================================

Business logic lives here; routes only translate HTTP to service calls.

    auth_service          accounts, password hashing, JWT issue/verify
    department_service    departments and their login accounts
    courier_service       courier services
    incoming_service      incoming letters and their status flow
    outgoing_service      outgoing letters, courier hand-off, stats
    tracking_service      merged incoming/outgoing listing with display labels
    notification_service  fan-out on letter events and the user inbox
    file_service          letter image validation and storage
    status_map            internal status ↔ display label table

Every service is a module-level singleton whose methods take the request's
AsyncSession as their first argument; the session dependency commits or
rolls back once per request.
"""
