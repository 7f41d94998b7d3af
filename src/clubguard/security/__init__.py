"""
Access-control and abuse-mitigation engine.

- **engine.py**: SecurityEngine facade; one ``authorize`` call per command
- **permissions.py**: pure permission evaluation
- **rate_limiter.py**: fixed-window limits per (user, command)
- **suspicious_activity.py**: per-user burst detection
- **event_store.py**, **event_logger.py**: durable security event log
- **notifier.py**: admin escalation by direct message
- **cleanup.py**: periodic sweep of expired state
- **dispatch.py**: ``guard`` helper for slash command handlers
"""
