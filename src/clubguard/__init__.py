"""
Clubguard - access control and abuse mitigation for the club's Discord bot

Every slash command the bot serves is checked by one security engine before
it runs.

Core Components:

- **Permission Evaluator**: channel, tier, role and user checks against the
  command's declared requirement
- **Rate Limiter**: fixed-window counters per user and command
- **Suspicious Activity Detector**: per-user burst detection across commands
- **Event Store**: append-only SQLite log of every security decision
- **Escalation Notifier**: direct-message alerts to admins for severe events
- **Cleanup Scheduler**: periodic eviction of expired in-memory state

Usage:
    from clubguard.main import main
    main()
"""
