"""
Configuration management for Clubguard.

- **app_configuration.py**: YAML configuration loader guarded by fcntl locks.
  Exposes the guild-wide permission settings, the per-command rate-limit
  table, the security engine tunables and the database path. Falls back
  gracefully on missing or malformed config files.

- **permission_settings.py**: Admin/member role ids and the global channel
  allow-list, with membership helpers.

- **security_settings.py**: Cleanup interval, burst threshold, bucket sizes,
  escalation fan-out and retention defaults.
"""
