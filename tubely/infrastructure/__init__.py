"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- auth: bearer JWT verification
- snowflake: Video record persistence
- storage: Object storage (S3)
- video: FFmpeg/FFprobe

These wrappers translate between external formats and our domain models.
"""
