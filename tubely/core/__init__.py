"""
Core business logic for video uploads.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
Snowflake, or any infrastructure concerns. Collaborators are described
as Protocols in core.videos.ports and injected at the edges.
"""
