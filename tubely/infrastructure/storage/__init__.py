"""
Object storage integration for processed videos and thumbnails.

Supports S3 and S3-compatible endpoints via boto3.
Includes mock mode for local development without credentials.
"""
