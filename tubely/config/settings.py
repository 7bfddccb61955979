"""
Service configuration, read from the environment (and .env).

The upload pipeline never sees this object directly; the API layer
copies the relevant fields into a PipelineConfig. Each external backend
has a mock mode so the service runs on a laptop with nothing installed.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Every field maps to an upper-case environment variable of the same
    name, e.g. ``max_upload_bytes`` <- ``MAX_UPLOAD_BYTES``.
    """

    # API Configuration
    api_title: str = "Tubely API"
    api_version: str = "v1"
    jwt_secret: str = Field(
        default="",
        description="HMAC secret used to verify bearer JWTs issued by the auth service."
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="Signing algorithm expected on bearer JWTs."
    )
    jwt_issuer: str = Field(
        default="tubely-access",
        description="Expected 'iss' claim on bearer JWTs."
    )

    # S3 Storage Configuration
    s3_bucket: str = Field(
        default="tubely-videos",
        description="Bucket that receives processed videos and thumbnails"
    )
    s3_region: str = Field(
        default="us-east-2",
        description="Region of the bucket"
    )
    s3_access_key_id: str = Field(
        default="",
        description="Access key ID. Empty means boto3 falls back to its default credential chain."
    )
    s3_secret_access_key: str = Field(
        default="",
        description="Secret access key"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom S3-compatible endpoint (MinIO, R2). None uses AWS."
    )
    s3_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real S3. Enables local dev without object storage."
    )
    storage_connect_timeout_seconds: float = Field(
        default=10.0,
        description="Connect timeout for storage calls"
    )
    storage_read_timeout_seconds: float = Field(
        default=300.0,
        description="Read timeout for storage calls. Large uploads need a generous window."
    )
    video_public_base_url: Optional[str] = Field(
        default=None,
        description="When set (e.g. a CDN origin), records hold '{base}/{key}' instead of 'bucket,key'."
    )
    presigned_url_expiry_seconds: int = Field(
        default=3600,
        description="Lifetime of presigned URLs handed to clients. The window starts at read time."
    )

    # Upload Limits
    max_upload_bytes: int = Field(
        default=1 << 30,
        description="Maximum video upload size. 1 GiB."
    )
    max_thumbnail_bytes: int = Field(
        default=10 << 20,
        description="Maximum thumbnail upload size. 10 MiB."
    )
    staging_dir: Optional[str] = Field(
        default=None,
        description="Directory for request-private temp files. None uses the system temp dir."
    )

    # FFmpeg Configuration
    ffmpeg_path: str = Field(
        default="ffmpeg",
        description="Path to the ffmpeg binary"
    )
    ffprobe_path: str = Field(
        default="ffprobe",
        description="Path to the ffprobe binary"
    )
    ffmpeg_timeout_seconds: float = Field(
        default=600.0,
        description="Deadline for each ffmpeg/ffprobe invocation. The child is killed when exceeded."
    )
    ffmpeg_mock_mode: bool = Field(
        default=False,
        description="Use mock prober/rewriter instead of spawning FFmpeg."
    )

    # Snowflake Configuration
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_database: str = Field(
        default="TUBELY",
        description="Snowflake database name"
    )
    snowflake_schema: str = Field(
        default="PUBLIC",
        description="Snowflake schema name"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real Snowflake connection. Enables local dev without DB."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:8091",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """Names of settings the selected modes need but that are unset."""
        missing = []

        # Without a secret no bearer token can ever validate
        if not self.jwt_secret:
            missing.append("JWT_SECRET")

        if not self.s3_mock_mode and not self.s3_bucket:
            missing.append("S3_BUCKET")

        # Snowflake only required if not in mock mode
        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if not self.snowflake_password and not self.snowflake_private_key_path:
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """Settings for this process, loaded once. Tests override the dependency instead."""
    return Settings()
