"""Helpers for creating storage clients."""

from __future__ import annotations

import boto3
from botocore.client import BaseClient
from botocore.config import Config

from app.core.config import settings


def _normalize_endpoint(endpoint_url: str | None) -> str | None:
    if endpoint_url:
        return endpoint_url.rstrip("/")
    return None


def _build_s3_config() -> Config | None:
    style = (settings.S3_URL_STYLE or "").strip().lower()
    if style in {"path", "virtual"}:
        return Config(s3={"addressing_style": style})
    return None


def get_s3_client(
    *,
    region: str | None = None,
    endpoint_url: str | None = None,
) -> BaseClient:
    """Return a configured S3 client (supports S3-compatible endpoints such as MinIO)."""
    normalized_endpoint = _normalize_endpoint(endpoint_url or settings.S3_ENDPOINT_URL)
    return boto3.client(
        "s3",
        region_name=region or settings.S3_REGION or None,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        endpoint_url=normalized_endpoint,
        config=_build_s3_config(),
    )
