# bizpulse/s3_utils.py
"""
S3 Utilities for Sales Data Retrieval

Features:
- Retry decorator with exponential backoff
- Read-side operations only: download, head (last modified), existence
- Explicitly constructed per data source (client injectable for tests)
"""

import logging
import time
from datetime import datetime
from functools import wraps
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError, NoCredentialsError

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# ==================== RETRY DECORATOR ====================

def with_retry(max_retries: int = 3, delay: float = 1.0, backoff: float = 2.0):
    """
    Decorator for automatic retry with exponential backoff

    Args:
        max_retries: Maximum number of retry attempts
        delay: Initial delay between retries (seconds)
        backoff: Multiplier for delay after each retry
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None
            current_delay = delay

            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except ClientError as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        logger.warning(f"{func.__name__} attempt {attempt + 1} failed, retrying in {current_delay}s...")
                        time.sleep(current_delay)
                        current_delay *= backoff
                    else:
                        logger.error(f"{func.__name__} failed after {max_retries} attempts: {e}")

            raise last_exception
        return wrapper
    return decorator


# ==================== S3 MANAGER CLASS ====================

class S3Manager:
    """
    Read access to the bucket holding the sales extract.

    Usage:
        s3 = S3Manager(config.get_aws_config())
        content = s3.download_file("Biz-Pulse/yearly_data.csv")
        modified = s3.get_last_modified("Biz-Pulse/yearly_data.csv")
    """

    def __init__(self, aws_config: Dict[str, Any], client=None):
        """
        Args:
            aws_config: Dict from Config.get_aws_config()
            client: Pre-built boto3 S3 client (tests pass a stub)
        """
        self.bucket_name = aws_config.get('bucket_name', 'biz-pulse')
        self.region = aws_config.get('region', 'eu-west-1')

        if client is not None:
            self.s3_client = client
            return

        try:
            self.s3_client = boto3.client(
                's3',
                region_name=self.region,
                aws_access_key_id=aws_config.get('access_key_id'),
                aws_secret_access_key=aws_config.get('secret_access_key')
            )
            logger.info(f"✅ S3 client initialized: {self.bucket_name}")
        except NoCredentialsError:
            logger.error("❌ AWS credentials not found")
            raise ConfigurationError("AWS credentials not configured")

    def test_connection(self) -> bool:
        """Verify bucket exists and is accessible"""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            logger.info("S3 connection successful")
            return True
        except ClientError as e:
            logger.error(f"S3 connection test failed: {e}")
            return False

    # ==================== CORE OPERATIONS ====================

    @with_retry(max_retries=3)
    def download_file(self, s3_key: str) -> bytes:
        """
        Download file from S3

        Args:
            s3_key: S3 object key

        Returns:
            File content as bytes
        """
        response = self.s3_client.get_object(
            Bucket=self.bucket_name,
            Key=s3_key
        )

        content = response['Body'].read()
        logger.info(f"✅ Downloaded: {s3_key} ({len(content)} bytes)")

        return content

    def file_exists(self, s3_key: str) -> bool:
        """Check if file exists in S3"""
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=s3_key)
            return True
        except ClientError as e:
            if e.response['Error']['Code'] in ('404', 'NoSuchKey'):
                return False
            raise

    def get_last_modified(self, s3_key: str) -> Optional[datetime]:
        """LastModified timestamp of an object, None if it is missing"""
        try:
            response = self.s3_client.head_object(
                Bucket=self.bucket_name,
                Key=s3_key
            )
        except ClientError as e:
            if e.response['Error']['Code'] in ('404', 'NoSuchKey'):
                return None
            raise
        return response.get('LastModified')
