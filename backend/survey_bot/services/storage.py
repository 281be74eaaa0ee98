# survey_bot/services/storage.py
"""
Storage layer with local and cloud backends.
Set STORAGE_BACKEND env var to 'local' or 's3' to switch.
"""
import json
import logging
from pathlib import Path
from typing import Any, Optional

from survey_bot import config

logger = logging.getLogger(__name__)


class StorageBackend:
    """Abstract storage interface"""

    def write_file(self, path: str, content: bytes) -> str:
        """Write file, return public URL or local path"""
        raise NotImplementedError

    def write_text(self, path: str, content: str) -> str:
        """Write text file"""
        return self.write_file(path, content.encode('utf-8'))

    def write_json(self, path: str, data: Any) -> str:
        """Write JSON file"""
        content = json.dumps(data, ensure_ascii=False, indent=2)
        return self.write_text(path, content)

    def read_file(self, path: str) -> bytes:
        """Read file content"""
        raise NotImplementedError

    def read_text(self, path: str) -> str:
        """Read text file"""
        return self.read_file(path).decode('utf-8')

    def read_json(self, path: str) -> Any:
        """Read JSON file"""
        return json.loads(self.read_text(path))

    def exists(self, path: str) -> bool:
        """Check if file exists"""
        raise NotImplementedError


class LocalStorage(StorageBackend):
    """Local filesystem storage"""

    def __init__(self, base_dir: str = "."):
        self.base_dir = Path(base_dir)

    def _full_path(self, path: str) -> Path:
        return self.base_dir / path

    def write_file(self, path: str, content: bytes) -> str:
        full_path = self._full_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        # replace atomically
        tmp_path = full_path.with_suffix(full_path.suffix + '.tmp')
        with open(tmp_path, 'wb') as f:
            f.write(content)
        tmp_path.replace(full_path)
        return str(full_path)

    def read_file(self, path: str) -> bytes:
        full_path = self._full_path(path)
        with open(full_path, 'rb') as f:
            return f.read()

    def exists(self, path: str) -> bool:
        return self._full_path(path).exists()


class S3Storage(StorageBackend):
    """AWS S3 storage backend"""

    def __init__(self, bucket: str, region: str = "eu-central-1"):
        self.bucket = bucket
        self.region = region
        self._client = None

    @property
    def client(self):
        """Lazy load boto3 client"""
        if self._client is None:
            import boto3
            self._client = boto3.client('s3', region_name=self.region)
        return self._client

    def _s3_key(self, path: str) -> str:
        """Convert path to S3 key"""
        return path.replace('\\', '/')

    def write_file(self, path: str, content: bytes) -> str:
        key = self._s3_key(path)
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=content
        )
        return f"s3://{self.bucket}/{key}"

    def read_file(self, path: str) -> bytes:
        key = self._s3_key(path)
        response = self.client.get_object(Bucket=self.bucket, Key=key)
        return response['Body'].read()

    def exists(self, path: str) -> bool:
        from botocore.exceptions import ClientError

        key = self._s3_key(path)
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise


# Global storage instance
_storage: Optional[StorageBackend] = None


def get_storage() -> StorageBackend:
    """Get storage backend singleton"""
    global _storage
    if _storage is None:
        if config.STORAGE_BACKEND == "s3":
            _storage = S3Storage(bucket=config.S3_BUCKET, region=config.AWS_REGION)
            logger.info("Storage: S3 bucket=%s", config.S3_BUCKET)
        else:
            _storage = LocalStorage()
            logger.info("Storage: local filesystem")
    return _storage
