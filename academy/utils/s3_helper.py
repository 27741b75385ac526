"""
S3 storage helper.

Wraps a boto3 S3 client for the two buckets/prefixes the academy uses:
course videos and course thumbnails. Every public method reports failure
through its return value instead of raising, so a failed upload can be
turned into a warning by the caller.
"""

import time
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app
from werkzeug.utils import secure_filename


CONTENT_TYPES = {
    # Videos
    'mp4': 'video/mp4',
    'mov': 'video/quicktime',
    'avi': 'video/x-msvideo',
    'mkv': 'video/x-matroska',
    'webm': 'video/webm',
    'mp3': 'audio/mpeg',

    # Documents
    'pdf': 'application/pdf',

    # Images
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'gif': 'image/gif',
    'webp': 'image/webp',
}

ALLOWED_VIDEO_TYPES = ['video/mp4', 'video/quicktime', 'video/x-msvideo', 'video/x-matroska', 'video/webm']
ALLOWED_IMAGE_TYPES = ['image/jpeg', 'image/png', 'image/gif', 'image/webp']


class S3Helper:
    """Helper class for S3 operations"""

    def __init__(self, app=None):
        self._client = None
        self.bucket_name = None
        self.region = None
        self.cloudfront_domain = None
        self.endpoint_url = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.bucket_name = app.config.get('AWS_S3_BUCKET_NAME')
        self.region = app.config.get('AWS_REGION', 'us-east-2')
        self.cloudfront_domain = app.config.get('AWS_CLOUDFRONT_DOMAIN')
        self.endpoint_url = app.config.get('AWS_S3_ENDPOINT_URL')
        self._access_key = app.config.get('AWS_ACCESS_KEY_ID')
        self._secret_key = app.config.get('AWS_SECRET_ACCESS_KEY')
        self._client = None
        app.extensions['s3_storage'] = self

    @property
    def s3_client(self):
        if self._client is None:
            self._client = boto3.client(
                's3',
                aws_access_key_id=self._access_key,
                aws_secret_access_key=self._secret_key,
                region_name=self.region,
                endpoint_url=self.endpoint_url,
            )
        return self._client

    def build_key(self, folder, filename, course_id=None):
        """``<folder>/<course_id>/<unix millis>-<filename>``"""
        name = f"{int(time.time() * 1000)}-{secure_filename(filename)}"
        if course_id is not None:
            return f"{folder}/{course_id}/{name}"
        return f"{folder}/{name}"

    def get_public_url(self, file_key):
        if self.cloudfront_domain:
            return f"https://{self.cloudfront_domain}/{file_key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{file_key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{file_key}"

    def upload_file(self, file_obj, folder, filename=None, course_id=None):
        """
        Upload a file object to S3

        Args:
            file_obj: readable binary stream (e.g. a FileStorage from request.files)
            folder: key prefix, one of the configured video/thumbnail folders
            filename: original filename; defaults to ``file_obj.filename``
            course_id: optional course id nested under the folder

        Returns:
            dict: {'success', 'file_key', 'file_url', 'error'}
        """
        filename = filename or getattr(file_obj, 'filename', None) or 'upload'
        file_key = self.build_key(folder, filename, course_id)

        try:
            self.s3_client.upload_fileobj(
                file_obj,
                self.bucket_name,
                file_key,
                ExtraArgs={
                    'ContentType': self._get_content_type(filename),
                    'CacheControl': 'max-age=3600',
                }
            )
        except (ClientError, BotoCoreError) as e:
            current_app.logger.error(f"S3 upload error for {file_key}: {e}")
            return {'success': False, 'file_key': None, 'file_url': None, 'error': str(e)}

        return {
            'success': True,
            'file_key': file_key,
            'file_url': self.get_public_url(file_key),
            'error': None
        }

    def generate_presigned_post(self, file_key, content_type, expiration=3600):
        """Presigned POST so the browser can upload straight to the bucket."""
        try:
            return self.s3_client.generate_presigned_post(
                Bucket=self.bucket_name,
                Key=file_key,
                Fields={
                    'Content-Type': content_type,
                    'Cache-Control': 'max-age=3600',
                },
                Conditions=[
                    {'Content-Type': content_type},
                    ['content-length-range', 0, current_app.config.get('MAX_UPLOAD_BYTES')],
                ],
                ExpiresIn=expiration
            )
        except (ClientError, BotoCoreError) as e:
            current_app.logger.error(f"Error generating presigned POST for {file_key}: {e}")
            return None

    def generate_presigned_url(self, file_key, expiration=3600):
        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket_name, 'Key': file_key},
                ExpiresIn=expiration
            )
        except (ClientError, BotoCoreError) as e:
            current_app.logger.error(f"Error generating presigned URL: {e}")
            return None

    def delete_file(self, file_key):
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=file_key)
            return True
        except (ClientError, BotoCoreError) as e:
            current_app.logger.error(f"Error deleting file {file_key}: {e}")
            return False

    def file_exists(self, file_key):
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=file_key)
            return True
        except ClientError:
            return False

    def key_from_url(self, file_url):
        """Reverse of get_public_url; None for URLs this bucket did not issue."""
        prefix = self.get_public_url('')
        if file_url and file_url.startswith(prefix):
            return file_url[len(prefix):]
        return None

    def _get_content_type(self, filename):
        extension = filename.rsplit('.', 1)[1].lower() if '.' in filename else ''
        return CONTENT_TYPES.get(extension, 'application/octet-stream')


storage = S3Helper()
