"""
Image storage for uploaded product, category, banner and avatar pictures.

Uploads are validated, normalised with Pillow and written either to the local
upload directory or, when a connection string is configured, to Azure Blob
Storage. Stored references are plain file names for local storage and absolute
blob URLs for Azure, so `get_image_url` can tell them apart.
"""
import logging
import os
import random
import time
from io import BytesIO
from typing import List, Optional
from urllib.parse import quote, unquote, urlparse

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import FileSystemStorage
from PIL import Image, ImageOps, UnidentifiedImageError
from rest_framework.exceptions import ValidationError

logger = logging.getLogger(__name__)

OUTPUT_FORMAT = 'WEBP'
OUTPUT_EXTENSION = '.webp'
OUTPUT_CONTENT_TYPE = 'image/webp'


def build_filename(field_name: str) -> str:
    """{field}-{unix_ms}-{random}.webp, unique enough for concurrent uploads"""
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 999999999)}"
    return f"{field_name}-{suffix}{OUTPUT_EXTENSION}"


def validate_uploads(files, field_name='images', required=False):
    """Reject non-images, oversize files and too many files"""
    files = list(files or [])
    if required and not files:
        raise ValidationError({field_name: ['At least one image is required.']})
    if len(files) > settings.MAX_UPLOAD_FILES:
        raise ValidationError({field_name: [f'Too many files. Maximum {settings.MAX_UPLOAD_FILES} files.']})

    max_mb = settings.MAX_UPLOAD_SIZE // (1024 * 1024)
    for uploaded in files:
        content_type = getattr(uploaded, 'content_type', '') or ''
        if not content_type.startswith('image/'):
            raise ValidationError({field_name: ['Only image files are allowed.']})
        if uploaded.size > settings.MAX_UPLOAD_SIZE:
            raise ValidationError({field_name: [f'File too large. Maximum size: {max_mb}MB.']})
    return files


def optimize_image(uploaded) -> bytes:
    """Apply EXIF orientation, fit inside the max dimension and re-encode as WEBP"""
    try:
        uploaded.seek(0)
        image = Image.open(uploaded)
        image.load()
    except (UnidentifiedImageError, OSError):
        raise ValidationError({'images': ['Only image files are allowed.']})

    image = ImageOps.exif_transpose(image)
    if image.mode not in ('RGB', 'RGBA'):
        image = image.convert('RGBA' if 'transparency' in image.info else 'RGB')

    max_dimension = settings.IMAGE_MAX_DIMENSION
    image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

    buffer = BytesIO()
    image.save(buffer, format=OUTPUT_FORMAT, quality=settings.IMAGE_QUALITY)
    return buffer.getvalue()


class LocalImageStorage:
    """Stores images in the upload directory served under /uploads/"""

    def __init__(self):
        self.storage = FileSystemStorage(location=settings.MEDIA_ROOT)

    def save(self, name: str, content: bytes) -> str:
        return self.storage.save(name, ContentFile(content))

    def delete(self, reference: str) -> bool:
        name = os.path.basename(reference)
        if not name or not self.storage.exists(name):
            return False
        self.storage.delete(name)
        return True


class AzureImageStorage:
    """Stores images as blobs in an Azure Storage container"""

    def __init__(self, connection_string: str, container: str, folder: str = ''):
        self.container = container
        self.folder = folder
        self.client = BlobServiceClient.from_connection_string(connection_string)

    def save(self, name: str, content: bytes) -> str:
        blob_name = f"{self.folder}{name}"
        blob_client = self.client.get_blob_client(container=self.container, blob=blob_name)
        blob_client.upload_blob(
            content,
            overwrite=True,
            content_settings=ContentSettings(content_type=OUTPUT_CONTENT_TYPE),
        )
        return blob_client.url

    def blob_name_from_url(self, url: str) -> Optional[str]:
        path = unquote(urlparse(url).path).lstrip('/')
        prefix = f"{self.container}/"
        if not path.startswith(prefix):
            return None
        return path[len(prefix):]

    def delete(self, reference: str) -> bool:
        blob_name = self.blob_name_from_url(reference)
        if not blob_name:
            return False
        try:
            self.client.get_blob_client(container=self.container, blob=blob_name).delete_blob()
        except ResourceNotFoundError:
            # Already gone
            return True
        return True


def get_image_storage():
    """Azure when configured, local disk otherwise"""
    connection_string = getattr(settings, 'AZURE_STORAGE_CONNECTION_STRING', '')
    if connection_string:
        return AzureImageStorage(
            connection_string,
            settings.AZURE_STORAGE_CONTAINER,
            getattr(settings, 'AZURE_BLOB_FOLDER', ''),
        )
    return LocalImageStorage()


def save_images(files, field_name='images') -> List[str]:
    """Validate, optimise and store uploaded files, returning their references"""
    files = validate_uploads(files, field_name)
    storage = get_image_storage()
    references = []
    for uploaded in files:
        content = optimize_image(uploaded)
        references.append(storage.save(build_filename(field_name), content))
    logger.info(f"Stored {len(references)} uploaded image(s) for '{field_name}'")
    return references


def save_image(uploaded, field_name='image') -> str:
    return save_images([uploaded], field_name)[0]


def is_remote(reference: str) -> bool:
    return reference.startswith('http://') or reference.startswith('https://')


def get_image_url(reference: Optional[str]) -> Optional[str]:
    """Public URL of a stored image reference"""
    if not reference:
        return None
    if is_remote(reference):
        return reference
    return f"{settings.MEDIA_URL}{quote(os.path.basename(reference))}"


def delete_image(reference: Optional[str]) -> bool:
    """Remove a stored image. Failures are logged, never raised."""
    if not reference:
        return False
    try:
        if is_remote(reference):
            storage = get_image_storage()
            if not isinstance(storage, AzureImageStorage):
                # External URL we do not manage (seed data, legacy uploads)
                return False
            return storage.delete(reference)
        return LocalImageStorage().delete(reference)
    except Exception as e:
        logger.warning(f"Could not delete image {reference}: {str(e)}")
        return False


def delete_images(references) -> int:
    return sum(1 for reference in references or [] if delete_image(reference))
