"""
Photo service for proposal image uploads.
Supports both AWS S3 and local storage based on configuration.
"""
import logging
import uuid
from typing import List, Optional, Tuple

from django.conf import settings
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import UploadedFile
from django.db.models import Max

from .models import PhotoCategory, Proposal, ProposalPhoto

logger = logging.getLogger(__name__)

# Allowed image types for proposal photos
ALLOWED_MIME_TYPES = {
    'image/jpeg': '.jpg',
    'image/jpg': '.jpg',
    'image/png': '.png',
    'image/webp': '.webp',
    'image/heic': '.heic',
}

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB


def validate_upload_file(file: UploadedFile) -> Tuple[bool, Optional[str]]:
    """
    Validate an uploaded proposal photo.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if file.size > MAX_FILE_SIZE:
        return False, f"File too large. Maximum size is {MAX_FILE_SIZE // (1024 * 1024)} MB"

    mime_type = (file.content_type or '').lower()
    if mime_type not in ALLOWED_MIME_TYPES:
        return False, f"Invalid file type: {mime_type}. Allowed: JPEG, PNG, WEBP, HEIC"

    return True, None


def upload_proposal_photo(
    file: UploadedFile,
    proposal: Proposal,
    category: str = PhotoCategory.OTHER,
    caption: str = "",
) -> ProposalPhoto:
    """
    Store a photo for a proposal and create its record.

    Raises:
        ValueError: If file validation fails or the category is unknown
    """
    is_valid, error = validate_upload_file(file)
    if not is_valid:
        raise ValueError(error)
    if category not in PhotoCategory.values:
        raise ValueError(f"Invalid photo category: {category}")

    extension = ALLOWED_MIME_TYPES[file.content_type.lower()]
    path = f"proposals/{proposal.id}/{uuid.uuid4().hex}{extension}"

    saved_path = default_storage.save(path, file)
    if getattr(settings, 'USE_S3_STORAGE', False):
        file_url = default_storage.url(saved_path)
    else:
        file_url = f"{getattr(settings, 'MEDIA_URL', '/media/')}{saved_path}"

    max_order = proposal.photos.aggregate(m=Max('display_order'))['m']
    next_order = 0 if max_order is None else max_order + 1

    photo = ProposalPhoto.objects.create(
        proposal=proposal,
        url=file_url,
        storage_path=saved_path,
        category=category,
        caption=caption or "",
        display_order=next_order,
        file_name=file.name,
        file_type=file.content_type,
        file_size=file.size,
    )
    logger.info("Stored photo %s for proposal %s", photo.id, proposal.id)
    return photo


def list_photos(proposal: Proposal) -> List[ProposalPhoto]:
    return list(proposal.photos.all())


def update_photo(photo: ProposalPhoto, data: dict) -> ProposalPhoto:
    category = data.get('category')
    if category is not None and category not in PhotoCategory.values:
        raise ValueError(f"Invalid photo category: {category}")
    for key in ('category', 'caption', 'display_order'):
        if data.get(key) is not None:
            setattr(photo, key, data[key])
    photo.save()
    return photo


def delete_photo(photo: ProposalPhoto) -> None:
    """Delete the photo record and its stored file."""
    if photo.storage_path:
        try:
            default_storage.delete(photo.storage_path)
        except Exception:
            logger.warning("Could not delete stored file %s", photo.storage_path, exc_info=True)
    photo.delete()
