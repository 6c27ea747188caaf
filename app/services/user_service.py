# app/services/user_service.py
"""
Authorized-user enrollment.
Saves the face image under UPLOAD_DIR/faces/ and stores its public URL.
No biometric template is computed; matching is out of scope.
"""

import os
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.models.authorized_user import AuthorizedUser
from app.config import settings
from app.exceptions import PersistenceError, ValidationError, NotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)

FACES_SUBDIR = "faces"
UPLOAD_URL_PREFIX = "/uploads"
MAX_NAME_LENGTH = 100
IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def _validate_enrollment(name: str, content_type: str, data: bytes) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"name must be at most {MAX_NAME_LENGTH} characters")
    if content_type not in IMAGE_EXTENSIONS:
        raise ValidationError(f"unsupported image type {content_type!r} (jpeg, png or webp)")
    if not data:
        raise ValidationError("image is empty")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(f"image exceeds {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit")
    return name


def _save_image(content_type: str, data: bytes) -> str:
    """Write the image to disk and return its public URL."""
    faces_dir = os.path.join(settings.UPLOAD_DIR, FACES_SUBDIR)
    os.makedirs(faces_dir, exist_ok=True)
    timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S_%f")
    filename = f"face_{timestamp}.{IMAGE_EXTENSIONS[content_type]}"
    with open(os.path.join(faces_dir, filename), "wb") as f:
        f.write(data)
    return f"{UPLOAD_URL_PREFIX}/{FACES_SUBDIR}/{filename}"


def _remove_image(image_url: str):
    path = os.path.join(settings.UPLOAD_DIR, FACES_SUBDIR, os.path.basename(image_url))
    try:
        os.remove(path)
    except OSError as e:
        logger.warning(f"[USERS] Could not remove orphaned image {path}: {e}")


async def enroll_user(db: Session, name: str, content_type: str, data: bytes) -> AuthorizedUser:
    name = _validate_enrollment(name, content_type, data)

    try:
        image_url = _save_image(content_type, data)
    except OSError as e:
        logger.error(f"[USERS] Could not save image for {name}: {e}")
        raise PersistenceError("Failed to store face image") from e

    now = datetime.utcnow()
    user = AuthorizedUser(name=name, image_url=image_url, created_at=now, updated_at=now, is_active=True)
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[USERS] Failed to enroll {name}: {e}")
        _remove_image(image_url)
        raise PersistenceError("Failed to add authorized user") from e

    logger.info(f"[USERS] Enrolled {name} (#{user.id}, {len(data)} bytes)")
    return user


async def list_active_users(db: Session) -> list[AuthorizedUser]:
    try:
        return (
            db.query(AuthorizedUser)
            .filter(AuthorizedUser.is_active == True)  # noqa: E712
            .order_by(AuthorizedUser.created_at.desc(), AuthorizedUser.id.desc())
            .all()
        )
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to read authorized users") from e


async def count_active_users(db: Session) -> int:
    try:
        return db.query(AuthorizedUser).filter(AuthorizedUser.is_active == True).count()  # noqa: E712
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to count authorized users") from e


async def deactivate_user(db: Session, user_id: int) -> AuthorizedUser:
    """Soft delete. Deactivating an inactive user is a no-op."""
    try:
        user = db.query(AuthorizedUser).filter(AuthorizedUser.id == user_id).first()
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to read authorized users") from e
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    if not user.is_active:
        return user

    user.is_active = False
    user.updated_at = datetime.utcnow()
    try:
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to deactivate user") from e
    logger.info(f"[USERS] Deactivated {user.name} (#{user.id})")
    return user
