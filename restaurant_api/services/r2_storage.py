import os
from pathlib import Path
from uuid import uuid4

from fastapi import HTTPException, UploadFile

from restaurant_api.core.config import ALLOWED_IMAGE_EXTENSIONS


class UnsupportedFileType(ValueError):
    pass


def _get_required_env(var_name: str) -> str:
    value = os.getenv(var_name, "").strip()
    if not value:
        raise RuntimeError(f"Missing required environment variable: {var_name}")
    return value


def _get_r2_client():
    r2_account_id = _get_required_env("R2_ACCOUNT_ID")
    r2_access_key_id = _get_required_env("R2_ACCESS_KEY_ID")
    r2_secret_access_key = _get_required_env("R2_SECRET_ACCESS_KEY")

    import boto3

    return boto3.client(
        "s3",
        endpoint_url=f"https://{r2_account_id}.r2.cloudflarestorage.com",
        aws_access_key_id=r2_access_key_id,
        aws_secret_access_key=r2_secret_access_key,
        region_name="auto",
    )


def _sanitize_key_part(part: str) -> str:
    return str(part).strip().strip("/")


def image_extension(filename: str | None) -> str:
    extension = Path(filename or "").suffix.lower()
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        raise UnsupportedFileType("Only jpg, jpeg, png and webp images are allowed")
    return extension


def upload_image(file: UploadFile, business_id: int | str, folder: str) -> str:
    """Store an image under ``businesses/<id>/<folder>/`` and return its public URL."""
    extension = image_extension(file.filename)

    r2_bucket_name = _get_required_env("R2_BUCKET_NAME")
    r2_public_url = _get_required_env("R2_PUBLIC_URL").rstrip("/")

    object_key = "/".join(
        [
            "businesses",
            _sanitize_key_part(business_id),
            _sanitize_key_part(folder),
            f"{uuid4().hex}{extension}",
        ]
    )

    file.file.seek(0)
    _get_r2_client().upload_fileobj(
        file.file,
        r2_bucket_name,
        object_key,
        ExtraArgs={"ContentType": file.content_type or "application/octet-stream"},
    )

    return f"{r2_public_url}/{object_key}"


def store_image(file: UploadFile | None, business_id: int | str, folder: str) -> str | None:
    """Upload for request handlers: ``None`` passes through, bad extensions become a 400."""
    if file is None or not file.filename:
        return None
    try:
        return upload_image(file, business_id, folder)
    except UnsupportedFileType as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
