"""Image upload: validate an uploaded photo and inline it as a data URL.

Storage is out of the picture; the listing keeps the data URL as its
image_url, the same way the browser client previews it.
"""

import base64
from typing import Optional


class UploadRejectedError(Exception):
    """Raised when an upload is missing, not an image, or too large."""

    def __init__(self, detail: str, status_code: int = 400):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


def image_to_data_url(
    content_type: Optional[str],
    data: bytes,
    max_bytes: int,
) -> str:
    if not data:
        raise UploadRejectedError("No file uploaded")
    if not content_type or not content_type.startswith("image/"):
        raise UploadRejectedError("Only image files are allowed")
    if len(data) > max_bytes:
        raise UploadRejectedError(
            f"File exceeds the {max_bytes} byte limit", status_code=413
        )

    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type};base64,{encoded}"
