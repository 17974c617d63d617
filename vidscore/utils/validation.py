import os
import re
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..exceptions import ValidationException
from ..video_pipeline.core.models import DEFAULT_METRICS, ScoringMetric

ALLOWED_VIDEO_EXTENSIONS = ["mp4", "mpeg", "mpg", "mov", "avi", "flv", "webm", "wmv", "3gp", "mkv"]


class AnalyzeVideoRequest(BaseModel):
    """Request model for one video scoring run."""

    video_path: str = Field(..., min_length=1)
    content_type: Optional[str] = Field(default=None)
    filename: Optional[str] = Field(default=None)
    audience: Optional[str] = Field(default=None, max_length=500)
    niche: Optional[str] = Field(default=None, max_length=100)
    platform: Optional[str] = Field(default=None, max_length=100)
    goal: Optional[str] = Field(default=None, max_length=2000)
    metrics: List[ScoringMetric] = Field(default_factory=lambda: list(DEFAULT_METRICS))

    @field_validator('video_path')
    @classmethod
    def validate_video_path(cls, v):
        if not v or len(v.strip()) == 0:
            raise ValidationException('Video path cannot be empty')
        return v.strip()

    @field_validator('audience', 'niche', 'platform', 'goal')
    @classmethod
    def strip_optional_text(cls, v):
        if v is None:
            return None
        # Remove potentially malicious content
        sanitized = re.sub(r'[<>]', '', v).strip()
        return sanitized or None

    @field_validator('metrics')
    @classmethod
    def validate_metrics(cls, v):
        if not v:
            return list(DEFAULT_METRICS)
        keys = [metric.key for metric in v]
        if len(set(keys)) != len(keys):
            raise ValidationException(f'Duplicate metric keys: {keys}')
        return v

    def display_name(self) -> str:
        return sanitize_filename(self.filename or os.path.basename(self.video_path))


def sanitize_filename(filename: str) -> str:
    """Reduce a caller-supplied name to a bare file name safe to send upstream."""
    name = os.path.basename((filename or "").replace("\\", "/"))
    name = re.sub(r'[<>:"|?*\x00-\x1f]', '', name).replace("..", "").strip()
    if not name:
        raise ValidationException(f"Unusable video filename: {filename!r}", error_code="INVALID_FILENAME")
    return name


def validate_file_extension(filename: str, allowed_extensions: List[str] = ALLOWED_VIDEO_EXTENSIONS) -> bool:
    extension = os.path.splitext(filename or "")[1].lstrip(".").lower()
    if extension not in {ext.lower() for ext in allowed_extensions}:
        raise ValidationException(
            f"'{filename}' is not a supported video file; expected one of: {', '.join(allowed_extensions)}",
            error_code="UNSUPPORTED_EXTENSION",
        )
    return True
