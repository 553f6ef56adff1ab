"""
Utility modules for the MCQ Diagram Extractor.
"""

from .backoff import is_rate_limit_error, run_with_retry
from .errors import ConfigurationError, DocumentLoadError, ExtractorError
from .gemini_client import GeminiClient
from .image_utils import (
    crop_diagram,
    crop_region,
    decode_data_url,
    padded_region,
    to_data_url,
)
from .request_queue import RequestQueue
from .settings import get_api_key, has_api_key, save_api_key

__all__ = [
    "is_rate_limit_error",
    "run_with_retry",
    "ConfigurationError",
    "DocumentLoadError",
    "ExtractorError",
    "GeminiClient",
    "crop_diagram",
    "crop_region",
    "decode_data_url",
    "padded_region",
    "to_data_url",
    "RequestQueue",
    "get_api_key",
    "has_api_key",
    "save_api_key",
]
