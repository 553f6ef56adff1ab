"""
Configuration constants for the MCQ Diagram Extraction Pipeline.
"""

import logging
import os
from pathlib import Path

# Directory paths
PROJECT_ROOT = Path(__file__).parent
OUTPUT_DIR = Path(os.environ.get("MCQ_OUTPUT_DIR", PROJECT_ROOT / "output"))
SETTINGS_PATH = Path(
    os.environ.get("MCQ_SETTINGS_PATH", Path.home() / ".mcq_extractor" / "settings.json")
)

# Gemini configuration
DEFAULT_MODEL = os.environ.get("GEMINI_MODEL_NAME", "gemini-3-flash-preview")
API_KEY_ENV_VAR = "GEMINI_API_KEY"
API_KEY_SETTING = "gemini_api_key"
TEMPERATURE = 0.1

# Request orchestration
MAX_CONCURRENT_REQUESTS = int(os.environ.get("MAX_CONCURRENT_REQUESTS", 10))
PAGE_CONCURRENCY = int(os.environ.get("PAGE_CONCURRENCY", 2))
MAX_RETRIES = 5
INITIAL_RETRY_DELAY = 2.0  # seconds, doubled after every rate-limited attempt

# Rendering and cropping
RENDER_SCALE = 2.0  # 144 DPI, PDF standard is 72
JPEG_QUALITY = 85
CROP_PADDING = 0.025  # fraction of the box size added on each side
BBOX_SCALE = 1000  # bounding boxes are normalized to 0-1000
MIN_BBOX_EXTENT = 1
IMAGE_DECODE_TIMEOUT = 10.0  # seconds

OPTION_LABELS = ("A", "B", "C", "D")

# Export
EXPORT_FORMATS = ("json", "txt", "pdf", "docx")
REPORT_TITLE = "MCQ Extraction Report"

# Unicode TTF for PDF reports; the first existing file wins, Helvetica otherwise
PDF_FONT_PATH = os.environ.get("MCQ_PDF_FONT")
PDF_FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/noto/NotoSansDevanagari-Regular.ttf",
    "/usr/share/fonts/noto/NotoSansDevanagari-Regular.ttf",
    "/usr/share/fonts/google-noto/NotoSansDevanagari-Regular.ttf",
    "/usr/share/fonts/truetype/lohit-devanagari/Lohit-Devanagari.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
    "/Library/Fonts/NotoSansDevanagari-Regular.ttf",
    "/System/Library/Fonts/Supplemental/Devanagari Sangam MN.ttc",
    "C:/Windows/Fonts/Nirmala.ttf",
    "C:/Windows/Fonts/mangal.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
)

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Streamlit UI settings
UI_PAGE_TITLE = "MCQ Diagram Extractor"
UI_PAGE_ICON = "📝"
UI_LAYOUT = "wide"


# Vision model prompts
SYSTEM_INSTRUCTION = """You are an expert academic document analyzer. Extract multiple choice questions from test papers with high precision.

RULES:
1. Extract every question on the page.
2. Extract the question number and the full question text.
3. Use LaTeX between single dollar signs (e.g., $E=mc^2$) for ALL mathematical and scientific notation.
4. Extract all 4 options (A, B, C, D).
5. DIAGRAMS:
   - Some questions have a main diagram before or after the question text. Give its 'diagram_bbox'.
   - Other questions have diagrams INSIDE THE OPTIONS (e.g., option A is a geometric shape).
   - If an option is or contains a diagram, you MUST give a tight bbox for that option ('A_diagram_bbox', ...).
   - If an option has no text, use a short placeholder such as "Figure A" in its text field.
6. COORDINATES: bounding boxes are [ymin, xmin, ymax, xmax] normalized to 0-1000. Keep them tight around the visual content only.
7. Preserve non-Latin scripts (e.g., Devanagari) exactly. For bilingual papers extract the primary language, or both if they are distinct questions."""

EXTRACTION_PROMPT = (
    "Extract all questions. Look closely at the area below each question for "
    "option-specific diagrams. If an option choice is an image or figure, provide "
    "its bbox. Keep all bboxes tight around the visual elements."
)

CAPTION_SYSTEM_INSTRUCTION = (
    "You are an OCR and image analysis expert. Provide a text representation "
    "of the visual information in the image."
)

CAPTION_PROMPT = (
    "Extract all text from this diagram. If there is no text, describe the "
    "visual elements briefly. Be concise."
)


def configure_logging(level: str = LOG_LEVEL) -> logging.Logger:
    """Set up a single console handler for the pipeline loggers."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )
    # google-genai and httpx are chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)
    return logging.getLogger("mcq_extractor")
