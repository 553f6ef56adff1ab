"""
Data structures shared by the extraction pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from config import MIN_BBOX_EXTENT, OPTION_LABELS


@dataclass(frozen=True)
class BoundingBox:
    """Rectangle [ymin, xmin, ymax, xmax] in 0-1000 normalized space."""
    ymin: float
    xmin: float
    ymax: float
    xmax: float

    @classmethod
    def from_values(cls, values: Any) -> Optional["BoundingBox"]:
        """Build a box from a model-supplied list; None unless exactly four numbers."""
        if not isinstance(values, (list, tuple)) or len(values) != 4:
            return None
        try:
            ymin, xmin, ymax, xmax = (float(v) for v in values)
        except (TypeError, ValueError):
            return None
        return cls(ymin, xmin, ymax, xmax)

    def normalized(self) -> "BoundingBox":
        """Swap components so that ymin <= ymax and xmin <= xmax."""
        return BoundingBox(
            ymin=min(self.ymin, self.ymax),
            xmin=min(self.xmin, self.xmax),
            ymax=max(self.ymin, self.ymax),
            xmax=max(self.xmin, self.xmax),
        )

    @property
    def is_degenerate(self) -> bool:
        box = self.normalized()
        return (box.ymax - box.ymin) < MIN_BBOX_EXTENT or (box.xmax - box.xmin) < MIN_BBOX_EXTENT

    def to_list(self) -> List[float]:
        return [self.ymin, self.xmin, self.ymax, self.xmax]


@dataclass
class DiagramSlot:
    """One diagram position: where it is on the page, plus the crop and caption once resolved."""
    bbox: Optional[BoundingBox] = None
    image_url: Optional[str] = None
    caption: Optional[str] = None

    @property
    def is_enriched(self) -> bool:
        return self.image_url is not None


@dataclass
class Option:
    text: str = ""
    diagram: DiagramSlot = field(default_factory=DiagramSlot)


@dataclass
class Options:
    """The four answer choices. Always exactly A-D."""
    a: Option = field(default_factory=Option)
    b: Option = field(default_factory=Option)
    c: Option = field(default_factory=Option)
    d: Option = field(default_factory=Option)

    def get(self, label: str) -> Option:
        if label not in OPTION_LABELS:
            raise KeyError(label)
        return getattr(self, label.lower())

    def items(self) -> Iterator[Tuple[str, Option]]:
        for label in OPTION_LABELS:
            yield label, self.get(label)


@dataclass
class Question:
    """A multiple choice question extracted from one page."""
    id: str
    page_number: int
    question_number: int
    question_text: str
    options: Options = field(default_factory=Options)
    has_diagram: bool = False
    diagram_description: Optional[str] = None
    diagram: DiagramSlot = field(default_factory=DiagramSlot)

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.page_number, self.question_number)

    def diagram_slots(self) -> Iterator[Tuple[Optional[str], DiagramSlot]]:
        """Yield (option label or None for the question diagram, slot) for all five slots."""
        yield None, self.diagram
        for label, option in self.options.items():
            yield label, option.diagram

    @property
    def has_attached_diagrams(self) -> bool:
        return any(slot.is_enriched for _, slot in self.diagram_slots())

    @classmethod
    def from_response(cls, payload: Dict[str, Any], page_number: int, index: int) -> "Question":
        """Build a Question from one object of the model's `questions` array."""
        raw_options = payload.get("options") or {}
        if not isinstance(raw_options, dict):
            raw_options = {}

        options = Options()
        for label, option in options.items():
            option.text = _as_text(raw_options.get(label))
            option.diagram.bbox = BoundingBox.from_values(raw_options.get(f"{label}_diagram_bbox"))

        description = payload.get("diagram_description")
        return cls(
            id=f"p{page_number}-q{index}",
            page_number=page_number,
            question_number=_as_number(payload.get("question_number"), default=index + 1),
            question_text=_as_text(payload.get("question_text")),
            options=options,
            has_diagram=bool(payload.get("has_diagram", False)),
            diagram_description=description if isinstance(description, str) and description.strip() else None,
            diagram=DiagramSlot(bbox=BoundingBox.from_values(payload.get("diagram_bbox"))),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize in the export/JSON shape."""
        options: Dict[str, Any] = {}
        for label, option in self.options.items():
            options[label] = option.text
        for label, option in self.options.items():
            _put_slot(options, f"{label}_", option.diagram)

        data: Dict[str, Any] = {
            "id": self.id,
            "question_number": self.question_number,
            "question_text": self.question_text,
            "has_diagram": self.has_diagram,
            "page_number": self.page_number,
            "options": options,
        }
        if self.diagram_description:
            data["diagram_description"] = self.diagram_description
        _put_slot(data, "", self.diagram)
        return data


def _put_slot(target: Dict[str, Any], prefix: str, slot: DiagramSlot) -> None:
    if slot.bbox is not None:
        target[f"{prefix}diagram_bbox"] = slot.bbox.to_list()
    if slot.image_url is not None:
        target[f"{prefix}diagram_url"] = slot.image_url
    if slot.caption is not None:
        target[f"{prefix}diagram_alt_text"] = slot.caption


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_number(value: Any, default: int) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def sort_questions(questions: Iterable[Question]) -> List[Question]:
    """Sort by page number, then question number."""
    return sorted(questions, key=lambda q: q.sort_key)


@dataclass
class PageImage:
    """A rendered PDF page."""
    page_number: int
    data: bytes  # JPEG
    width: int
    height: int


class ProcessStep(str, Enum):
    IDLE = "IDLE"
    LOADING_PDF = "LOADING_PDF"
    CONVERTING_PAGES = "CONVERTING_PAGES"
    EXTRACTING_DATA = "EXTRACTING_DATA"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


@dataclass
class ProgressEvent:
    step: ProcessStep
    progress: float
    message: str = ""


@dataclass
class ExtractionResult:
    """Outcome of one document session."""
    filename: str
    total_pages: int = 0
    questions: List[Question] = field(default_factory=list)
    step: ProcessStep = ProcessStep.IDLE
    message: str = ""
    error: Optional[str] = None

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def questions_with_diagrams(self) -> int:
        return sum(1 for q in self.questions if q.has_attached_diagrams)

    @property
    def succeeded(self) -> bool:
        return self.step == ProcessStep.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "total_pages": self.total_pages,
            "total_questions": self.total_questions,
            "questions_with_diagrams": self.questions_with_diagrams,
            "questions": [q.to_dict() for q in self.questions],
        }
