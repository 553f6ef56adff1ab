"""
Tests for the question data model.
"""

import pytest

from pipeline.models import (
    BoundingBox,
    DiagramSlot,
    ExtractionResult,
    Options,
    Question,
    sort_questions,
)
from tests.fakes import make_question


class TestBoundingBox:
    """Test BoundingBox parsing."""

    def test_from_values(self):
        assert BoundingBox.from_values([1, 2, 3, 4]) == BoundingBox(1.0, 2.0, 3.0, 4.0)

    @pytest.mark.parametrize("values", [None, [1, 2, 3], "1,2,3,4", [1, 2, "x", 4], {"a": 1}])
    def test_rejects_malformed(self, values):
        assert BoundingBox.from_values(values) is None

    def test_normalized(self):
        assert BoundingBox(300, 400, 100, 200).normalized() == BoundingBox(100, 200, 300, 400)

    def test_degenerate(self):
        assert BoundingBox(100, 100, 100, 200).is_degenerate
        assert not BoundingBox(100, 100, 101, 101).is_degenerate


class TestOptions:
    def test_fixed_labels(self):
        options = Options()
        assert [label for label, _ in options.items()] == ["A", "B", "C", "D"]
        with pytest.raises(KeyError):
            options.get("E")


class TestQuestion:
    """Test Question parsing and serialization."""

    def test_from_response(self):
        payload = make_question(
            number=7,
            has_diagram=True,
            diagram_bbox=[100, 100, 200, 200],
            diagram_description="A right triangle",
        )
        payload["options"]["A_diagram_bbox"] = [300, 100, 350, 200]

        q = Question.from_response(payload, page_number=2, index=0)

        assert q.id == "p2-q0"
        assert q.question_number == 7
        assert q.options.get("B").text == "4"
        assert q.diagram.bbox == BoundingBox(100, 100, 200, 200)
        assert q.options.get("A").diagram.bbox == BoundingBox(300, 100, 350, 200)
        assert q.options.get("B").diagram.bbox is None
        assert q.diagram_description == "A right triangle"

    def test_missing_fields_default(self):
        q = Question.from_response({"question_text": "Pick one", "options": {"A": "x"}}, page_number=1, index=3)
        assert q.question_number == 4
        assert q.options.get("A").text == "x"
        assert q.options.get("D").text == ""
        assert q.has_diagram is False

    def test_diagram_slots(self):
        q = Question.from_response(make_question(), 1, 0)
        labels = [label for label, _ in q.diagram_slots()]
        assert labels == [None, "A", "B", "C", "D"]

    def test_to_dict_only_includes_set_slots(self):
        q = Question.from_response(make_question(diagram_bbox=[1, 2, 300, 400]), 1, 0)
        q.diagram.image_url = "data:image/png;base64,AAAA"
        q.diagram.caption = "x = 5"

        data = q.to_dict()

        assert data["diagram_bbox"] == [1.0, 2.0, 300.0, 400.0]
        assert data["diagram_url"] == "data:image/png;base64,AAAA"
        assert data["diagram_alt_text"] == "x = 5"
        assert data["options"] == {"A": "3", "B": "4", "C": "5", "D": "6"}
        assert "diagram_description" not in data

    def test_option_slot_serialization(self):
        q = Question.from_response(make_question(), 1, 0)
        q.options.get("C").diagram = DiagramSlot(image_url="data:image/png;base64,BBBB", caption="circle")
        options = q.to_dict()["options"]
        assert options["C_diagram_url"] == "data:image/png;base64,BBBB"
        assert options["C_diagram_alt_text"] == "circle"
        assert "A_diagram_url" not in options


class TestSortQuestions:
    def test_sorted_by_page_then_number(self):
        qs = [
            Question.from_response(make_question(number=n), page_number=p, index=0)
            for p, n in [(2, 1), (1, 3), (1, 1), (3, 2), (2, 5)]
        ]
        ordered = sort_questions(qs)
        assert [(q.page_number, q.question_number) for q in ordered] == [
            (1, 1), (1, 3), (2, 1), (2, 5), (3, 2),
        ]
        assert sort_questions(ordered) == ordered


class TestExtractionResult:
    def test_counts(self):
        qs = [Question.from_response(make_question(number=n), 1, n) for n in (1, 2)]
        qs[1].options.get("A").diagram.image_url = "data:image/png;base64,AAAA"
        result = ExtractionResult(filename="paper.pdf", total_pages=1, questions=qs)

        data = result.to_dict()
        assert data["total_questions"] == 2
        assert data["questions_with_diagrams"] == 1
        assert [q["question_number"] for q in data["questions"]] == [1, 2]
