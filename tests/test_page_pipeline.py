"""
Tests for per-page extraction and diagram enrichment.
"""

import asyncio

import pytest

from pipeline.models import Question
from pipeline.page_pipeline import PagePipeline
from pipeline.vision_extractor import CaptionClient, ExtractionClient
from tests.fakes import is_extraction, make_question, questions_json
from utils.errors import ConfigurationError

MAIN_BBOX = [100, 100, 200, 200]
OPTION_A_BBOX = [300, 100, 350, 200]


def diagram_question(number=1) -> dict:
    payload = make_question(number=number, has_diagram=True, diagram_bbox=MAIN_BBOX)
    payload["options"]["A_diagram_bbox"] = OPTION_A_BBOX
    return payload


class StubExtractor:
    def __init__(self, payloads=None, error=None):
        self.payloads = payloads or []
        self.error = error

    async def extract_page(self, page):
        if self.error:
            raise self.error
        return [Question.from_response(p, page.page_number, i) for i, p in enumerate(self.payloads)]


class StubCaptioner:
    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.seen = []

    async def caption(self, image_url):
        self.seen.append(image_url)
        if image_url in self.fail_on:
            raise RuntimeError("caption failed")
        return f"caption for {image_url}"


def bbox_cropper(names):
    """Cropper returning a fixed URL per bounding box."""

    async def crop(data, bbox, width, height):
        await asyncio.sleep(0)
        return names.get(tuple(bbox.to_list()))

    return crop


CROPS = {
    tuple(float(v) for v in MAIN_BBOX): "crop-main",
    tuple(float(v) for v in OPTION_A_BBOX): "crop-A",
}


class TestPagePipeline:
    """Test PagePipeline.process."""

    def test_no_diagrams(self, page_image):
        pipeline = PagePipeline(StubExtractor([make_question()]), StubCaptioner(), bbox_cropper(CROPS))
        qs = asyncio.run(pipeline.process(page_image))

        assert len(qs) == 1
        assert all(slot.image_url is None and slot.caption is None for _, slot in qs[0].diagram_slots())

    def test_question_and_option_diagrams(self, page_image):
        captioner = StubCaptioner()
        pipeline = PagePipeline(StubExtractor([diagram_question()]), captioner, bbox_cropper(CROPS))

        q = asyncio.run(pipeline.process(page_image))[0]

        assert q.diagram.image_url == "crop-main"
        assert q.diagram.caption == "caption for crop-main"
        assert q.options.get("A").diagram.image_url == "crop-A"
        assert q.options.get("A").diagram.caption == "caption for crop-A"
        assert q.options.get("B").diagram.image_url is None
        assert sorted(captioner.seen) == ["crop-A", "crop-main"]

    def test_crops_run_concurrently(self, page_image):
        in_flight = []
        peak = []

        async def cropper(data, bbox, width, height):
            in_flight.append(bbox)
            peak.append(len(in_flight))
            await asyncio.sleep(0.01)
            in_flight.remove(bbox)
            return "crop"

        pipeline = PagePipeline(StubExtractor([diagram_question()]), StubCaptioner(), cropper)
        asyncio.run(pipeline.process(page_image))
        assert max(peak) == 2

    def test_failed_caption_leaves_slot_unset(self, page_image):
        captioner = StubCaptioner(fail_on={"crop-A"})
        pipeline = PagePipeline(StubExtractor([diagram_question()]), captioner, bbox_cropper(CROPS))

        q = asyncio.run(pipeline.process(page_image))[0]

        assert q.diagram.image_url == "crop-main"
        assert q.options.get("A").diagram.image_url is None
        assert q.options.get("A").diagram.caption is None

    def test_empty_crop_skips_caption(self, page_image):
        captioner = StubCaptioner()
        pipeline = PagePipeline(StubExtractor([diagram_question()]), captioner, bbox_cropper({}))

        q = asyncio.run(pipeline.process(page_image))[0]

        assert not q.has_attached_diagrams
        assert captioner.seen == []

    def test_extraction_failure_gives_no_questions(self, page_image):
        pipeline = PagePipeline(StubExtractor(error=RuntimeError("boom")), StubCaptioner())
        assert asyncio.run(pipeline.process(page_image)) == []

    def test_configuration_error_propagates(self, page_image):
        pipeline = PagePipeline(StubExtractor(error=ConfigurationError("no key")), StubCaptioner())
        with pytest.raises(ConfigurationError):
            asyncio.run(pipeline.process(page_image))


class TestPagePipelineWithGemini:
    """End to end over the fake genai client with real cropping."""

    def test_real_crops_attached(self, make_client, page_image):
        def responder(image, prompt, config):
            if is_extraction(config):
                return questions_json(diagram_question())
            return "triangle ABC"

        client, fake = make_client(responder)
        pipeline = PagePipeline(ExtractionClient(client), CaptionClient(client))

        q = asyncio.run(pipeline.process(page_image))[0]

        assert q.diagram.image_url.startswith("data:image/png;base64,")
        assert q.diagram.caption == "triangle ABC"
        assert q.options.get("A").diagram.image_url.startswith("data:image/png;base64,")
        assert len(fake.calls) == 3
