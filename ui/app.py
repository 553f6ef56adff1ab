"""
Streamlit UI for the MCQ Diagram Extractor.
"""

import asyncio
import sys
from pathlib import Path

import streamlit as st

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import UI_LAYOUT, UI_PAGE_ICON, UI_PAGE_TITLE, configure_logging
from pipeline.exporter import render_docx, render_json, render_pdf, render_text, report_filename
from pipeline.models import ExtractionResult, ProcessStep, ProgressEvent, Question
from pipeline.orchestrator import DocumentExtractor
from utils.image_utils import decode_data_url
from utils.settings import get_api_key, save_api_key

DOWNLOADS = [
    ("JSON", "json", "application/json", render_json),
    ("Text", "txt", "text/plain", render_text),
    ("PDF", "pdf", "application/pdf", render_pdf),
    ("Word", "docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document", render_docx),
]


def reset_session():
    """Forget the current document and its results."""
    st.session_state.pop("result", None)
    # A new widget key clears the uploaded file
    st.session_state.uploader_key = st.session_state.get("uploader_key", 0) + 1


def show_api_key_settings():
    """Sidebar: show key status and allow saving a new key."""
    st.header("Gemini API Key")
    if get_api_key():
        st.success("API key configured")
    else:
        st.warning("No API key found")
        st.caption("Get a free key at https://aistudio.google.com/app/apikey")

    with st.form("api_key_form", clear_on_submit=True):
        new_key = st.text_input("API key", type="password")
        if st.form_submit_button("Save Key"):
            try:
                path = save_api_key(new_key)
            except ValueError as e:
                st.error(str(e))
            else:
                st.success(f"Saved to {path}")
                st.rerun()


def run_extraction(pdf_bytes: bytes, filename: str) -> ExtractionResult:
    """Run the pipeline, mirroring progress events into a progress bar."""
    bar = st.progress(0, text="Starting...")

    def on_progress(event: ProgressEvent):
        bar.progress(int(event.progress), text=event.message or event.step.value)

    extractor = DocumentExtractor(on_progress=on_progress)
    return asyncio.run(extractor.process(pdf_bytes, filename))


def show_diagram(slot, width: int):
    if not slot.is_enriched:
        return
    data, _ = decode_data_url(slot.image_url)
    st.image(data, width=width)
    if slot.caption:
        st.caption(slot.caption)


def show_question(q: Question):
    """Render one question card."""
    with st.container(border=True):
        st.markdown(f"**Q{q.question_number}.** {q.question_text}")
        st.caption(f"Page {q.page_number}")
        show_diagram(q.diagram, width=400)

        cols = st.columns(2)
        for i, (label, option) in enumerate(q.options.items()):
            with cols[i % 2]:
                st.markdown(f"**({label})** {option.text}")
                show_diagram(option.diagram, width=200)


def show_downloads(result: ExtractionResult):
    cols = st.columns(len(DOWNLOADS))
    for col, (label, fmt, mime, render) in zip(cols, DOWNLOADS):
        with col:
            st.download_button(
                f"Download {label}",
                data=render(result),
                file_name=report_filename(result.filename, fmt),
                mime=mime,
                key=f"download_{fmt}",
            )


def main():
    """Main Streamlit application."""
    st.set_page_config(
        page_title=UI_PAGE_TITLE,
        page_icon=UI_PAGE_ICON,
        layout=UI_LAYOUT,
    )
    configure_logging()

    st.title(f"{UI_PAGE_ICON} {UI_PAGE_TITLE}")

    with st.sidebar:
        show_api_key_settings()
        st.divider()
        if st.button("Start Over", type="secondary"):
            reset_session()
            st.rerun()

    result = st.session_state.get("result")

    if result is None:
        uploaded = st.file_uploader(
            "Upload a scanned MCQ paper (PDF)",
            type=["pdf"],
            key=f"pdf_upload_{st.session_state.get('uploader_key', 0)}",
        )
        if uploaded and st.button("Extract Questions", type="primary"):
            with st.spinner("Extracting..."):
                st.session_state.result = run_extraction(uploaded.getvalue(), uploaded.name)
            st.rerun()
        return

    if result.step == ProcessStep.ERROR:
        st.error(result.error or result.message)
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Pages", result.total_pages)
    col2.metric("Questions", result.total_questions)
    col3.metric("With diagrams", result.questions_with_diagrams)

    show_downloads(result)
    st.divider()

    if not result.questions:
        st.info("No questions found in this document.")
    for q in result.questions:
        show_question(q)


if __name__ == "__main__":
    main()
