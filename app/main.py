from __future__ import annotations

import base64

import streamlit as st

from page_assembler.adapters.pymupdf_adapter import PyMuPdfAdapter
from page_assembler.domain.errors import PageAssemblerError
from page_assembler.domain.models import PageManifest, PageSummary
from page_assembler.infrastructure.config import AppConfig
from page_assembler.infrastructure.logging_config import configure_logging
from page_assembler.services.merge_api import MergeApi


def _init_state(config: AppConfig) -> MergeApi:
    if "api" not in st.session_state:
        st.session_state.api = MergeApi.from_config(config)
    st.session_state.setdefault("manifest", PageManifest())
    st.session_state.setdefault("thumbnail_cache", {})
    st.session_state.setdefault("merge_response", None)
    st.session_state.setdefault("upload_token", 0)
    return st.session_state.api


def _thumbnail_bytes(api: MergeApi, summary: PageSummary, zoom: float = 0.32) -> bytes:
    key = (summary.source_document_id, summary.page_number, summary.rotation)
    thumbnail_cache: dict[tuple[str, int, int], bytes] = st.session_state.thumbnail_cache
    if key not in thumbnail_cache:
        content = api.document_bytes(summary.source_document_id)
        thumbnail_cache[key] = PyMuPdfAdapter().render_page_thumbnail(
            content, summary.page_number - 1, zoom=zoom, rotation=summary.rotation
        )
    return thumbnail_cache[key]


def _thumbnail_html(image_bytes: bytes, summary: PageSummary) -> str:
    encoded = base64.b64encode(image_bytes).decode("ascii")
    opacity = "1" if summary.enabled else "0.35"
    border = "#d9534f" if summary.flags else "rgba(120,120,120,0.35)"
    label = f"Page {summary.page_number}"
    if summary.flags:
        label += f" ({', '.join(summary.flags)})"
    return (
        f"<div style='border:1px solid {border};"
        f" border-radius:10px;padding:8px;opacity:{opacity};'>"
        "<div style='text-align:center;font-size:0.85rem;"
        f"font-weight:600;margin-bottom:6px;'>{label}</div>"
        "<div style='display:flex;justify-content:center;'>"
        f"<img src='data:image/png;base64,{encoded}' "
        "style='width:100%;height:auto;border-radius:6px;'/>"
        "</div>"
        f"<div style='text-align:center;font-size:0.75rem;'>{summary.original_name[:24]}</div>"
        "</div>"
    )


def _set_manifest(manifest: PageManifest) -> None:
    st.session_state.manifest = manifest
    st.session_state.merge_response = None


def _upload_section(config: AppConfig, api: MergeApi) -> None:
    uploaded = st.file_uploader(
        (
            "Load one or more PDFs "
            f"(max {config.max_pdf_size_mb} MB each, "
            f"{config.max_batch_size_mb} MB total)"
        ),
        type=["pdf"],
        accept_multiple_files=True,
        key=f"upload_{st.session_state.upload_token}",
    )
    if st.button("Add Uploaded PDFs", type="primary"):
        files = [(item.name, item.getvalue()) for item in uploaded] if uploaded else []
        if not files:
            st.warning("Upload at least one PDF.")
            return
        try:
            result = api.upload(files)
        except PageAssemblerError as exc:
            st.error(exc.detail)
            return
        for item in result.items:
            if item.document is None:
                st.error(" | ".join(message.text for message in item.messages))
        if result.success_count:
            _set_manifest(api.build_manifest())
            st.session_state.upload_token += 1
            st.rerun()


def _documents_section(api: MergeApi) -> None:
    documents = api.documents()
    if not documents:
        st.info("No PDFs loaded yet.")
        return
    st.dataframe(
        [
            {"File": item.original_name, "Pages": item.page_count, "Size (KB)": item.file_size_kb}
            for item in documents
        ],
        use_container_width=True,
    )
    for document in documents:
        if st.button(f"Remove {document.original_name}", key=f"remove_doc_{document.id}"):
            _set_manifest(api.remove_document(document.id))
            st.session_state.thumbnail_cache = {
                key: value
                for key, value in st.session_state.thumbnail_cache.items()
                if key[0] != document.id
            }
            st.rerun()


def _pages_section(api: MergeApi) -> None:
    manifest: PageManifest = st.session_state.manifest
    if not len(manifest):
        return

    service = api.manifest_service
    col_detect, col_clear, col_reset = st.columns(3)
    if col_detect.button("Detect Blank Pages"):
        _set_manifest(api.detect(manifest))
        st.rerun()
    if col_clear.button("Clear Flags"):
        _set_manifest(service.clear_flags(manifest))
        st.rerun()
    if col_reset.button("Reset Page Order"):
        _set_manifest(api.build_manifest())
        st.rerun()

    columns_per_row = 5
    summaries = api.manifest_summaries(manifest)
    cols = st.columns(columns_per_row, gap="small")
    for index, summary in enumerate(summaries):
        with cols[index % columns_per_row]:
            st.markdown(
                _thumbnail_html(_thumbnail_bytes(api, summary), summary), unsafe_allow_html=True
            )
            left, right, toggle, rotate, remove = st.columns(5)
            page_id = summary.page_id
            if left.button("◀", key=f"left_{page_id}"):
                _set_manifest(service.move(manifest, page_id, -1))
                st.rerun()
            if right.button("▶", key=f"right_{page_id}"):
                _set_manifest(service.move(manifest, page_id, 1))
                st.rerun()
            if toggle.button("👁" if summary.enabled else "🚫", key=f"toggle_{page_id}"):
                _set_manifest(service.toggle(manifest, page_id))
                st.rerun()
            if rotate.button("⟳", key=f"rotate_{page_id}"):
                _set_manifest(service.rotate(manifest, page_id))
                st.rerun()
            if remove.button("✕", key=f"remove_{page_id}"):
                _set_manifest(service.remove(manifest, page_id))
                st.rerun()


def _merge_section(config: AppConfig, api: MergeApi) -> None:
    manifest: PageManifest = st.session_state.manifest
    enabled = len(manifest.enabled_pages)
    st.write(f"Pages selected for merging: {enabled} of {len(manifest)}")
    output_name = st.text_input("Output file name", value=config.default_output_name)

    if st.button("Merge PDFs", type="primary", disabled=enabled == 0):
        st.session_state.merge_response = api.merge_manifest(manifest, output_name)

    response = st.session_state.merge_response
    if response is None:
        return
    if not response.success:
        st.error(f"{response.error_kind}: {response.detail}")
        return

    st.success(f"Merged PDF ready ({response.file_size_kb} KB).")
    try:
        download_name, data = api.download(response.download_locator)
    except PageAssemblerError as exc:
        st.error(exc.detail)
        st.session_state.merge_response = None
        return
    st.download_button(
        "Download Merged PDF",
        data=data,
        file_name=download_name,
        mime="application/pdf",
        use_container_width=True,
    )
    st.session_state.merge_response = None


def main() -> None:
    config = AppConfig()
    configure_logging(config)
    st.set_page_config(page_title="PDF Page Assembler", layout="wide")
    st.title("PDF Page Assembler", anchor=False)

    api = _init_state(config)

    _upload_section(config, api)
    _documents_section(api)
    _pages_section(api)
    st.divider()
    _merge_section(config, api)

    if st.button("Clean Up Session"):
        report = api.cleanup([document.id for document in api.documents()])
        _set_manifest(PageManifest())
        st.session_state.thumbnail_cache = {}
        if report.errors:
            st.error("; ".join(f"{item}: {reason}" for item, reason in report.errors))
        st.rerun()


if __name__ == "__main__":
    main()
