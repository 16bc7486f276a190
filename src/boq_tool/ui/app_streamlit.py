"""
Streamlit UI for BOQ extraction and re-pricing.

Features:
- Upload a PDF/image and extract BOQs and tables
- Editable BOQ grid and table editors with Excel export
- Project details and adjustment sliders (margin, freight, customs, installation, quantity)
- Final BOQ with totals, exported to CSV / Excel / PDF
"""
import asyncio
import math
from datetime import datetime

import pandas as pd
import streamlit as st

from boq_tool import __version__
from boq_tool.config.logging_config import setup_logging
from boq_tool.config.settings import get_settings
from boq_tool.engine import (
    AdjustmentParameters,
    InvalidLineItemError,
    LineItem,
    ProjectDetails,
    compute_original_subtotal,
    price,
)
from boq_tool.export import export_boq_excel, export_boq_pdf, export_csv, export_tables_excel
from boq_tool.export.excel_export import XLSX_MIME
from boq_tool.export.tabular import build_rows, build_summary_rows, labelled
from boq_tool.services.data_uri import encode_data_uri, guess_mime_type
from boq_tool.services.extraction_service import ExtractionError, ExtractionService
from boq_tool.services.image_service import resolve_image_refs


st.set_page_config(
    page_title="Estimation Pro",
    layout="wide",
    initial_sidebar_state="expanded"
)

NO_DATA_MESSAGE = "Could not extract any data. The format may be unsupported or the document empty."
GRID_COLUMNS = ['section', 'item_code', 'description', 'quantity', 'unit', 'rate', 'amount', 'image_ref']


@st.cache_resource
def get_settings_cached():
    """Get cached settings."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)
    return settings


@st.cache_resource
def get_service():
    """Get cached extraction service."""
    return ExtractionService(get_settings_cached())


@st.cache_data(show_spinner=False)
def get_item_images(items: tuple, timeout: float) -> dict:
    """Fetch remote item images once per distinct item set."""
    return resolve_image_refs(items, timeout=timeout)


try:
    settings = get_settings_cached()
    service = get_service()
except Exception as e:
    st.error(f"System Error: {e}")
    st.stop()


def _cell(value):
    """Blank grid cells come back as NaN; the model expects None."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if hasattr(value, 'item'):  # numpy scalar
        return value.item()
    return value


def items_from_frame(df: pd.DataFrame) -> list[LineItem]:
    """Build validated line items from the edited grid."""
    items = []
    for row_number, record in enumerate(df.to_dict(orient='records'), start=1):
        data = {key: _cell(value) for key, value in record.items() if key != 'section'}
        try:
            items.append(LineItem.from_dict(data, missing_policy=settings.missing_value_policy))
        except InvalidLineItemError as e:
            raise InvalidLineItemError(f"Row {row_number}: {e}") from e
    return items


def frame_from_extraction(result) -> pd.DataFrame:
    """Flatten every BOQ section into one grid, remembering the section title."""
    records = []
    for index, section in enumerate(result.boqs, start=1):
        title = section.title or f"BOQ {index}"
        for item in section.items:
            line = item.to_line_item(settings.missing_value_policy)
            records.append({
                'section': title,
                'item_code': line.item_code,
                'description': line.description,
                'quantity': line.quantity,
                'unit': line.unit,
                'rate': line.rate,
                'amount': line.amount,
                'image_ref': line.image_ref,
            })
    return pd.DataFrame(records, columns=GRID_COLUMNS)


def reset_results():
    st.session_state.extraction = None
    st.session_state.boq_frame = None
    st.session_state.show_final = False
    st.session_state.pdf_bytes = None


for key, default in (('extraction', None), ('boq_frame', None), ('show_final', False), ('pdf_bytes', None)):
    if key not in st.session_state:
        st.session_state[key] = default


# ============================================================================
# CUSTOM CSS & STYLING
# ============================================================================
st.markdown("""
    <style>
        .block-container {
            padding-top: 2rem;
            padding-bottom: 2rem;
        }
        h1 {
            font-family: 'Helvetica Neue', Helvetica, Arial, sans-serif;
            font-weight: 700;
        }
        .stMetric {
            background-color: #f0f2f6;
            padding: 10px;
            border-radius: 5px;
            border-left: 5px solid #433ab7;
        }
        [data-testid="stSidebar"] {
            background-color: #f8f9fa;
        }
    </style>
""", unsafe_allow_html=True)

# ============================================================================
# SIDEBAR: Project Details & Adjustments
# ============================================================================
with st.sidebar:
    st.header("🏢 Project Details")

    with st.container(border=True):
        project = ProjectDetails(
            project_name=st.text_input("Project Name", placeholder="e.g., Tower A Fit-out"),
            contact_person=st.text_input("Contact Person"),
            company_name=st.text_input("Company Name"),
            contact_number=st.text_input("Contact Number"),
        )

    st.divider()
    st.header("📈 Adjustments")

    with st.container(border=True):
        net_margin = st.slider("Net Margin (%)", min_value=0, max_value=100, value=0, step=1)
        freight = st.slider("Freight (%)", min_value=0, max_value=100, value=0, step=1)
        customs = st.slider("Custom Clearances (%)", min_value=0, max_value=100, value=0, step=1)
        installation = st.slider("Installation (%)", min_value=0, max_value=100, value=0, step=1)
        quantity_upscale = st.slider("Quantity Upscale", min_value=-10, max_value=10, value=0, step=1)

    params = AdjustmentParameters(
        net_margin_pct=net_margin,
        freight_pct=freight,
        customs_pct=customs,
        installation_pct=installation,
        quantity_upscale=quantity_upscale,
        vat_rate=settings.vat_rate,
    )
    st.caption(f"Cost factor × {params.cost_increase_factor:g} | Quantity × {params.quantity_multiplier:g}")

    st.divider()

    if service.configured:
        st.success(f"🤖 **Extraction model:** {settings.gemini_model}")
    else:
        st.warning("⚠️ GOOGLE_API_KEY not set - extraction disabled")


# ============================================================================
# MAIN CONTENT: TABBED INTERFACE
# ============================================================================
st.title("Estimation Pro")
st.caption(f"v{__version__} | Upload a file (PDF, image) to extract tables and Bills of Quantities | {datetime.now().strftime('%Y-%m-%d')}")

tab1, tab2, tab3, tab4 = st.tabs(["📄 Extract", "💰 Final BOQ", "📋 Tables", "📊 System"])


# ============================================================================
# TAB 1: UPLOAD & EXTRACT
# ============================================================================
edited_frame = None

with tab1:
    col1, col2 = st.columns([1.8, 1.2], gap="large")

    with col1:
        with st.container(border=True):
            st.markdown("##### 📤 Upload Document")
            uploaded = st.file_uploader(
                "Upload", type=["pdf", "png", "jpg", "jpeg"],
                label_visibility="collapsed", on_change=reset_results,
            )

            if st.button("⚡ Extract Data", type="primary", disabled=uploaded is None):
                mime_type = uploaded.type or guess_mime_type(uploaded.name)
                data_uri = encode_data_uri(uploaded.getvalue(), mime_type)
                reset_results()
                with st.spinner(f"Extracting {uploaded.name}..."):
                    try:
                        result = asyncio.run(service.extract(data_uri))
                    except (ExtractionError, ValueError) as e:
                        st.error(f"Server error: {e}")
                        result = None

                if result is not None:
                    if result.has_content():
                        st.session_state.extraction = result
                        st.session_state.boq_frame = frame_from_extraction(result)
                    else:
                        st.error(NO_DATA_MESSAGE)

    with col2:
        st.subheader("Extraction Summary")
        with st.container(border=True):
            extraction = st.session_state.extraction
            if extraction is not None:
                m1, m2 = st.columns(2)
                m1.metric("BOQ Items", sum(len(s.items) for s in extraction.boqs))
                m2.metric("Tables", len(extraction.tables))
                if extraction.prices:
                    with st.expander("💲 Prices mentioned"):
                        for value in extraction.prices:
                            st.caption(value)
                for lst in extraction.lists:
                    with st.expander(f"📝 {lst.title or 'List'}"):
                        for entry in lst.items:
                            st.markdown(f"- {entry}")
            else:
                st.info("📄 No document extracted yet")
                st.caption("Upload a PDF or image and click Extract Data.")

    # Editable BOQ grid (Full Width)
    if st.session_state.boq_frame is not None and not st.session_state.boq_frame.empty:
        st.markdown("### 📝 Edit Line Items")
        for section in st.session_state.extraction.boqs:
            if section.description:
                st.caption(f"**{section.title or 'BOQ'}**: {section.description}")

        edited_frame = st.data_editor(
            st.session_state.boq_frame,
            use_container_width=True,
            num_rows="dynamic",
            column_config={
                "section": st.column_config.TextColumn("Section", disabled=True),
                "item_code": st.column_config.TextColumn("Item"),
                "description": st.column_config.TextColumn("Description", width="large"),
                "quantity": st.column_config.NumberColumn("Quantity"),
                "unit": st.column_config.TextColumn("Unit"),
                "rate": st.column_config.NumberColumn("Rate", format="%.2f"),
                "amount": st.column_config.NumberColumn("Amount", format="%.2f"),
                "image_ref": st.column_config.ImageColumn("Image"),
            },
            hide_index=True,
            key="boq_editor"
        )

        try:
            original_subtotal = compute_original_subtotal(items_from_frame(edited_frame))
            st.metric("Original Subtotal", f"{original_subtotal:,.2f}")
        except InvalidLineItemError as e:
            st.error(str(e))


# ============================================================================
# TAB 2: FINAL BOQ
# ============================================================================
with tab2:
    if edited_frame is None:
        st.info("Extract a BOQ first, then generate the final priced version here.")
    else:
        if st.button("🧮 Generate Final BOQ", type="primary"):
            st.session_state.show_final = True
            st.session_state.pdf_bytes = None

        result = None
        if st.session_state.show_final:
            # every slider change reruns the script and reprices from scratch
            try:
                result = price(items_from_frame(edited_frame), params)
            except InvalidLineItemError as e:
                st.error(str(e))

        if result is not None:
            m1, m2, m3, m4 = st.columns(4)
            m1.metric("Original Subtotal", f"{result.subtotal_original:,.2f}")
            m2.metric("Final Subtotal", f"{result.subtotal_final:,.2f}")
            m3.metric(f"VAT ({result.vat_rate * 100:g}%)", f"{result.vat_amount:,.2f}")
            m4.metric("Grand Total", f"{result.grand_total:,.2f}")

            st.dataframe(pd.DataFrame(labelled(build_rows(result))), use_container_width=True, hide_index=True)
            st.dataframe(
                pd.DataFrame(build_summary_rows(result), columns=["", "Value"]),
                hide_index=True,
            )

            with st.expander("🔍 Pricing Details"):
                for step in result.trace:
                    if step.value:
                        st.caption(f"**{step.step}**: {step.description} = `{step.value}`")
                    else:
                        st.caption(f"**{step.step}**: {step.description}")

            st.divider()

            stem = project.file_stem()
            btn_col1, btn_col2, btn_col3 = st.columns(3)
            with btn_col1:
                st.download_button(
                    "📥 CSV",
                    data=export_csv(result, project),
                    file_name=f"{stem}.csv",
                    mime="text/csv",
                    use_container_width=True
                )
            with btn_col2:
                st.download_button(
                    "📥 Excel",
                    data=export_boq_excel(result, project),
                    file_name=f"{stem}.xlsx",
                    mime=XLSX_MIME,
                    use_container_width=True
                )
            with btn_col3:
                if st.button("📄 Prepare PDF", use_container_width=True):
                    with st.spinner("Generating PDF..."):
                        images = get_item_images(tuple(result.items), settings.image_timeout)
                        st.session_state.pdf_bytes = export_boq_pdf(result, project, settings.letterhead, images)
                if st.session_state.pdf_bytes:
                    st.download_button(
                        "📥 PDF",
                        data=st.session_state.pdf_bytes,
                        file_name=f"{stem}.pdf",
                        mime="application/pdf",
                        use_container_width=True
                    )


# ============================================================================
# TAB 3: EXTRACTED TABLES
# ============================================================================
with tab3:
    extraction = st.session_state.extraction
    if extraction is None or not extraction.tables:
        st.info("No tables extracted.")
    else:
        for index, table in enumerate(extraction.tables, start=1):
            st.subheader(f"📋 Table {index}")
            if table.description:
                st.caption(table.description)

            edited_table = st.data_editor(
                pd.DataFrame(table.to_records(), columns=table.headers),
                use_container_width=True,
                num_rows="dynamic",
                hide_index=True,
                key=f"table_editor_{index}"
            )

            records = [
                {key: _cell(value) for key, value in record.items()}
                for record in edited_table.to_dict(orient='records')
            ]
            if records:
                base_name = uploaded.name if uploaded is not None else "table"
                content, file_name = export_tables_excel(records, f"{base_name}_table_{index}")
                st.download_button(
                    "📥 Export to Excel",
                    data=content,
                    file_name=file_name,
                    mime=XLSX_MIME,
                    key=f"table_export_{index}"
                )
            st.divider()


# ============================================================================
# TAB 4: SYSTEM INFO
# ============================================================================
with tab4:
    st.header("System Status")

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("VAT Rate", f"{settings.vat_rate * 100:g}%")
    c2.metric("Missing Values", settings.missing_value_policy)
    c3.metric("Model", settings.gemini_model)
    c4.metric("Image Timeout", f"{settings.image_timeout:g}s")

    st.divider()
    st.subheader("Letterhead")
    st.json({
        "company_name": settings.letterhead.company_name,
        "signatory": settings.letterhead.signatory_name,
        "links": list(settings.letterhead.links),
    })
