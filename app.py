"""Sequencing service order form (Streamlit Web UI)

Run locally:
    streamlit run app.py

Reference workbooks and the orders directory are configured through
SEQORDER_* variables in `.env` (see src/seqorder/config.py).
"""
from __future__ import annotations

import tempfile
from pathlib import Path

import streamlit as st

from src.seqorder.config import OrderFormConfig
from src.seqorder.engine import OrderSession
from src.seqorder.export import export_order_workbook
from src.seqorder.ingestion import ContractError, parse_manifest_workbook, parse_pasted_rows
from src.seqorder.manifest import manifest_tables
from src.seqorder.runtime import build_session_from_config
from src.seqorder.state_schema import CategoryId, ManifestTable, SampleType, WizardStep

# ---------------------------------------------------------------------------
# Page configuration (must be first st call)
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Sequencing Service Order",
    page_icon="🧬",
    layout="wide",
    initial_sidebar_state="expanded",
)

STEP_TITLES = {
    WizardStep.IDENTITY: "1. Sales code",
    WizardStep.PROFILE: "2. Customer & services",
    WizardStep.ITEM_SELECTION: "3. Service items",
    WizardStep.SAMPLE_MANIFEST: "4. Sample manifest",
    WizardStep.REVIEW: "5. Review & submit",
}


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------

def _new_session() -> OrderSession:
    config = OrderFormConfig.from_env()
    session, _assets = build_session_from_config(config)
    st.session_state["order_session"] = session
    st.session_state["config"] = config
    st.session_state["flash"] = []
    return session


def _flash(outcome) -> None:
    """Queue a user-facing message for the next render."""
    accepted = getattr(outcome, "accepted", False)
    reason = getattr(outcome, "reason", None)
    messages = list(getattr(outcome, "messages", ()) or ())
    if not accepted and reason:
        st.session_state["flash"].append(("error", reason))
    for message in messages:
        if message:
            st.session_state["flash"].append(("info", message))


def _render_flash() -> None:
    for kind, text in st.session_state.get("flash", []):
        (st.error if kind == "error" else st.info)(text)
    st.session_state["flash"] = []


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

def _render_identity(session: OrderSession) -> None:
    code = st.text_input("Sales code", value=session.draft.sales_code)
    if st.button("Look up"):
        _flash(session.set_sales_code(code))
        st.rerun()
    if session.draft.sales_person:
        st.success(f"Sales person: {session.draft.sales_person}")


def _render_profile(session: OrderSession) -> None:
    draft = session.draft
    col_code, col_btn = st.columns([3, 1])
    customer_code = col_code.text_input("Customer code", value=draft.customer_code)
    if col_btn.button("Pre-fill"):
        _flash(session.apply_customer_code(customer_code))
        st.rerun()

    with st.form("profile"):
        left, right = st.columns(2)
        values = {
            "organization": left.text_input("Organization *", value=draft.organization),
            "principal_investigator": left.text_input("Principal investigator", value=draft.principal_investigator),
            "contact_person": left.text_input("Contact person *", value=draft.contact_person),
            "contact_phone": left.text_input("Contact phone", value=draft.contact_phone),
            "email": right.text_input("Email * (separate several with , or ;)", value=draft.email),
            "address": right.text_input("Address", value=draft.address),
            "invoice_title": right.text_input("Invoice title", value=draft.invoice_title),
            "tax_id": right.text_input("Tax ID", value=draft.tax_id),
            "species": left.text_input("Species", value=draft.species),
            "notes": right.text_area("Notes", value=draft.notes),
            "is_urgent": left.checkbox("Urgent", value=draft.is_urgent),
            "sample_return": right.checkbox("Return leftover samples", value=draft.sample_return),
        }
        if st.form_submit_button("Save profile"):
            _flash(session.update_profile(**values))
            st.rerun()

    st.subheader("Services")
    presets = session.catalog.presets
    if presets:
        options = ["(none)"] + [p.package_id for p in presets]
        current = draft.active_package.package_id if draft.active_package else "(none)"
        choice = st.selectbox(
            "Package preset",
            options,
            index=options.index(current) if current in options else 0,
            format_func=lambda pid: pid if pid == "(none)" else f"{pid} - {session.catalog.find_preset(pid).name}",
        )
        if choice != current:
            _flash(session.clear_package() if choice == "(none)" else session.apply_package(choice))
            st.rerun()

    cols = st.columns(len(CategoryId))
    for col, category in zip(cols, CategoryId):
        selected = category in draft.selected_categories
        if col.checkbox(category.label, value=selected, key=f"cat_{category.value}") != selected:
            _flash(session.toggle(category))
            st.rerun()

    if draft.selected_categories and st.button("Clear all services"):
        _flash(session.clear_categories())
        st.rerun()


def _render_item_selection(session: OrderSession) -> None:
    draft = session.draft
    if draft.active_package is not None:
        multiplier = st.number_input("Package multiplier", min_value=1, step=1, value=draft.active_package.multiplier)
        if int(multiplier) != draft.active_package.multiplier:
            _flash(session.rescale(int(multiplier)))
            st.rerun()

    for item in draft.service_items:
        st.markdown(f"**{item.category.label}**")
        legal = session.legal_codes(item.category)
        for idx, line in enumerate(item.services):
            options = [""] + legal
            if line.catalog_code and line.catalog_code not in options:
                options.append(line.catalog_code)
                st.warning(f"{line.catalog_code} is no longer valid for the current selection.")
            code_col, qty_col, rm_col = st.columns([4, 1, 1])
            code = code_col.selectbox(
                "Item",
                options,
                index=options.index(line.catalog_code),
                key=f"code_{item.category.value}_{idx}",
                format_func=lambda c: session.catalog.get(c).label if c and session.catalog.get(c) else c,
                label_visibility="collapsed",
            )
            qty = qty_col.number_input(
                "Qty",
                min_value=0,
                step=1,
                value=line.quantity or 0,
                key=f"qty_{item.category.value}_{idx}",
                label_visibility="collapsed",
            )
            if code != line.catalog_code or (int(qty) or None) != line.quantity:
                _flash(session.set_service_line(item.category, idx, code, int(qty)))
                st.rerun()
            if len(item.services) > 1 and rm_col.button("Remove", key=f"rm_{item.category.value}_{idx}"):
                _flash(session.remove_service_line(item.category, idx))
                st.rerun()
        if item.category == CategoryId.ANALYSIS and st.button("Add analysis item"):
            _flash(session.add_service_line(item.category))
            st.rerun()


def _apply_editor_changes(session: OrderSession, table: ManifestTable, before: list[dict], after: list[dict]) -> bool:
    changed = False
    for idx, row in enumerate(after):
        if idx >= len(before):
            _flash(session.add_row(table))
            changed = True
        for field_name, value in row.items():
            old = before[idx].get(field_name) if idx < len(before) else None
            if value != old:
                _flash(session.update_row(table, idx, field_name, value))
                changed = True
    for idx in range(len(before) - 1, len(after) - 1, -1):
        _flash(session.remove_row(table, idx))
        changed = True
    return changed


def _render_manifest(session: OrderSession) -> None:
    draft = session.draft
    allowed = session.allowed_sample_types()
    sample_type = st.radio(
        "Sample type",
        allowed,
        index=allowed.index(draft.sample_type) if draft.sample_type in allowed else 0,
        format_func=lambda t: t.value.replace("_", " ").title(),
        horizontal=True,
    )
    if sample_type != draft.sample_type:
        _flash(session.set_sample_type(sample_type))
        st.rerun()

    if draft.sample_type == SampleType.NO_SAMPLE:
        st.info("No sample manifest is needed.")
        return

    upload = st.file_uploader("Import manifest workbook", type=["xlsx"])
    if upload is not None and st.button("Import workbook"):
        with tempfile.NamedTemporaryFile(suffix=".xlsx", delete=False) as tmp:
            tmp.write(upload.getvalue())
        try:
            parsed = parse_manifest_workbook(tmp.name, draft.sample_type)
        except ContractError as exc:
            st.session_state["flash"].append(("error", str(exc)))
        else:
            for table, rows in parsed.items():
                if rows:
                    _flash(session.accept_imported_rows(table, rows, 0))
        finally:
            Path(tmp.name).unlink(missing_ok=True)
        st.rerun()

    for table in manifest_tables(draft.sample_type):
        st.markdown(f"**{table.value.replace('_', ' ').title()}**")
        pasted = st.text_area("Paste rows (tab separated)", key=f"paste_{table.value}")
        if pasted and st.button("Paste", key=f"paste_btn_{table.value}"):
            _flash(session.accept_imported_rows(table, parse_pasted_rows(pasted, table), 0))
            st.rerun()

        rows = [
            {k: getattr(r, k) for k in r.__dataclass_fields__}
            for r in session.draft.table_rows(table)
        ]
        edited = st.data_editor(rows, num_rows="dynamic", key=f"editor_{table.value}")
        if _apply_editor_changes(session, table, rows, list(edited)):
            st.rerun()

    result = session.evaluate(WizardStep.SAMPLE_MANIFEST)
    reconciliation = result.details.get("reconciliation", {})
    st.caption(f"Samples: {result.details.get('sample_count', 0)}  ·  {reconciliation.get('message', '')}")


def _render_review(session: OrderSession) -> None:
    snapshot = session.snapshot()
    st.json(snapshot, expanded=False)

    if session.draft.locked:
        st.success(f"Order {session.draft.order_id} submitted.")
        config: OrderFormConfig = st.session_state["config"]
        if st.button("Export workbook"):
            path = export_order_workbook(snapshot, config.orders_dir / f"{session.draft.order_id}.xlsx")
            st.download_button("Download", path.read_bytes(), file_name=path.name)
        return

    if st.button("Submit order", type="primary"):
        _flash(session.submit())
        st.rerun()


RENDERERS = {
    WizardStep.IDENTITY: _render_identity,
    WizardStep.PROFILE: _render_profile,
    WizardStep.ITEM_SELECTION: _render_item_selection,
    WizardStep.SAMPLE_MANIFEST: _render_manifest,
    WizardStep.REVIEW: _render_review,
}


# ---------------------------------------------------------------------------
# Main app
# ---------------------------------------------------------------------------

def main():
    try:
        session = st.session_state.get("order_session") or _new_session()
    except (ValueError, OSError) as e:
        st.error(f"Failed to initialize: {e}")
        st.stop()

    with st.sidebar:
        st.title("🧬 Order form")
        if st.button("🔄 New order", use_container_width=True):
            _new_session()
            st.rerun()
        st.divider()
        for step, title in STEP_TITLES.items():
            marker = "▶" if step == session.draft.current_step else " "
            st.markdown(f"{marker} {title}")
        st.divider()
        snapshot = session.snapshot()
        st.markdown(f"**Sample count:** {snapshot['sample_count']}")
        st.markdown(f"**Purchased:** {snapshot['purchased_yield_gb']:g} GB")
        st.markdown(f"**Declared:** {snapshot['declared_yield_gb']:g} GB")
        if session.draft.locked:
            st.info("Submitted; the order is read-only.")

    st.title(STEP_TITLES[session.draft.current_step])
    _render_flash()
    RENDERERS[session.draft.current_step](session)

    st.divider()
    back, forward = st.columns(2)
    if session.draft.current_step != WizardStep.IDENTITY and back.button("◀ Back"):
        _flash(session.retreat())
        st.rerun()
    if session.draft.current_step != WizardStep.REVIEW and forward.button("Next ▶"):
        result = session.advance()
        failures = getattr(result, "details", {}).get("failures", [])
        if failures:
            st.session_state["flash"].extend(("error", failure) for failure in failures)
        else:
            _flash(result)
        st.rerun()


if __name__ == "__main__":
    main()
