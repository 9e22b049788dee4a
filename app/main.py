"""
Streamlit Frontend for AutoLedger

DESIGN PRINCIPLES:
1. Enter a transaction in seconds, by hand or from a photo/text
2. Explicit confirmation before anything is saved
3. Summaries recomputed on every change
4. Backups the user owns as a plain JSON file

The UI enforces the human-in-the-loop principle:
- The AI only fills the form
- User confirms or edits
- Nothing is saved without explicit "Save" action
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from autoledger.agents import AIServiceError, ExtractionError, InputEmptyError
from autoledger.audit import create_correlation_id
from autoledger.config import get_settings, validate_all_settings
from autoledger.models import (
    Period,
    TransactionForm,
    TransactionType,
    categories_for,
    default_category,
)
from autoledger.orchestrator import (
    EntryValidationError,
    ExtractionInProgressError,
    LedgerFlow,
    TransactionEntryFlow,
    UnsupportedImageError,
    create_app_components,
)
from autoledger.services import BackupFormatError


st.set_page_config(
    page_title="AutoLedger",
    page_icon="🧾",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .ratio-bar {
        display: flex;
        height: 8px;
        border-radius: 4px;
        overflow: hidden;
        background-color: #eeeeee;
        margin: 4px 0 12px 0;
    }
    .ratio-income { background-color: #28a745; }
    .ratio-expense { background-color: #dc3545; }
</style>
""", unsafe_allow_html=True)

TYPE_LABELS = {
    TransactionType.EXPENSE: "支出",
    TransactionType.INCOME: "收入",
}

PERIOD_LABELS = {
    Period.DAY: "按日",
    Period.MONTH: "按月",
    Period.YEAR: "按年",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components()


def format_money(amount: Decimal) -> str:
    return f"¥{amount:,.2f}"


def ratio_bar(income_share: Decimal, expense_share: Decimal) -> str:
    return (
        '<div class="ratio-bar">'
        f'<div class="ratio-income" style="width:{float(income_share) * 100:.1f}%"></div>'
        f'<div class="ratio-expense" style="width:{float(expense_share) * 100:.1f}%"></div>'
        '</div>'
    )


def main():
    """Main application entry point."""
    entry_flow, ledger_flow, _ = get_components()

    st.sidebar.title("🧾 AutoLedger")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["✍️ 记一笔", "📊 账本", "💾 备份", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Paste a payment message or upload a receipt
        2. Let the AI fill the form, or fill it yourself
        3. Check the details and save
        """
    )

    if page == "✍️ 记一笔":
        render_entry_page(entry_flow)
    elif page == "📊 账本":
        render_ledger_page(ledger_flow, entry_flow)
    elif page == "💾 备份":
        render_backup_page(ledger_flow)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_entry_page(entry_flow: TransactionEntryFlow):
    """Render the add-transaction page."""
    st.title("✍️ 记一笔")

    if "entry_form" not in st.session_state:
        st.session_state.entry_form = TransactionForm(date=date.today())
    if "draft_notice" not in st.session_state:
        st.session_state.draft_notice = None

    # Step 1 (optional): AI fill
    with st.expander("🤖 AI 智能识别", expanded=True):
        text = st.text_area(
            "Paste a payment message or describe the transaction",
            placeholder="例如: 星巴克 35元 拿铁",
        )
        uploaded_file = st.file_uploader(
            "Or upload a receipt / payment screenshot",
            type=["jpg", "jpeg", "png", "webp", "heic"],
        )

        if st.button(
            "🔍 Analyze",
            type="primary",
            disabled=entry_flow.is_analyzing,
        ):
            with st.spinner("Analyzing..."):
                try:
                    draft = run_async(entry_flow.analyze(
                        text=text,
                        image_bytes=uploaded_file.getvalue() if uploaded_file else None,
                        mime_type=uploaded_file.type if uploaded_file else None,
                        correlation_id=create_correlation_id(),
                    ))
                    st.session_state.entry_form = entry_flow.draft_to_form(draft)
                    st.session_state.draft_notice = (
                        f"AI 返回的分类「{draft.raw_category}」不在列表中，已改为「{draft.category.value}」"
                        if draft.category_fallback_applied else None
                    )
                    st.rerun()
                except InputEmptyError:
                    st.warning("Please enter some text or upload an image first.")
                except ExtractionInProgressError:
                    st.info("An analysis is already running, please wait.")
                except UnsupportedImageError as e:
                    st.error(str(e))
                except (AIServiceError, ExtractionError):
                    st.error("Recognition failed. Please try again or fill the form by hand.")

    if st.session_state.draft_notice:
        st.warning(st.session_state.draft_notice)

    # Step 2: Editable form
    form = st.session_state.entry_form
    st.markdown("### Details")
    st.markdown("*You can edit any field before saving*")

    transaction_type = st.radio(
        "Type",
        options=list(TransactionType),
        index=list(TransactionType).index(form.type),
        format_func=lambda t: TYPE_LABELS[t],
        horizontal=True,
    )

    col1, col2 = st.columns(2)

    with col1:
        amount = st.number_input(
            "Amount (¥) *",
            value=float(form.amount) if form.amount is not None else 0.0,
            min_value=0.0,
            step=0.01,
            format="%.2f",
        )
        merchant = st.text_input(
            "Merchant / Source *",
            value=form.merchant or "",
        )

    with col2:
        options = list(categories_for(transaction_type))
        current = form.category if form.category in options else default_category(transaction_type)
        category = st.selectbox(
            "Category *",
            options=options,
            index=options.index(current),
            format_func=lambda c: c.value,
        )
        entry_date = st.date_input(
            "Date *",
            value=form.date or date.today(),
        )

    note = st.text_input("Note", value=form.note or "")

    # Step 3: Confirm
    if st.button("✅ Save", type="primary"):
        confirmed = TransactionForm(
            type=transaction_type,
            amount=Decimal(str(amount)).quantize(Decimal("0.01")),
            merchant=merchant,
            category=category,
            date=entry_date,
            note=note or None,
            extraction_id=form.extraction_id,
        )
        try:
            transaction = run_async(entry_flow.confirm_and_save(confirmed))
        except EntryValidationError as e:
            st.error(str(e))
        else:
            st.success(f"Saved {transaction.merchant} {format_money(transaction.amount)}")
            st.session_state.entry_form = TransactionForm(date=date.today())
            st.session_state.draft_notice = None


def render_ledger_page(ledger_flow: LedgerFlow, entry_flow: TransactionEntryFlow):
    """Render totals, category breakdown and period groups."""
    st.title("📊 账本")

    totals, breakdown = run_async(ledger_flow.overview())

    col1, col2, col3 = st.columns(3)
    col1.metric("总收入", format_money(totals.total_income))
    col2.metric("总支出", format_money(totals.total_expense))
    col3.metric("结余", format_money(totals.balance))

    if breakdown:
        st.markdown("### 支出分类")
        st.bar_chart(
            {item.category.value: float(item.total) for item in breakdown},
        )

    st.markdown("---")

    period = st.radio(
        "Group by",
        options=list(Period),
        index=1,
        format_func=lambda p: PERIOD_LABELS[p],
        horizontal=True,
    )

    groups = run_async(ledger_flow.summarize(period))
    if not groups:
        st.info("No transactions yet. Use '记一笔' to add your first one.")
        return

    for group in groups:
        st.markdown(
            f"**{group.title}** &nbsp; 收入 {format_money(group.total_income)}"
            f" · 支出 {format_money(group.total_expense)}",
            unsafe_allow_html=True,
        )
        st.markdown(
            ratio_bar(group.income_share, group.expense_share),
            unsafe_allow_html=True,
        )
        with st.expander(f"{len(group.transactions)} 笔"):
            for transaction in group.transactions:
                sign = "+" if transaction.type == TransactionType.INCOME else "-"
                col1, col2 = st.columns([5, 1])
                col1.write(
                    f"{transaction.date} · {transaction.category.value} · "
                    f"{transaction.merchant} · {sign}{format_money(transaction.amount)}"
                )
                if col2.button("🗑️", key=f"delete-{group.key}-{transaction.id}"):
                    run_async(entry_flow.delete_transaction(transaction.id))
                    st.rerun()


def render_backup_page(ledger_flow: LedgerFlow):
    """Render export, import and clear."""
    st.title("💾 备份")

    filename, content = run_async(ledger_flow.export_backup())
    st.download_button(
        "⬇️ Export backup",
        data=content.encode("utf-8"),
        file_name=filename,
        mime="application/json",
    )

    st.markdown("---")
    st.markdown("### Restore")
    st.warning("Importing replaces the whole ledger.")
    uploaded = st.file_uploader("Backup file", type=["json"])
    if uploaded and st.button("⬆️ Import"):
        try:
            count = run_async(ledger_flow.import_backup(uploaded.getvalue().decode("utf-8")))
        except (BackupFormatError, UnicodeDecodeError) as e:
            st.error(f"Invalid backup file: {e}")
        else:
            st.success(f"Imported {count} transactions")

    st.markdown("---")
    st.markdown("### Danger zone")
    confirm = st.checkbox("I understand this deletes every transaction")
    if st.button("🗑️ Clear ledger", disabled=not confirm):
        count = run_async(ledger_flow.clear())
        st.success(f"Deleted {count} transactions")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()
    services = [
        ("Gemini (AI)", "gemini"),
        ("Storage", "storage"),
        ("Google Sheets (optional storage)", "google_sheets"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.write(f"Storage backend: `{get_settings().storage.backend}`")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys "
        "(`GEMINI_API_KEY`, and `STORAGE_BACKEND` / `GOOGLE_SHEETS_*` for Sheets)."
    )


if __name__ == "__main__":
    main()
