"""
Streamlit Frontend for FinVoice

This is the user interface people use daily to note down what they spent,
by speaking (transcribed text) or typing.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit review before anything is saved
3. Clear error messages in simple language
4. Always show whether data is synced or kept on this device only

The UI keeps the human in the loop:
- User sees what was understood from their sentence
- User fixes the category or description if needed
- Nothing is saved without an explicit "Save" action
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from finvoice.audit import create_correlation_id
from finvoice.config import validate_all_settings
from finvoice.errors import (
    FinVoiceError,
    InvalidInputError,
    NotAuthenticatedError,
    RemoteOperationError,
    RemoteUnavailableOfflineModeError,
)
from finvoice.models import (
    CommitOutcome,
    EntityType,
    ExpenseCategory,
    PendingWrite,
    RefreshTrigger,
    SessionKind,
    WriteAction,
    get_category_info,
)
from finvoice.orchestrator import (
    InsightsFlow,
    VoiceExpenseFlow,
    create_app_components,
)
from finvoice.queries import category_totals, total_spent
from finvoice.services.storage import StorageError
from finvoice.session import SessionManager


# Page configuration
st.set_page_config(
    page_title="FinVoice",
    page_icon="🎙️",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)

LANGUAGES = {
    "en": "English",
    "hi": "हिंदी",
    "bn": "বাংলা",
    "or": "ଓଡ଼ିଆ",
    "pa": "ਪੰਜਾਬੀ",
    "kn": "ಕನ್ನಡ",
    "mar": "मराठी",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def get_components() -> tuple[SessionManager, VoiceExpenseFlow, InsightsFlow]:
    """One set of components per browser session."""
    if "components" not in st.session_state:
        st.session_state.components = create_app_components(use_storage=True)
    return st.session_state.components


def format_amount(amount: Decimal) -> str:
    return f"₹{amount:,.2f}"


def category_label(category: ExpenseCategory) -> str:
    info = get_category_info(category.value)
    return info.label


def render_audit_events(fetch):
    """Show audit events, or a note if the audit log can't be read."""
    try:
        events = run_async(fetch)
    except StorageError:
        st.caption("Activity log is unavailable right now.")
        return
    if not events:
        st.caption("Nothing recorded yet.")
        return
    for event in events:
        st.markdown(f"`{event.timestamp:%H:%M:%S}` {event.description}")


def show_error(e: FinVoiceError):
    """Turn a typed error into a message people understand."""
    if isinstance(e, RemoteUnavailableOfflineModeError):
        st.warning(
            "📴 You're using FinVoice offline. "
            "New expenses are kept on this device; log in again to sync."
        )
    elif isinstance(e, RemoteOperationError):
        st.error(f"☁️ Could not reach the server ({e.code}). Please try again.")
    elif isinstance(e, NotAuthenticatedError):
        st.error("🔒 Please log in first.")
    else:
        st.error(f"❌ {e}")


def main():
    """Main application entry point."""
    manager, voice_flow, insights_flow = get_components()

    if not manager.session.is_authenticated:
        render_login_page(manager)
        return

    # Returning to the app counts as a foreground event
    run_async(manager.refresh_profile(RefreshTrigger.FOREGROUND))

    session = manager.session
    st.sidebar.title("🎙️ FinVoice")
    st.sidebar.markdown(f"**{session.profile.name}**")
    if session.kind == SessionKind.LOCAL_ONLY:
        st.sidebar.warning("📴 Offline mode - data stays on this device")
    else:
        st.sidebar.success("☁️ Synced")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🎙️ Add Expense", "📊 Expenses", "🎯 Budget", "💡 Insights", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **Say or type things like:**
        - "Add dinner 500 rupees"
        - "Uber ride 250"
        - "Electricity bill 1800 rs"
        """
    )

    if st.sidebar.button("🚪 Log out"):
        run_async(manager.logout())
        st.rerun()

    if page == "🎙️ Add Expense":
        render_add_expense_page(manager, voice_flow)
    elif page == "📊 Expenses":
        render_expenses_page(manager)
    elif page == "🎯 Budget":
        render_budget_page(manager)
    elif page == "💡 Insights":
        render_insights_page(insights_flow)
    elif page == "⚙️ Settings":
        render_settings_page(manager)


def render_login_page(manager: SessionManager):
    """Render the login page."""
    st.title("🎙️ Welcome to FinVoice")
    st.markdown("Track your expenses just by speaking.")

    with st.form("login"):
        name = st.text_input("Your name")
        phone = st.text_input("Phone number", placeholder="10-digit mobile number")
        submitted = st.form_submit_button("Continue", type="primary")

    if submitted:
        with st.spinner("Signing you in..."):
            try:
                session = run_async(manager.login(name, phone))
            except FinVoiceError as e:
                show_error(e)
                return
        if session.kind == SessionKind.LOCAL_ONLY:
            st.session_state.login_notice = (
                "Could not reach the server, so you're in offline mode. "
                "Your expenses will be kept on this device."
            )
        st.rerun()


def render_add_expense_page(manager: SessionManager, voice_flow: VoiceExpenseFlow):
    """Render the voice/typed expense entry page."""
    st.title("🎙️ Add Expense")

    notice = st.session_state.pop("login_notice", None)
    if notice:
        st.info(notice)

    if "candidate" not in st.session_state:
        st.session_state.candidate = None
    if "correlation_id" not in st.session_state:
        st.session_state.correlation_id = None

    text = st.text_input(
        "What did you spend on?",
        placeholder="e.g., Add dinner 500 rupees",
        help="Paste what you said, or type it",
    )

    if st.button("🔍 Understand", type="primary") and text:
        st.session_state.correlation_id = create_correlation_id()
        st.session_state.candidate = run_async(
            voice_flow.parse(text, correlation_id=st.session_state.correlation_id)
        )

    candidate = st.session_state.candidate
    if candidate is None:
        return

    st.markdown("---")
    if not candidate.is_valid:
        st.markdown("""
        <div class="warning-box">
            <h4>🤔 I couldn't find an amount</h4>
            <p>Try something like "Add dinner 500 rupees".</p>
        </div>
        """, unsafe_allow_html=True)
        return

    st.subheader("📋 Is this right?")
    st.markdown(f'<div class="big-number">{format_amount(candidate.amount)}</div>', unsafe_allow_html=True)

    categories = list(ExpenseCategory)
    col1, col2 = st.columns(2)
    with col1:
        description = st.text_input("Description", value=candidate.description)
    with col2:
        category = st.selectbox(
            "Category",
            options=categories,
            index=categories.index(candidate.category),
            format_func=category_label,
        )

    if st.button("✅ Save", type="primary"):
        try:
            stored = run_async(voice_flow.save(
                candidate,
                category=category,
                description=description,
                correlation_id=st.session_state.correlation_id,
            ))
        except FinVoiceError as e:
            show_error(e)
            return

        if stored.outcome == CommitOutcome.CACHED_LOCALLY:
            st.info("💾 Saved on this device (offline mode).")
        else:
            st.success("✅ Expense saved!")
        st.session_state.candidate = None

        with st.expander("What happened"):
            render_audit_events(manager.audit.trail(st.session_state.correlation_id))


def render_expenses_page(manager: SessionManager):
    """Render the expenses list page."""
    st.title("📊 Your Expenses")

    try:
        expenses = run_async(manager.list_expenses())
    except FinVoiceError as e:
        show_error(e)
        return

    if not expenses:
        st.info("📋 No expenses yet. Use 'Add Expense' to record your first one.")
        return

    col1, col2 = st.columns(2)
    with col1:
        st.metric("Total spent", format_amount(total_spent(expenses)))
    with col2:
        st.metric("Expenses", len(expenses))

    with st.expander("By category"):
        for key, amount in sorted(category_totals(expenses).items(), key=lambda kv: -kv[1]):
            info = get_category_info(key)
            st.markdown(f"**{info.label}**: {format_amount(amount)}")

    st.markdown("---")
    for expense in expenses:
        col1, col2, col3, col4 = st.columns([3, 2, 2, 1])
        col1.markdown(f"**{expense.description}**")
        col2.markdown(category_label(expense.category))
        col3.markdown(f"{format_amount(expense.amount)} · {expense.date:%d %b}")
        if manager.session.can_use_remote and col4.button("🗑️", key=f"delete-{expense.id}"):
            try:
                run_async(manager.commit(PendingWrite(
                    entity=EntityType.EXPENSE,
                    action=WriteAction.DELETE,
                    record_id=expense.id,
                )))
            except FinVoiceError as e:
                show_error(e)
                return
            st.rerun()


def render_budget_page(manager: SessionManager):
    """Render the monthly budget form."""
    st.title("🎯 Monthly Budget")

    if not manager.session.can_use_remote:
        st.warning("📴 Budgets need a connection. Log in again when you're online.")
        return

    month = st.date_input("Month", value=date.today())
    month_year = month.strftime("%Y-%m")
    total = st.number_input("Total budget (₹)", min_value=0.0, step=500.0)

    st.markdown("### Per category")
    allocations = []
    for category in ExpenseCategory:
        amount = st.number_input(
            category_label(category),
            min_value=0.0,
            step=100.0,
            key=f"budget-{category.value}",
        )
        if amount > 0:
            allocations.append({"category": category.value, "budgeted": str(amount)})

    if st.button("💾 Save budget", type="primary"):
        try:
            stored = run_async(manager.commit(PendingWrite(
                entity=EntityType.BUDGET,
                action=WriteAction.CREATE,
                payload={
                    "month_year": month_year,
                    "total_amount": str(total),
                    "categories": allocations,
                },
            )))
        except InvalidInputError:
            st.error("Please enter a total and at least one category budget.")
            return
        except FinVoiceError as e:
            show_error(e)
            return

        if stored.outcome == CommitOutcome.RECONCILED:
            st.success(f"✅ Budget for {month_year} updated.")
        else:
            st.success(f"✅ Budget for {month_year} saved.")


def render_insights_page(insights_flow: InsightsFlow):
    """Render AI insights and investment advice."""
    st.title("💡 Insights")

    language = st.selectbox(
        "Language",
        options=list(LANGUAGES),
        format_func=lambda code: LANGUAGES[code],
    )

    st.markdown("### 📈 How am I doing?")
    if st.button("Analyze my budget", type="primary"):
        with st.spinner("Thinking..."):
            try:
                insights = run_async(insights_flow.financial_insights(language=language))
            except FinVoiceError as e:
                show_error(e)
                insights = None
        if insights:
            if insights.is_fallback:
                st.info("AI is not configured, showing general advice.")
            if insights.financial_score is not None:
                st.metric("Financial health score", f"{insights.financial_score}/100")
            if insights.spending_analysis:
                st.json(insights.spending_analysis)
            for line in insights.recommendations:
                st.markdown(f"- {line}")

    st.markdown("---")
    st.markdown("### 💰 Investment ideas")
    with st.form("advice"):
        age = st.number_input("Age", min_value=1, max_value=120, value=30)
        plans = st.text_input("Future plans", placeholder="e.g., buy a house in 10 years")
        income = st.number_input("Annual income (₹)", min_value=0.0, step=10000.0)
        submitted = st.form_submit_button("Get ideas")

    if submitted:
        with st.spinner("Thinking..."):
            try:
                advice = run_async(insights_flow.investment_advice(
                    int(age), plans, Decimal(str(income)), language=language
                ))
            except FinVoiceError as e:
                show_error(e)
                return
        if advice.is_fallback:
            st.info("AI is not configured, showing general ideas.")
        for point in advice.points:
            st.markdown(f"- {point}")


def render_settings_page(manager: SessionManager):
    """Render the settings page."""
    st.title("⚙️ Settings")

    profile = manager.session.profile
    st.markdown("### Profile")
    with st.form("profile"):
        name = st.text_input("Name", value=profile.name)
        language = st.selectbox(
            "Language",
            options=list(LANGUAGES),
            index=list(LANGUAGES).index(profile.language) if profile.language in LANGUAGES else 0,
            format_func=lambda code: LANGUAGES[code],
        )
        submitted = st.form_submit_button("Save profile")

    if submitted:
        try:
            run_async(manager.commit(PendingWrite(
                entity=EntityType.PROFILE,
                action=WriteAction.UPDATE,
                payload={"name": name, "language": language},
            )))
            st.success("✅ Profile updated")
        except FinVoiceError as e:
            show_error(e)

    if st.button("🔄 Refresh profile"):
        if run_async(manager.refresh_profile(RefreshTrigger.MANUAL, force=True)):
            st.success("Profile refreshed")
        else:
            st.warning("Could not refresh right now, showing saved details.")

    st.markdown("### Recent Activity")
    render_audit_events(manager.audit.recent(limit=10))

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI)", "gemini"),
        ("Firebase (Phone login)", "firebase"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
