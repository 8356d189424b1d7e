"""
Streamlit Frontend for Savings Tracker

The dashboard a signed-in user sees every day.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Current month front and center
3. Clear error messages in simple language
4. Visual feedback for all operations
5. No hidden actions

The UI never computes balances itself:
- Month views come from the BalanceEngine
- Every change goes through the LedgerMutator
- A refused withdrawal shows how much is actually available
"""

import asyncio
from decimal import Decimal

import streamlit as st

from savings_tracker.config import get_settings
from savings_tracker.errors import InsufficientFundsError, LedgerError
from savings_tracker.orchestrator import AppComponents, create_app_components, sign_in
from savings_tracker.services.storage import NotFoundError, StorageError


# Page configuration
st.set_page_config(
    page_title="Savings Tracker",
    page_icon="🐷",
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
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
    .info-box {
        padding: 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    try:
        return create_app_components()
    except Exception as e:
        st.error(f"Failed to initialize storage, falling back to memory: {e}")
        return create_app_components(backend="memory")


def money(amount: Decimal) -> str:
    return f"{get_settings().app.currency_symbol}{amount:,.2f}"


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("🐷 Savings Tracker")
    st.sidebar.markdown("---")

    user_id = render_sign_in(components)
    if not user_id:
        st.title("🐷 Savings Tracker")
        st.info("Sign in from the sidebar to see your savings.")
        return

    page = st.sidebar.radio(
        "Navigate to:",
        ["🏦 This Month", "📅 Monthly Entries", "💸 Withdrawals", "📊 Breakdown", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How it works:**
        1. Add deposits to this month
        2. Set your saving and monthly targets
        3. Withdraw up to this month's net balance
        """
    )

    if page == "🏦 This Month":
        render_current_month_page(components, user_id)
    elif page == "📅 Monthly Entries":
        render_entries_page(components, user_id)
    elif page == "💸 Withdrawals":
        render_withdrawals_page(components, user_id)
    elif page == "📊 Breakdown":
        render_breakdown_page(components, user_id)
    elif page == "⚙️ Settings":
        render_settings_page(components)


def render_sign_in(components: AppComponents):
    """Sidebar sign-in. Returns the signed-in user ID, if any."""
    if st.session_state.get("user_id"):
        account = st.session_state.account
        st.sidebar.markdown(f"Signed in as **{account.name or account.user_id}**")
        if account.photo:
            st.sidebar.image(account.photo, width=64)
        if st.sidebar.button("Sign out"):
            st.session_state.user_id = None
            st.session_state.account = None
            st.rerun()
        return st.session_state.user_id

    with st.sidebar.form("sign_in"):
        user_id = st.text_input("User ID *", help="Your sign-in identifier")
        name = st.text_input("Display name (optional)")
        photo = st.text_input("Photo URL (optional)")
        submitted = st.form_submit_button("Sign in", type="primary")

    if submitted:
        if not user_id.strip():
            st.sidebar.error("Please enter your user ID")
            return None
        try:
            account = run_async(
                sign_in(components, user_id.strip(), name=name or None, photo=photo or None)
            )
        except StorageError as e:
            st.sidebar.error(f"Could not sign in: {e}")
            return None
        st.session_state.user_id = account.user_id
        st.session_state.account = account
        st.rerun()
    return None


def render_current_month_page(components: AppComponents, user_id: str):
    """Render the current month's balance and the deposit/target/withdraw forms."""
    view = run_async(components.balances.get_current_month_view(user_id))

    st.title(f"🏦 This Month ({view.month})")

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Net Balance", money(view.net_deposit))
    col2.metric("Deposits", money(view.deposit_amount))
    col3.metric("Withdrawals", money(view.withdrawals_total))
    col4.metric("Saving Target", money(view.saving_target))
    st.caption(f"Monthly target: {money(view.monthly_target)}")

    st.markdown("---")
    col1, col2 = st.columns(2)

    with col1:
        st.subheader("➕ Deposit")
        with st.form("deposit", clear_on_submit=True):
            amount = st.number_input("Amount *", min_value=0.0, step=100.0, format="%.2f")
            if st.form_submit_button("Add Deposit", type="primary"):
                submit(
                    components.mutator.deposit(user_id, amount),
                    f"Deposit of {money(Decimal(str(amount)))} added",
                )

        st.subheader("🎯 Targets")
        with st.form("targets"):
            saving = st.number_input("Saving Target", min_value=0.0, step=100.0, format="%.2f")
            monthly = st.number_input("Monthly Target", min_value=0.0, step=100.0, format="%.2f")
            set_saving, set_monthly = st.columns(2)
            if set_saving.form_submit_button("Set Saving Target"):
                submit(components.mutator.set_saving_target(user_id, saving), "Saving target set")
            if set_monthly.form_submit_button("Set Monthly Target"):
                submit(components.mutator.set_monthly_target(user_id, monthly), "Monthly target set")

    with col2:
        st.subheader("➖ Withdraw")
        with st.form("withdraw", clear_on_submit=True):
            amount = st.number_input("Amount *", min_value=0.0, step=100.0, format="%.2f")
            reason = st.text_input("Reason (optional)", placeholder="What is it for?")
            if st.form_submit_button("Withdraw", type="primary"):
                try:
                    record = run_async(components.mutator.withdraw(user_id, amount, reason))
                except InsufficientFundsError as e:
                    st.markdown(f"""
                    <div class="error-box">
                        <h4>❌ Not enough savings</h4>
                        <p>You asked for {money(e.requested)} but only
                        {money(max(e.available, Decimal("0")))} is available for {e.month}.</p>
                    </div>
                    """, unsafe_allow_html=True)
                except (LedgerError, StorageError) as e:
                    st.error(str(e))
                else:
                    st.success(f"Withdrew {money(record.amount)}")
                    st.rerun()


def submit(coro, message: str):
    """Run a mutation and report the outcome."""
    try:
        run_async(coro)
    except (LedgerError, StorageError) as e:
        st.error(str(e))
        return
    st.success(message)
    st.rerun()


def render_entries_page(components: AppComponents, user_id: str):
    """Render monthly entries with edit and delete."""
    st.title("📅 Monthly Entries")
    st.markdown("Correct past months here. Edits are not checked against withdrawals.")

    account = run_async(components.store.find_account(user_id))
    entries = sorted(account.valid_entries, key=lambda e: e.month) if account else []
    if not entries:
        st.info("No monthly entries yet. Add a deposit to get started.")
        return

    st.dataframe(
        [
            {
                "Month": e.month,
                "Deposit": money(e.deposit_amount),
                "Saving Target": money(e.saving_target),
                "Monthly Target": money(e.monthly_target),
            }
            for e in entries
        ],
        use_container_width=True,
        hide_index=True,
    )

    st.markdown("---")
    month = st.selectbox("Month to edit", options=[e.month for e in entries])
    entry = next(e for e in entries if e.month == month)

    with st.form(f"edit_entry_{month}"):
        deposit = st.number_input("Deposit", min_value=0.0, value=float(entry.deposit_amount), format="%.2f")
        saving = st.number_input("Saving Target", min_value=0.0, value=float(entry.saving_target), format="%.2f")
        monthly = st.number_input("Monthly Target", min_value=0.0, value=float(entry.monthly_target), format="%.2f")
        save_col, delete_col = st.columns(2)
        if save_col.form_submit_button("💾 Save", type="primary"):
            try:
                result = run_async(
                    components.mutator.edit_monthly_entry(user_id, month, deposit, saving, monthly)
                )
            except (LedgerError, StorageError) as e:
                st.error(str(e))
            else:
                if result.changed:
                    st.success(f"{month} updated")
                    st.rerun()
                else:
                    st.info("No changes to save")
        if delete_col.form_submit_button("🗑️ Delete"):
            submit(components.mutator.delete_monthly_entry(user_id, month), f"{month} deleted")


def render_withdrawals_page(components: AppComponents, user_id: str):
    """Render the withdrawal history with edit and delete."""
    st.title("💸 Withdrawals")

    records = run_async(components.withdrawals.list_by_user(user_id))
    if not records:
        st.info("No withdrawals yet.")
        return

    st.dataframe(
        [
            {
                "Date": r.timestamp.strftime("%d %B %Y %H:%M"),
                "Month": r.month,
                "Amount": money(r.amount),
                "Reason": r.reason,
            }
            for r in records
        ],
        use_container_width=True,
        hide_index=True,
    )

    st.markdown("---")
    record = st.selectbox(
        "Withdrawal to edit",
        options=records,
        format_func=lambda r: f"{r.timestamp:%Y-%m-%d} · {money(r.amount)} · {r.reason}",
    )

    with st.form(f"edit_withdrawal_{record.id}"):
        amount = st.number_input("Amount", min_value=0.0, value=float(record.amount), format="%.2f")
        reason = st.text_input("Reason", value=record.reason)
        save_col, delete_col = st.columns(2)
        if save_col.form_submit_button("💾 Save", type="primary"):
            try:
                result = run_async(
                    components.mutator.edit_withdrawal(user_id, record.id, amount=amount, reason=reason)
                )
            except (LedgerError, NotFoundError, StorageError) as e:
                st.error(str(e))
            else:
                if result.changed:
                    st.success("Withdrawal updated")
                    st.rerun()
                else:
                    st.info("No changes to save")
        if delete_col.form_submit_button("🗑️ Delete"):
            submit(components.mutator.delete_withdrawal(user_id, record.id), "Withdrawal deleted")


def render_breakdown_page(components: AppComponents, user_id: str):
    """Render the per-month breakdown table."""
    st.title("📊 Monthly Breakdown")

    views = run_async(components.balances.get_month_views(user_id))
    if not views:
        st.info("Nothing to show yet.")
        return

    st.dataframe(
        [
            {
                "Month": v.month,
                **{label: money(value) for label, value in v.breakdown().items()},
                "Net Balance": money(v.net_deposit),
            }
            for v in views
        ],
        use_container_width=True,
        hide_index=True,
    )


def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    from savings_tracker.config import validate_all_settings

    status = validate_all_settings()

    app_settings = get_settings().app
    st.markdown(f"**Environment:** `{app_settings.app_environment}`")
    st.markdown(f"**Storage backend:** `{components.backend}`")
    if app_settings.debug_mode:
        st.info("Debug mode is on: DEBUG-level logs are written.")
    services = [("Application", "app")]
    if components.backend == "google_sheets":
        services.append(("Google Sheets (Storage)", "google_sheets"))

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "Set `STORAGE_BACKEND=google_sheets` together with "
        "`GOOGLE_SHEETS_CREDENTIALS_PATH` and `GOOGLE_SHEETS_SPREADSHEET_ID` "
        "in a `.env` file to keep your data in Google Sheets."
    )


if __name__ == "__main__":
    main()
