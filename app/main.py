"""
Streamlit Frontend for SmartFi

Four pages: dashboard, accounts, performance and settings.

DESIGN PRINCIPLES:
1. Every number on screen comes from the engine, never from the UI
2. Balance changes are entered as "the balance is now X"
3. Clear error messages for rejected input
4. Nothing changes without an explicit button press
"""

import asyncio
from typing import Optional
from uuid import UUID

import pandas as pd
import streamlit as st

from smartfi.agents import AnalysisResult
from smartfi.audit import configure_logging, create_correlation_id
from smartfi.config import get_settings, validate_all_settings
from smartfi.engine import MoveDirection, accounts_in_scope
from smartfi.models import (
    Account,
    AccountType,
    Currency,
    LedgerSnapshot,
    PerformanceScope,
    ScopeDimension,
    TimeWindow,
)
from smartfi.orchestrator import AppComponents, create_app_components
from smartfi.services.storage import StorageError
from smartfi.validation import LedgerValidationError


# Page configuration
st.set_page_config(
    page_title="SmartFi",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


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
    configure_logging(json_output=not get_settings().app.debug_mode)
    return create_app_components(use_storage=True)


def format_money(value: float, currency: Currency = Currency.COP) -> str:
    if currency == Currency.USD:
        return f"US${value:,.2f}"
    return f"${value:,.0f}"


def show_validation_error(error: LedgerValidationError):
    for issue in error.result.issues:
        if issue.severity == "error":
            st.error(f"❌ {issue.message}")
        else:
            st.warning(f"⚠️ {issue.message}")


def main():
    """Main application entry point."""
    components = get_components()

    # Best effort: a failed fetch keeps the stored rate
    run_async(components.rates.refresh_if_stale())

    st.sidebar.title("💰 SmartFi")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "🏦 Accounts", "📈 Performance", "⚙️ Settings"],
        index=0,
    )

    if not components.uses_google_sheets:
        st.sidebar.warning("Google Sheets is not configured. Data is kept in memory only.")

    snapshot = run_async(components.dashboard.load_snapshot())
    st.sidebar.markdown(f"**USD→COP:** {snapshot.settings.usd_to_cop_rate:,.2f}")

    if page == "📊 Dashboard":
        render_dashboard_page(components, snapshot)
    elif page == "🏦 Accounts":
        render_accounts_page(components, snapshot)
    elif page == "📈 Performance":
        render_performance_page(components, snapshot)
    elif page == "⚙️ Settings":
        render_settings_page(components, snapshot)


def render_dashboard_page(components: AppComponents, snapshot: LedgerSnapshot):
    """Metric cards plus the net worth history chart."""
    st.title("📊 Dashboard")

    valuation = components.dashboard.valuation(snapshot)
    col1, col2, col3 = st.columns(3)
    col1.metric("Net Worth", format_money(valuation.net_worth), help="Money minus debt")
    col2.metric("Liquidity", format_money(valuation.liquidity), help="Money")
    col3.metric(
        "Buying Power",
        format_money(valuation.buying_power),
        help="Money plus unused credit",
    )

    st.markdown("### History")
    history = components.dashboard.history(snapshot)
    df = pd.DataFrame([point.model_dump() for point in history])
    if df.empty:
        st.info("No history yet.")
    else:
        df["date"] = pd.to_datetime(df["date"]).dt.date
        st.line_chart(
            df.set_index("date")[["net_worth", "liquidity", "buying_power"]],
            height=320,
        )


def render_accounts_page(components: AppComponents, snapshot: LedgerSnapshot):
    """Groups, accounts, balance adjustments and ordering."""
    st.title("🏦 Accounts")
    ledger = components.ledger

    with st.expander("➕ New group"):
        group_name = st.text_input("Group name", key="new_group_name")
        if st.button("Create group"):
            try:
                run_async(ledger.create_group(group_name))
                st.rerun()
            except LedgerValidationError as e:
                show_validation_error(e)

    with st.expander("➕ New account"):
        render_new_account_form(components, snapshot)

    groups = snapshot.ordered_groups()
    for group in groups:
        header_col, up_col, down_col, delete_col = st.columns([6, 1, 1, 1])
        header_col.subheader(f"📁 {group.name}")
        if up_col.button("⬆️", key=f"group_up_{group.id}"):
            run_async(ledger.move_group(group.id, MoveDirection.UP))
            st.rerun()
        if down_col.button("⬇️", key=f"group_down_{group.id}"):
            run_async(ledger.move_group(group.id, MoveDirection.DOWN))
            st.rerun()
        if delete_col.button("🗑️", key=f"group_delete_{group.id}"):
            run_async(ledger.delete_group(group.id))
            st.rerun()
        for account in snapshot.accounts_in_group(group.id):
            render_account_row(components, snapshot, account)

    ungrouped = snapshot.accounts_in_group(None)
    if ungrouped:
        st.subheader("Ungrouped")
        for account in ungrouped:
            render_account_row(components, snapshot, account)

    if not snapshot.accounts:
        st.info("No accounts yet. Create your first one above.")


def render_new_account_form(components: AppComponents, snapshot: LedgerSnapshot):
    groups = snapshot.ordered_groups()
    with st.form("new_account"):
        name = st.text_input("Name")
        col1, col2 = st.columns(2)
        account_type = col1.selectbox("Type", list(AccountType), format_func=lambda t: t.value)
        currency = col2.selectbox("Currency", list(Currency), format_func=lambda c: c.value)
        balance = st.number_input("Current balance (debt for credit accounts)", value=0.0)
        credit_limit = st.number_input("Credit limit (credit accounts only)", min_value=0.0, value=0.0)
        group = st.selectbox(
            "Group",
            [None] + groups,
            format_func=lambda g: "No group" if g is None else g.name,
        )
        category = st.text_input("Tag", help="Used to filter performance stats")
        submitted = st.form_submit_button("Create account")

    if submitted:
        limit: Optional[float] = None
        if account_type == AccountType.CREDIT and credit_limit > 0:
            limit = credit_limit
        try:
            run_async(components.ledger.create_account(
                name=name,
                account_type=account_type,
                currency=currency,
                balance=balance,
                credit_limit=limit,
                group_id=group.id if group else None,
                category=category or None,
            ))
            st.rerun()
        except LedgerValidationError as e:
            show_validation_error(e)


def render_account_row(components: AppComponents, snapshot: LedgerSnapshot, account: Account):
    ledger = components.ledger
    label = "Debt" if account.is_credit else "Balance"
    title = f"{account.name}  ·  {label}: {format_money(account.balance, account.currency)}"
    if account.category:
        title += f"  ·  🏷️ {account.category}"

    with st.expander(title):
        col1, col2, col3 = st.columns(3)
        if col1.button("⬆️ Up", key=f"up_{account.id}"):
            run_async(ledger.move_account(account.id, MoveDirection.UP))
            st.rerun()
        if col2.button("⬇️ Down", key=f"down_{account.id}"):
            run_async(ledger.move_account(account.id, MoveDirection.DOWN))
            st.rerun()
        if col3.button("🗑️ Delete", key=f"delete_{account.id}"):
            removed = run_async(ledger.delete_account(account.id))
            st.toast(f"Deleted {account.name} and {removed} transactions")
            st.rerun()

        with st.form(f"adjust_{account.id}"):
            new_balance = st.number_input(
                f"New {label.lower()}",
                value=float(account.balance),
                key=f"balance_{account.id}",
            )
            new_limit = None
            if account.is_credit:
                new_limit = st.number_input(
                    "Credit limit",
                    min_value=0.0,
                    value=float(account.credit_limit or 0.0),
                    key=f"limit_{account.id}",
                )
            reason = st.text_input("Reason", key=f"reason_{account.id}")
            if st.form_submit_button("Save balance"):
                try:
                    run_async(ledger.adjust_balance(
                        account.id,
                        new_balance,
                        new_credit_limit=new_limit,
                        reason=reason or None,
                        correlation_id=create_correlation_id(),
                    ))
                    st.rerun()
                except LedgerValidationError as e:
                    show_validation_error(e)

        groups = snapshot.ordered_groups()
        options: list[Optional[UUID]] = [None] + [g.id for g in groups]
        names = {g.id: g.name for g in groups}
        target = st.selectbox(
            "Group",
            options,
            index=options.index(account.group_id) if account.group_id in options else 0,
            format_func=lambda gid: "No group" if gid is None else names[gid],
            key=f"group_{account.id}",
        )
        if target != account.group_id and st.button("Move to group", key=f"regroup_{account.id}"):
            run_async(ledger.set_account_group(account.id, target))
            st.rerun()


def render_performance_page(components: AppComponents, snapshot: LedgerSnapshot):
    """Returns and projections for a chosen scope and window."""
    st.title("📈 Performance")
    dashboard = components.dashboard

    col1, col2, col3 = st.columns(3)
    dimension = col1.selectbox(
        "View by",
        list(ScopeDimension),
        format_func=lambda d: d.value.title(),
    )
    options = dashboard.scope_options(snapshot, dimension)
    option = col2.selectbox(
        "Filter",
        options,
        format_func=lambda o: o.label,
        disabled=dimension == ScopeDimension.GENERAL,
    )
    window = col3.radio(
        "Window",
        list(TimeWindow),
        format_func=lambda w: w.value,
        horizontal=True,
        index=len(TimeWindow) - 1,
    )

    scope = PerformanceScope(dimension=dimension, filter_id=option.id)
    stats = dashboard.performance(snapshot, scope, window)

    col1, col2, col3 = st.columns(3)
    col1.metric("Current value", format_money(stats.current_val))
    col2.metric("Return", f"{stats.normal_return:+.2f}%")
    col3.metric("Annualized (EA)", f"{stats.annualized_return:+.2f}%")

    st.markdown("### Snowball projection")
    cols = st.columns(max(len(stats.projections), 1))
    for col, projection in zip(cols, stats.projections):
        col.metric(projection.label, format_money(projection.value))

    st.markdown("---")
    st.markdown("### 🤖 AI analysis")
    if st.button("Analyze this scope"):
        render_analysis(components, snapshot, scope, option.label, stats.current_val)


def render_analysis(
    components: AppComponents,
    snapshot: LedgerSnapshot,
    scope: PerformanceScope,
    label: str,
    total: float,
):
    accounts = accounts_in_scope(scope, snapshot.accounts)
    scope_name = "Global" if scope.selects_all else scope.dimension.value.title()
    with st.spinner("Analyzing..."):
        result: AnalysisResult = run_async(components.analysis.analyze(
            scope=scope_name,
            name=label,
            accounts=accounts,
            transactions=snapshot.transactions,
            currency=components.dashboard.base_currency,
            total_balance=total,
        ))

    if result.used_fallback:
        st.warning(result.summary)
    else:
        st.markdown(result.summary)
    if result.key_insights:
        st.markdown("**Key insights**")
        st.markdown("\n".join(f"- {i}" for i in result.key_insights))
    if result.spending_habits:
        st.markdown("**Spending habits**")
        st.markdown("\n".join(f"- {h}" for h in result.spending_habits))
    if result.financial_advice:
        st.info(result.financial_advice)


def render_settings_page(components: AppComponents, snapshot: LedgerSnapshot):
    """Exchange rate and connection status."""
    st.title("⚙️ Settings")

    st.markdown("### Exchange rate")
    st.markdown(
        f"Current USD→COP: **{snapshot.settings.usd_to_cop_rate:,.2f}** "
        f"(updated {snapshot.settings.updated_at:%Y-%m-%d %H:%M} UTC)"
    )
    col1, col2 = st.columns(2)
    manual = col1.number_input(
        "Manual rate",
        min_value=0.0,
        value=float(snapshot.settings.usd_to_cop_rate),
    )
    if col1.button("Save manual rate"):
        try:
            run_async(components.rates.set_manual_rate(manual))
            st.rerun()
        except LedgerValidationError as e:
            show_validation_error(e)
    if col2.button("🔄 Fetch latest rate"):
        try:
            run_async(components.rates.refresh())
            st.rerun()
        except StorageError as e:
            st.error(f"Could not save the rate: {e}")

    st.markdown("---")
    st.markdown("### Connection Status")

    status = validate_all_settings()
    services = [
        ("Exchange rate source", "exchange_rate"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI)", "gemini"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown(
        "To configure the application, create a `.env` file with your keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
