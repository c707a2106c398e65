"""
Streamlit Dashboard for Pennywise

A thin surface over the orchestrator flows. Every number on screen comes
from a flow call; the dashboard never computes spent, progress or
rollover itself.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Clear error messages in simple language
3. Visual feedback for all operations
4. No hidden actions
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal

import streamlit as st

from pennywise.config import get_settings, validate_all_settings
from pennywise.errors import FinanceError
from pennywise.models import BudgetInput, ExpenseInput, GoalInput, GoalType, IncomeInput
from pennywise.orchestrator import AppComponents, create_app_components
from pennywise.reconciliation import month_token


# Page configuration
st.set_page_config(
    page_title="Pennywise",
    page_icon="💷",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
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
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def to_datetime(value: date) -> datetime:
    return datetime(value.year, value.month, value.day)


def main():
    """Main application entry point."""
    components = get_components()
    currency = get_settings().app.currency_symbol

    st.sidebar.title("💷 Pennywise")
    owner_id = st.sidebar.text_input("User ID", value="local-user")
    month = st.sidebar.text_input("Month (YYYY-MM)", value=month_token(datetime.now()))
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Overview", "🧾 Expenses", "💼 Budgets", "🎯 Goals", "💰 Income", "⚙️ Settings"],
        index=0,
    )

    if not owner_id:
        st.warning("Enter a user ID to continue.")
        st.stop()

    if page == "📊 Overview":
        render_overview_page(components, owner_id, month, currency)
    elif page == "🧾 Expenses":
        render_expenses_page(components, owner_id, month, currency)
    elif page == "💼 Budgets":
        render_budgets_page(components, owner_id, month, currency)
    elif page == "🎯 Goals":
        render_goals_page(components, owner_id, currency)
    elif page == "💰 Income":
        render_income_page(components, owner_id, month, currency)
    elif page == "⚙️ Settings":
        render_settings_page(components)


def render_overview_page(components: AppComponents, owner_id: str, month: str, currency: str):
    st.title("📊 Overview")

    summary = run_async(components.summary.summarize(owner_id, month))
    col1, col2, col3 = st.columns(3)
    col1.metric("Income", f"{currency}{summary.total_income:,.2f}")
    col2.metric("Spending", f"{currency}{summary.total_expenses:,.2f}")
    col3.metric("Net", f"{currency}{summary.net:,.2f}")

    if summary.by_category:
        st.markdown("### Spending by category")
        st.bar_chart({k: float(v) for k, v in summary.by_category.items()})

    st.markdown("### Alerts")
    alerts = run_async(components.alerts.get_alerts(owner_id))
    if not alerts:
        st.success("✅ Nothing needs your attention.")
    for alert in alerts:
        st.markdown(f"""
        <div class="warning-box">
            <h4>⚠️ {alert.category}</h4>
            <p>{alert.message}</p>
        </div>
        """, unsafe_allow_html=True)


def render_expenses_page(components: AppComponents, owner_id: str, month: str, currency: str):
    st.title("🧾 Expenses")

    goals = run_async(components.goals.list_goals(owner_id))
    goal_options = [None] + [g.id for g in goals]
    goal_names = {g.id: g.name for g in goals}

    with st.form("add_expense"):
        col1, col2 = st.columns(2)
        with col1:
            category = st.text_input("Category *")
            amount = st.number_input(f"Amount ({currency}) *", min_value=0.0, step=0.01, format="%.2f")
            payee = st.text_input("Payee")
        with col2:
            spent_on = st.date_input("Date", value=date.today())
            due_on = st.date_input("Due date (optional)", value=None)
            goal_id = st.selectbox(
                "Contributes to goal",
                options=goal_options,
                format_func=lambda x: "None" if x is None else goal_names[x],
            )
        description = st.text_area("Description (optional)")

        if st.form_submit_button("➕ Add Expense", type="primary"):
            try:
                run_async(components.expenses.create_expense(
                    owner_id,
                    ExpenseInput(
                        amount=Decimal(str(amount)),
                        category=category,
                        payee=payee,
                        description=description or None,
                        date=to_datetime(spent_on),
                        due_date=to_datetime(due_on) if due_on else None,
                        goal_id=goal_id,
                    ),
                ))
                st.success("✅ Expense saved")
            except FinanceError as e:
                st.error(str(e))

    st.markdown("---")
    expenses = run_async(components.expenses.list_expenses(owner_id, month))
    if not expenses:
        st.info("📋 No expenses this month yet.")
    for expense in expenses:
        col1, col2, col3 = st.columns([4, 1, 1])
        status = "" if expense.active else " (inactive)"
        col1.markdown(
            f"**{expense.category}** {currency}{expense.amount:,.2f} "
            f"on {expense.date.strftime('%d %B %Y')}{status}"
        )
        if expense.active and col2.button("Deactivate", key=f"deactivate-{expense.id}"):
            run_async(components.expenses.deactivate_expense(owner_id, expense.id))
            st.rerun()
        if col3.button("🗑️ Delete", key=f"delete-{expense.id}"):
            run_async(components.expenses.delete_expense(owner_id, expense.id))
            st.rerun()


def render_budgets_page(components: AppComponents, owner_id: str, month: str, currency: str):
    st.title("💼 Budgets")

    with st.form("save_budget"):
        category = st.text_input("Category *")
        amount = st.number_input(f"Amount ({currency}) *", min_value=0.0, step=0.01, format="%.2f")
        rollover = st.checkbox("Carry unspent amount into next month")
        if st.form_submit_button("💾 Save Budget", type="primary"):
            try:
                run_async(components.budgets.save_budget(
                    owner_id,
                    BudgetInput(category=category, amount=Decimal(str(amount)), rollover=rollover),
                ))
                st.success("✅ Budget saved")
            except FinanceError as e:
                st.error(str(e))

    st.markdown("---")
    budgets = run_async(components.budgets.list_budgets(owner_id, month))
    if not budgets:
        st.info("📋 No budgets for this month.")
    for budget in budgets:
        available = budget.amount + budget.rollover_amount
        st.markdown(
            f"**{budget.category}**: {currency}{budget.spent:,.2f} of {currency}{available:,.2f} "
            f"({currency}{budget.remaining:,.2f} left)"
        )
        if available > 0:
            st.progress(min(1.0, float(budget.spent / available)))
        if st.button("🔄 Reconcile", key=f"reconcile-{budget.id}"):
            run_async(components.budgets.reconcile_budget(owner_id, budget.category, month))
            st.rerun()


def render_goals_page(components: AppComponents, owner_id: str, currency: str):
    st.title("🎯 Goals")

    with st.form("create_goal"):
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Name *")
            goal_type = st.selectbox("Type", options=[t.value for t in GoalType])
        with col2:
            amount = st.number_input(f"Target ({currency}) *", min_value=0.0, step=0.01, format="%.2f")
            duration = st.number_input("Duration (months)", min_value=1, value=12, step=1)
        progress = st.number_input(f"Already saved/paid ({currency})", min_value=0.0, step=0.01, format="%.2f")

        if st.form_submit_button("🎯 Create Goal", type="primary"):
            try:
                run_async(components.goals.create_goal(
                    owner_id,
                    GoalInput(
                        name=name,
                        amount=Decimal(str(amount)),
                        type=goal_type,
                        progress=Decimal(str(progress)),
                        duration=int(duration),
                    ),
                ))
                st.success("✅ Goal created")
            except FinanceError as e:
                st.error(str(e))

    if st.button("🔄 Reconcile all goals"):
        results = run_async(components.goals.reconcile_goals(owner_id))
        corrected = [r for r in results if r.corrected]
        st.info(f"Checked {len(results)} goals, corrected {len(corrected)}.")

    st.markdown("---")
    for goal in run_async(components.goals.list_goals(owner_id)):
        details = run_async(components.goals.goal_details(owner_id, goal.id))
        st.markdown(
            f"**{details.name}** ({details.type.value}): {currency}{details.progress:,.2f} "
            f"of {currency}{details.amount:,.2f}, {currency}{details.monthly_target:,.2f}/month"
        )
        st.progress(min(1.0, float(details.progress / details.amount)))
        if st.button("🗑️ Delete", key=f"delete-goal-{goal.id}"):
            unlinked = run_async(components.goals.delete_goal(owner_id, goal.id))
            st.success(f"Goal deleted, {unlinked} expenses unlinked")
            st.rerun()


def render_income_page(components: AppComponents, owner_id: str, month: str, currency: str):
    st.title("💰 Income")

    with st.form("add_income"):
        source = st.text_input("Source")
        amount = st.number_input(f"Amount ({currency}) *", min_value=0.0, step=0.01, format="%.2f")
        received_on = st.date_input("Date", value=date.today())
        if st.form_submit_button("➕ Add Income", type="primary"):
            try:
                run_async(components.incomes.add_income(
                    owner_id,
                    IncomeInput(
                        amount=Decimal(str(amount)),
                        source=source,
                        date=to_datetime(received_on),
                    ),
                ))
                st.success("✅ Income saved")
            except FinanceError as e:
                st.error(str(e))

    st.markdown("---")
    for income in run_async(components.incomes.list_incomes(owner_id, month)):
        st.markdown(
            f"{income.date.strftime('%d %B %Y')}: **{income.source or income.category}** "
            f"{currency}{income.amount:,.2f}"
        )


def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if components.sheets_client is None:
        st.warning("Running with in-memory storage. Data is lost on restart.")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your settings. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
