"""
Streamlit Frontend for SmartSpend

The screens a user works with every day: the overview, the entry
form, planning and the advisor chat.

DESIGN PRINCIPLES:
1. Every write goes through a mutation handler
2. Every form goes through the validator first
3. Clear error messages in simple language
4. AI output only ever prefills a form

The UI is a reader. Everything it shows is recomputed from the store
on each rerun, so it cannot drift from the saved state.
"""

import asyncio
from datetime import date

import streamlit as st

from smartspend.agents import AIServiceError
from smartspend.aggregates import (
    budget_overview,
    category_breakdown,
    goal_progress,
    recent_transactions,
    summarize,
)
from smartspend.config import validate_all_settings
from smartspend.models import (
    Budget,
    Frequency,
    GoalForm,
    TransactionForm,
    TransactionType,
)
from smartspend.orchestrator import SmartSpendApp, create_app_components


# Page configuration
st.set_page_config(
    page_title="SmartSpend",
    page_icon="💰",
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
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
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
def get_components() -> SmartSpendApp:
    """Get or create application components (cached)."""
    return create_app_components()


def money(value) -> str:
    return f"${value:,.2f}"


def show_validation(app: SmartSpendApp, result) -> None:
    message = app.validator.get_user_friendly_summary(result)
    if not message:
        return
    if result.is_valid:
        st.warning(message)
    else:
        st.error(message)


def main():
    """Main application entry point."""
    app = get_components()

    for error in app.startup_errors:
        st.markdown(f"""
        <div class="error-box">
            <h4>⚠️ Startup problem</h4>
            <p>{error}</p>
        </div>
        """, unsafe_allow_html=True)

    # Sidebar navigation
    st.sidebar.title("💰 SmartSpend")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Overview", "➕ Add Transaction", "🎯 Planning", "🤖 AI Advisor", "⚙️ Settings"],
        index=0,
    )

    # Leaving the entry page abandons any scan still running
    if page != "➕ Add Transaction":
        app.receipt_flow.cancel()

    if page == "📊 Overview":
        render_overview_page(app)
    elif page == "➕ Add Transaction":
        render_transaction_page(app)
    elif page == "🎯 Planning":
        render_planning_page(app)
    elif page == "🤖 AI Advisor":
        render_advisor_page(app)
    elif page == "⚙️ Settings":
        render_settings_page(app)


def render_overview_page(app: SmartSpendApp):
    """Summary cards, spending breakdown and the recent list."""
    st.title("📊 Overview")

    transactions = app.store.transactions
    summary = summarize(transactions)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Balance", money(summary.balance))
    col2.metric("Income", money(summary.income))
    col3.metric("Expenses", money(summary.expense))
    col4.metric("Saved", money(summary.savings))

    st.markdown("### Spending by Category")
    breakdown = category_breakdown(transactions)
    if not breakdown:
        st.info("No expenses yet.")
    else:
        largest = max(breakdown.values())
        for category, amount in breakdown.items():
            st.markdown(f"**{category}** {money(amount)}")
            st.progress(float(amount / largest) if largest else 0.0)

    st.markdown("### Recent Transactions")
    if "confirm_delete" not in st.session_state:
        st.session_state.confirm_delete = None

    for txn in recent_transactions(transactions):
        sign = "+" if txn.type == TransactionType.INCOME else "-"
        col1, col2, col3, col4 = st.columns([4, 2, 1, 1])
        col1.markdown(
            f"**{txn.description}**  \n{txn.category} · {txn.date.strftime('%d %b %Y')}"
            + (" · 🔁" if txn.is_recurring else "")
        )
        col2.markdown(f"**{sign}{money(txn.amount)}**")

        if col3.button("✏️", key=f"edit_{txn.id}", help="Edit"):
            st.session_state.editing_id = txn.id
            st.session_state.prefill = TransactionForm(
                amount=str(txn.amount),
                description=txn.description,
                category=txn.category,
                type=txn.type,
                date=txn.date.date(),
            )
            st.info("Open 'Add Transaction' to edit this entry.")

        if col4.button("🗑️", key=f"delete_{txn.id}", help="Delete"):
            st.session_state.confirm_delete = txn.id

        if st.session_state.confirm_delete == txn.id:
            st.warning(f"Delete '{txn.description}'?")
            yes, no = st.columns(2)
            if yes.button("Yes, delete", key=f"yes_{txn.id}"):
                app.handlers.delete_transaction(txn.id)
                st.session_state.confirm_delete = None
                st.rerun()
            if no.button("Cancel", key=f"no_{txn.id}"):
                st.session_state.confirm_delete = None
                st.rerun()


def render_receipt_scanner(app: SmartSpendApp):
    """Upload a receipt and prefill the form from it."""
    st.markdown("### 📷 Scan a Receipt")

    if not app.receipt_flow.is_available:
        st.info("Set GEMINI_API_KEY to enable receipt scanning.")
        return

    uploaded_file = st.file_uploader(
        "Choose a receipt photo",
        type=app.validator.settings.supported_formats_list,
        help="Take a clear, well-lit photo of your receipt",
    )

    if uploaded_file and st.button("🔍 Read Receipt"):
        with st.spinner("Reading your receipt... Please wait."):
            try:
                form = run_async(app.receipt_flow.scan(
                    uploaded_file.getvalue(),
                    uploaded_file.type,
                    app.store.categories,
                ))
            except AIServiceError as e:
                st.error(f"Could not read the receipt: {e}")
                return

        if form is not None:
            st.session_state.editing_id = None
            st.session_state.prefill = form
            st.success("Receipt read. Check the details below and save.")


def render_transaction_page(app: SmartSpendApp):
    """The add/edit form, in manual or recurring mode."""
    editing_id = st.session_state.get("editing_id")
    st.title("✏️ Edit Transaction" if editing_id else "➕ Add Transaction")

    if not editing_id:
        render_receipt_scanner(app)
        st.markdown("---")

    prefill: TransactionForm = st.session_state.get("prefill") or TransactionForm()
    categories = list(app.store.categories)

    with st.form("transaction_form"):
        col1, col2 = st.columns(2)

        with col1:
            txn_type = st.radio(
                "Type",
                options=list(TransactionType),
                index=list(TransactionType).index(prefill.type),
                format_func=lambda t: t.value.title(),
                horizontal=True,
            )
            amount = st.text_input("Amount *", value=prefill.amount)
            description = st.text_input("Description *", value=prefill.description)

        with col2:
            category = st.selectbox(
                "Category *",
                options=categories,
                index=categories.index(prefill.category) if prefill.category in categories else 0,
            )
            txn_date = st.date_input("Date", value=prefill.date)

            is_recurring = False
            frequency = Frequency.MONTHLY
            if not editing_id:
                is_recurring = st.checkbox("Repeat this transaction")
                frequency = st.selectbox(
                    "Frequency",
                    options=list(Frequency),
                    index=list(Frequency).index(Frequency.MONTHLY),
                    format_func=lambda f: f.value.title(),
                )

        submitted = st.form_submit_button("💾 Save", type="primary")

    if editing_id and st.button("Cancel editing"):
        st.session_state.editing_id = None
        st.session_state.prefill = None
        st.rerun()

    if not submitted:
        return

    form = TransactionForm(
        amount=amount,
        description=description,
        category=category,
        type=txn_type,
        date=txn_date,
        is_recurring=is_recurring,
        frequency=frequency,
    )

    if form.is_recurring:
        result, draft = app.validator.to_recurring_draft(form, categories)
        show_validation(app, result)
        if draft is not None:
            app.handlers.add_recurring_rule(draft)
            st.success(f"Recurring {draft.frequency.value.lower()} transaction added.")
    else:
        result, draft = app.validator.to_transaction_draft(form, categories)
        show_validation(app, result)
        if draft is not None:
            app.handlers.save_transaction(draft, editing_id=editing_id)
            st.success("Transaction saved.")

    if draft is not None:
        st.session_state.editing_id = None
        st.session_state.prefill = None


def render_planning_page(app: SmartSpendApp):
    """Budgets, categories, goals and recurring rules."""
    st.title("🎯 Planning")

    tab_budgets, tab_goals, tab_recurring = st.tabs(["Budgets", "Goals", "Recurring"])

    with tab_budgets:
        render_budgets(app)

    with tab_goals:
        render_goals(app)

    with tab_recurring:
        render_recurring(app)


def render_budgets(app: SmartSpendApp):
    for status in budget_overview(app.store.categories, app.store.budgets, app.store.transactions):
        col1, col2 = st.columns([3, 2])
        with col1:
            st.markdown(f"**{status.category}**")
            if status.has_budget:
                label = f"{money(status.spent)} of {money(status.limit)} this month"
                st.progress(float(status.percent) / 100, text=label)
                if status.is_over:
                    st.error(f"Over budget by {money(status.spent - status.limit)}")
            else:
                st.caption(f"{money(status.spent)} spent this month · no budget")
        with col2:
            new_limit = st.text_input(
                "Monthly limit",
                value=str(status.limit) if status.has_budget else "",
                key=f"limit_{status.category}",
            )
            if st.button("Set", key=f"set_{status.category}"):
                limit, issues = app.validator.check_positive_amount(new_limit, "limit")
                if issues:
                    st.error(issues[0].message)
                else:
                    app.handlers.update_budget(Budget(category=status.category, limit=limit))
                    st.rerun()

    st.markdown("---")
    st.markdown("### New Category")
    name = st.text_input("Category name", key="new_category")
    if st.button("➕ Add Category"):
        result = app.validator.validate_category_name(name, app.store.categories)
        if not result.is_valid:
            show_validation(app, result)
        elif app.handlers.add_category(name.strip()):
            st.rerun()
        else:
            st.info(f"'{name.strip()}' already exists.")


def render_goals(app: SmartSpendApp):
    for goal in app.store.goals:
        progress = goal_progress(goal)
        st.markdown(f"**{goal.name}** · due {goal.deadline.strftime('%d %b %Y')}")
        st.progress(
            float(progress.percent) / 100,
            text=f"{money(goal.current_amount)} of {money(goal.target_amount)}",
        )
        if progress.is_complete:
            st.success("Goal reached! 🎉")

        col1, col2, col3 = st.columns([2, 1, 1])
        amount = col1.text_input("Add funds", key=f"alloc_{goal.id}")
        if col2.button("💸 Allocate", key=f"alloc_btn_{goal.id}"):
            _, issues = app.validator.check_positive_amount(amount)
            if issues:
                st.error(issues[0].message)
            else:
                app.handlers.allocate_funds(goal.id, amount)
                st.rerun()
        if col3.button("🗑️ Delete", key=f"del_goal_{goal.id}"):
            app.handlers.delete_goal(goal.id)
            st.rerun()

    st.markdown("---")
    st.markdown("### New Goal")
    with st.form("goal_form"):
        name = st.text_input("Goal name *")
        target = st.text_input("Target amount *")
        deadline = st.date_input("Deadline *", value=date.today())
        submitted = st.form_submit_button("🎯 Create Goal")

    if submitted:
        form = GoalForm(name=name, target_amount=target, deadline=deadline)
        result, target_amount = app.validator.validate_goal(form)
        show_validation(app, result)
        if result.is_valid:
            app.handlers.create_goal(form.name, target_amount, form.deadline)
            st.rerun()


def render_recurring(app: SmartSpendApp):
    rules = app.store.recurring_rules
    if not rules:
        st.info("No recurring transactions. Tick 'Repeat this transaction' when adding one.")
        return

    for rule in rules:
        col1, col2 = st.columns([4, 1])
        col1.markdown(
            f"**{rule.description}** · {money(rule.amount)} {rule.frequency_label.lower()}  \n"
            f"{rule.category} · next on {rule.next_due_date.strftime('%d %b %Y')}"
        )
        if col2.button("⏹️ Stop", key=f"stop_{rule.id}"):
            app.handlers.delete_recurring_rule(rule.id)
            st.rerun()


def render_advisor_page(app: SmartSpendApp):
    """Chat with the advisor about your own numbers."""
    st.title("🤖 AI Advisor")

    flow = app.advisor_flow

    for message in flow.messages:
        with st.chat_message("user" if message.role.value == "user" else "assistant"):
            st.markdown(message.text)

    question = None
    cols = st.columns(len(flow.SUGGESTED_QUESTIONS))
    for col, suggestion in zip(cols, flow.SUGGESTED_QUESTIONS):
        if col.button(suggestion):
            question = suggestion

    typed = st.chat_input("Ask about your spending...")
    question = typed or question

    if question:
        with st.spinner("Thinking..."):
            run_async(flow.ask(question))
        st.rerun()


def render_settings_page(app: SmartSpendApp):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Gemini (Receipts and Advisor)", "gemini"),
        ("Local Storage", "storage"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Recent Activity")
    for event in app.audit_logger.recent_events(limit=20):
        st.caption(f"{event.timestamp.strftime('%d %b %H:%M')} · {event.description}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "Set `GEMINI_API_KEY` in the environment or a `.env` file to enable "
        "receipt scanning and the advisor. Data is stored under "
        "`SMARTSPEND_STORAGE_DATA_DIR` (default `~/.smartspend`)."
    )


if __name__ == "__main__":
    main()
