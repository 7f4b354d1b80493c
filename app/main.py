"""
Streamlit Frontend for the Charge Scheduler

The weekly charge schedule: one column per day, Sunday to Saturday,
with the week's totals underneath and a form to schedule new charges.

The UI never changes charge state itself. Every click goes through the
SchedulerController, which writes to the store and reconciles the view.
"""

import asyncio
import html
from datetime import date
from decimal import Decimal, InvalidOperation

import streamlit as st
from pydantic import ValidationError

from charge_scheduler.audit import create_correlation_id
from charge_scheduler.config import get_settings, validate_all_settings
from charge_scheduler.models.charge import (
    Charge,
    Frequency,
    NewCharge,
    Recurrence,
)
from charge_scheduler.scheduler import (
    SchedulerController,
    SettlementIncompleteError,
    create_scheduler,
)
from charge_scheduler.scheduling import day_name, format_amount
from charge_scheduler.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="Charge Schedule",
    page_icon="📅",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .day-header {
        text-align: center;
        font-weight: bold;
        padding: 6px 0;
        border-radius: 8px;
        background-color: #f1f3f5;
    }
    .day-header.today {
        background-color: #d4edda;
        border: 1px solid #28a745;
    }
    .charge-card {
        padding: 8px;
        border-radius: 8px;
        border: 1px solid #dee2e6;
        margin: 6px 0;
    }
    .charge-card.settled {
        background-color: #f0fff4;
        text-decoration: line-through;
        opacity: 0.7;
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
def get_scheduler() -> SchedulerController:
    """Get or create the scheduler (cached)."""
    try:
        scheduler = create_scheduler(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        scheduler = create_scheduler(use_storage=False)
    try:
        run_async(scheduler.go_to_today())
    except StorageError as e:
        # View stays flagged stale; the page shows a warning
        st.error(f"Could not load this week: {e}")
    return scheduler


def main():
    """Main application entry point."""
    scheduler = get_scheduler()

    st.sidebar.title("📅 Charge Schedule")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📅 Weekly Schedule", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Click a charge to mark it received
        2. Recurring charges schedule their next date automatically
        3. Click again to undo
        """
    )

    if page == "📅 Weekly Schedule":
        render_schedule_page(scheduler)
    elif page == "⚙️ Settings":
        render_settings_page()


def _run_action(action, failure_message: str) -> bool:
    """Run a scheduler call, reporting store failures to the operator."""
    try:
        run_async(action)
        return True
    except SettlementIncompleteError as e:
        st.error(
            f"{failure_message}: the next occurrence was scheduled but the "
            f"charge itself was not marked received. Please check this week. ({e})"
        )
    except StorageError as e:
        st.error(f"{failure_message}: {e}")
    return False


def render_schedule_page(scheduler: SchedulerController):
    """Render the weekly schedule."""
    settings = get_settings().app
    view = scheduler.view

    st.title("📅 Charge Schedule")
    st.markdown(
        f"Week of **{view.start.strftime('%d %b %Y')}** to "
        f"**{view.end.strftime('%d %b %Y')}**"
    )

    if view.stale:
        st.warning("Could not reach the store. The schedule below may be out of date.")

    nav_prev, nav_today, nav_next = st.columns(3)
    with nav_prev:
        if st.button("⬅️ Previous Week"):
            _run_action(scheduler.previous_week(), "Could not load the week")
            st.rerun()
    with nav_today:
        if st.button("📍 This Week"):
            _run_action(scheduler.go_to_today(), "Could not load the week")
            st.rerun()
    with nav_next:
        if st.button("Next Week ➡️"):
            _run_action(scheduler.next_week(), "Could not load the week")
            st.rerun()

    st.markdown("---")

    today = date.today()
    buckets = scheduler.buckets
    for day, column in zip(view.days, st.columns(7)):
        with column:
            css_class = "day-header today" if day == today else "day-header"
            st.markdown(
                f'<div class="{css_class}">{day_name(day)}<br>{day.day}</div>',
                unsafe_allow_html=True,
            )
            charges = buckets[day]
            if not charges:
                st.caption("Empty")
            for charge in charges:
                render_charge_card(scheduler, charge, settings.currency_symbol)

    st.markdown("---")

    summary = scheduler.summary
    total_col, received_col, pending_col = st.columns(3)
    total_col.metric("Week Total", format_amount(summary.total, settings.currency_symbol))
    received_col.metric("Received", format_amount(summary.settled_total, settings.currency_symbol))
    pending_col.metric("Pending", format_amount(summary.outstanding_total, settings.currency_symbol))

    st.markdown("---")
    render_new_charge_form(scheduler, settings.max_charge_amount)


def render_charge_card(scheduler: SchedulerController, charge: Charge, symbol: str):
    """One charge inside a day column."""
    settled = charge.is_settled
    css_class = "charge-card settled" if settled else "charge-card"
    recurring = " 🔁" if charge.recurrence.produces_successor else ""
    st.markdown(
        f'<div class="{css_class}"><strong>{html.escape(charge.client_name)}</strong>{recurring}<br>'
        f'<small>{html.escape(charge.reference)}</small><br>{format_amount(charge.amount, symbol)}</div>',
        unsafe_allow_html=True,
    )

    label = "↩️ Undo" if settled else "✅ Received"
    if st.button(label, key=f"toggle-{charge.id}"):
        if _run_action(
            scheduler.toggle(charge, create_correlation_id()),
            "Could not update the charge",
        ):
            st.rerun()

    if st.button("🗑️ Delete", key=f"delete-{charge.id}"):
        if _run_action(
            scheduler.delete_charge(charge.id, create_correlation_id()),
            "Could not delete the charge",
        ):
            st.rerun()


def render_new_charge_form(scheduler: SchedulerController, max_amount: Decimal):
    """Form to schedule a new charge."""
    with st.expander("➕ New Charge"):
        with st.form("new-charge", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                client_name = st.text_input("Client Name *")
                reference = st.text_input("Reference *", placeholder="e.g. Rent week 4")
                amount_text = st.text_input("Amount *", placeholder="0.00")
            with col2:
                due_date = st.date_input("Due Date *", value=date.today())
                frequency = st.selectbox(
                    "Frequency",
                    options=list(Frequency),
                    format_func=lambda f: {"none": "One-off"}.get(f.value, f.value.title()),
                )
                is_recurring = st.checkbox("Recurring charge", value=True)
                # Read only for monthly charges; weekly ones repeat every 7 days
                day_of_month = st.selectbox(
                    "Day of Month (monthly)",
                    options=[None] + list(range(1, 32)),
                    format_func=lambda d: "Same as due date" if d is None else str(d),
                )

            if not st.form_submit_button("📅 Schedule Charge", type="primary"):
                return

            try:
                amount = Decimal(amount_text.replace(",", "."))
            except InvalidOperation:
                st.error("Please enter a valid amount")
                return
            if amount > max_amount:
                st.error(f"Amount is above the limit of {max_amount}")
                return

            try:
                new_charge = NewCharge(
                    client_name=client_name,
                    reference=reference,
                    amount=amount,
                    due_date=due_date,
                    recurrence=Recurrence(
                        is_recurring=is_recurring,
                        frequency=frequency,
                        anchor_day_of_month=(
                            day_of_month if frequency == Frequency.MONTHLY else None
                        ),
                    ),
                )
            except ValidationError as e:
                st.error(f"Please check the form: {e.errors()[0]['msg']}")
                return

            if _run_action(
                scheduler.create_charge(new_charge, create_correlation_id()),
                "Could not create the charge",
            ):
                st.success("Charge scheduled")
                st.rerun()


def render_settings_page():
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

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with the "
        "`GOOGLE_SHEETS_*` variables, or set `STORAGE_BACKEND=memory` to "
        "run without a remote store."
    )


if __name__ == "__main__":
    main()
