"""
Streamlit Frontend for Subtrack

A single page:
1. Totals - monthly and yearly spend across all subscriptions
2. Form - add a subscription, or edit the one picked from the list
3. List - every subscription with edit/delete actions
4. Report - an AI-written summary with tips to spend less

The list and totals come from the live query and refresh on their own.
Every action reports back through one message line at the bottom.
"""

import asyncio
import atexit
import html

import streamlit as st

from subtrack.config import validate_all_settings
from subtrack.models.subscription import BillingCycle, Subscription
from subtrack.orchestrator import (
    EMPTY_STATE_MESSAGE,
    ClientContext,
    SubscriptionTracker,
    create_app_components,
)
from subtrack.queries import format_amount


# Page configuration
st.set_page_config(
    page_title="Subtrack",
    page_icon="💸",
    layout="centered",
    initial_sidebar_state="collapsed",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .total-box {
        padding: 16px;
        background-color: #1a2e05;
        border-radius: 10px;
        text-align: center;
        margin: 6px 0;
    }
    .total-box h4 {
        color: #d9f99d;
        margin: 0 0 6px 0;
    }
    .big-number {
        font-size: 2.2em;
        font-weight: bold;
        color: #2dd4bf;
    }
    .sub-row {
        padding: 10px 14px;
        background-color: #365314;
        border-radius: 8px;
        color: #f7fee7;
    }
    .report-box {
        padding: 16px;
        background-color: #365314;
        border-radius: 8px;
        color: #ecfccb;
        white-space: pre-wrap;
    }
</style>
""", unsafe_allow_html=True)


FORM_NAME_KEY = "form_name"
FORM_COST_KEY = "form_cost"
FORM_CYCLE_KEY = "form_cycle"
# Set by list actions; the live fragment turns it into a full-page rerun
APP_RERUN_KEY = "rerun_app"


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> ClientContext:
    """Get or create the client context (one per process)."""
    context = create_app_components()
    atexit.register(context.close)
    return context


def get_tracker(context: ClientContext) -> SubscriptionTracker:
    """Get or create this browser session's tracker."""
    if "tracker" not in st.session_state:
        tracker = context.create_tracker()
        run_async(tracker.start())
        st.session_state.tracker = tracker
    return st.session_state.tracker


def load_form_widgets(tracker: SubscriptionTracker) -> None:
    """Copy the tracker's form state into the form widgets."""
    st.session_state[FORM_NAME_KEY] = tracker.form.name
    st.session_state[FORM_COST_KEY] = tracker.form.cost
    st.session_state[FORM_CYCLE_KEY] = tracker.form.cycle


# =============================================================================
# CALLBACKS - run before the next rerun, so they may reset widget state
# =============================================================================

def on_submit(tracker: SubscriptionTracker) -> None:
    tracker.form.name = st.session_state.get(FORM_NAME_KEY, "")
    tracker.form.cost = st.session_state.get(FORM_COST_KEY, "")
    tracker.form.cycle = st.session_state.get(FORM_CYCLE_KEY, BillingCycle.MONTHLY)
    result = run_async(tracker.submit())
    if result.ok:
        load_form_widgets(tracker)


def on_start_edit(tracker: SubscriptionTracker, subscription: Subscription) -> None:
    tracker.start_edit(subscription)
    load_form_widgets(tracker)
    st.session_state[APP_RERUN_KEY] = True


def on_cancel_edit(tracker: SubscriptionTracker) -> None:
    tracker.cancel_edit()
    load_form_widgets(tracker)


def on_delete(tracker: SubscriptionTracker, subscription_id: str) -> None:
    run_async(tracker.delete(subscription_id))
    load_form_widgets(tracker)
    st.session_state[APP_RERUN_KEY] = True


# =============================================================================
# SECTIONS
# =============================================================================

def render_header(tracker: SubscriptionTracker) -> None:
    st.title("Subtrack")
    st.caption(f"Your User ID: {tracker.user_id}")


def render_totals(tracker: SubscriptionTracker, currency: str) -> None:
    totals = tracker.totals
    col1, col2 = st.columns(2)
    with col1:
        st.markdown(f"""
        <div class="total-box">
            <h4>Total Monthly Cost</h4>
            <div class="big-number">{format_amount(totals.monthly, currency)}</div>
        </div>
        """, unsafe_allow_html=True)
    with col2:
        st.markdown(f"""
        <div class="total-box">
            <h4>Total Yearly Cost</h4>
            <div class="big-number">{format_amount(totals.yearly, currency)}</div>
        </div>
        """, unsafe_allow_html=True)


def render_form(tracker: SubscriptionTracker) -> None:
    form = tracker.form
    if FORM_NAME_KEY not in st.session_state:
        load_form_widgets(tracker)

    with st.form("subscription_form", clear_on_submit=False):
        st.subheader("Edit Subscription" if form.is_editing else "Add New Subscription")
        st.text_input(
            "Service Name",
            key=FORM_NAME_KEY,
            placeholder="Service Name (e.g., Netflix)",
        )
        st.text_input(
            "Cost",
            key=FORM_COST_KEY,
            placeholder="Cost (e.g., 500)",
        )
        st.selectbox(
            "Billing Cycle",
            options=list(BillingCycle),
            key=FORM_CYCLE_KEY,
            format_func=lambda c: c.value.title(),
        )
        if tracker.loading:
            label = "Saving..."
        elif form.is_editing:
            label = "Update Subscription"
        else:
            label = "Add Subscription"
        st.form_submit_button(
            label,
            type="primary",
            disabled=tracker.loading,
            on_click=on_submit,
            args=(tracker,),
        )

    if form.is_editing:
        st.button("Cancel", on_click=on_cancel_edit, args=(tracker,))


def render_subscription_list(tracker: SubscriptionTracker, currency: str) -> None:
    st.subheader("My Subscriptions")

    live_query = tracker.live_query
    if live_query is not None and live_query.error is not None:
        st.warning("Failed to load subscriptions from the database. Retrying in the background.")

    if tracker.show_empty_state:
        st.info(EMPTY_STATE_MESSAGE)
        return

    for sub in tracker.subscriptions:
        col1, col2, col3 = st.columns([6, 1, 1])
        with col1:
            st.markdown(f"""
            <div class="sub-row">
                <strong>{html.escape(sub.name)}</strong><br/>
                {format_amount(sub.cost, currency)} / {sub.cycle.value}
            </div>
            """, unsafe_allow_html=True)
        with col2:
            st.button(
                "✏️",
                key=f"edit_{sub.id}",
                help="Edit",
                disabled=tracker.loading,
                on_click=on_start_edit,
                args=(tracker, sub),
            )
        with col3:
            st.button(
                "🗑️",
                key=f"delete_{sub.id}",
                help="Delete",
                disabled=tracker.loading,
                on_click=on_delete,
                args=(tracker, sub.id),
            )


def render_report(tracker: SubscriptionTracker) -> None:
    if not tracker.subscriptions:
        return

    st.markdown("---")
    st.subheader("✨ Gemini Report")
    st.markdown("Get a personalized summary of your spending and tips to save money.")

    if st.button("✨ Get Gemini Report", type="primary", disabled=tracker.loading):
        spinner_text = "Generating a new report..." if tracker.report else "Loading..."
        with st.spinner(spinner_text):
            run_async(tracker.generate_report())

    if tracker.report:
        st.markdown(
            f'<div class="report-box">{html.escape(tracker.report.text)}</div>',
            unsafe_allow_html=True,
        )


def render_messages(tracker: SubscriptionTracker) -> None:
    if tracker.error:
        st.error(tracker.error)
    if tracker.message:
        st.success(tracker.message)


def render_settings_sidebar(context: ClientContext) -> None:
    st.sidebar.title("⚙️ Settings")
    st.sidebar.markdown(f"**Backend:** {context.backend}")

    status = validate_all_settings()
    services = [
        ("Firebase (Auth + Firestore)", "firebase"),
        ("Gemini (Reports)", "gemini"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.sidebar.success(f"✅ {name}")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.sidebar.error(f"❌ {name} - {error}")

    st.sidebar.markdown(
        "To configure the application, create a `.env` file with your keys. "
        "See `.env.example` for the required variables."
    )


def main():
    """Main application entry point."""
    context = get_components()
    tracker = get_tracker(context)
    settings = context.app_settings

    render_settings_sidebar(context)
    render_header(tracker)

    if tracker.session_state.error:
        st.error(f"🚫 {tracker.session_state.error}")
        st.stop()

    tracker.sync_live_query()

    @st.fragment(run_every=settings.refresh_interval_seconds)
    def live_section():
        # Widgets in a fragment rerun only the fragment; the form and
        # messages live outside it
        if st.session_state.pop(APP_RERUN_KEY, False):
            st.rerun(scope="app")
        tracker.sync_live_query()
        render_totals(tracker, settings.currency_symbol)
        render_subscription_list(tracker, settings.currency_symbol)

    render_form(tracker)
    live_section()
    render_report(tracker)
    render_messages(tracker)


if __name__ == "__main__":
    main()
