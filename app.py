"""
app.py
Streamlit Gym Membership Portal (admin dashboard + member portal).
Run: streamlit run app.py
"""

from __future__ import annotations

from datetime import time

import pandas as pd
import streamlit as st

import auth
import db
import services
import utils
from config import settings
from errors import AuthError, GymError
from logger import setup_logger
from membership import days_left, utcnow
from models import MEMBER_TYPES, Role, TransactionStatus, is_manual_proof
from repository import SqliteRepository
from storage import ALLOWED_EXTENSIONS, ProofStorage

st.set_page_config(page_title="Gym Membership Portal", layout="wide")

logger = setup_logger()
repo = SqliteRepository()
proofs = ProofStorage(settings.proof_dir)


def init_once():
    # Initialize DB + default admin if needed
    if st.session_state.get("db_ready"):
        return
    default_hash = auth.hash_password(settings.default_admin_password)
    db.init_db(settings.default_admin_email, default_hash)
    logger.info("database ready at %s", db.DB_FILE)
    st.session_state.db_ready = True


def require_login():
    if "user_id" not in st.session_state:
        st.session_state.user_id = None


def logout():
    st.session_state.user_id = None
    st.session_state.page = None


def current_profile():
    if not st.session_state.user_id:
        return None
    return repo.get_profile(st.session_state.user_id)


# ---------- auth screens ----------

def login_screen():
    st.title("🏋️ Gym Membership Portal")

    tab_login, tab_signup, tab_forgot = st.tabs(["Login", "Sign up", "Forgot password"])

    with tab_login:
        email = st.text_input("Email", key="login_email")
        password = st.text_input("Password", type="password", key="login_password")
        if st.button("Login", type="primary"):
            try:
                profile = auth.login(email.strip(), password)
            except AuthError as e:
                st.error(str(e))
                return
            if profile:
                st.session_state.user_id = profile.id
                logger.info("login: %s (%s)", profile.email, profile.role.value)
                st.rerun()
            else:
                st.error("Invalid email or password.")

    with tab_signup:
        name = st.text_input("Full name", key="signup_name")
        phone = st.text_input("Phone number", key="signup_phone")
        email = st.text_input("Email", key="signup_email")
        p1 = st.text_input("Password", type="password", key="signup_p1")
        p2 = st.text_input("Confirm password", type="password", key="signup_p2")
        if st.button("Create account", type="primary"):
            if p1 != p2:
                st.error("Passwords do not match.")
            else:
                try:
                    auth.sign_up(email, p1, name, phone)
                    st.success("Registration successful. Please log in.")
                except AuthError as e:
                    st.error(str(e))

    with tab_forgot:
        email = st.text_input("Email", key="forgot_email")
        if st.button("Send reset link"):
            auth.request_password_reset(email)
            # same answer whether or not the account exists
            st.success("If that email is registered, a reset link has been issued.")


def reset_password_screen(token: str):
    st.title("🔑 Set a new password")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        if p1 != p2:
            st.error("Passwords do not match.")
            return
        try:
            auth.reset_password(token, p1)
        except AuthError as e:
            st.error(str(e))
            return
        st.query_params.clear()
        st.success("Password updated. Please log in.")


def change_password_form(profile, key: str):
    p1 = st.text_input("New password", type="password", key=f"{key}_p1")
    p2 = st.text_input("Confirm new password", type="password", key=f"{key}_p2")
    if st.button("Update password", type="primary", key=f"{key}_btn"):
        if p1 != p2:
            st.error("Passwords do not match.")
            return False
        try:
            auth.change_password(profile.id, p1)
        except AuthError as e:
            st.error(str(e))
            return False
        st.success("Password updated.")
        return True
    return False


def force_change_password_screen(profile):
    st.title("⚠️ Change Password (Required)")
    st.warning("You must change the default password before using the app.")
    if change_password_form(profile, "force"):
        st.rerun()


# ---------- admin ----------

def _month_picker():
    today = utils.local_now().date()
    if "report_year" not in st.session_state:
        st.session_state.report_year = today.year
        st.session_state.report_month = today.month

    c1, c2, c3 = st.columns([1, 2, 1])
    with c1:
        if st.button("◀ Previous month"):
            y, m = utils.add_months(st.session_state.report_year, st.session_state.report_month, -1)
            st.session_state.report_year, st.session_state.report_month = y, m
            st.rerun()
    with c2:
        st.subheader(f"Report period: {utils.month_label(st.session_state.report_year, st.session_state.report_month)}")
    with c3:
        if st.button("Next month ▶"):
            y, m = utils.add_months(st.session_state.report_year, st.session_state.report_month, 1)
            st.session_state.report_year, st.session_state.report_month = y, m
            st.rerun()
    return st.session_state.report_year, st.session_state.report_month


def overview_page():
    st.header("📊 Overview")

    year, month = _month_picker()
    start, end = utils.month_bounds(year, month)
    month_trx = repo.list_transaction_details(start=start, end=end)
    stats = utils.monthly_stats(month_trx, repo.count_active_members())

    c1, c2, c3 = st.columns(3)
    c1.metric("Revenue (month)", utils.format_rupiah(stats["revenue"]))
    c2.metric("Awaiting approval", stats["pending"])
    c3.metric("Active members", stats["members"])

    approved = repo.list_transaction_details(start=start, end=end, status=TransactionStatus.APPROVED, ascending=True)
    if approved:
        st.download_button(
            "Export CSV",
            data=utils.monthly_report_csv_bytes(approved),
            file_name=utils.report_filename(year, month),
            mime="text/csv",
        )
    else:
        st.caption("No approved transactions this month to export.")

    st.divider()

    st.subheader("Approval requests")
    pending = [t for t in month_trx if t["status"] == TransactionStatus.PENDING.value]
    if not pending:
        st.caption("No pending transactions this month.")
    for trx in pending:
        c1, c2, c3 = st.columns([2, 2, 2])
        with c1:
            st.markdown(f"**{trx['member_name'] or 'Unnamed'}**  \n{trx['created_at']:%d %b %Y %H:%M}")
        with c2:
            st.markdown(f"**{trx['plan_name'] or '-'}**  \n{utils.format_rupiah(trx['amount'])}")
        with c3:
            b1, b2, b3 = st.columns(3)
            if b1.button("Proof", key=f"proof_{trx['id']}"):
                st.session_state.proof_view = trx["proof_url"]
            if b2.button("Reject", key=f"reject_{trx['id']}"):
                try:
                    services.reject_payment(repo, trx["id"])
                    st.rerun()
                except GymError as e:
                    st.error(str(e))
            if b3.button("Approve", type="primary", key=f"approve_{trx['id']}"):
                try:
                    services.approve_payment(repo, trx["id"])
                    st.success("Payment approved.")
                    st.rerun()
                except GymError as e:
                    st.error(str(e))

    if st.session_state.get("proof_view"):
        path = proofs.path_for(st.session_state.proof_view)
        if path is None:
            st.info("No uploaded proof for this transaction.")
        elif path.suffix.lower() == ".pdf":
            st.download_button("Download proof (PDF)", data=path.read_bytes(), file_name=path.name)
        else:
            st.image(str(path), caption=path.name)
        if st.button("Close proof"):
            st.session_state.proof_view = None
            st.rerun()

    st.divider()

    st.subheader(f"⚠️ Expiring within {settings.expiring_window_days} days")
    expiring = utils.expiring_members(repo.list_members(status_filter="active"), settings.expiring_window_days)
    if expiring:
        df = pd.DataFrame(expiring)
        df["expired_at"] = df["expired_at"].map(utils.format_date)
        st.dataframe(df[["name", "email", "phone_number", "expired_at", "days_left", "urgency"]],
                     use_container_width=True, hide_index=True)
    else:
        st.caption(f"No members expiring in the next {settings.expiring_window_days} days.")

    st.divider()

    st.subheader("Analytics")
    data = utils.analytics(repo.list_transaction_details(), repo.list_profile_rows())
    s = data.stats
    k1, k2, k3, k4 = st.columns(4)
    k1.metric("Revenue (6 months)", utils.format_rupiah(s["total_revenue"]), f"{s['revenue_growth']:.1f}% vs last month")
    k2.metric("Total members", s["total_members"], f"{s['member_growth']:.1f}% vs last month")
    k3.metric("Average monthly revenue", utils.format_rupiah(s["avg_revenue"]))
    k4.metric("New members this month", int(data.member_growth["new"].iloc[-1]))

    g1, g2 = st.columns(2)
    with g1:
        st.caption("Monthly revenue")
        st.line_chart(data.monthly_revenue.set_index("month")["revenue"])
    with g2:
        st.caption("New members")
        st.bar_chart(data.member_growth.set_index("month")["new"])


def _plan_options(include_none_label: str):
    plans = repo.list_active_plans()
    options = {include_none_label: None}
    for p in plans:
        options[f"{p.name} ({p.duration_days} days, {utils.format_rupiah(p.price)})"] = p
    return options


def add_member_form():
    st.subheader("➕ Add Member")
    plan_options = _plan_options("- No plan -")

    c1, c2 = st.columns(2)
    with c1:
        name = st.text_input("Full name", key="new_name")
        email = st.text_input("Email", key="new_email")
        password = st.text_input("Password", type="password", key="new_password")
        phone = st.text_input("Phone", key="new_phone")
    with c2:
        label = st.selectbox("Starting plan", list(plan_options.keys()), key="new_plan")
        plan = plan_options[label]
        initial_days = st.number_input("Initial days (when no plan)", min_value=0, value=0, step=1, key="new_days")
        amount = st.number_input("Amount paid", min_value=0, value=(plan.price if plan else 0), step=1000, key="new_amount")
        trx_day = st.date_input("Join / transaction date", value=utils.local_now().date(), key="new_trx_day")
        trx_time = st.time_input("Time", value=utils.local_now().time().replace(second=0, microsecond=0), key="new_trx_time")

    errors = utils.validate_member_inputs(name, email, password)
    for e in errors:
        st.error(e)

    if st.button("Create member", type="primary", disabled=bool(errors)):
        try:
            services.create_member(
                repo, email, password, name, phone,
                plan_id=plan.id if plan else None,
                duration_days=int(initial_days),
                amount=int(amount),
                transaction_date=utils.local_to_utc(trx_day, trx_time),
            )
        except GymError as e:
            st.error(str(e))
            return
        st.success("Member created.")
        st.rerun()


def edit_member_form(m):
    st.subheader(f"✏️ Edit Member: {m.name}")
    plan_options = _plan_options("- No change -")

    c1, c2, c3 = st.columns(3)
    with c1:
        name = st.text_input("Full name", value=m.name, key="edit_name")
        phone = st.text_input("Phone", value=m.phone_number or "", key="edit_phone")
        member_type = st.selectbox(
            "Member type", MEMBER_TYPES,
            index=MEMBER_TYPES.index(m.member_type) if m.member_type in MEMBER_TYPES else 0,
            key="edit_type",
        )
        is_active = st.checkbox("Active", value=m.is_active, key="edit_active")
    with c2:
        set_date = st.checkbox("Set expiration date directly", key="edit_set_date")
        current = m.expired_at.astimezone().date() if m.expired_at and m.expired_at.year >= 2000 else utils.local_now().date()
        new_exp = st.date_input("New expiration date", value=current, disabled=not set_date, key="edit_exp")
        manual_days = st.number_input("Add days (negative to correct)", value=0, step=1, key="edit_days")
    with c3:
        label = st.selectbox("Extend with plan", list(plan_options.keys()), key="edit_plan")
        plan = plan_options[label]
        amount = st.number_input("Amount paid", min_value=0, value=(plan.price if plan else 0), step=1000, key="edit_amount")
        trx_day = st.date_input("Transaction date", value=utils.local_now().date(), key="edit_trx_day")
        trx_time = st.time_input("Time", value=utils.local_now().time().replace(second=0, microsecond=0), key="edit_trx_time")

    if st.button("Save changes", type="primary"):
        try:
            services.update_member_full(
                repo, m.id, name, phone, member_type, is_active,
                expired_date=utils.local_to_utc(new_exp, time(23, 59, 59)) if set_date else None,
                plan_id=plan.id if plan else None,
                amount=int(amount),
                manual_days=int(manual_days),
                transaction_date=utils.local_to_utc(trx_day, trx_time),
            )
        except GymError as e:
            st.error(str(e))
            return
        st.session_state.edit_member_id = None
        st.success("Member updated.")
        st.rerun()


def extend_member_form(m):
    st.subheader(f"💵 Manual extension: {m.name}")
    c1, c2 = st.columns(2)
    with c1:
        days = st.number_input("Days to add", value=30, step=1, key="extend_days")
    with c2:
        amount = st.number_input("Amount paid (cash)", min_value=0, value=0, step=1000, key="extend_amount")
    if st.button("Extend", type="primary"):
        try:
            renewal = services.extend_member_manual(repo, m.id, int(days), int(amount))
        except GymError as e:
            st.error(str(e))
            return
        st.session_state.extend_member_id = None
        st.success(f"Extended until {utils.format_date(renewal.expired_at)}.")
        st.rerun()


def profile_member_form(m):
    st.subheader(f"🪪 Profile: {m.name}")
    name = st.text_input("Full name", value=m.name, key="profile_name")
    phone = st.text_input("Phone", value=m.phone_number or "", key="profile_phone")
    member_type = st.selectbox(
        "Member type", MEMBER_TYPES,
        index=MEMBER_TYPES.index(m.member_type) if m.member_type in MEMBER_TYPES else 0,
        key="profile_type",
    )
    if st.button("Save profile", type="primary", disabled=not name.strip()):
        try:
            services.update_profile(repo, m.id, name, phone, member_type)
        except GymError as e:
            st.error(str(e))
            return
        st.session_state.profile_member_id = None
        st.success("Profile updated.")
        st.rerun()


def _open_member_form(key: str, member_id: str):
    for k in ("extend_member_id", "edit_member_id", "profile_member_id"):
        st.session_state[k] = member_id if k == key else None


def members_page():
    st.header("👥 Members")

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/email)")
        status_filter = st.selectbox("Status", ["all", "active", "inactive"])

    members = repo.list_members(search=search, status_filter=status_filter)
    df = pd.DataFrame([
        {
            "id": m.id,
            "name": m.name,
            "email": m.email,
            "phone": m.phone_number,
            "type": m.member_type,
            "status": "ACTIVE" if m.is_active else "INACTIVE",
            "expired": utils.format_date(m.expired_at),
        }
        for m in members
    ], columns=["id", "name", "email", "phone", "type", "status", "expired"])
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.divider()

    by_label = {f"{m.name} ({m.email})": m for m in members}
    selected = st.selectbox("Member", ["(none)"] + list(by_label.keys()))
    if selected != "(none)":
        m = by_label[selected]
        c1, c2, c3, c4 = st.columns(4)
        with c1:
            if st.button("Extend"):
                _open_member_form("extend_member_id", m.id)
        with c2:
            if st.button("Edit"):
                _open_member_form("edit_member_id", m.id)
        with c3:
            if st.button("Edit profile"):
                _open_member_form("profile_member_id", m.id)
        with c4:
            delete_confirm = st.checkbox("Confirm delete", value=False, key="del_confirm")
            if st.button("Delete", type="secondary", disabled=not delete_confirm):
                try:
                    services.delete_member(repo, m.id)
                except GymError as e:
                    st.error(str(e))
                else:
                    st.success("Member deleted.")
                    st.rerun()

    st.divider()

    if st.session_state.get("extend_member_id"):
        m = repo.get_profile(st.session_state.extend_member_id)
        if m:
            extend_member_form(m)
        if st.button("Cancel"):
            st.session_state.extend_member_id = None
            st.rerun()
    elif st.session_state.get("edit_member_id"):
        m = repo.get_profile(st.session_state.edit_member_id)
        if m:
            edit_member_form(m)
        if st.button("Cancel edit"):
            st.session_state.edit_member_id = None
            st.rerun()
    elif st.session_state.get("profile_member_id"):
        m = repo.get_profile(st.session_state.profile_member_id)
        if m:
            profile_member_form(m)
        if st.button("Cancel profile edit"):
            st.session_state.profile_member_id = None
            st.rerun()
    else:
        add_member_form()


def plans_page():
    st.header("📦 Plans")

    plans = repo.list_plans()
    if plans:
        st.dataframe(pd.DataFrame([
            {
                "name": p.name,
                "price": utils.format_rupiah(p.price),
                "duration_days": p.duration_days,
                "active": p.is_active,
                "description": p.description,
            }
            for p in plans
        ]), use_container_width=True, hide_index=True)

        by_label = {f"{p.name} ({'active' if p.is_active else 'inactive'})": p for p in plans}
        label = st.selectbox("Plan", list(by_label.keys()))
        p = by_label[label]
        if st.button("Deactivate" if p.is_active else "Activate"):
            services.set_plan_active(repo, p.id, not p.is_active)
            st.rerun()
    else:
        st.caption("No plans yet.")

    st.divider()

    st.subheader("➕ Add plan")
    c1, c2, c3 = st.columns(3)
    with c1:
        name = st.text_input("Name")
    with c2:
        price = st.number_input("Price (Rp)", min_value=0, value=250000, step=1000)
    with c3:
        duration = st.number_input("Duration (days)", min_value=0, value=30, step=1)
    description = st.text_input("Description")
    if st.button("Add plan", type="primary"):
        try:
            services.create_plan(repo, name, int(price), int(duration), description)
        except GymError as e:
            st.error(str(e))
            return
        st.success("Plan added.")
        st.rerun()


def settings_page(profile):
    st.header("⚙️ Settings")

    st.subheader("Change password")
    change_password_form(profile, "settings")

    st.divider()

    st.subheader("Membership status")
    if st.button("Deactivate expired members now"):
        expired = services.update_expired_members(repo)
        st.success(f"{len(expired)} member(s) set to inactive.")

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert default plans (if none) + 3 sample members with payments (adds new members each run).")
    if st.button("Insert sample data"):
        utils.insert_sample_data(repo)
        st.success("Sample data inserted.")
        st.rerun()


def admin_app(profile):
    st.sidebar.title("🏋️ Admin Panel")
    st.sidebar.caption(f"Logged in as: {profile.email}")

    pages = ["Overview", "Members", "Plans", "Settings"]
    if st.session_state.get("page") not in pages:
        st.session_state.page = "Overview"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    if st.session_state.page == "Overview":
        overview_page()
    elif st.session_state.page == "Members":
        members_page()
    elif st.session_state.page == "Plans":
        plans_page()
    elif st.session_state.page == "Settings":
        settings_page(profile)


# ---------- member portal ----------

def member_app(profile):
    st.sidebar.title("🏋️ Gym Member")
    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    st.caption(utils.local_now().strftime("%a, %d %b").upper())
    st.title(f"Hi, {profile.name.split(' ')[0]}")

    with st.container(border=True):
        st.caption("Premium Access" if profile.is_active else "Membership Expired")
        st.subheader(utils.format_card_id(profile.id))
        c1, c2, c3 = st.columns(3)
        c1.metric("Member", profile.name)
        c2.metric("Valid thru", utils.format_date(profile.expired_at))
        c3.metric("Days left", days_left(profile.expired_at, utcnow()))

    st.divider()

    st.subheader("💳 Buy a plan")
    plans = repo.list_active_plans()
    plans = sorted(plans, key=lambda p: p.price)
    if not plans:
        st.caption("No plans available right now.")
    else:
        cols = st.columns(min(len(plans), 4))
        for i, p in enumerate(plans):
            with cols[i % len(cols)]:
                with st.container(border=True):
                    st.markdown(f"**{p.name}**")
                    st.write(utils.format_rupiah(p.price))
                    st.caption(f"{p.duration_days} days. {p.description}")

        by_label = {f"{p.name} - {utils.format_rupiah(p.price)}": p for p in plans}
        label = st.selectbox("Plan", list(by_label.keys()))
        upload = st.file_uploader("Payment proof", type=sorted(ALLOWED_EXTENSIONS))
        if st.button("Send payment proof", type="primary", disabled=upload is None):
            try:
                services.submit_payment(repo, proofs, profile.id, by_label[label].id, upload.name, upload.getvalue())
            except GymError as e:
                st.error(f"Error: {e}")
            else:
                st.success("✅ Payment proof sent! Waiting for admin approval.")

    st.divider()

    st.subheader("🧾 History")
    history = repo.list_transaction_details(user_id=profile.id)
    if history:
        st.dataframe(pd.DataFrame([
            {
                "date": utils.format_date(t["created_at"]),
                "plan": "Manual (Cash)" if is_manual_proof(t["proof_url"]) else (t["plan_name"] or "-"),
                "amount": utils.format_rupiah(t["amount"]),
                "status": t["status"],
            }
            for t in history
        ]), use_container_width=True, hide_index=True)
    else:
        st.caption("No transactions yet.")

    with st.expander("Change password"):
        change_password_form(profile, "member")


# --------- App entry ---------

def run():
    init_once()
    require_login()
    services.update_expired_members(repo)

    token = st.query_params.get("reset_token")
    if token and not st.session_state.user_id:
        reset_password_screen(token)
        return

    profile = current_profile()
    if profile is None:
        st.session_state.user_id = None
        login_screen()
        return

    if profile.role == Role.ADMIN:
        # Force password change on first login after DB creation
        if db.is_force_password_change():
            force_change_password_screen(profile)
            return
        admin_app(profile)
    else:
        member_app(profile)


if __name__ == "__main__":
    run()
