"""
Streamlit Frontend for Kindergarten Debt Manager

This is the screen the kindergarten office works with daily.

DESIGN PRINCIPLES:
1. Simple, clear interface (Hebrew, right-to-left)
2. Explicit confirmation before anything is deleted
3. Clear, non-fatal error messages
4. Visual feedback for all operations
5. Messages are never sent silently: the office opens every WhatsApp link

The UI never touches the store directly. It calls the repository and the
flows, then re-derives every view with the query functions.
"""

from datetime import datetime
from typing import Optional

import streamlit as st

from debt_manager.config import get_settings, validate_all_settings
from debt_manager.models.records import Family, NotificationSource
from debt_manager.orchestrator import (
    DataMaintenanceFlow,
    NotificationFlow,
    create_app_components,
)
from debt_manager.queries import (
    comments_for_family,
    count_comments_for_family,
    count_families_at_location,
    dashboard_summary,
    filter_families,
    notifications_sorted_by_recency,
    resolve_family,
    sort_families_by_name,
    sort_locations_by_name,
)
from debt_manager.repository import EntityRepository, RepositoryError
from debt_manager.serialization import FormatError, export_filename
from debt_manager.serialization.tables import format_timestamp
from debt_manager.services.mail import MailRelayError
from debt_manager.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="ניהול חובות - גן ילדים",
    page_icon="🏫",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Right-to-left layout and card styles
st.markdown("""
<style>
    .main, .stSidebar { direction: rtl; text-align: right; }
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .family-card {
        padding: 16px;
        background-color: #f8f9fa;
        border-radius: 10px;
        border-right: 5px solid #4a90d9;
        margin: 8px 0;
    }
    .debt-amount {
        font-size: 1.4em;
        font-weight: bold;
        color: #c0392b;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except StorageError as e:
        st.error(f"שגיאה בטעינת הנתונים: {e}")
        return create_app_components(use_storage=False)


def format_currency(amount: float) -> str:
    return f"₪{amount:,.0f}"


def location_label(repository: EntityRepository, name: str) -> str:
    return f"{name} ({count_families_at_location(repository.list_families(), name)})"


def main():
    """Main application entry point."""
    repository, notification_flow, maintenance_flow = get_components()

    # Sidebar navigation
    st.sidebar.title("🏫 ניהול חובות")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "ניווט:",
        ["👨‍👩‍👧 משפחות", "🔔 התראות", "🗂️ ניהול", "⚙️ הגדרות"],
        index=0,
    )

    # Route to appropriate page
    if page == "👨‍👩‍👧 משפחות":
        render_families_page(repository, notification_flow)
    elif page == "🔔 התראות":
        render_notifications_page(repository, notification_flow)
    elif page == "🗂️ ניהול":
        render_management_page(repository, maintenance_flow)
    elif page == "⚙️ הגדרות":
        render_settings_page(repository)


# =============================================================================
# FAMILIES
# =============================================================================

def render_dashboard(repository: EntityRepository):
    """Headline numbers."""
    summary = dashboard_summary(
        repository.list_families(),
        repository.list_locations(),
        repository.list_notifications(),
    )
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("משפחות", summary.total_families)
    col2.metric("סה\"כ חוב", format_currency(summary.total_debt))
    col3.metric("מיקומים", summary.total_locations)
    col4.metric("התראות ממתינות", summary.pending_notifications)


def render_family_form(repository: EntityRepository, family: Optional[Family] = None):
    """Add form when family is None, edit form otherwise."""
    key = family.id if family else "new"
    location_names = [loc.name for loc in sort_locations_by_name(repository.list_locations())]
    options = [""] + location_names
    if family and family.location and family.location not in options:
        # Dangling reference stays selectable until changed
        options.append(family.location)

    with st.form(f"family_form_{key}", clear_on_submit=family is None):
        col1, col2 = st.columns(2)
        with col1:
            family_code = st.text_input("קוד משפחה", value=family.family_code if family else "")
            family_name = st.text_input("שם משפחה *", value=family.family_name if family else "")
            phone = st.text_input("טלפון", value=family.phone if family else "")
            debt_amount = st.number_input(
                "סכום חוב (₪)",
                value=float(family.debt_amount) if family else 0.0,
                step=10.0,
            )
        with col2:
            father_name = st.text_input("שם האב", value=family.father_name if family else "")
            mother_name = st.text_input("שם האם", value=family.mother_name if family else "")
            location = st.selectbox(
                "מיקום",
                options=options,
                index=options.index(family.location) if family and family.location in options else 0,
                format_func=lambda x: "ללא מיקום" if x == "" else x,
            )

        submitted = st.form_submit_button("💾 שמור", type="primary")

    if submitted:
        if not family_name.strip():
            st.error("נא להזין שם משפחה")
            return
        data = {
            "family_code": family_code.strip(),
            "family_name": family_name.strip(),
            "father_name": father_name.strip(),
            "mother_name": mother_name.strip(),
            "phone": phone.strip(),
            "location": location,
            "debt_amount": debt_amount,
        }
        try:
            if family is None:
                repository.create_family(data)
                st.success("המשפחה נוספה בהצלחה")
            else:
                repository.update_family(family.id, data)
                st.success("המשפחה עודכנה בהצלחה")
            st.rerun()
        except (RepositoryError, StorageError) as e:
            st.error(f"שגיאה: {e}")


def render_comments(
    repository: EntityRepository,
    notification_flow: NotificationFlow,
    family: Family,
):
    """Comment thread of one family, newest first."""
    text = st.text_area("הערה חדשה", key=f"comment_input_{family.id}")
    col1, col2 = st.columns(2)

    with col1:
        if st.button("➕ הוסף הערה", key=f"add_comment_{family.id}"):
            try:
                repository.create_comment(family.id, text)
                st.success("הערה נוספה בהצלחה")
                st.rerun()
            except RepositoryError as e:
                st.error(f"נא להזין תוכן הערה ({e})")

    with col2:
        if st.button("📱 שלח כהודעת וואטסאפ", key=f"comment_whatsapp_{family.id}"):
            try:
                _, _, message = notification_flow.send_comment_as_whatsapp(family.id, text)
                st.session_state[f"whatsapp_link_{family.id}"] = message.url
            except RepositoryError as e:
                st.error(f"נא להזין תוכן הודעה ({e})")

    link = st.session_state.get(f"whatsapp_link_{family.id}")
    if link:
        st.link_button("פתח בוואטסאפ", link)

    for comment in comments_for_family(repository.list_comments(), family.id):
        with st.container(border=True):
            st.markdown(comment.description)
            caption = format_timestamp(comment.created_at)
            if comment.was_edited:
                caption += f" · עודכן {format_timestamp(comment.updated_at)}"
            st.caption(caption)

            edit_col, delete_col = st.columns(2)
            with edit_col:
                with st.popover("✏️ ערוך"):
                    edited = st.text_area("תוכן", value=comment.description, key=f"edit_{comment.id}")
                    if st.button("שמור", key=f"save_{comment.id}"):
                        if not edited.strip():
                            st.error("נא להזין תוכן הערה")
                        else:
                            repository.update_comment(comment.id, edited)
                            st.rerun()
            with delete_col:
                if st.button("🗑️ מחק", key=f"delete_comment_{comment.id}"):
                    repository.delete_comment(comment.id)
                    st.rerun()


def render_families_page(repository: EntityRepository, notification_flow: NotificationFlow):
    """Render the main families page."""
    st.title("👨‍👩‍👧 משפחות")
    render_dashboard(repository)
    st.markdown("---")

    with st.expander("➕ הוספת משפחה"):
        render_family_form(repository)

    # Filters
    col1, col2 = st.columns([3, 2])
    with col1:
        search_text = st.text_input("🔍 חיפוש", placeholder="שם, קוד, טלפון...")
    with col2:
        locations = sort_locations_by_name(repository.list_locations())
        location_filter = st.selectbox(
            "סינון לפי מיקום",
            options=[""] + [loc.name for loc in locations],
            format_func=lambda x: "כל המיקומים" if x == "" else location_label(repository, x),
        )

    families = filter_families(repository.list_families(), search_text, location_filter)
    comments = repository.list_comments()

    if not families:
        st.info("לא נמצאו משפחות")
        return

    for family in families:
        comment_count = count_comments_for_family(comments, family.id)
        st.markdown(f"""
        <div class="family-card">
            <h4>{family.family_name} ({family.family_code})</h4>
            <p>👨 {family.father_name} · 👩 {family.mother_name} · 📞 {family.phone}
            · 📍 {family.location or "ללא מיקום"} · 💬 {comment_count}</p>
            <p class="debt-amount">{format_currency(family.debt_amount)}</p>
        </div>
        """, unsafe_allow_html=True)

        with st.expander(f"פרטים והערות - {family.family_name}"):
            render_family_form(repository, family)
            st.markdown("#### 💬 הערות")
            render_comments(repository, notification_flow, family)

            st.markdown("---")
            confirm = st.checkbox(
                "אני מאשר/ת מחיקת המשפחה וכל ההערות וההתראות שלה",
                key=f"confirm_delete_{family.id}",
            )
            if st.button("🗑️ מחק משפחה", key=f"delete_family_{family.id}", disabled=not confirm):
                repository.delete_family(family.id)
                st.success("המשפחה נמחקה")
                st.rerun()


# =============================================================================
# NOTIFICATIONS
# =============================================================================

def render_notifications_page(repository: EntityRepository, notification_flow: NotificationFlow):
    """Render the notifications page."""
    st.title("🔔 התראות")

    families = sort_families_by_name(repository.list_families())
    with st.form("new_notification", clear_on_submit=True):
        family_id = st.selectbox(
            "משפחה",
            options=[""] + [f.id for f in families],
            format_func=lambda fid: "בחר משפחה" if fid == "" else _family_option(families, fid),
        )
        message = st.text_area("הודעה")
        submitted = st.form_submit_button("➕ הוסף התראה", type="primary")

    if submitted:
        if not family_id:
            st.error("נא לבחור משפחה")
        elif not message.strip():
            st.error("נא להזין הודעה")
        else:
            try:
                repository.create_notification(family_id, message)
                st.success("התראה נוספה בהצלחה")
                st.rerun()
            except RepositoryError as e:
                st.error(f"שגיאה: {e}")

    st.markdown("---")
    notifications = notifications_sorted_by_recency(repository.list_notifications())
    if not notifications:
        st.info("אין התראות")
        return

    all_families = repository.list_families()
    for n in notifications:
        family = resolve_family(all_families, n.family_id)
        family_label = f"{family.family_name} ({family.family_code})" if family else "משפחה לא ידועה"
        source_label = "מהערה" if n.source == NotificationSource.COMMENT else "ישירה"

        with st.container(border=True):
            st.markdown(f"**👨‍👩‍👧 {family_label}** · `{source_label}` · {format_timestamp(n.created_at)}")
            st.markdown(n.message)

            col1, col2, col3 = st.columns(3)
            with col1:
                if n.is_sent:
                    st.markdown("✅ נשלח")
                elif family:
                    if st.button("📱 שלח לוואטסאפ", key=f"send_{n.id}"):
                        try:
                            link = notification_flow.send_notification_whatsapp(n.id)
                        except RepositoryError as e:
                            st.error(f"השליחה נכשלה: {e}")
                        else:
                            st.session_state[f"notif_link_{n.id}"] = link.url
                            st.rerun()
            with col2:
                if not n.is_sent and family:
                    if st.button("✉️ שלח במייל", key=f"email_{n.id}"):
                        try:
                            recipient = notification_flow.send_notification_email(n.id)
                            st.success(f"נשלח אל {recipient}")
                            st.rerun()
                        except (MailRelayError, RepositoryError) as e:
                            st.error(f"שליחת המייל נכשלה: {e}")
            with col3:
                if st.button("🗑️ מחק", key=f"delete_notif_{n.id}"):
                    repository.delete_notification(n.id)
                    st.rerun()

            link = st.session_state.get(f"notif_link_{n.id}")
            if link:
                st.link_button("פתח בוואטסאפ", link)


def _family_option(families: list[Family], family_id: str) -> str:
    family = resolve_family(families, family_id)
    return f"{family.family_name} ({family.family_code})" if family else family_id


# =============================================================================
# MANAGEMENT
# =============================================================================

def render_management_page(repository: EntityRepository, maintenance_flow: DataMaintenanceFlow):
    """Locations, message template, export/import and reset."""
    st.title("🗂️ ניהול")

    tab_locations, tab_template, tab_data = st.tabs(["📍 מיקומים", "📝 תבנית הודעה", "💾 נתונים"])

    with tab_locations:
        render_locations_tab(repository)
    with tab_template:
        render_template_tab(repository)
    with tab_data:
        render_data_tab(maintenance_flow)


def render_locations_tab(repository: EntityRepository):
    with st.form("new_location", clear_on_submit=True):
        name = st.text_input("שם מיקום חדש")
        if st.form_submit_button("➕ הוסף מיקום"):
            try:
                repository.create_location(name)
                st.success("המיקום נוסף")
                st.rerun()
            except RepositoryError as e:
                st.error(f"שגיאה: {e}")

    families = repository.list_families()
    for loc in sort_locations_by_name(repository.list_locations()):
        count = count_families_at_location(families, loc.name)
        col1, col2, col3 = st.columns([3, 2, 1])
        with col1:
            new_name = st.text_input(
                f"{loc.name} ({count} משפחות)", value=loc.name, key=f"loc_{loc.id}"
            )
        with col2:
            if st.button("✏️ שנה שם", key=f"rename_{loc.id}") and new_name != loc.name:
                try:
                    repository.rename_location(loc.id, new_name)
                    st.rerun()
                except RepositoryError as e:
                    st.error(f"שגיאה: {e}")
        with col3:
            if st.button("🗑️", key=f"delete_loc_{loc.id}"):
                repository.delete_location(loc.id)
                st.rerun()


def render_template_tab(repository: EntityRepository):
    settings = repository.get_settings()
    with st.form("template_form"):
        greeting = st.text_input(
            "פתיחה",
            value=settings.whatsapp_greeting,
            help="{שם_משפחה} יוחלף בשם המשפחה",
        )
        signature = st.text_area("חתימה", value=settings.whatsapp_signature)
        if st.form_submit_button("💾 שמור תבנית", type="primary"):
            repository.update_settings(whatsapp_greeting=greeting, whatsapp_signature=signature)
            st.success("התבנית נשמרה")


def render_data_tab(maintenance_flow: DataMaintenanceFlow):
    now = datetime.now()

    st.markdown("### ייצוא")
    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "⬇️ ייצוא JSON",
            data=maintenance_flow.export_json(),
            file_name=export_filename("json", now),
            mime="application/json",
            on_click=maintenance_flow.record_export,
            args=("json",),
        )
    with col2:
        st.download_button(
            "⬇️ ייצוא לאקסל",
            data=maintenance_flow.export_workbook(),
            file_name=export_filename("xlsx", now),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            on_click=maintenance_flow.record_export,
            args=("xlsx",),
        )

    st.markdown("### ייבוא")
    uploaded_file = st.file_uploader("קובץ JSON", type=["json"])
    if uploaded_file and st.button("⬆️ ייבוא", type="primary"):
        try:
            replaced = maintenance_flow.import_json(uploaded_file.getvalue())
            st.success(f"הנתונים יובאו בהצלחה: {replaced}")
        except FormatError as e:
            st.error(f"שגיאה בקריאת הקובץ: {e}")
        except StorageError as e:
            st.error(f"שמירת הנתונים נכשלה: {e}")

    st.markdown("### איפוס")
    confirm = st.checkbox("אני מבין/ה שכל הנתונים יימחקו לצמיתות")
    if st.button("⚠️ מחק את כל הנתונים", disabled=not confirm):
        maintenance_flow.clear_all()
        st.success("כל הנתונים נמחקו")
        st.rerun()


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page(repository: EntityRepository):
    """Render the connection status page."""
    st.title("⚙️ הגדרות")

    st.markdown("### מצב חיבורים")
    status = validate_all_settings()

    services = [
        ("אחסון נתונים", "storage"),
        ("שרת דואר (SMTP)", "smtp"),
        ("הגדרות אפליקציה", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name}")
        else:
            error = status.get(f"{key}_error", "לא מוגדר")
            st.error(f"❌ {name} - {error}")

    smtp = get_settings().smtp
    st.markdown(f"**כתובת מנהל:** {'מוגדרת' if smtp.admin_email else 'לא מוגדרת'}")

    st.markdown("---")
    st.markdown("### פעילות אחרונה")
    for event in repository.recent_events(limit=20):
        st.caption(f"{format_timestamp(event.timestamp)} · {event.description}")

    st.markdown("---")
    st.markdown(
        "להגדרת המערכת צרו קובץ `.env` עם משתני הסביבה. "
        "ראו `.env.example` לרשימת המשתנים."
    )


if __name__ == "__main__":
    main()
