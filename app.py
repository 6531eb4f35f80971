from contextlib import contextmanager
from datetime import date, datetime
from typing import List, Optional

import pandas as pd
import streamlit as st
from pydantic import ValidationError

from worklog.config import configure_logging, load_settings
from worklog.data import parse_timestamp
from worklog.filters import DATE_PRESETS, FilterCriteria, default_dashboard_range, quick_range
from worklog.forms import WorkItemForm
from worklog.records import LEVEL_ORDER, ChoiceError, Level, WorkRecord, is_other
from worklog.reference import ADMIN_SHEETS, User
from worklog.session import RememberedUser, Session
from worklog.store import StoreError, load_records, make_store
from worklog.views import compute_dashboard, compute_records_view, export_frame, filter_options


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(crit: FilterCriteria) -> str:
    if crit.date_from or crit.date_to:
        date_chip = f"Dates: {crit.date_from or '…'} – {crit.date_to or '…'}"
    else:
        date_chip = "Dates: All"
    chips = [date_chip, f"Person: {crit.person or 'All'}"]
    for label, value in [("System", crit.system), ("Sub-module", crit.sub_module), ("Type", crit.question_type)]:
        if value:
            chips.append(f"{label}: {value}")
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, filter_summary_html: str = "", export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        if st.button("Refresh"):
            st.session_state.pop("records", None)
            st.rerun()
        if export_df is not None and not export_df.empty:
            st.download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8-sig"),
                file_name=export_name,
                mime="text/csv",
            )
    if filter_summary_html:
        st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


def level_label(value: Optional[str]) -> str:
    try:
        return Level(value).label
    except ValueError:
        return value or ""


def fetch_records(user: User) -> Optional[list]:
    """Records for the session user, cached per run; None when the store failed."""
    if "records" not in st.session_state:
        try:
            st.session_state["records"] = load_records(store, user)
        except StoreError as exc:
            st.error(f"Could not load records: {exc}")
            if st.button("Retry"):
                st.rerun()
            return None
    return st.session_state["records"]


# ---------- setup ----------
settings = load_settings()
configure_logging(settings.log_level)
st.set_page_config(page_title="Work Log KPI", layout="wide")
inject_base_styles()

if "store" not in st.session_state:
    st.session_state["store"] = make_store(settings)
store = st.session_state["store"]
if "session" not in st.session_state:
    st.session_state["session"] = Session(RememberedUser(settings.remember_path))
session: Session = st.session_state["session"]

try:
    users = store.get_users()
except StoreError as exc:
    st.error(f"Could not load users: {exc}")
    if st.button("Retry"):
        st.rerun()
    st.stop()

# ----- Sidebar: login + navigation -----
with st.sidebar:
    st.markdown("### Work Log KPI")
    if session.user is None:
        remembered = session.remembered.recall(users) if session.remembered else None
        ids = [u.id for u in users]
        default_idx = ids.index(remembered.id) if remembered else 0
        picked = st.selectbox("User", options=users, index=default_idx, format_func=lambda u: f"{u.name}（{u.emp_id}）")
        remember = st.checkbox("Remember me", value=remembered is not None)
        if st.button("Enter", disabled=picked is None):
            session.login(picked, remember=remember)
            st.session_state.pop("records", None)
            st.rerun()
        st.stop()

    user = session.require_user()
    st.caption(f"Signed in as **{user.name}**" + (" (admin)" if user.is_admin else ""))
    if st.button("Log out"):
        session.logout()
        st.session_state.pop("records", None)
        st.rerun()
    st.markdown("---")
    pages = ["Log work", "Records", "Dashboard"] + (["Admin"] if user.is_admin else [])
    nav_choice = st.radio("Navigate", pages, index=0)


# ---------- work item form ----------
def _pick(values: list, current, default: int = 0) -> int:
    return values.index(current) if current in values else default


def work_item_inputs(options, *, key: str, record: Optional[WorkRecord] = None) -> dict:
    """Form widgets for a work item; returns WorkItemForm fields. ``record`` prefills an edit."""
    systems = [s.name for s in options.systems]
    other_system = next((i for i, s in enumerate(systems) if is_other(s)), 0)
    known_system = record is not None and record.system in systems
    system = st.selectbox(
        "System", systems, index=_pick(systems, record.system, other_system) if record else 0, key=f"{key}-system"
    )
    if is_other(system):
        sub_module = ""
        sub_module_text = st.text_input(
            "Sub-module name", value=record.sub_module if record and not known_system else "", key=f"{key}-sub-text"
        )
    else:
        subs = [sm.name for sm in options.sub_modules_for(system)]
        sub_module = st.selectbox(
            "Sub-module", subs, index=_pick(subs, record.sub_module if record else None), key=f"{key}-sub"
        )
        sub_module_text = ""

    qtypes = [q.name for q in options.question_types]
    other_type = next((i for i, q in enumerate(qtypes) if is_other(q)), 0)
    question_type = st.radio(
        "Question type",
        qtypes,
        index=_pick(qtypes, record.question_type, other_type) if record else 0,
        horizontal=True,
        key=f"{key}-qtype",
    )
    question_type_text = ""
    if is_other(question_type):
        prefill = record.question_type if record and record.question_type not in qtypes else ""
        question_type_text = st.text_input("Describe the question type", value=prefill, key=f"{key}-qtype-text")

    employees = [e.name for e in options.employees]
    if record and record.questioner and record.questioner not in employees:
        employees = [record.questioner] + employees
    questioner = st.selectbox(
        "Questioner", employees, index=_pick(employees, record.questioner if record else None), key=f"{key}-questioner"
    )

    asked = parse_timestamp(record.question_date) if record else None
    asked = asked.to_pydatetime() if asked is not None else datetime.now().replace(second=0, microsecond=0)
    c1, c2 = st.columns(2)
    q_day = c1.date_input("Question date", value=asked.date(), key=f"{key}-qday")
    q_time = c2.time_input("Time", value=asked.time(), key=f"{key}-qtime")

    levels = list(LEVEL_ORDER)
    c3, c4 = st.columns(2)
    difficulty = c3.radio(
        "Difficulty",
        levels,
        index=_pick(levels, record.difficulty if record else None, 1),
        format_func=lambda lv: lv.label,
        horizontal=True,
        key=f"{key}-difficulty",
    )
    priority = c4.radio(
        "Priority",
        levels,
        index=_pick(levels, record.priority if record else None, 1),
        format_func=lambda lv: lv.label,
        horizontal=True,
        key=f"{key}-priority",
    )

    is_done = st.toggle("Done", value=bool(record and record.is_done), key=f"{key}-done")
    closed_date = ""
    if is_done:
        closed = parse_timestamp(record.closed_date) if record else None
        closed_day = st.date_input(
            "Closed date", value=closed.date() if closed is not None else date.today(), key=f"{key}-closed"
        )
        closed_time = closed.time() if closed is not None else datetime.now().time()
        closed_date = datetime.combine(closed_day, closed_time).isoformat(timespec="minutes")
    minutes = st.number_input(
        "Minutes spent", min_value=0, step=1, value=int(record.minutes or 0) if record else 0, key=f"{key}-minutes"
    )
    note = st.text_area("Note", value=record.note if record else "", key=f"{key}-note")

    return {
        "system": system,
        "sub_module": sub_module or "",
        "sub_module_text": sub_module_text,
        "question_type": question_type,
        "question_type_text": question_type_text,
        "questioner": questioner or "",
        "question_date": datetime.combine(q_day, q_time).isoformat(timespec="minutes"),
        "difficulty": difficulty,
        "priority": priority,
        "is_done": is_done,
        "closed_date": closed_date,
        "minutes": int(minutes) or None,
        "note": note,
    }


def save_work_item(fields: dict, *, row_index: Optional[int] = None, handler: str = "") -> bool:
    """Validate and write a new (row_index None) or edited record; False after showing the error."""
    try:
        form = WorkItemForm(**fields)
        if row_index is None:
            store.append_record(form.to_record(user.name))
        else:
            store.update_record(row_index, form.to_record(handler or user.name, row_index=row_index))
    except (ValidationError, ChoiceError) as exc:
        st.error(str(exc))
        return False
    except StoreError as exc:
        st.error(f"Save failed, please retry: {exc}")
        return False
    st.session_state.pop("records", None)
    return True


# ---------- pages ----------
def render_log_work_page():
    render_page_header("Log work", "Work Log / Log work")
    options = store.get_form_options()
    with card("New record"):
        fields = work_item_inputs(options, key="new")
        if st.button("Submit", type="primary") and save_work_item(fields):
            st.success("Record submitted.")


def render_edit_record(recs: List[WorkRecord], row_indexes: List[int]):
    target = st.selectbox("Edit record (row #)", row_indexes, index=None, placeholder="Row #")
    if target is None:
        return
    record = next(r for r in recs if r.row_index == target)
    with card(f"Edit row {target}"):
        fields = work_item_inputs(store.get_form_options(), key=f"edit-{target}", record=record)
        if st.button("Save record", type="primary") and save_work_item(fields, row_index=target, handler=record.handler_name):
            st.success("Record updated.")
            st.rerun()


def render_records_page():
    recs = fetch_records(user)
    if recs is None:
        return
    with st.sidebar:
        st.markdown("### Filters")
        base = filter_options(recs)
        person = st.selectbox("Person", [""] + base["person"], format_func=lambda v: v or "All") if user.is_admin else ""
        system = st.selectbox("System", [""] + base["system"], format_func=lambda v: v or "All")
        subs = filter_options(recs, system=system)["sub_module"]
        sub_module = st.selectbox("Sub-module", [""] + subs, format_func=lambda v: v or "All")
        questioner = st.selectbox("Questioner", [""] + base["questioner"], format_func=lambda v: v or "All")
        question_type = st.selectbox("Question type", [""] + base["question_type"], format_func=lambda v: v or "All")
        difficulty = st.selectbox("Difficulty", [""] + [lv.value for lv in LEVEL_ORDER], format_func=lambda v: level_label(v) or "All")
        priority = st.selectbox("Priority", [""] + [lv.value for lv in LEVEL_ORDER], format_func=lambda v: level_label(v) or "All")
        done_choice = st.selectbox("Status", ["", "done", "open"], format_func=lambda v: {"": "All", "done": "Done", "open": "Open"}[v])
        preset = st.radio("Dates", DATE_PRESETS + ("custom",), index=DATE_PRESETS.index("all"), horizontal=True)
        if preset == "custom":
            picked = st.date_input("Date range", value=quick_range("month"))
            date_from, date_to = (picked[0], picked[-1]) if isinstance(picked, (list, tuple)) and picked else (None, None)
        else:
            date_from, date_to = quick_range(preset)
        sort_key = st.selectbox("Sort by", ["question_date", "id", "system", "sub_module", "questioner", "difficulty", "priority", "is_done", "created_at"])
        direction = st.radio("Direction", ["desc", "asc"], horizontal=True)

    criteria = {
        "person": person,
        "system": system,
        "sub_module": sub_module,
        "questioner": questioner,
        "question_type": question_type,
        "difficulty": difficulty,
        "priority": priority,
        "is_done": done_choice,
        "date_from": date_from,
        "date_to": date_to,
    }
    view = compute_records_view(recs, criteria, sort_key=sort_key, direction=direction, tz=settings.timezone)
    crit = FilterCriteria(**{**view["filters"], "date_from": date_from, "date_to": date_to})
    render_page_header(
        "Records",
        "Work Log / Records",
        format_filter_summary(crit),
        export_df=export_frame(recs, crit, tz=settings.timezone),
        export_name="records.csv",
    )
    st.caption(f"{view['count']} of {view['total']} records")
    table = pd.DataFrame(view["rows"])
    if table.empty:
        st.info("No records match the current filters.")
        return
    for col in ("difficulty", "priority"):
        table[col] = table[col].map(level_label)
    st.dataframe(table.drop(columns=["row_index"]), hide_index=True, use_container_width=True)
    render_edit_record(recs, [row["row_index"] for row in view["rows"] if row["row_index"] is not None])


def render_dashboard_page():
    recs = fetch_records(user)
    if recs is None:
        return
    first_day, today = default_dashboard_range()
    with st.sidebar:
        st.markdown("### Filters")
        persons = filter_options(recs)["person"]
        person = st.selectbox("Person", [""] + persons, format_func=lambda v: v or "All") if user.is_admin else ""
        all_time = st.checkbox("All time", value=False)
        picked = st.date_input("Date range", value=(first_day, today), disabled=all_time)
    date_from, date_to = (None, None)
    if not all_time and isinstance(picked, (list, tuple)) and picked:
        date_from, date_to = picked[0], picked[-1]

    payload = compute_dashboard(recs, {"person": person, "date_from": date_from, "date_to": date_to}, tz=settings.timezone)
    crit = FilterCriteria(person=person, date_from=date_from, date_to=date_to)
    render_page_header("Dashboard", "Work Log / Dashboard", format_filter_summary(crit))

    k = payload["kpis"]
    cols = st.columns(6)
    cols[0].metric("Total cases", f"{k['total_cases']:,}")
    cols[1].metric("Total minutes", f"{k['total_minutes']:,}")
    cols[2].metric("Completion rate", f"{k['completion_rate']}%")
    cols[3].metric("Avg minutes", f"{k['avg_minutes']:,}")
    cols[4].metric("Pending", f"{k['pending_cases']:,}")
    cols[5].metric("Urgent backlog", f"{k['urgent_pending']:,}", help="Open records with HIGH priority.")

    charts = payload["charts"]
    row1 = st.columns(2)
    with row1[0]:
        with card("Daily cases (by question date)"):
            if "daily_trend" in charts:
                st.vega_lite_chart(charts["daily_trend"], use_container_width=True)
            else:
                st.info("No data")
    with row1[1]:
        with card("System share"):
            if "system_share" in charts:
                st.vega_lite_chart(charts["system_share"], use_container_width=True)
            else:
                st.info("No data")
    row2 = st.columns(2)
    with row2[0]:
        with card("Difficulty vs average minutes"):
            st.vega_lite_chart(charts["difficulty_time"], use_container_width=True)
    with row2[1]:
        with card("Question types"):
            if "question_type" in charts:
                st.vega_lite_chart(charts["question_type"], use_container_width=True)
            else:
                st.info("No data")


def render_admin_page():
    render_page_header("Admin", "Work Log / Admin")
    sheet = st.selectbox("Sheet", ADMIN_SHEETS)
    try:
        data = store.get_admin_sheet(sheet)
    except StoreError as exc:
        st.error(f"Could not load {sheet}: {exc}")
        if st.button("Retry"):
            st.rerun()
        return
    table = pd.DataFrame([{"_rowIndex": r.row_index, **r.values} for r in data.rows], columns=["_rowIndex"] + data.headers)
    edited = st.data_editor(table, hide_index=True, disabled=["_rowIndex", "id"], num_rows="fixed", use_container_width=True)
    c1, c2, c3 = st.columns(3)
    try:
        if c1.button("Save changes"):
            for before, after in zip(table.to_dict(orient="records"), edited.to_dict(orient="records")):
                if before != after:
                    store.save_admin_row(sheet, int(after["_rowIndex"]), after, data.headers)
            st.success("Saved.")
        with c2.popover("Add row"):
            new_values = {h: st.text_input(h, key=f"new-{sheet}-{h}") for h in data.headers if h != "id"}
            if st.button("Add"):
                store.add_admin_row(sheet, new_values, data.headers)
                st.rerun()
        row_ids: List[int] = [r.row_index for r in data.rows]
        target = c3.selectbox("Delete row", row_ids, index=None, placeholder="Row #")
        if target is not None and c3.button("Delete", type="secondary"):
            store.delete_admin_row(sheet, target)
            st.rerun()
    except StoreError as exc:
        st.error(f"Admin update failed: {exc}")


if nav_choice == "Log work":
    render_log_work_page()
elif nav_choice == "Records":
    render_records_page()
elif nav_choice == "Dashboard":
    render_dashboard_page()
else:
    render_admin_page()
