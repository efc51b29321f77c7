"""Streamlit pages of the classroom dashboard.

Pages keep their live queries in ``st.session_state`` so a query survives
reruns and is only re-subscribed when its scope actually changes.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Optional

import streamlit as st

from src.attendance import AttendanceQuery
from src.charts import (
    build_attendance_view,
    build_mood_view,
    build_participation_view,
    unique_courses,
    unique_groups,
)
from src.config import ClassroomContext
from src.courses import CourseQuery
from src.models import ABSENT_STATUS, COURSE_TEXT_FIELDS, PRESENT
from src.mood import MOOD_LABELS, MoodQuery
from src.optional import value_or
from src.participation import ParticipationQuery
from src.store import CollectionClient, StoreError
from src.students import StudentQuery
from src.utils.toasts import refresh_with_toast, report_failure, toast_ok

ALL = ""


def use_query(key: str, factory: Callable[..., Any], client: CollectionClient, owner_id: Optional[str], **scope: Any):
    """Return the live query stored under ``key``, re-scoped to ``scope``."""

    query = st.session_state.get(key)
    if query is None or query.client is not client:
        if query is not None:
            query.close()
        query = factory(client, owner_id, **scope)
        st.session_state[key] = query
    else:
        query.set_scope(owner_id, **scope)
    return query


def save_edit(action: str, update: Callable[..., Any], doc_id: str, **fields: Any) -> bool:
    """Run ``update(doc_id, **fields)``; failures are reported, not raised."""

    try:
        update(doc_id, **fields)
    except (StoreError, ValueError) as exc:
        report_failure(action, exc)
        return False
    refresh_with_toast("Cambios guardados")
    return True


def _select_filter(label: str, options, key: str, names: Optional[dict] = None) -> Optional[str]:
    names = names or {}
    choice = st.selectbox(label, [ALL, *options], key=key, format_func=lambda v: names.get(v, v) or "Todos")
    return choice or None


def render_dashboard(client: CollectionClient, ctx: ClassroomContext) -> None:
    st.header("📊 Panel de Control")
    everyone = use_query("q_dash_all", StudentQuery, client, ctx.owner_id, period=ctx.period)
    col1, col2 = st.columns(2)
    with col1:
        group = _select_filter("Filtrar por Grupo", unique_groups(everyone), "dash_group")
    with col2:
        course = _select_filter("Filtrar por Curso", unique_courses(everyone), "dash_course")

    students = use_query(
        "q_dash_students", StudentQuery, client, ctx.owner_id, group=group, course=course, period=ctx.period
    )
    ids = [s.id for s in students]
    attendance = use_query("q_dash_att", AttendanceQuery, client, ctx.owner_id, student_ids=ids, period=ctx.period)
    participation = use_query(
        "q_dash_part", ParticipationQuery, client, ctx.owner_id, student_ids=ids, period=ctx.period
    )
    mood = use_query("q_dash_mood", MoodQuery, client, ctx.owner_id, student_ids=ids, period=ctx.period)

    cols = st.columns(4)
    cols[0].metric("Estudiantes Filtrados", len(students))
    cols[1].metric("Registros de Asistencia", len(attendance))
    cols[2].metric("Registros de Participación", len(participation))
    cols[3].metric("Registros de Estado de Ánimo", len(mood))


def render_students(client: CollectionClient, ctx: ClassroomContext) -> None:
    st.header("🧑‍🎓 Gestión de Estudiantes")
    everyone = use_query("q_students_all", StudentQuery, client, ctx.owner_id, period=ctx.period)
    group = _select_filter("Grupo", unique_groups(everyone), "students_group")
    course = _select_filter("Curso", unique_courses(everyone), "students_course")
    students = use_query(
        "q_students", StudentQuery, client, ctx.owner_id, group=group, course=course, period=ctx.period
    )

    with st.form("add_student", clear_on_submit=True):
        name = st.text_input("Nombre")
        new_group = st.text_input("Grupo (Opcional)")
        new_course = st.text_input("Curso (Opcional)")
        email = st.text_input("Email Institucional (Opcional)")
        matricula = st.text_input("Matrícula (Opcional)")
        if st.form_submit_button("Añadir Estudiante"):
            try:
                students.add(name, new_group, new_course, email, ctx.period, matricula)
                refresh_with_toast()
            except (StoreError, ValueError) as exc:
                report_failure("Añadir estudiante", exc)

    upload = st.file_uploader("Subir Lista de Estudiantes (CSV)", type="csv")
    roster_course = st.text_input("Nombre del Curso para la lista", key="roster_course")
    roster_group = st.text_input("Número de Grupo para la lista", key="roster_group")
    if upload is not None and st.button("Subir"):
        try:
            added = students.import_roster(upload, period=ctx.period, course=roster_course, group=roster_group)
            toast_ok(f"Se han añadido {len(added)} estudiantes.")
        except (StoreError, ValueError) as exc:
            report_failure("Subir CSV", exc)

    for student in sorted(students, key=lambda s: s.name.casefold()):
        cols = st.columns([3, 2, 2, 3, 1])
        cols[0].write(student.name)
        cols[1].write(value_or(student.group, "N/A"))
        cols[2].write(value_or(student.course, "N/A"))
        cols[3].write(value_or(student.email, "N/A"))
        if cols[4].button("Eliminar", key=f"del_{student.id}"):
            try:
                students.delete(student.id)
                refresh_with_toast("Estudiante eliminado")
            except StoreError as exc:
                report_failure("Eliminar estudiante", exc)
        with st.expander(f"Editar {student.name}"):
            with st.form(f"edit_student_{student.id}"):
                fields = {
                    "name": st.text_input("Nombre", value=student.name),
                    "group": st.text_input("Grupo", value=value_or(student.group, "")),
                    "course": st.text_input("Curso", value=value_or(student.course, "")),
                    "email": st.text_input("Email Institucional", value=value_or(student.email, "")),
                    "matricula": st.text_input("Matrícula", value=value_or(student.matricula, "")),
                }
                if st.form_submit_button("Guardar Cambios"):
                    save_edit(
                        "Editar estudiante",
                        students.update,
                        student.id,
                        period=value_or(student.period) or ctx.period,
                        **fields,
                    )


def render_attendance(client: CollectionClient, ctx: ClassroomContext) -> None:
    st.header("✅ Pase de Lista")
    day = st.date_input("Seleccionar Fecha", value=date.today())
    everyone = use_query("q_att_students_all", StudentQuery, client, ctx.owner_id, period=ctx.period)
    group = _select_filter("Grupo", unique_groups(everyone), "att_group")
    course = _select_filter("Curso", unique_courses(everyone), "att_course")
    students = use_query(
        "q_att_students", StudentQuery, client, ctx.owner_id, group=group, course=course, period=ctx.period
    )
    attendance = use_query("q_att", AttendanceQuery, client, ctx.owner_id, period=ctx.period)
    current = attendance.statuses_on(day)

    for student in sorted(students, key=lambda s: s.name.casefold()):
        cols = st.columns([4, 1, 1])
        status = current.get(student.id)
        cols[0].write(f"{student.name} ({status or 'sin registro'})")
        for col, value, label in ((cols[1], PRESENT, "Presente"), (cols[2], ABSENT_STATUS, "Ausente")):
            if col.button(label, key=f"att_{value}_{student.id}", disabled=status == value):
                try:
                    attendance.mark(student.id, day, value, ctx.period)
                except (StoreError, ValueError) as exc:
                    report_failure("Pase de lista", exc)


def _record_form(
    title: str,
    key: str,
    client: CollectionClient,
    ctx: ClassroomContext,
    value_widget: Callable[[], Any],
    save: Callable[[str, date, Any, str], Any],
) -> None:
    students = use_query(f"q_{key}_students", StudentQuery, client, ctx.owner_id, period=ctx.period)
    by_id = {s.id: s for s in students}
    with st.form(key, clear_on_submit=True):
        student_id = st.selectbox(
            "Estudiante", list(by_id), format_func=lambda sid: by_id[sid].name if sid in by_id else sid
        )
        day = st.date_input("Fecha", value=date.today())
        value = value_widget()
        notes = st.text_input("Notas (Opcional)")
        if st.form_submit_button(title):
            if not student_id:
                st.warning("Selecciona un estudiante.")
                return
            try:
                save(student_id, day, value, notes)
                refresh_with_toast()
            except (StoreError, ValueError) as exc:
                report_failure(title, exc)


def render_participation(client: CollectionClient, ctx: ClassroomContext) -> None:
    st.header("🗣️ Participación")
    records = use_query("q_part", ParticipationQuery, client, ctx.owner_id, period=ctx.period)
    _record_form(
        "Registrar Participación",
        "participation",
        client,
        ctx,
        lambda: int(st.number_input("Puntos", min_value=1, value=1, step=1)),
        lambda sid, day, points, notes: records.add(sid, day, points, notes, ctx.period),
    )
    st.caption(f"{len(records)} registros en {ctx.period}")


def render_mood(client: CollectionClient, ctx: ClassroomContext) -> None:
    st.header("😊 Estado de Ánimo")
    records = use_query("q_mood", MoodQuery, client, ctx.owner_id, period=ctx.period)
    _record_form(
        "Registrar Estado de Ánimo",
        "mood",
        client,
        ctx,
        lambda: st.select_slider("Ánimo", options=list(MOOD_LABELS), format_func=MOOD_LABELS.get, value=3),
        lambda sid, day, mood, notes: records.add(sid, day, mood, notes, ctx.period),
    )
    st.caption(f"{len(records)} registros en {ctx.period}")


def render_courses(client: CollectionClient, ctx: ClassroomContext) -> None:
    st.header("📚 Gestión de Materias")
    st.caption(f"Periodo Actual: {ctx.period}")
    courses = use_query("q_courses", CourseQuery, client, ctx.owner_id, period=ctx.period)
    with st.form("add_course", clear_on_submit=True):
        name = st.text_input("Nombre de la Materia")
        group = st.text_input("Grupo")
        course = st.text_input("Curso")
        texts = {field: st.text_area(field.capitalize()) for field in COURSE_TEXT_FIELDS}
        if st.form_submit_button("Añadir Materia"):
            try:
                courses.add(name, group, course, **texts)
                refresh_with_toast()
            except (StoreError, ValueError) as exc:
                report_failure("Añadir materia", exc)

    for item in sorted(courses, key=lambda c: c.name.casefold()):
        with st.expander(f"{item.name} · {value_or(item.group, '')} {value_or(item.course, '')}"):
            for field in COURSE_TEXT_FIELDS:
                if item.text(field):
                    st.markdown(f"**{field.capitalize()}:** {item.text(field)}")
            with st.form(f"edit_course_{item.id}"):
                fields = {
                    "name": st.text_input("Nombre de la Materia", value=item.name),
                    "group": st.text_input("Grupo", value=value_or(item.group, "")),
                    "course": st.text_input("Curso", value=value_or(item.course, "")),
                }
                for field in COURSE_TEXT_FIELDS:
                    fields[field] = st.text_area(field.capitalize(), value=item.text(field) or "")
                if st.form_submit_button("Editar"):
                    save_edit("Editar materia", courses.update, item.id, **fields)
            if st.button("Eliminar", key=f"del_course_{item.id}"):
                try:
                    courses.delete(item.id)
                except StoreError as exc:
                    report_failure("Eliminar materia", exc)


def _chart(view, kind: str, title: str, filename: str) -> None:
    st.subheader(title)
    if view.chart.empty:
        st.info("Sin datos para este filtro.")
    elif kind == "line":
        st.line_chart(view.chart.to_frame())
    else:
        st.bar_chart(view.chart.to_frame())
    st.download_button(
        f"Descargar {title}", view.to_csv().encode("utf-8"), file_name=filename, mime="text/csv"
    )


def render_reports(client: CollectionClient, ctx: ClassroomContext) -> None:
    st.header("📈 Informes y Visualizaciones")
    students = use_query("q_rep_students", StudentQuery, client, ctx.owner_id, period=ctx.period)
    cols = st.columns(3)
    with cols[0]:
        course = _select_filter("Curso", unique_courses(students), "rep_course")
    with cols[1]:
        group = _select_filter("Grupo", unique_groups(students), "rep_group")
    with cols[2]:
        names = {s.id: s.name for s in students}
        student_id = _select_filter("Estudiante", sorted(names, key=lambda i: names[i].casefold()), "rep_student", names)

    attendance = use_query("q_rep_att", AttendanceQuery, client, ctx.owner_id, period=ctx.period)
    participation = use_query("q_rep_part", ParticipationQuery, client, ctx.owner_id, period=ctx.period)
    mood = use_query("q_rep_mood", MoodQuery, client, ctx.owner_id, period=ctx.period)

    roster = students.items
    selection = {"student_id": student_id, "course": course, "group": group}
    _chart(build_attendance_view(attendance.items, roster, **selection), "bar", "Asistencia", "asistencia.csv")
    _chart(
        build_participation_view(participation.items, roster, **selection),
        "bar",
        "Participación",
        "participacion.csv",
    )
    _chart(build_mood_view(mood.items, roster, **selection), "line", "Estado de Ánimo", "estado_animo.csv")


PAGES = {
    "📊 Dashboard": render_dashboard,
    "🧑‍🎓 Estudiantes": render_students,
    "✅ Pase de Lista": render_attendance,
    "🗣️ Participación": render_participation,
    "😊 Estado de Ánimo": render_mood,
    "📚 Materias": render_courses,
    "📈 Informes": render_reports,
}


__all__ = ["PAGES", "use_query"]
