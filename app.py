# app.py
import json
import streamlit as st
import pandas as pd
import numpy as np

from timetable_engine.config import load_config, OptimizerConfig
from timetable_engine.data_loader import (
    load_data, read_table, rooms_from_frame, teachers_from_frame, courses_from_frame,
    ROOM_COLUMNS, TEACHER_COLUMNS, COURSE_COLUMNS,
)
from timetable_engine.domains import TimeGrid
from timetable_engine.checkpoint import Checkpoint
from timetable_engine.model import MissingInputData, InvalidInputData
from timetable_engine.optimizer import optimize_schedule
from timetable_engine.persistence import schedule_to_dataframe, runs_to_dataframe

# --- CONFIGURACIÓN DE PÁGINA ---
st.set_page_config(page_title="Optimización de Horarios", layout="wide", initial_sidebar_state="expanded")

st.markdown("""
    <style>
    .stButton>button {
        width: 100%;
        background-color: #ff4b4b;
        color: white;
        font-weight: bold;
        height: 50px;
    }
    .schedule-table td { vertical-align: top; font-size: 11px; }
    </style>
""", unsafe_allow_html=True)


# --- FUNCIONES HELPERS ---
def get_html_card(subject, course_id, group, room, teacher=""):
    teacher_line = (
        f"<div style='background-color:#fff; color:#666; padding:0 4px; font-style:italic;'>{teacher}</div>"
        if teacher else ""
    )
    return (
        f"<div style='border:1px solid #999; margin-bottom:4px; font-family:sans-serif;'>"
        f"<div style='background-color:#ffffcc; color:#000; padding:2px 4px; font-weight:bold;'>{subject}</div>"
        f"<div style='background-color:#fff; color:#333; padding:2px 4px;'>"
        f"<b>{group}</b> {course_id} <span style='float:right; color:#666;'>{room}</span></div>"
        f"{teacher_line}</div>"
    )


def create_schedule_matrix(df_schedule: pd.DataFrame, grid: TimeGrid, filter_col: str, filter_val: str) -> pd.DataFrame:
    """Matriz periodo x día con tarjetas HTML para el grupo, aula o docente elegidos."""
    matrix = np.full((grid.periods_per_day, grid.n_days), "", dtype=object)
    for row in df_schedule[df_schedule[filter_col] == filter_val].itertuples():
        day, period = grid.day_of(row.slot), grid.period_of(row.slot)
        matrix[period, day] += get_html_card(row.subject, row.course_id, row.group_id, row.room, row.teacher_name)
    df_mat = pd.DataFrame(matrix, columns=[grid.day_name(d) for d in range(grid.n_days)])
    df_mat.index = [grid.period_label(p) for p in range(grid.periods_per_day)]
    return df_mat


def uploaded_or_default(label, uploaded, default_df, columns):
    if uploaded is None:
        return default_df
    try:
        return read_table(uploaded, columns)
    except ValueError as e:
        st.error(f"{label}: {e}")
        return default_df


# --- MAIN APP ---
def main():
    if "bundle" not in st.session_state:
        st.session_state.bundle = load_data("data")
    bundle = st.session_state.bundle
    base_cfg = load_config("config.yaml")

    with st.sidebar:
        st.title("🧬 Parámetros")
        variation = st.radio("Operador de variación", ["smart_mutation", "crossover"])
        population_size = st.slider("Población", 20, 400, base_cfg.population_size, step=10)
        generations = st.slider("Generaciones", 10, 500, base_cfg.generations, step=10)
        mutation_rate = st.slider("Tasa de mutación", 0.0, 1.0, float(base_cfg.mutation_rate))
        n_runs = st.number_input("Corridas", 1, 20, base_cfg.n_runs)
        tabu_max_iters = st.slider("Iteraciones tabú", 0, 1000, base_cfg.tabu_max_iters, step=50)
        seed = st.number_input("Semilla", 0, 10**6, base_cfg.seed)
        st.markdown("---")
        st.info("Algoritmo Genético + Búsqueda Tabú")

    st.header("📋 Datos de entrada")
    c1, c2, c3 = st.columns(3)
    up_rooms = c1.file_uploader("Aulas (rooms.csv)", type="csv")
    up_teachers = c2.file_uploader("Docentes (teachers.csv)", type="csv")
    up_courses = c3.file_uploader("Cursos (courses.csv)", type="csv")

    rooms_df = uploaded_or_default("Aulas", up_rooms, bundle.rooms, ROOM_COLUMNS)
    teachers_df = uploaded_or_default("Docentes", up_teachers, bundle.teachers, TEACHER_COLUMNS)
    courses_df = uploaded_or_default("Cursos", up_courses, bundle.courses, COURSE_COLUMNS)

    tabs = st.tabs(["Aulas", "Docentes", "Cursos"])
    tabs[0].dataframe(rooms_df, use_container_width=True, height=250)
    tabs[1].dataframe(teachers_df, use_container_width=True, height=250)
    tabs[2].dataframe(courses_df, use_container_width=True, height=250)

    if st.button("🚀 OPTIMIZAR HORARIO"):
        cfg = OptimizerConfig.from_dict({
            **base_cfg.to_dict(),
            "variation": variation,
            "population_size": population_size,
            "elite_count": min(base_cfg.elite_count, population_size),
            "generations": generations,
            "mutation_rate": mutation_rate,
            "n_runs": int(n_runs),
            "n_jobs": 1,
            "tabu_max_iters": tabu_max_iters,
            "seed": int(seed),
        })
        with st.status("Optimizando...", expanded=True) as status:
            progress = st.empty()
            checkpoint = Checkpoint(on_yield=lambda stage, i: progress.text(f"{stage} {i}"))
            try:
                rooms = rooms_from_frame(rooms_df)
                teachers = teachers_from_frame(teachers_df)
                courses = courses_from_frame(courses_df)
                result = optimize_schedule(rooms, teachers, courses, cfg, checkpoint)
            except (MissingInputData, InvalidInputData) as e:
                status.update(label=f"Datos inválidos: {e}", state="error")
                return
            st.session_state.result = result
            st.session_state.courses = courses
            st.session_state.teachers = teachers
            st.session_state.grid = TimeGrid.from_config(cfg)
            status.update(label="¡Optimización completa!", state="complete", expanded=False)

    if "result" not in st.session_state:
        return

    result = st.session_state.result
    grid = st.session_state.grid
    st.divider()
    st.header("📊 Resultado")
    m1, m2, m3 = st.columns(3)
    m1.metric("Fitness", f"{result.fitness:.0f}")
    m2.metric("Violaciones duras", result.hard_violations)
    m3.metric("Penalización blanda", f"{result.soft_score:.0f}")

    if result.runs:
        st.markdown("##### Corridas")
        st.dataframe(runs_to_dataframe(result), use_container_width=True)

    df_schedule = schedule_to_dataframe(result, st.session_state.courses, grid, st.session_state.teachers)
    if df_schedule.empty:
        st.warning("No hay cursos para mostrar.")
        return

    views = {"Grupo": "group_id", "Aula": "room", "Docente": "teacher_id"}
    mode = st.radio("Ver horario por:", list(views), horizontal=True)
    col = views[mode]
    if col == "teacher_id":
        labels = dict(zip(df_schedule["teacher_id"], df_schedule["teacher_name"]))
        value = st.selectbox(mode, sorted(labels), format_func=lambda tid: f"{labels[tid]} ({tid})")
    else:
        value = st.selectbox(mode, sorted(df_schedule[col].unique()))
    df_mat = create_schedule_matrix(df_schedule, grid, col, value)
    st.markdown(df_mat.to_html(escape=False, classes="schedule-table"), unsafe_allow_html=True)

    st.download_button(
        "⬇️ Descargar JSON",
        data=json.dumps(result.to_dict(), indent=2),
        file_name="schedule.json",
        mime="application/json",
    )


if __name__ == "__main__":
    main()
