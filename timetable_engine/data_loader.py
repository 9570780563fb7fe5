# timetable_engine/data_loader.py
from dataclasses import dataclass
from pathlib import Path
from typing import IO, List, Union
import pandas as pd

from .model import Course, Room, Teacher

ROOM_COLUMNS = ["room_id", "capacity", "type"]
TEACHER_COLUMNS = ["teacher_id", "name"]
COURSE_COLUMNS = ["course_id", "subject", "teacher_id", "group_id", "group_size", "room_type_req"]

CsvSource = Union[str, Path, IO]


@dataclass(frozen=True)
class DataBundle:
    rooms: pd.DataFrame
    teachers: pd.DataFrame
    courses: pd.DataFrame


def read_table(source: CsvSource, columns: List[str]) -> pd.DataFrame:
    """Lee un CSV y normaliza cabeceras; un archivo ausente da una tabla vacía."""
    if isinstance(source, (str, Path)) and not Path(source).exists():
        return pd.DataFrame(columns=columns)
    df = pd.read_csv(source, dtype=str, skipinitialspace=True)
    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"Faltan columnas {missing} (se esperaba {columns})")
    df = df[columns].dropna(how="all")
    return df.apply(lambda col: col.str.strip())


def load_data(data_dir: str) -> DataBundle:
    base = Path(data_dir)
    return DataBundle(
        rooms=read_table(base / "rooms.csv", ROOM_COLUMNS),
        teachers=read_table(base / "teachers.csv", TEACHER_COLUMNS),
        courses=read_table(base / "courses.csv", COURSE_COLUMNS),
    )


def rooms_from_frame(df: pd.DataFrame) -> List[Room]:
    return [Room(room_id=str(r.room_id), capacity=int(r.capacity), type=str(r.type)) for r in df.itertuples()]


def teachers_from_frame(df: pd.DataFrame) -> List[Teacher]:
    return [Teacher(teacher_id=str(r.teacher_id), name=str(r.name)) for r in df.itertuples()]


def courses_from_frame(df: pd.DataFrame) -> List[Course]:
    return [
        Course(
            course_id=str(r.course_id),
            subject=str(r.subject),
            teacher_id=str(r.teacher_id),
            group_id=str(r.group_id),
            group_size=int(r.group_size),
            room_type_req=str(r.room_type_req),
        )
        for r in df.itertuples()
    ]
