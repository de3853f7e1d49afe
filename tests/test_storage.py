"""
Unit tests for local storage of courses, settings and terms.

Storage contract:
- Missing/invalid file -> defaults (empty list, Settings(), no terms)
- JSON keys are the app's camelCase keys
- A stored course without a valid day/period is skipped, not fatal
"""

import json
import tempfile
import unittest
from pathlib import Path

from mytimetable.model import Course, Day, Settings, Term
from mytimetable.storage import (
    COURSES_FILE,
    load_courses,
    load_settings,
    load_terms,
    save_courses,
    save_settings,
    save_terms,
)


class TestStorage(unittest.TestCase):
    def test_load_missing_files_returns_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            self.assertEqual(load_courses(Path(d)), [])
            self.assertEqual(load_settings(Path(d)), Settings())
            self.assertEqual(load_terms(Path(d)), ([], None))

    def test_courses_roundtrip(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            course = Course(
                id="abc123def",
                name="英語",
                day=Day.TUE,
                period=2,
                room="2161",
                term="2026-Spring",
                syllabus_url="https://example.org/s/1",
            )
            save_courses(Path(d), [course])
            self.assertEqual(load_courses(Path(d)), [course])

            data = json.loads((Path(d) / COURSES_FILE).read_text(encoding="utf-8"))
            self.assertEqual(data["courses"][0]["syllabusUrl"], "https://example.org/s/1")

    def test_invalid_stored_course_is_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            payload = {"courses": [{"name": "ok", "day": "Mon", "period": 1}, {"name": "bad", "day": "Sun", "period": 1}]}
            (Path(d) / COURSES_FILE).write_text(json.dumps(payload), encoding="utf-8")
            self.assertEqual([c.name for c in load_courses(Path(d))], ["ok"])

    def test_bad_attendance_record_keeps_the_course(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            payload = {
                "courses": [
                    {
                        "id": "a",
                        "name": "英語",
                        "day": "Mon",
                        "period": 1,
                        "assignments": [{"id": "h1", "title": "Essay"}],
                        "attendanceHistory": [
                            {"id": "r1", "date": "2026-04-10", "status": "excused"},
                            {"id": "r2", "date": "2026-04-17", "status": "late"},
                        ],
                    }
                ]
            }
            (Path(d) / COURSES_FILE).write_text(json.dumps(payload), encoding="utf-8")

            with self.assertLogs("mytimetable.model", level="WARNING"):
                loaded = load_courses(Path(d))
            self.assertEqual([c.id for c in loaded], ["a"])
            self.assertEqual([r.id for r in loaded[0].attendance_history], ["r2"])

            save_courses(Path(d), loaded)
            survived = load_courses(Path(d))
            self.assertEqual([a.id for a in survived[0].assignments], ["h1"])

    def test_corrupt_file_yields_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            (Path(d) / COURSES_FILE).write_text("{oops", encoding="utf-8")
            with self.assertLogs("mytimetable.storage", level="WARNING"):
                self.assertEqual(load_courses(Path(d)), [])

    def test_settings_and_terms_roundtrip(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            settings = Settings(max_period=7, third_period_start=None, custom_period_durations={"Mon-3": 60})
            save_settings(Path(d) / "nested", settings)
            self.assertEqual(load_settings(Path(d) / "nested"), settings)

            terms = [Term("2026-Spring", "2026 / 春セメスター")]
            save_terms(Path(d), terms, "2026-Spring")
            self.assertEqual(load_terms(Path(d)), (terms, "2026-Spring"))


if __name__ == "__main__":
    unittest.main()
