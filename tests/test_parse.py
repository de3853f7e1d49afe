"""
Unit tests for layout classification and the three OCR text parsers.

Ids are made deterministic by passing an id_factory; colours by passing a
seeded random.Random.
"""

import random
import unittest
from itertools import count

from mytimetable.model import COLORS, UNKNOWN_NAME, Day
from mytimetable.parse import (
    Layout,
    classify_layout,
    is_marker_line,
    parse_block_header,
    parse_grid_with_codes,
    parse_heuristic_lines,
    parse_raw_text_to_courses,
    split_blocks,
    split_lines,
)


def _ids():
    counter = count(1)
    return lambda: f"id{next(counter)}"


GRID_TEXT = "1\n2100010 Database\n2161\n田中\n2\n2100020: Network\n"

BLOCK_TEXT = (
    "12345: 線形代数\n"
    "月1: 2161 / 火2: 3F\n"
    "2025年度 春セメスター\n"
    "山田 太郎\n"
    "67890: 英語\n"
    "水3\n"
)


class TestClassifyLayout(unittest.TestCase):
    def test_seven_digit_code_selects_grid(self) -> None:
        self.assertEqual(classify_layout(GRID_TEXT), Layout.GRID_WITH_CODES)

    def test_block_header_selected(self) -> None:
        self.assertEqual(classify_layout(BLOCK_TEXT), Layout.BLOCK_HEADER)

    def test_fallback_is_heuristic(self) -> None:
        self.assertEqual(classify_layout("英語(月)(1)"), Layout.HEURISTIC_LINE)

    def test_eight_digits_are_not_a_course_code(self) -> None:
        self.assertEqual(classify_layout("12345678 something"), Layout.HEURISTIC_LINE)

    def test_code_anywhere_in_the_text_selects_grid(self) -> None:
        self.assertEqual(classify_layout("時間割 (code 2100010) 英語"), Layout.GRID_WITH_CODES)


class TestHelpers(unittest.TestCase):
    def test_split_lines_on_newline_and_semicolon(self) -> None:
        self.assertEqual(split_lines(" a \r\n\nb;c ; "), ["a", "b", "c"])

    def test_split_blocks(self) -> None:
        blocks = split_blocks(["intro", "1234: A", "x", "5678：B"])
        self.assertEqual(blocks, [["intro"], ["1234: A", "x"], ["5678：B"]])

    def test_marker_lines(self) -> None:
        self.assertTrue(is_marker_line("3"))
        self.assertTrue(is_marker_line("4限"))
        self.assertTrue(is_marker_line("2100010"))
        self.assertFalse(is_marker_line("2161"))
        self.assertFalse(is_marker_line("7"))
        self.assertFalse(is_marker_line("田中"))


class TestGridWithCodes(unittest.TestCase):
    def test_two_rows(self) -> None:
        courses = parse_raw_text_to_courses(GRID_TEXT, id_factory=_ids())
        self.assertEqual(len(courses), 2)

        first, second = courses
        self.assertEqual(first.id, "id1")
        self.assertEqual((first.day, first.period), (Day.MON, 1))
        self.assertEqual(first.name, "Database")
        self.assertEqual(first.code, "2100010")
        self.assertEqual(first.room, "2161")
        self.assertEqual(first.professor, "田中")
        self.assertEqual(first.color, COLORS[0])

        self.assertEqual((second.day, second.period), (Day.MON, 2))
        self.assertEqual(second.name, "Network")
        self.assertEqual(second.code, "2100020")
        self.assertEqual(second.room, "")
        self.assertEqual(second.professor, "")
        self.assertEqual(second.color, COLORS[1])
        self.assertIsNone(second.term)

    def test_name_on_next_line_with_quarter_tag(self) -> None:
        lines = split_lines("1\n2100010\n線形代数\n(Q1)\n2161\n田中\n2100020\n英語\n")
        courses = parse_grid_with_codes(lines, id_factory=_ids())

        self.assertEqual(len(courses), 2)
        self.assertEqual(courses[0].name, "[Q1] 線形代数")
        self.assertEqual(courses[0].room, "2161")
        self.assertEqual(courses[0].professor, "田中")
        self.assertEqual(courses[1].name, "英語")
        self.assertEqual((courses[1].day, courses[1].period), (Day.TUE, 1))

    def test_marker_lines_are_never_consumed(self) -> None:
        lines = split_lines("1\n2100010\n2\n2100020 Biology\n")
        courses = parse_grid_with_codes(lines, id_factory=_ids())

        self.assertEqual(len(courses), 2)
        self.assertEqual(courses[0].name, UNKNOWN_NAME)
        self.assertEqual(courses[0].room, "")
        self.assertEqual((courses[1].day, courses[1].period), (Day.MON, 2))
        self.assertEqual(courses[1].name, "Biology")

    def test_day_stops_at_saturday(self) -> None:
        text = "1\n" + "\n".join(f"210000{i} C{i}" for i in range(1, 8))
        courses = parse_grid_with_codes(split_lines(text), id_factory=_ids())
        self.assertEqual(
            [c.day for c in courses],
            [Day.MON, Day.TUE, Day.WED, Day.THU, Day.FRI, Day.SAT, Day.SAT],
        )


class TestBlockHeader(unittest.TestCase):
    def test_blocks_with_rooms_and_professor(self) -> None:
        courses = parse_raw_text_to_courses(BLOCK_TEXT, id_factory=_ids(), rng=random.Random(0))
        self.assertEqual(len(courses), 3)

        mon, tue, wed = courses
        self.assertEqual((mon.day, mon.period, mon.room), (Day.MON, 1, "2161"))
        self.assertEqual((tue.day, tue.period, tue.room), (Day.TUE, 2, "3"))
        for c in (mon, tue):
            self.assertEqual(c.name, "線形代数")
            self.assertEqual(c.code, "12345")
            self.assertEqual(c.professor, "山田 太郎")

        # one colour per block
        self.assertEqual(mon.color, tue.color)
        self.assertNotEqual(mon.color, wed.color)

        self.assertEqual((wed.day, wed.period), (Day.WED, 3))
        self.assertEqual(wed.name, "英語")
        self.assertEqual(wed.room, "")
        self.assertEqual(wed.professor, "")

    def test_duplicate_slots_emitted_once(self) -> None:
        lines = split_lines("1234: 物理\n月曜2\n月2 (再掲)\n")
        courses = parse_block_header(lines, id_factory=_ids())
        self.assertEqual([(c.day, c.period) for c in courses], [(Day.MON, 2)])

    def test_header_without_slots_yields_nothing(self) -> None:
        self.assertEqual(parse_block_header(["1234: 物理", "佐藤"]), [])


class TestHeuristicLines(unittest.TestCase):
    def test_bracketed_day_and_period(self) -> None:
        courses = parse_raw_text_to_courses("英語(月)(1)", id_factory=_ids())
        self.assertEqual(len(courses), 1)
        self.assertEqual(courses[0].name, "英語")
        self.assertEqual((courses[0].day, courses[0].period), (Day.MON, 1))
        self.assertIsNone(courses[0].room)

    def test_day_without_period_is_dropped(self) -> None:
        self.assertEqual(parse_raw_text_to_courses("英語(月)"), [])

    def test_bare_digit_needs_a_day(self) -> None:
        self.assertEqual(parse_heuristic_lines(["Physics 2"]), [])

        courses = parse_heuristic_lines(["Mon 2 Physics"], id_factory=_ids())
        self.assertEqual(len(courses), 1)
        self.assertEqual(courses[0].name, "Physics")
        self.assertEqual((courses[0].day, courses[0].period), (Day.MON, 2))

    def test_explicit_period_marker(self) -> None:
        courses = parse_heuristic_lines(["数学 3限 金"], id_factory=_ids())
        self.assertEqual(courses[0].name, "数学")
        self.assertEqual((courses[0].day, courses[0].period), (Day.FRI, 3))

    def test_single_character_names_are_noise(self) -> None:
        self.assertEqual(parse_heuristic_lines(["(火)(2) A"]), [])

    def test_semicolon_separated_and_colours_cycle(self) -> None:
        courses = parse_raw_text_to_courses("英語(月)(1);数学(火)(2)", id_factory=_ids(), rng=random.Random(3))
        self.assertEqual([c.name for c in courses], ["英語", "数学"])
        first = COLORS.index(courses[0].color)
        self.assertEqual(courses[1].color, COLORS[(first + 1) % len(COLORS)])


if __name__ == "__main__":
    unittest.main()
