"""
Unit tests for share payloads (QR / text).

Payload contract:
- v2: {"v": 2, "data": [{n, r, t, d, p, c, s?, code?, term?}]}
- d is the weekday index (0 = Mon)
- "s" (syllabus url) is left out of QR payloads
- legacy {"courses": [...]} is accepted as-is
"""

import json
import unittest
from itertools import count

from mytimetable.errors import ShareLimitError, SharePayloadError
from mytimetable.model import Course, Day
from mytimetable.share import QR_COURSE_LIMIT, decode_share_payload, dumps_share_payload, encode_share_payload


def _sample() -> list:
    return [
        Course(
            id="a1",
            name="[Q1] 線形代数",
            day=Day.WED,
            period=2,
            room="2161",
            professor="山田",
            color="#dbeafe",
            code="2100010",
            term="2026-Spring",
            syllabus_url="https://example.org/syllabus/2100010",
        ),
        Course(id="a2", name="英語", day=Day.SAT, period=5),
    ]


class TestEncode(unittest.TestCase):
    def test_minified_keys(self) -> None:
        payload = encode_share_payload(_sample())
        self.assertEqual(payload["v"], 2)
        first, second = payload["data"]
        self.assertEqual(first["n"], "[Q1] 線形代数")
        self.assertEqual(first["d"], 2)
        self.assertEqual(first["p"], 2)
        self.assertEqual(first["s"], "https://example.org/syllabus/2100010")
        # unset fields are left out
        self.assertEqual(second, {"n": "英語", "d": 5, "p": 5})

    def test_qr_payload_has_no_syllabus(self) -> None:
        payload = encode_share_payload(_sample(), for_qr=True)
        self.assertNotIn("s", payload["data"][0])

    def test_qr_limit(self) -> None:
        courses = [Course(id=str(i), name=f"C{i}", day=Day.MON, period=1) for i in range(QR_COURSE_LIMIT + 1)]
        with self.assertRaises(ShareLimitError):
            encode_share_payload(courses, for_qr=True)
        # text sharing has no limit
        self.assertEqual(len(encode_share_payload(courses)["data"]), QR_COURSE_LIMIT + 1)


class TestDecode(unittest.TestCase):
    def test_roundtrip_through_qr_text(self) -> None:
        counter = count(1)
        text = dumps_share_payload(_sample(), for_qr=True)
        decoded = decode_share_payload(text, id_factory=lambda: f"n{next(counter)}")

        self.assertEqual(len(decoded), 2)
        expected = _sample()[0]
        got = decoded[0]
        self.assertEqual(got.id, "n1")
        for attr in ("day", "period", "name", "room", "professor", "color", "code", "term"):
            self.assertEqual(getattr(got, attr), getattr(expected, attr), attr)
        self.assertIsNone(got.syllabus_url)

    def test_text_payload_keeps_syllabus(self) -> None:
        decoded = decode_share_payload(dumps_share_payload(_sample()))
        self.assertEqual(decoded[0].syllabus_url, "https://example.org/syllabus/2100010")

    def test_legacy_format(self) -> None:
        legacy = {"courses": [{"id": "keep-me", "name": "数学", "day": "Thu", "period": 4, "room": "101"}]}
        decoded = decode_share_payload(json.dumps(legacy))
        self.assertEqual(decoded[0].id, "keep-me")
        self.assertEqual((decoded[0].day, decoded[0].period, decoded[0].room), (Day.THU, 4, "101"))

    def test_invalid_json(self) -> None:
        with self.assertRaises(SharePayloadError):
            decode_share_payload("{not json")

    def test_unknown_shape(self) -> None:
        for bad in ({"foo": 1}, [1, 2], {"v": 1, "data": []}):
            with self.assertRaises(SharePayloadError):
                decode_share_payload(bad)

    def test_no_courses(self) -> None:
        with self.assertRaises(SharePayloadError):
            decode_share_payload({"v": 2, "data": []})

    def test_bad_entries_fail_the_whole_payload(self) -> None:
        with self.assertRaises(SharePayloadError):
            decode_share_payload({"v": 2, "data": [{"n": "ok", "d": 0, "p": 1}, {"n": "x", "d": 9, "p": 1}]})
        with self.assertRaises(SharePayloadError):
            decode_share_payload({"courses": [{"name": "x", "day": "Sun", "period": 1}]})


if __name__ == "__main__":
    unittest.main()
