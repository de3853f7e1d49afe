"""
Image recognition (local OCR or Gemini) behind a single lock.

Only one recognition may run at a time, app-wide. The lock is an object
passed in by the host rather than module state, and it is released on every
exit path (success, provider error, exhausted retries, cancellation).

A busy lock is an expected condition, not an error: the pipeline returns
None and the caller decides whether to retry or tell the user.

Gemini calls are retried on 429/503 with exponential backoff
(2, 4, 8 seconds + up to 1 s jitter); anything else is fatal.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import threading
from typing import Any, Awaitable, Callable, Dict, List, Optional

import requests

from mytimetable.errors import NoCoursesFoundError, VisionError, VisionRateLimitError
from mytimetable.model import COLORS, UNKNOWN_NAME, Course, new_course_id, parse_day
from mytimetable.parse import IdFactory, parse_raw_text_to_courses

LOG = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-2.5-flash"
RETRY_STATUS_CODES = (429, 503)
MAX_RETRIES = 3

VISION_PROMPT = """
Analyze this university timetable image (Grid Layout or List Layout) and extract course information into a JSON array.

Layout Notes:
- Columns usually represent Days: 月(Mon), 火(Tue), 水(Wed), 木(Thu), 金(Fri), 土(Sat).
- Rows usually represent Periods: 1, 2, 3, 4, 5, 6.
- If a cell contains multiple courses, include both.

For each course, identify:
- code: The course code (e.g. 7 digits like 2100010, usually at the top)
- name: Course name. If there are quarter terms like "Q1", "3Q", "(Q3)", put them as "[Q3] Name" at the BEGINNING.
- day: "Mon", "Tue", "Wed", "Thu", "Fri", or "Sat".
- period: 1 to 6.
- room: Room number or name (e.g. 2161, Gym, Lab)
- professor: Professor name (Japanese or English)

Return ONLY valid JSON.
Format:
[
  { "code": "...", "name": "[Q1] Math", "day": "Mon", "period": 1, "room": "...", "professor": "..." }
]
"""


# ---------------------------------------------------------------------------
# Lock
# ---------------------------------------------------------------------------


class VisionLock:
    """
    At most one recognition in flight. acquire() never blocks.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._busy = False

    def acquire(self) -> bool:
        with self._guard:
            if self._busy:
                return False
            self._busy = True
            return True

    def release(self) -> None:
        with self._guard:
            self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy


# ---------------------------------------------------------------------------
# Response mapping
# ---------------------------------------------------------------------------


def extract_json_array(text: str) -> List[Any]:
    """
    Return the first complete JSON array literal found in free text
    (models like to wrap JSON in prose or code fences).
    """
    decoder = json.JSONDecoder()
    idx = text.find("[")
    while idx != -1:
        try:
            value, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list):
            return value
        idx = text.find("[", idx + 1)
    raise VisionError("AI returned text but no JSON array was found")


def courses_from_vision_json(
    items: List[Any],
    id_factory: IdFactory = new_course_id,
    rng: Optional[random.Random] = None,
) -> List[Course]:
    """
    Map [{code, name, day, period, room, professor}] to candidates.
    Items without a usable day and period are dropped.
    """
    rng = rng or random.Random()
    color_index = rng.randrange(len(COLORS))
    courses: List[Course] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        day = parse_day(item.get("day"))
        try:
            period = int(item.get("period"))
        except (TypeError, ValueError):
            period = 0
        if day is None or period < 1:
            LOG.debug("dropping vision item without day/period: %r", item)
            continue

        courses.append(
            Course(
                id=id_factory(),
                name=str(item.get("name") or UNKNOWN_NAME),
                code=str(item.get("code") or ""),
                day=day,
                period=period,
                room=str(item.get("room") or ""),
                professor=str(item.get("professor") or ""),
                color=COLORS[color_index % len(COLORS)],
            )
        )
        color_index += 1
    return courses


# ---------------------------------------------------------------------------
# Gemini client
# ---------------------------------------------------------------------------


def _looks_like_api_key(api_key: Optional[str]) -> bool:
    return bool(api_key) and api_key != "YOUR_GEMINI_API_KEY" and len(api_key) >= 10


class GeminiVisionClient:
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = GEMINI_BASE_URL,
        session: Optional[requests.Session] = None,
        max_retries: int = MAX_RETRIES,
        timeout: float = 60.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        if not _looks_like_api_key(api_key):
            raise VisionError("Gemini API key is not configured (set GEMINI_API_KEY)")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.max_retries = max_retries
        self.timeout = timeout
        self._sleep = sleep
        self._jitter = jitter

    def _url(self) -> str:
        return f"{self.base_url}/{self.model}:generateContent"

    def _body(self, image_b64: str, mime_type: str) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": VISION_PROMPT},
                        {"inline_data": {"mime_type": mime_type, "data": image_b64}},
                    ]
                }
            ]
        }

    def _post(self, body: Dict[str, Any]) -> requests.Response:
        try:
            return self.session.post(
                self._url(),
                params={"key": self.api_key},
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise VisionError(f"Gemini request failed: {exc}") from exc

    async def generate(self, image_b64: str, mime_type: str = "image/jpeg") -> str:
        """
        Send the image with the timetable prompt and return the model's text.
        """
        body = self._body(image_b64, mime_type)
        attempt = 0
        while True:
            resp = await asyncio.to_thread(self._post, body)
            status = resp.status_code
            if 200 <= status < 300:
                break

            if status in RETRY_STATUS_CODES:
                if attempt >= self.max_retries:
                    LOG.error("Gemini still returns %s after %d retries", status, attempt)
                    raise VisionRateLimitError(status, attempt + 1)
                attempt += 1
                delay = 2**attempt + self._jitter()
                LOG.warning("Gemini returned %s, retry %d/%d in %.1fs", status, attempt, self.max_retries, delay)
                await self._sleep(delay)
                continue

            LOG.error("Gemini API error %s: %s", status, resp.text[:500])
            raise VisionError(f"Gemini API error {status}: {resp.text}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise VisionError(f"Invalid JSON from Gemini: {resp.text[:200]}") from exc

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text:
            raise VisionError("No response text from Gemini")
        return text

    async def recognize(
        self,
        image_b64: str,
        id_factory: IdFactory = new_course_id,
        rng: Optional[random.Random] = None,
        mime_type: str = "image/jpeg",
    ) -> List[Course]:
        text = await self.generate(image_b64, mime_type)
        try:
            items = extract_json_array(text)
        except VisionError:
            LOG.error("Gemini raw response without JSON array: %s", text[:500])
            raise
        return courses_from_vision_json(items, id_factory=id_factory, rng=rng)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class VisionPipeline:
    """
    Entry point for the host: every recognition goes through here so the
    shared lock covers both the local OCR and the Gemini path.
    """

    def __init__(
        self,
        lock: VisionLock,
        client: Optional[GeminiVisionClient] = None,
        id_factory: IdFactory = new_course_id,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.lock = lock
        self.client = client
        self.id_factory = id_factory
        self.rng = rng

    async def recognize_image(self, image_b64: str, mime_type: str = "image/jpeg") -> Optional[List[Course]]:
        """
        Gemini path. Returns None when another recognition is running.
        Raises VisionError / NoCoursesFoundError on failure.
        """
        if self.client is None:
            raise VisionError("No vision client configured")
        if not self.lock.acquire():
            LOG.info("vision busy, image request rejected")
            return None
        try:
            courses = await self.client.recognize(
                image_b64, id_factory=self.id_factory, rng=self.rng, mime_type=mime_type
            )
        finally:
            self.lock.release()
        if not courses:
            raise NoCoursesFoundError("No courses detected (AI)")
        return courses

    async def recognize_ocr(self, run_ocr: Callable[[], Awaitable[str]]) -> Optional[List[Course]]:
        """
        Local OCR path: run_ocr produces the text blob, which is then parsed.
        Returns None when another recognition is running.
        """
        if not self.lock.acquire():
            LOG.info("vision busy, OCR request rejected")
            return None
        try:
            text = await run_ocr()
        finally:
            self.lock.release()
        courses = parse_raw_text_to_courses(text, id_factory=self.id_factory, rng=self.rng)
        if not courses:
            raise NoCoursesFoundError("No courses detected (OCR)")
        return courses
