"""
MyTimetable: timetable recognition (OCR text / Gemini vision), period
times and course merging for a personal class schedule.
"""
