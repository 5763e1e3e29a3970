"""
Student portal backend.

A FastAPI service for shared course files, exam schedules, quizzes and the
friends/study-schedule features. Records live in a flat JSON-file store,
social documents in a document database and uploads on an object-storage
media host; every backend has an in-memory counterpart for local runs and
tests.
"""
