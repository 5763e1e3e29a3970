"""
Shared constants: data file names, document collections and catalog values.
"""

FILES_FILE = "files.json"
EXAM_WEEKS_FILE = "examWeeks.json"
EXAMS_FILE = "exams.json"
QUIZZES_FILE = "quizzes.json"
QUIZ_ATTEMPTS_FILE = "quizAttempts.json"
COUNTERS_FILE = "counters.json"

USERS_COLLECTION = "users"
FRIEND_REQUESTS_COLLECTION = "friendRequests"
FRIENDSHIPS_COLLECTION = "friendships"
STUDY_SCHEDULES_COLLECTION = "studySchedules"

DEFAULT_SUBJECTS = (
    "math",
    "physics",
    "chemistry",
    "biology",
    "arabic",
    "english",
    "computer-science",
)
DEFAULT_SEMESTERS = ("first", "second")

QUIZ_CODE_LENGTH = 8

STATUS_PENDING = "pending"
STATUS_ACCEPTED = "accepted"
STATUS_DECLINED = "declined"
