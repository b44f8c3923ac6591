"""
Application constants
"""

# Todoist
TODOIST_TASK_URL = "https://app.todoist.com/app/task/{task_id}"
TODOIST_TASK_APP_URI = "todoist://task?id={task_id}"
ACTIVITY_EVENTS_LIMIT = 100

# Task defaults
TASK_DEFAULT_PRIORITY = 1  # 1: Normal ... 4: Urgent
MAX_DURATION_MINUTES = 1440
DURATION_UNIT_MINUTE = "minute"

# In-text keywords
DUE_DATE_KEYWORDS = ["🗓️", "📅", "📆", "🗓"]
DUE_DATE_ALTERNATIVE_KEYWORDS = ["@"]
DUE_TIME_KEYWORDS = ["⏰", "⏲"]
DUE_TIME_ALTERNATIVE_KEYWORDS = ["$"]
DURATION_KEYWORDS = ["⏳"]
DURATION_ALTERNATIVE_KEYWORDS = ["&"]
DEFAULT_DUE_DATE_KEYWORD = "📅"
DEFAULT_DUE_TIME_KEYWORD = "⏰"
MISSING_FLAG_STYLE = "background: #FF5582A6;"

# Remote due times at the end of day mean "no time"
END_OF_DAY_TIME = "23:59:59"

# Retry configuration
MAX_RETRIES = 3
RETRY_DELAY = 1  # seconds

# Sync lock
LOCK_MAX_ATTEMPTS = 10
LOCK_RETRY_INTERVAL = 1  # seconds

# Logging
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
