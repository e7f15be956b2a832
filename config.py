import os
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).parent / ".env")


# ---------------------------------------------------------------------------
# Environment-driven settings
# ---------------------------------------------------------------------------
ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
MODEL: str = os.getenv("WRONGBOOK_MODEL", "claude-sonnet-4-5-20250929")
DATABASE_URL: str = os.getenv("DATABASE_URL", "")
DATA_DIR: Path = Path(os.getenv("WRONGBOOK_DATA_DIR", str(Path(__file__).parent / "data")))
LOG_LEVEL: str = os.getenv("WRONGBOOK_LOG_LEVEL", "INFO").upper()
LOG_FILE: str = os.getenv("WRONGBOOK_LOG_FILE", str(DATA_DIR / "wrongbook.log"))

# ---------------------------------------------------------------------------
# Exam structure constants
# ---------------------------------------------------------------------------
SUBJECT_CATEGORIES: Dict[str, List[str]] = {
    "职测": ["言语理解与表达", "数量关系", "判断推理", "资料分析", "常识判断"],
    "综应": ["综合应用-案例分析", "综合应用-文书写作"],
}

# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------
STORAGE_KEY = "sd_exam_wrong_questions_v1"
CORRUPT_BACKUP_SUFFIX = ".corrupt"

# ---------------------------------------------------------------------------
# Review periods
# ---------------------------------------------------------------------------
FIRST_HALF_LAST_DAY = 15     # days 1-15 are the first half of a month
FIRST_HALF_LABEL = "上半月"
SECOND_HALF_LABEL = "下半月"

# ---------------------------------------------------------------------------
# AI analysis
# ---------------------------------------------------------------------------
RATE_LIMIT_SECONDS = 1.0     # min delay between API calls
MAX_RETRIES = 3              # retries on transient API errors
MAX_TOKENS = 4096            # max tokens for an analysis response
DEFAULT_MEDIA_TYPE = "image/jpeg"
ROOT_CAUSE_SUGGESTION_PREFIX = "💡 🚀 改进方案："
