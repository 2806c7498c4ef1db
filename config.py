import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
LOG_FILE = os.getenv("QUIZMASTER_LOG_FILE", os.path.join(BASE_DIR, "quizmaster.log"))

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))
SESSION_TTL = int(os.getenv("QUIZMASTER_SESSION_TTL", "3600"))   # 1시간
SESSION_CLEANUP_INTERVAL = 300                                    # 5분

# 백엔드 설정 ("memory" | "supabase")
BACKEND = os.getenv("QUIZMASTER_BACKEND", "memory").strip().lower()
SUPABASE_URL = os.getenv("SUPABASE_URL", "").strip()
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "").strip()
PLACEHOLDER_SUPABASE_URL = "https://placeholder.supabase.co"
PLACEHOLDER_SUPABASE_KEY = "placeholder-key"
REQUEST_TIMEOUT = float(os.getenv("QUIZMASTER_REQUEST_TIMEOUT", "10.0"))

# 타이머 설정 (초)
TICK_SECONDS = 1.0
DEFAULT_SECONDS_PER_QUESTION = 30
LOW_TIME_WARNING_SECONDS = 60

# 자동 제출 안전장치 (초)
BACKUP_INTERVAL = 30          # 주기적 백업 제출
FORCE_SUBMIT_BUFFER = 30      # 만료 몇 초 전에 강제 제출할지
MIN_SUBMIT_INTERVAL = 5       # 자동 제출 간 최소 간격

# 화면 문구
RESULTS_PATH = "/results/{test_id}"
UNLOAD_WARNING = "Your test progress may be lost if you leave this page."
