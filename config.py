import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
STATIC_DIR = os.path.join(BASE_DIR, "static")
LOG_FILE = os.getenv("LOG_FILE", os.path.join(BASE_DIR, "launch.log"))

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))
SESSION_TTL = int(os.getenv("SESSION_TTL", "3600"))   # 쿠키 세션 유지 시간 (초)

# 백엔드 API 설정
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000")
API_TOKEN = os.getenv("API_TOKEN", "")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "15.0"))
FETCH_MAX_RETRIES = int(os.getenv("FETCH_MAX_RETRIES", "3"))   # 초기 문제 로딩만 재시도
SYNC_WORKERS = int(os.getenv("SYNC_WORKERS", "4"))             # 북마크/진행 동기화 스레드 수

# 진행 상태 저장
SNAPSHOT_DIR = os.getenv("SNAPSHOT_DIR", os.path.join(BASE_DIR, "instance", "progress"))  # 빈 값이면 인메모리
ALLOW_RESUBMIT = os.getenv("ALLOW_RESUBMIT", "1") == "1"    # 0이면 첫 제출 결과만 유지
