"""
main.py — QuizMaster API 서버 진입점
"""

import logging
import os
import sys

# ── 패키지 경로 설정 (반드시 최상단) ──────────────────────────────────────────
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

from config import BACKEND, DEFAULT_HOST, DEFAULT_PORT, LOG_FILE

# ── 로깅 설정 ────────────────────────────────────────────────────────────────

def setup_logging(level: int = logging.INFO) -> None:
    try:
        logging.basicConfig(
            level=level,
            format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            handlers=[
                logging.FileHandler(LOG_FILE, encoding='utf-8'),
                logging.StreamHandler(sys.stdout)
            ]
        )
    except PermissionError:
        # 로그 파일 점유 시 콘솔 출력만 사용
        logging.basicConfig(level=level)


logger = logging.getLogger(__name__)

# ── 메인 실행 ────────────────────────────────────────────────────────────────

def main() -> None:
    setup_logging()
    logger.info(f"=== QuizMaster Started (backend={BACKEND}) ===")

    import uvicorn
    from api.app import create_app

    app = create_app()
    try:
        uvicorn.run(app, host=DEFAULT_HOST, port=DEFAULT_PORT, log_level="info")
    except KeyboardInterrupt:
        logger.info("사용자에 의해 종료되었습니다.")


if __name__ == "__main__":
    main()
