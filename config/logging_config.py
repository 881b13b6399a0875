import logging
import os
import sys


def configure_logging(level: str | None = None) -> None:
    """LOG_LEVEL 환경변수(기본 INFO)에 맞춰 루트 로거를 설정한다."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    # googleapiclient 의 discovery 캐시 경고는 수집 로그를 가리므로 낮춘다.
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)
