import os
import urllib.parse

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

load_dotenv()


def build_database_url() -> str:
    """
    SNAPSHOT_DATABASE_URL 이 있으면 그대로 쓰고, SQL_HOST 가 있으면 SQL_* 값으로
    PostgreSQL URL 을 만든다. 둘 다 없으면 로컬 SQLite 파일을 사용한다.
    """
    explicit = os.getenv("SNAPSHOT_DATABASE_URL")
    if explicit:
        return explicit
    if os.getenv("SQL_HOST"):
        password = urllib.parse.quote_plus(os.getenv("SQL_PASSWORD", ""))
        return (
            f"postgresql+psycopg2://{os.getenv('SQL_USER', 'postgres')}:{password}"
            f"@{os.getenv('SQL_HOST')}:{os.getenv('SQL_PORT', '5432')}/{os.getenv('SQL_DATABASE', 'yt_tracker')}"
        )
    return f"sqlite:///{os.getenv('SNAPSHOT_DIR', 'data')}/snapshots.db"


Base = declarative_base()


def create_session_factory(database_url: str | None = None):
    url = database_url or build_database_url()
    engine = create_engine(
        url,
        echo=os.getenv("SQL_ECHO", "false").lower() == "true",
        pool_pre_ping=True,
    )
    return sessionmaker(autocommit=False, autoflush=False, bind=engine), engine


def init_db_schema(engine) -> None:
    """
    스냅샷 테이블이 없을 경우를 대비해 스키마를 생성합니다.
    """
    # ORM 모델이 Base.metadata 에 등록되도록 import 한다.
    import content.infrastructure.orm.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
