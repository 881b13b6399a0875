import os
import asyncio
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.batch.collection_batch import build_collection_container, start_collection_scheduler
from config.logging_config import configure_logging
from content.adapter.input.web.collection_router import collection_router

load_dotenv()
configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan 훅을 활용해 수집기 조립과 배치 태스크를 관리합니다.
    """
    # 키 풀/유스케이스는 여기서 한 번만 만들고 라우터와 스케줄러가 함께 사용합니다.
    container = build_collection_container()
    app.state.collection = container
    app.state.last_result = None
    app.state.collection_task = asyncio.create_task(start_collection_scheduler(container))
    try:
        yield
    finally:
        task = getattr(app.state, "collection_task", None)
        if task:
            task.cancel()


app = FastAPI(title="Political Shorts Tracker", version="0.1.0", lifespan=lifespan)

origins_env = os.getenv("CORS_ORIGINS")
origins = [origin for origin in origins_env.split(",") if origin] if origins_env else ["http://localhost:3000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(collection_router, prefix="/collection")

@app.get("/health")
def health_check() -> dict[str, str]:
    """
    헬스체크 엔드포인트입니다.
    """
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("APP_HOST", "0.0.0.0")
    port = int(os.getenv("APP_PORT", "8000"))
    uvicorn.run(app, host=host, port=port)
