# reservation_engine/api/dependencies.py

from fastapi import Request

from reservation_engine.context import EngineContext


def get_context(request: Request) -> EngineContext:
    return request.app.state.context


def get_db(request: Request):
    db = get_context(request).session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
