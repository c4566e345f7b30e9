"""FastAPI dependency injection factories.

The grade store is owned by the application (created in the lifespan
handler and kept on ``app.state``); endpoints receive it via
``Depends(get_grade_store)`` and tests override that dependency.
"""

from fastapi import HTTPException, Request

from src.store.grade_store import GradeStore


async def get_grade_store(request: Request) -> GradeStore:
    store = getattr(request.app.state, "grade_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Grade store is not initialised.")
    return store
