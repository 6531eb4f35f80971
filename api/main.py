from __future__ import annotations

import logging
import math
from dataclasses import asdict
from functools import lru_cache
from typing import Literal

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import AdminRowModel, FilterCriteriaModel, WorkItemModel
from worklog.config import Settings, load_settings
from worklog.filters import FilterCriteria, normalize_criteria
from worklog.records import ChoiceError
from worklog.reference import ADMIN_SHEETS, User
from worklog.store import RecordStore, StoreError, load_records, make_store
from worklog.views import compute_dashboard, compute_records_view, export_frame


logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def get_store() -> RecordStore:
    return make_store(get_settings())


app = FastAPI(title="Work Log KPI API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _criteria_from_model(model: FilterCriteriaModel) -> FilterCriteria:
    return normalize_criteria(model.model_dump())


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _store_error(exc: StoreError) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={"error": str(exc), "type": type(exc).__name__, "retryable": exc.retryable},
    )


def _resolve_user(store: RecordStore, user_id: str) -> User:
    user = next((u for u in store.get_users() if u.id == user_id), None)
    if user is None:
        raise HTTPException(status_code=404, detail=f"Unknown user: {user_id}")
    return user


def _require_admin(store: RecordStore, user_id: str) -> User:
    user = _resolve_user(store, user_id)
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required")
    return user


def _check_sheet(sheet: str) -> None:
    if sheet not in ADMIN_SHEETS:
        raise HTTPException(status_code=404, detail=f"Unknown admin sheet: {sheet}")


@app.get("/meta/users")
def meta_users(store: RecordStore = Depends(get_store)):
    try:
        return _json({"users": [asdict(u) for u in store.get_users()]})
    except StoreError as exc:
        return _store_error(exc)
    except Exception as exc:
        logger.exception("meta_users failed")
        return _error(exc)


@app.get("/meta/options")
def meta_options(store: RecordStore = Depends(get_store)):
    try:
        return _json(asdict(store.get_form_options()))
    except StoreError as exc:
        return _store_error(exc)
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


@app.post("/records")
def records(
    criteria: FilterCriteriaModel,
    user_id: str = Query(...),
    sort_key: str = Query(default="question_date"),
    direction: Literal["asc", "desc"] = Query(default="desc"),
    store: RecordStore = Depends(get_store),
):
    try:
        user = _resolve_user(store, user_id)
        recs = load_records(store, user)
        payload = compute_records_view(
            recs, _criteria_from_model(criteria), sort_key=sort_key, direction=direction, tz=get_settings().timezone
        )
        return _json(payload)
    except HTTPException:
        raise
    except StoreError as exc:
        return _store_error(exc)
    except Exception as exc:
        logger.exception("records failed")
        return _error(exc)


@app.post("/records/submit")
def submit_record(item: WorkItemModel, user_id: str = Query(...), store: RecordStore = Depends(get_store)):
    try:
        user = _resolve_user(store, user_id)
        store.append_record(item.to_record(user.name))
        return _json({"status": "ok"})
    except HTTPException:
        raise
    except ChoiceError as exc:
        return _error(exc, status_code=422)
    except StoreError as exc:
        return _store_error(exc)
    except Exception as exc:
        logger.exception("submit_record failed")
        return _error(exc)


@app.put("/records/{row_index}")
def update_record(row_index: int, item: WorkItemModel, user_id: str = Query(...), store: RecordStore = Depends(get_store)):
    try:
        user = _resolve_user(store, user_id)
        store.update_record(row_index, item.to_record(user.name, row_index=row_index))
        return _json({"status": "ok"})
    except HTTPException:
        raise
    except ChoiceError as exc:
        return _error(exc, status_code=422)
    except StoreError as exc:
        return _store_error(exc)
    except Exception as exc:
        logger.exception("update_record failed")
        return _error(exc)


@app.post("/dashboard")
def dashboard(criteria: FilterCriteriaModel, user_id: str = Query(...), store: RecordStore = Depends(get_store)):
    try:
        user = _resolve_user(store, user_id)
        recs = load_records(store, user)
        return _json(compute_dashboard(recs, _criteria_from_model(criteria), tz=get_settings().timezone))
    except HTTPException:
        raise
    except StoreError as exc:
        return _store_error(exc)
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(exc)


@app.get("/admin/{sheet}")
def admin_sheet(sheet: str, user_id: str = Query(...), store: RecordStore = Depends(get_store)):
    try:
        _check_sheet(sheet)
        _require_admin(store, user_id)
        return _json(store.get_admin_sheet(sheet).to_dict())
    except HTTPException:
        raise
    except StoreError as exc:
        return _store_error(exc)
    except Exception as exc:
        logger.exception("admin_sheet failed")
        return _error(exc)


@app.post("/admin/{sheet}")
def admin_add(sheet: str, row: AdminRowModel, user_id: str = Query(...), store: RecordStore = Depends(get_store)):
    try:
        _check_sheet(sheet)
        _require_admin(store, user_id)
        store.add_admin_row(sheet, row.values, row.headers)
        return _json({"status": "ok"})
    except HTTPException:
        raise
    except StoreError as exc:
        return _store_error(exc)
    except Exception as exc:
        logger.exception("admin_add failed")
        return _error(exc)


@app.put("/admin/{sheet}/{row_index}")
def admin_save(sheet: str, row_index: int, row: AdminRowModel, user_id: str = Query(...), store: RecordStore = Depends(get_store)):
    try:
        _check_sheet(sheet)
        _require_admin(store, user_id)
        store.save_admin_row(sheet, row_index, row.values, row.headers)
        return _json({"status": "ok"})
    except HTTPException:
        raise
    except StoreError as exc:
        return _store_error(exc)
    except Exception as exc:
        logger.exception("admin_save failed")
        return _error(exc)


@app.delete("/admin/{sheet}/{row_index}")
def admin_delete(sheet: str, row_index: int, user_id: str = Query(...), store: RecordStore = Depends(get_store)):
    try:
        _check_sheet(sheet)
        _require_admin(store, user_id)
        store.delete_admin_row(sheet, row_index)
        return _json({"status": "ok"})
    except HTTPException:
        raise
    except StoreError as exc:
        return _store_error(exc)
    except Exception as exc:
        logger.exception("admin_delete failed")
        return _error(exc)


@app.post("/export/records")
def export_records(criteria: FilterCriteriaModel, user_id: str = Query(...), store: RecordStore = Depends(get_store)):
    try:
        user = _resolve_user(store, user_id)
        recs = load_records(store, user)
    except HTTPException:
        raise
    except StoreError as exc:
        return _store_error(exc)
    export_df = export_frame(recs, _criteria_from_model(criteria), tz=get_settings().timezone)
    csv_bytes = export_df.to_csv(index=False).encode("utf-8-sig")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=records.csv"})
