from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_counters_service, get_db
from app.schemas.common import ListResponse
from app.schemas.counters import CounterAllocation, CounterCreate, CounterRead

router = APIRouter()


@router.get("/counters", response_model=ListResponse[CounterRead], tags=["counters"])
def list_counters(
    search: str | None = None,
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    service=Depends(get_counters_service),
):
    return service.list_response(db, search, order_by, order_dir, limit, offset)


@router.post(
    "/counters",
    response_model=CounterRead,
    status_code=status.HTTP_201_CREATED,
    tags=["counters"],
)
def create_counter(payload: CounterCreate, db: Session = Depends(get_db), service=Depends(get_counters_service)):
    return service.create(db, payload)


@router.get("/counters/{name}", response_model=CounterRead, tags=["counters"])
def get_counter(name: str, db: Session = Depends(get_db), service=Depends(get_counters_service)):
    return service.get(db, name)


@router.post("/counters/{name}/allocate", response_model=CounterAllocation, tags=["counters"])
def allocate_counter_value(name: str, db: Session = Depends(get_db), service=Depends(get_counters_service)):
    return service.allocate(db, name)
