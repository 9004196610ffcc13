from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError

from ..auth import require_token
from ..cache import ListingCache
from ..errors import BadRequestError, NotFoundError, StoreError
from ..repositories import MAX_ROW_ID, ListQuery, Repository
from ..schemas import ErrorOut, MessageOut, TodoIn, TodoInList, TodoOut

logger = logging.getLogger(__name__)

# Every route here requires a token. Router dependencies run in order before
# the handler; any of them can end the request by raising.
router = APIRouter(
    tags=["todos"],
    dependencies=[Depends(require_token)],
    responses={401: {"model": ErrorOut, "description": "Missing, invalid or expired token"}},
)

_NOT_FOUND = "Todo not found"


def _body_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"requestBody": {"required": True, "content": {"application/json": {"schema": schema}}}}


def _get_repo(request: Request) -> Repository:
    return request.app.state.repository


def _get_cache(request: Request) -> ListingCache:
    return request.app.state.cache


async def _raw_body(request: Request) -> bytes:
    """
    Body bytes, parsed by the handlers themselves so that authentication and
    record lookup happen before payload validation.
    """
    return await request.body()


def _invalid_payload(exc: ValidationError) -> BadRequestError:
    errors = exc.errors(include_url=False)
    message = errors[0]["msg"] if errors else "Invalid request body"
    return BadRequestError(message, detail=jsonable_encoder(errors))


def _parse_todo(raw: bytes) -> TodoIn:
    try:
        return TodoIn.model_validate_json(raw)
    except ValidationError as exc:
        raise _invalid_payload(exc) from exc


def _parse_todo_id(todo_id: str) -> int:
    # Non-numeric or out-of-range ids cannot name a record.
    try:
        value = int(todo_id)
    except ValueError:
        raise NotFoundError(_NOT_FOUND) from None
    if not 0 <= value <= MAX_ROW_ID:
        raise NotFoundError(_NOT_FOUND)
    return value


def _written(request: Request) -> None:
    if request.app.state.invalidate_on_write:
        _get_cache(request).evict()


def _out(records) -> List[TodoOut]:
    return [TodoOut.from_record(r) for r in records]


# PUBLIC_INTERFACE
@router.post(
    "/todos",
    response_model=TodoOut,
    summary="Create Todo",
    description="Create a new Todo item from `{title, description}` and return the persisted record.",
    openapi_extra=_body_schema(TodoIn.model_json_schema()),
    responses={400: {"model": ErrorOut, "description": "Body is not a valid todo payload"}},
)
def create_todo(
    request: Request,
    raw: bytes = Depends(_raw_body),
    repo: Repository = Depends(_get_repo),
) -> TodoOut:
    """
    Create a new Todo. Client-supplied ids and timestamps are ignored.
    """
    payload = _parse_todo(raw)
    created = repo.create(payload)
    _written(request)
    logger.info("Created todo %s", created.id)
    return TodoOut.from_record(created)


# PUBLIC_INTERFACE
@router.get(
    "/todos",
    response_model=List[TodoOut],
    summary="List Todos",
    description="Return every todo that has not been deleted.",
)
def list_todos(repo: Repository = Depends(_get_repo)) -> List[TodoOut]:
    return _out(repo.list())


# PUBLIC_INTERFACE
@router.get(
    "/todos/{todo_id}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={404: {"model": ErrorOut, "description": "Todo not found"}},
)
def get_todo(todo_id: str, repo: Repository = Depends(_get_repo)) -> TodoOut:
    """
    Retrieve a single Todo item by its ID.
    """
    item = repo.get(_parse_todo_id(todo_id))
    if item is None:
        raise NotFoundError(_NOT_FOUND)
    return TodoOut.from_record(item)


# PUBLIC_INTERFACE
@router.put(
    "/todos/{todo_id}",
    response_model=TodoOut,
    summary="Replace Todo",
    description=(
        "Replace title and description of an existing Todo. Omitted fields become empty strings. "
        "The id and creation timestamp are kept; updated_at is refreshed."
    ),
    openapi_extra=_body_schema(TodoIn.model_json_schema()),
    responses={
        400: {"model": ErrorOut, "description": "Body is not a valid todo payload"},
        404: {"model": ErrorOut, "description": "Todo not found"},
    },
)
def update_todo(
    todo_id: str,
    request: Request,
    raw: bytes = Depends(_raw_body),
    repo: Repository = Depends(_get_repo),
) -> TodoOut:
    """
    The record is looked up before the body is parsed, so an unknown id is a
    404 whatever the payload.
    """
    tid = _parse_todo_id(todo_id)
    if repo.get(tid) is None:
        raise NotFoundError(_NOT_FOUND)

    payload = _parse_todo(raw)
    updated = repo.update(tid, payload)
    if updated is None:
        # Deleted between the lookup and the write.
        raise NotFoundError(_NOT_FOUND)
    _written(request)
    logger.info("Updated todo %s", tid)
    return TodoOut.from_record(updated)


# PUBLIC_INTERFACE
@router.delete(
    "/todos/{todo_id}",
    response_model=MessageOut,
    summary="Delete Todo",
    description="Soft-delete a Todo item. It disappears from every read afterwards.",
    responses={404: {"model": ErrorOut, "description": "Todo not found"}},
)
def delete_todo(todo_id: str, request: Request, repo: Repository = Depends(_get_repo)) -> MessageOut:
    tid = _parse_todo_id(todo_id)
    if not repo.delete(tid):
        raise NotFoundError(_NOT_FOUND)
    _written(request)
    logger.info("Deleted todo %s", tid)
    return MessageOut(message="Todo deleted successfully")


# PUBLIC_INTERFACE
@router.get(
    "/manytodos",
    response_model=List[TodoOut],
    summary="List Todos (paginated)",
    description=(
        "Return up to `count` todos starting at `offset`, in store order. "
        "Order is not guaranteed to be stable across store implementations."
    ),
    responses={400: {"model": ErrorOut, "description": "count or offset is not a non-negative integer"}},
)
def list_todos_page(
    count: int = Query(5, ge=0, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    repo: Repository = Depends(_get_repo),
) -> List[TodoOut]:
    return _out(repo.list(ListQuery(limit=count, offset=offset)))


# PUBLIC_INTERFACE
@router.post(
    "/manytodos",
    response_model=List[TodoOut],
    summary="Create Todos (batch)",
    description=(
        "Create every todo in the array inside one transaction. If any insert fails nothing is "
        "persisted and the store error is returned. On success the persisted records are returned."
    ),
    openapi_extra=_body_schema({"type": "array", "items": TodoIn.model_json_schema()}),
    responses={400: {"model": ErrorOut, "description": "Body is not an array of todos, or the transaction failed"}},
)
def create_todos(
    request: Request,
    raw: bytes = Depends(_raw_body),
    repo: Repository = Depends(_get_repo),
) -> List[TodoOut]:
    try:
        payloads = TodoInList.validate_json(raw)
    except ValidationError as exc:
        raise _invalid_payload(exc) from exc

    try:
        created = repo.create_many(payloads)
    except StoreError as exc:
        raise BadRequestError(str(exc)) from exc
    _written(request)
    logger.info("Created %d todos in one transaction", len(created))
    return _out(created)


# PUBLIC_INTERFACE
@router.get(
    "/cached-todos",
    response_model=List[TodoOut],
    summary="List Todos (cached)",
    description=(
        "Same as GET /todos, served from a snapshot cached for a fixed TTL. "
        "Writes do not refresh the snapshot, so it can be stale until it expires."
    ),
)
def list_todos_cached(
    repo: Repository = Depends(_get_repo),
    cache: ListingCache = Depends(_get_cache),
) -> List[TodoOut]:
    return _out(cache.get_or_load(repo.list))
