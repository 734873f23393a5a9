"""
api/routes/v1/works.py -- Canonical work records.

Routes:
  POST   /works             -- create a work (admin only) -> 201 {work}
  GET    /works             -- list works (any authenticated user)
  GET    /works/{work_id}   -- one work (any authenticated user)
  DELETE /works/{work_id}   -- delete a work and every library entry for it (admin only)

Works are shared: many users may shelve the same one, so only admins create
or delete them. The stored title/composer are returned as-is; catalog
enrichment happens on the user library read, not here.
"""

from fastapi import APIRouter, Depends, Request

from api.models import WorkCreate, WorkDeletedEnvelope, WorkEnvelope, WorkListEnvelope, WorkResponse
from auth.dependencies import get_current_identity, require_admin
from library.manager import LibraryManager

router = APIRouter(dependencies=[Depends(get_current_identity)])


@router.post("/works", response_model=WorkEnvelope, status_code=201, dependencies=[Depends(require_admin)])
def create_work(request: Request, body: WorkCreate) -> WorkEnvelope:
    manager: LibraryManager = request.app.state.library
    work = manager.create_work(external_id=body.external_id, title=body.title, composer=body.composer)
    return WorkEnvelope(work=WorkResponse.from_work(work))


@router.get("/works", response_model=WorkListEnvelope)
def list_works(request: Request) -> WorkListEnvelope:
    manager: LibraryManager = request.app.state.library
    return WorkListEnvelope(works=[WorkResponse.from_work(w) for w in manager.list_works()])


@router.get("/works/{work_id}", response_model=WorkEnvelope)
def get_work(request: Request, work_id: int) -> WorkEnvelope:
    manager: LibraryManager = request.app.state.library
    return WorkEnvelope(work=WorkResponse.from_work(manager.get_work(work_id)))


@router.delete("/works/{work_id}", response_model=WorkDeletedEnvelope, dependencies=[Depends(require_admin)])
def delete_work(request: Request, work_id: int) -> WorkDeletedEnvelope:
    manager: LibraryManager = request.app.state.library
    manager.delete_work(work_id)
    return WorkDeletedEnvelope(deleted=work_id)
