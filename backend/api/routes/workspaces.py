from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import get_workspace, require_admin
from schemas.workspace import (
    AvailabilityOut,
    CellStateOut,
    DraftOut,
    DraftPatch,
    EditOutcomeOut,
    OpenCellRequest,
    OpenRoutineRequest,
    WorkspaceOut,
)
from services.edit_session import EditSession, OutcomeStatus
from services.workspace import RoutineNotFoundError, RoutineWorkspace, workspaces


router = APIRouter()


def _workspace_out(workspace: RoutineWorkspace) -> WorkspaceOut:
    return WorkspaceOut(id=workspace.id, routine_ids=workspace.routine_ids)


def _session(workspace: RoutineWorkspace, routine_id: str) -> EditSession:
    try:
        return workspace.edit_session(routine_id)
    except RoutineNotFoundError:
        raise HTTPException(status_code=404, detail="ROUTINE_NOT_OPEN")


def _cell_state(session: EditSession) -> CellStateOut:
    cell = session.cell
    draft = session.draft
    return CellStateOut(
        routine_id=session.routine_id,
        state=session.state.value,
        day=cell[0].value if cell is not None else None,
        period=cell[1] if cell is not None else None,
        draft=DraftOut.from_draft(draft) if draft is not None else None,
    )


@router.post("/", response_model=WorkspaceOut)
def create_workspace(_admin=Depends(require_admin)) -> WorkspaceOut:
    return _workspace_out(workspaces.create())


@router.get("/{workspace_id}", response_model=WorkspaceOut)
def get_workspace_state(
    workspace: RoutineWorkspace = Depends(get_workspace),
    _admin=Depends(require_admin),
) -> WorkspaceOut:
    return _workspace_out(workspace)


@router.delete("/{workspace_id}")
def close_workspace(workspace_id: str, _admin=Depends(require_admin)) -> dict:
    if not workspaces.close(workspace_id):
        raise HTTPException(status_code=404, detail="WORKSPACE_NOT_FOUND")
    return {"ok": True}


@router.post("/{workspace_id}/routines", response_model=WorkspaceOut)
def open_routine(
    payload: OpenRoutineRequest,
    workspace: RoutineWorkspace = Depends(get_workspace),
    _admin=Depends(require_admin),
) -> WorkspaceOut:
    try:
        workspace.open_routine(payload.routine_id)
    except RoutineNotFoundError:
        raise HTTPException(status_code=404, detail="ROUTINE_NOT_FOUND")
    return _workspace_out(workspace)


@router.delete("/{workspace_id}/routines/{routine_id}", response_model=WorkspaceOut)
def close_routine(
    routine_id: str,
    workspace: RoutineWorkspace = Depends(get_workspace),
    _admin=Depends(require_admin),
) -> WorkspaceOut:
    workspace.close_routine(routine_id)
    return _workspace_out(workspace)


@router.get("/{workspace_id}/claims")
def get_claims(
    workspace: RoutineWorkspace = Depends(get_workspace),
    _admin=Depends(require_admin),
) -> dict[str, dict[str, list[str]]]:
    return workspace.claims()


@router.get("/{workspace_id}/availability", response_model=AvailabilityOut)
def get_availability(
    routine_id: str = Query(min_length=1),
    day: str = Query(min_length=1),
    period: int = Query(),
    teacher_id: str = Query(min_length=1),
    workspace: RoutineWorkspace = Depends(get_workspace),
    _admin=Depends(require_admin),
) -> AvailabilityOut:
    return AvailabilityOut(
        available=workspace.is_available(routine_id, day, period, teacher_id),
        conflicting_routine=workspace.conflicting_routine(routine_id, day, period, teacher_id),
    )


@router.get("/{workspace_id}/routines/{routine_id}/cell", response_model=CellStateOut)
def get_cell(
    routine_id: str,
    workspace: RoutineWorkspace = Depends(get_workspace),
    _admin=Depends(require_admin),
) -> CellStateOut:
    return _cell_state(_session(workspace, routine_id))


@router.post("/{workspace_id}/routines/{routine_id}/cell", response_model=EditOutcomeOut)
def open_cell(
    routine_id: str,
    payload: OpenCellRequest,
    workspace: RoutineWorkspace = Depends(get_workspace),
    _admin=Depends(require_admin),
) -> EditOutcomeOut:
    outcome = _session(workspace, routine_id).open(payload.day, payload.period)
    return EditOutcomeOut.from_outcome(outcome)


@router.patch("/{workspace_id}/routines/{routine_id}/cell/draft", response_model=EditOutcomeOut)
def update_draft(
    routine_id: str,
    payload: DraftPatch,
    workspace: RoutineWorkspace = Depends(get_workspace),
    _admin=Depends(require_admin),
) -> EditOutcomeOut:
    session = _session(workspace, routine_id)
    fields = payload.model_fields_set

    outcome = None
    if "subject_code" in fields:
        outcome = session.select_subject(payload.subject_code)
    if "teacher_id" in fields and (outcome is None or outcome.status is OutcomeStatus.OK):
        outcome = session.select_teacher(payload.teacher_id)
    if "room" in fields and (outcome is None or outcome.status is OutcomeStatus.OK):
        outcome = session.set_room(payload.room)

    if outcome is None:
        raise HTTPException(status_code=422, detail="EMPTY_DRAFT_PATCH")
    return EditOutcomeOut.from_outcome(outcome)


@router.post("/{workspace_id}/routines/{routine_id}/cell/commit", response_model=EditOutcomeOut)
def commit_cell(
    routine_id: str,
    workspace: RoutineWorkspace = Depends(get_workspace),
    _admin=Depends(require_admin),
) -> EditOutcomeOut:
    outcome = _session(workspace, routine_id).commit()
    return EditOutcomeOut.from_outcome(outcome)


@router.post("/{workspace_id}/routines/{routine_id}/cell/clear", response_model=EditOutcomeOut)
def clear_cell(
    routine_id: str,
    workspace: RoutineWorkspace = Depends(get_workspace),
    _admin=Depends(require_admin),
) -> EditOutcomeOut:
    outcome = _session(workspace, routine_id).clear()
    return EditOutcomeOut.from_outcome(outcome)


@router.delete("/{workspace_id}/routines/{routine_id}/cell", response_model=EditOutcomeOut)
def cancel_cell(
    routine_id: str,
    workspace: RoutineWorkspace = Depends(get_workspace),
    _admin=Depends(require_admin),
) -> EditOutcomeOut:
    outcome = _session(workspace, routine_id).cancel()
    return EditOutcomeOut.from_outcome(outcome)
