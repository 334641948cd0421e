from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id
from app.db.async_session import get_async_db
from app.schemas.snapshot import SnapshotCreate, SnapshotListResponse, SnapshotResponse
from app.services.action_plan_snapshot import AsyncSnapshotService

router = APIRouter()


@router.post("/", response_model=SnapshotResponse, status_code=status.HTTP_201_CREATED)
async def save_snapshot(
    snapshot_data: SnapshotCreate,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Save a read-only copy of a budget as it is now."""
    snapshot = await AsyncSnapshotService.save_snapshot(db=db, data=snapshot_data, user_id=user_id)
    if not snapshot:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Budget not found"
        )
    return snapshot


@router.get("/", response_model=SnapshotListResponse)
async def list_snapshots(
    lead_id: Optional[str] = Query(None, description="Only snapshots saved for this lead"),
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """List the current coach's saved snapshots, newest first."""
    return await AsyncSnapshotService.list_snapshots(db=db, user_id=user_id, lead_id=lead_id)


@router.get("/{snapshot_id}", response_model=SnapshotResponse)
async def get_snapshot(
    snapshot_id: str,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Get a saved snapshot by id."""
    snapshot = await AsyncSnapshotService.get_snapshot(db=db, snapshot_id=snapshot_id, user_id=user_id)
    if not snapshot:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Snapshot not found"
        )
    return snapshot


@router.delete("/{snapshot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_snapshot(
    snapshot_id: str,
    db: AsyncSession = Depends(get_async_db),
    user_id: str = Depends(get_current_user_id)
):
    """Delete a saved snapshot."""
    deleted = await AsyncSnapshotService.delete_snapshot(db=db, snapshot_id=snapshot_id, user_id=user_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Snapshot not found"
        )
