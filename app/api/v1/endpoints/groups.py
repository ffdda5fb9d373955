from fastapi import APIRouter, Depends

from app.api.deps import get_member_service
from app.schemas.member import GroupMembersResponse, MemberResponse
from app.services.member_service import MemberService

router = APIRouter()


@router.get("/{group_id}/members", response_model=GroupMembersResponse)
async def list_group_members(
    group_id: str,
    member_service: MemberService = Depends(get_member_service),
):
    """Registered members of a group, for the bill form's member picker"""
    members = await member_service.list_members(group_id)
    return GroupMembersResponse(
        members=[MemberResponse.model_validate(m) for m in members]
    )
