"""
Workflows Package

User-facing operations that are not balance-affecting: accounts and
membership, friends and chat, identity, admin tools.
"""

from family_finance.workflows.admin import AdminService, UserActivity
from family_finance.workflows.friends import ChatService, ConversationFeed, FriendWorkflow
from family_finance.workflows.identity import IdentityService
from family_finance.workflows.membership import MembershipWorkflow

__all__ = [
    "AdminService",
    "ChatService",
    "ConversationFeed",
    "FriendWorkflow",
    "IdentityService",
    "MembershipWorkflow",
    "UserActivity",
]
