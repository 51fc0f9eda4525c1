# ahamai/tools/user_knowledge.py
import asyncio
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .. import database
from .base import Tool, ToolContext, error_message, utc_now_iso

logger = logging.getLogger(__name__)

RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90}

ENGAGEMENT_LEVELS = [
    (3.0, "Very High", "Power User 🚀"),
    (1.5, "High", "Active User 🔥"),
    (0.5, "Medium", "Regular User 📈"),
]


class UserKnowledgeArgs(BaseModel):
    include_details: bool = Field(default=True, description="Include detailed breakdown of activity")
    time_range: Literal["7d", "30d", "90d", "all"] = Field(default="all", description="Time range for analytics")
    include_chats: bool = Field(default=True, description="Include recent chat summaries")


DESCRIPTION = """Get user analytics and insights: chat history, tool usage, activity patterns
and personalized statistics about the user's interaction with the assistant."""


def _parse(ts: str) -> datetime:
    parsed = datetime.fromisoformat(ts)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def time_slot(hour: int) -> str:
    if hour < 6:
        return "Night (12-6 AM)"
    if hour < 12:
        return "Morning (6 AM-12 PM)"
    if hour < 18:
        return "Afternoon (12-6 PM)"
    return "Evening (6 PM-12 AM)"


def engagement_level(chats_per_day: float) -> Dict[str, str]:
    for threshold, level, description in ENGAGEMENT_LEVELS:
        if chats_per_day >= threshold:
            return {"level": level, "description": description}
    if chats_per_day > 0:
        return {"level": "Low", "description": "Casual User 🌱"}
    return {"level": "New", "description": "Getting Started 👋"}


def top_insight(total_chats: int, avg_messages: int) -> str:
    if total_chats == 0:
        return "Welcome to AhamAI! Start your first conversation to begin building your knowledge base."
    if total_chats < 5:
        return "You're getting started! Try exploring different tools to enhance your productivity."
    if avg_messages > 10:
        return "You have deep conversations! Your chats tend to be comprehensive and detailed."
    return "You're an efficient communicator! You get straight to the point in your interactions."


def recommendations(total_chats: int, pinned: int, avg_messages: int, tools_used: int,
                    chats_per_day: float, account_age: int) -> List[str]:
    recs = []
    if total_chats > 10 and pinned == 0:
        recs.append("Consider pinning important chats for quick access")
    if avg_messages < 3:
        recs.append("Try asking follow-up questions to get more detailed responses")
    if tools_used < 5:
        recs.append("Explore more tools like stock analysis, crypto tracking, and diagrams")
    if chats_per_day < 0.5 and account_age > 7:
        recs.append("Regular usage can help you get more value from your AI assistant")
    return recs


def _busiest(counts: Dict[str, int], default: str) -> str:
    return max(counts.items(), key=lambda kv: kv[1])[0] if counts else default


def build_report(user_id: str, time_range: str = "all", include_details: bool = True,
                 include_chats: bool = True, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Analytics for one user from the local store. Unknown users yield success=False."""
    now = now or datetime.now(timezone.utc)
    profile = database.get_user_profile(user_id)
    if not profile:
        return {"success": False, "error": f"Unknown user: {user_id}", "data": None}

    since = (now - timedelta(days=RANGE_DAYS[time_range])).isoformat() if time_range in RANGE_DAYS else None
    sessions = database.list_user_sessions(user_id, since=since)
    pinned = database.count_pinned_sessions(user_id)
    tool_usage = database.get_tool_usage(user_id)
    tools_used = sum(tool_usage.values())

    created = [_parse(s["created_at"]) for s in sessions]
    activity_by_day = dict(Counter(ts.strftime("%A") for ts in created))
    activity_by_hour = dict(Counter(time_slot(ts.hour) for ts in created))

    total_chats = len(sessions)
    total_messages = sum(s["message_count"] for s in sessions)
    avg_messages = round(total_messages / total_chats) if total_chats else 0
    longest = max(sessions, key=lambda s: s["message_count"], default=None)

    account_age = (now - _parse(profile["created_at"])).days
    chats_per_day = round(total_chats / account_age, 1) if account_age > 0 else 0
    messages_per_day = round(total_messages / account_age, 1) if account_age > 0 else 0

    recent = [
        {
            "id": s["id"],
            "title": s["title"],
            "createdAt": s["created_at"],
            "messageCount": s["message_count"],
            "isPinned": s["is_pinned"],
            "lastMessage": (s["last_message"][:100] + "...") if s["last_message"] else "No messages",
        }
        for s in sessions[:5]
    ]

    return {
        "success": True,
        "error": None,
        "data": {
            "user": {
                "id": user_id,
                "name": profile["name"] or "Unknown",
                "joinedAt": profile["created_at"],
                "accountAge": f"{account_age} days",
                "lastActive": database.get_last_active(user_id) or "Unknown",
            },
            "overview": {
                "totalChats": total_chats,
                "totalMessages": total_messages,
                "pinnedChats": pinned,
                "totalToolsUsed": tools_used,
                "averageMessagesPerChat": avg_messages,
                "engagement": engagement_level(chats_per_day),
            },
            "productivity": {
                "chatsPerDay": chats_per_day,
                "messagesPerDay": messages_per_day,
                "longestChat": (
                    {"title": longest["title"], "messageCount": longest["message_count"]}
                    if longest and longest["message_count"] > 0 else None
                ),
                "mostActiveDay": _busiest(activity_by_day, "None"),
                "preferredTimeSlot": _busiest(activity_by_hour, "Unknown"),
            },
            "patterns": {
                "activityByDay": activity_by_day,
                "activityByHour": activity_by_hour,
                "toolUsage": tool_usage,
                "favoriteTools": list(tool_usage)[:3],
            } if include_details else None,
            "recentActivity": {
                "recentChats": recent,
                "summary": f"{len(recent)} recent chats in the last {time_range}",
            } if include_chats else None,
            "insights": {
                "topInsight": top_insight(total_chats, avg_messages),
                "recommendations": recommendations(
                    total_chats, pinned, avg_messages, tools_used, chats_per_day, account_age),
            },
            "timeRange": time_range,
            "generatedAt": utc_now_iso(),
        },
    }


async def execute(args: UserKnowledgeArgs, ctx: ToolContext) -> Dict[str, Any]:
    try:
        return await asyncio.to_thread(
            build_report, ctx.user_id, args.time_range, args.include_details, args.include_chats)
    except Exception as e:
        logger.warning("User knowledge tool error: %s", e)
        return {"success": False, "error": error_message(e), "data": None}


TOOL = Tool(name="user_knowledge", description=DESCRIPTION, args_model=UserKnowledgeArgs, execute=execute)
