import logging
from datetime import datetime, timezone

import requests

from buzzsmile.core.config import settings

logger = logging.getLogger(__name__)

EMBED_COLOR = 5814783


def send_discord_webhook(payload: dict = None) -> dict:
    url = settings.DISCORD_WEBHOOK_URL
    if not url:
        return {"ok": False, "reason": "missing_webhook_url"}
    try:
        response = requests.post(url, json=payload or {}, timeout=5)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Discord webhook failed: %s", e)
        return {"ok": False, "error": str(e) or "request_failed"}
    return {"ok": True, "status": response.status_code}


def build_video_queued_payload(user: dict, video: dict, job_id) -> dict:
    user = user or {}
    video = video or {}
    username = user.get("name") or user.get("email") or "Unknown User"
    title = video.get("title") or video.get("filename") or f"Video {video.get('_id')}"
    return {
        "content": "📹 A video was requested for editing",
        "embeds": [
            {
                "title": "Video Queued For Editing",
                "color": EMBED_COLOR,
                "fields": [
                    {"name": "User", "value": str(username), "inline": True},
                    {"name": "Video", "value": str(title), "inline": True},
                    {"name": "Video ID", "value": str(video.get("_id") or ""), "inline": False},
                    {"name": "Job ID", "value": str(job_id or ""), "inline": False},
                    {"name": "Status", "value": "queued", "inline": True},
                ],
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        ],
    }


def notify_video_queued(user: dict, video: dict, job_id) -> dict:
    return send_discord_webhook(build_video_queued_payload(user, video, job_id))
