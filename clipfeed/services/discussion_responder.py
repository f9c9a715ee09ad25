"""Reply to comments that ask the bot to explain a video."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager

from sqlalchemy.orm import Session

from clipfeed.core.logging import get_logger
from clipfeed.models.metadata import AnalysisState
from clipfeed.models.schema import Comment, Video, VideoAnalysis
from clipfeed.services.user_resolution import UserResolver

logger = get_logger(__name__)

PENDING_REPLY = "I haven't looked at this video yet. Ask me again in a few minutes."
IN_PROGRESS_REPLY = "I'm still analyzing this video. Ask me again in a few minutes."


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def render_analysis_reply(state: AnalysisState | None) -> str:
    """Render an analysis record, or its absence, as comment text."""
    if state is None:
        return PENDING_REPLY
    if state.is_processing:
        return IN_PROGRESS_REPLY
    if state.error is not None:
        return f"Sorry, I couldn't analyze this video: {state.error}"

    fields = state.fields
    parts: list[str] = []
    if fields.implementation_overview:
        parts.append(fields.implementation_overview)
    if fields.technical_details:
        parts.append(f"Technical details:\n{fields.technical_details}")
    if fields.tech_stack:
        parts.append(f"Tech stack:\n{_bullets(fields.tech_stack)}")
    if fields.architecture_patterns:
        parts.append(f"Architecture patterns:\n{_bullets(fields.architecture_patterns)}")
    if fields.best_practices:
        parts.append(f"Best practices:\n{_bullets(fields.best_practices)}")
    return "\n\n".join(parts) or "I couldn't find anything to explain in this video."


class DiscussionResponder:
    def __init__(
        self,
        *,
        db_factory: Callable[[], AbstractContextManager[Session]],
        trigger_phrase: str,
        bot_username: str,
    ) -> None:
        self._db_factory = db_factory
        self._trigger_phrase = trigger_phrase.lower()
        self._bot_username = bot_username

    def is_trigger(self, comment: Comment) -> bool:
        return not comment.is_bot_reply and self._trigger_phrase in (comment.text or "").lower()

    def respond(self, comment_id: int) -> int | None:
        """Post a bot reply for a trigger comment; returns the reply id or None."""
        with self._db_factory() as db:
            comment = db.get(Comment, comment_id)
            if comment is None or not self.is_trigger(comment):
                return None

            existing = db.query(Comment.id).filter(Comment.reply_to_id == comment.id).first()
            if existing is not None:
                return existing[0]

            video_id = comment.video_id
            analysis = db.get(VideoAnalysis, video_id)
            text = render_analysis_reply(analysis.to_state() if analysis else None)

            bot_user_id = UserResolver(db).find_or_create(self._bot_username)
            reply = Comment(
                video_id=video_id,
                user_id=bot_user_id,
                text=text,
                is_bot_reply=True,
                reply_to_id=comment.id,
            )
            db.add(reply)
            db.query(Video).filter(Video.id == video_id).update(
                {Video.comment_count: Video.comment_count + 1}, synchronize_session=False
            )
            db.flush()
            reply_id = reply.id
            db.commit()

        logger.info(
            "Replied to comment %s on video %s",
            comment_id,
            video_id,
            extra={
                "component": "discussion_responder",
                "operation": "respond",
                "item_id": comment_id,
                "context_data": {"reply_id": reply_id},
            },
        )
        return reply_id
