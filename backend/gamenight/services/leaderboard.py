from sqlalchemy import func

from gamenight import db
from gamenight.models import Patron, PromptScore


def game_night_leaderboard(game_night_id: int, limit: int | None = None) -> list[dict]:
    """Total points per patron for a game night, highest first.

    Patrons who never scored are included with zero.
    """
    total = func.coalesce(func.sum(PromptScore.points), 0).label('total_points')
    query = (
        db.session.query(Patron.id, Patron.nickname, total)
        .outerjoin(PromptScore, PromptScore.patron_id == Patron.id)
        .filter(Patron.game_night_id == game_night_id)
        .group_by(Patron.id, Patron.nickname)
        .order_by(total.desc(), Patron.id.asc())
    )
    if limit:
        query = query.limit(limit)
    return [
        {'patron_id': pid, 'nickname': nickname, 'total_points': int(points or 0)}
        for pid, nickname, points in query.all()
    ]


def patron_total(game_night_id: int, patron_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(PromptScore.points), 0))
        .filter(PromptScore.game_night_id == game_night_id, PromptScore.patron_id == patron_id)
        .scalar()
    )
    return int(total or 0)


def patron_points_for_prompt(prompt_id: int, patron_id: int) -> int | None:
    score = PromptScore.query.filter_by(prompt_id=prompt_id, patron_id=patron_id).first()
    return score.points if score else None
