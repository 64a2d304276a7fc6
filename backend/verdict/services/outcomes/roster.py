"""Read-only view of the squad roster.

Membership is owned elsewhere; the dispute protocol only needs to know who
belongs to a squad and how many members it has right now. Counts are never
cached so a roster change mid-window moves the quorum threshold.
"""

import random
from typing import List, Optional

from verdict import db
from verdict.models import SquadMember


def squad_member_count(squad_id: int) -> int:
    return db.session.query(SquadMember).filter_by(squad_id=squad_id).count()


def is_squad_member(squad_id: int, user_id: int) -> bool:
    return db.session.query(SquadMember.id).filter_by(squad_id=squad_id, user_id=user_id).first() is not None


def squad_member_ids(squad_id: int) -> List[int]:
    rows = db.session.query(SquadMember.user_id).filter_by(squad_id=squad_id).order_by(SquadMember.user_id).all()
    return [r[0] for r in rows]


def pick_random_judge(squad_id: int, rng: Optional[random.Random] = None) -> Optional[int]:
    members = squad_member_ids(squad_id)
    if not members:
        return None
    return (rng or random).choice(members)
