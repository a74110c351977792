from __future__ import annotations

from movienight.db.records import RankedMovie


def generate_invite(sender_name: str, owner_name: str, top_pick: RankedMovie | None) -> str:
    lines = [
        f"{sender_name} invited you to movie night in {owner_name}'s lobby.",
        "Log in to MovieNight and accept the invitation from your home page.",
    ]
    if top_pick:
        votes = "vote" if top_pick.vote_count == 1 else "votes"
        lines.append(f"Current top pick: {top_pick.title} ({top_pick.vote_count} {votes})")
    lines.append("Suggest a movie and vote before the owner closes the lobby.")
    return "\n".join(lines)
