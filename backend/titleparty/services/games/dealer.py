from typing import List

from sqlalchemy import delete

from titleparty.errors import ConfigurationError
from titleparty.models import Player, PlayerHand, WordCard


def hand_card_ids(ctx, player_id: int) -> List[int]:
    rows = ctx.session.query(PlayerHand.word_card_id).filter_by(player_id=player_id).order_by(PlayerHand.id).all()
    return [r[0] for r in rows]


def deal(ctx, player: Player, count: int) -> List[int]:
    """Add ``count`` catalog cards to the player's hand.

    Cards are drawn uniformly without replacement from the whole catalog,
    skipping cards this player already holds. Other players' hands are not
    consulted, so the same word may sit in several hands at once. Fewer
    cards are dealt only when the catalog runs out.
    """
    if count <= 0:
        return []
    catalog = [r[0] for r in ctx.session.query(WordCard.id).order_by(WordCard.id).all()]
    if not catalog:
        raise ConfigurationError('No word cards available')
    held = set(hand_card_ids(ctx, player.id))
    candidates = [cid for cid in catalog if cid not in held]
    drawn = ctx.rng.sample(candidates, min(count, len(candidates)))
    for card_id in drawn:
        ctx.session.add(PlayerHand(player_id=player.id, word_card_id=card_id))
    ctx.session.flush()
    ctx.session.expire(player, ['hand'])
    ctx.logger.info(f"[deal] player={player.id} requested={count} dealt={len(drawn)}")
    if player.room is not None:
        ctx.notify(player.room.room_code, 'hand')
    return drawn


def top_up(ctx, player: Player) -> List[int]:
    """Refill a hand back to the configured size. Safe to re-run."""
    needed = ctx.settings.hand_size - len(hand_card_ids(ctx, player.id))
    if needed <= 0:
        return []
    return deal(ctx, player, needed)


def top_up_room(ctx, room) -> None:
    for player in room.players:
        top_up(ctx, player)


def redeal(ctx, player: Player, count: int) -> List[int]:
    """Discard the whole hand and deal ``count`` fresh cards."""
    ctx.session.execute(delete(PlayerHand).where(PlayerHand.player_id == player.id))
    ctx.session.expire(player, ['hand'])
    return deal(ctx, player, count)


def consume(ctx, player: Player, card_ids) -> int:
    """Remove used cards from the hand; returns how many rows went away."""
    result = ctx.session.execute(
        delete(PlayerHand).where(
            PlayerHand.player_id == player.id,
            PlayerHand.word_card_id.in_(list(card_ids)),
        )
    )
    ctx.session.expire(player, ['hand'])
    return result.rowcount
