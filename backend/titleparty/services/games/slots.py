"""Title slots.

A submission's title has three slots. ``word_order`` lists, slot by slot,
which piece fills it: 1 is card1, 2 is card2, 3 is the free word.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

CARD1 = 1
CARD2 = 2
FREE_WORD = 3
SLOT_COUNT = 3


@dataclass(frozen=True)
class CardSlot:
    card_id: int
    word: str

    def to_dict(self):
        return {'kind': 'card', 'card_id': self.card_id, 'text': self.word}


@dataclass(frozen=True)
class WordSlot:
    text: str

    def to_dict(self):
        return {'kind': 'word', 'text': self.text}


@dataclass(frozen=True)
class EmptySlot:
    def to_dict(self):
        return {'kind': 'empty', 'text': None}


Slot = Union[CardSlot, WordSlot, EmptySlot]


def is_valid_word_order(word_order) -> bool:
    if not isinstance(word_order, (list, tuple)) or len(word_order) != SLOT_COUNT:
        return False
    if any(isinstance(v, bool) or not isinstance(v, int) for v in word_order):
        return False
    return sorted(word_order) == [CARD1, CARD2, FREE_WORD]


def build_slots(submission) -> List[Slot]:
    """Expand a submission's ``word_order`` into slot variants.

    Unknown or missing pieces become :class:`EmptySlot` so a half-loaded
    record still renders.
    """
    order: Sequence[Optional[int]] = list(submission.word_order or [])
    order = list(order[:SLOT_COUNT]) + [None] * (SLOT_COUNT - len(order))
    slots: List[Slot] = []
    for piece in order:
        if piece == CARD1 and submission.card1 is not None:
            slots.append(CardSlot(submission.card1.id, submission.card1.word))
        elif piece == CARD2 and submission.card2 is not None:
            slots.append(CardSlot(submission.card2.id, submission.card2.word))
        elif piece == FREE_WORD and submission.free_word:
            slots.append(WordSlot(submission.free_word))
        else:
            slots.append(EmptySlot())
    return slots


def assemble_title(slots: Sequence[Slot], placeholder: str = '___') -> str:
    parts = []
    for slot in slots:
        if isinstance(slot, CardSlot):
            parts.append(slot.word)
        elif isinstance(slot, WordSlot):
            parts.append(slot.text)
        else:
            parts.append(placeholder)
    return ''.join(parts)
