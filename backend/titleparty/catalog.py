"""Default word-card and theme catalog."""

from titleparty.models import Theme, WordCard

DEFAULT_WORDS = [
    'moon', 'castle', 'secret', 'pizza', 'ghost', 'robot', 'winter', 'dragon',
    'coffee', 'mirror', 'ocean', 'thunder', 'garden', 'clock', 'shadow', 'rocket',
    'piano', 'island', 'banana', 'crown', 'forest', 'letter', 'tiger', 'candle',
    'desert', 'wizard', 'bicycle', 'cloud', 'treasure', 'volcano', 'penguin', 'lantern',
    'midnight', 'cookie', 'pirate', 'storm', 'diamond', 'train', 'whisper', 'cactus',
]

DEFAULT_THEMES = [
    ('Blockbuster movie', 'A film everyone would line up to see'),
    ('Bestselling novel', 'The book nobody can put down'),
    ('Hit song', 'A chart-topping single'),
    ('Late-night TV show', None),
    ('Startup name', 'The next big company'),
    ('Fairy tale', 'Once upon a time...'),
    ('Video game', None),
    ('Cookbook', 'Recipes with a twist'),
]


def seed_catalog(session) -> tuple:
    """Insert any missing default cards and themes. Returns (cards, themes) added."""
    known_words = {w for (w,) in session.query(WordCard.word).all()}
    known_themes = {n for (n,) in session.query(Theme.name).all()}
    cards = [WordCard(word=w) for w in DEFAULT_WORDS if w not in known_words]
    themes = [Theme(name=n, description=d) for n, d in DEFAULT_THEMES if n not in known_themes]
    session.add_all(cards + themes)
    session.commit()
    return len(cards), len(themes)
