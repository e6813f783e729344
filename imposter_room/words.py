# imposter_room/words.py
import random
from typing import Dict, List, Sequence, Tuple

WORD_CATEGORIES: Dict[str, List[str]] = {
    "Animals": ["Dog", "Cat", "Elephant", "Lion", "Tiger", "Bear", "Zebra", "Giraffe"],
    "Food": ["Pizza", "Burger", "Sushi", "Pasta", "Taco", "Salad", "Steak", "Soup"],
    "Objects": ["Car", "Phone", "Book", "Chair", "Table", "Lamp", "Clock", "Mirror"],
}


def remaining_words(used_words: Sequence[str], categories: Dict[str, List[str]] = WORD_CATEGORIES) -> Dict[str, List[str]]:
    """Categories that still have unused words, mapped to those words."""
    used = set(used_words)
    remaining = {}
    for category, words in categories.items():
        left = [w for w in words if w not in used]
        if left:
            remaining[category] = left
    return remaining


def select_word(
    used_words: Sequence[str],
    rng: random.Random = None,
    categories: Dict[str, List[str]] = WORD_CATEGORIES,
) -> Tuple[str, str, List[str]]:
    """
    Pick the next secret word for a game.

    A category is chosen uniformly among those with unused words left, then a
    word uniformly from what is left in it, and the word is appended to the
    history. Once every word has been used the history is dropped: the pick is
    made from the full table and the new history holds only that word.

    Returns (category, word, new_used_words). ``used_words`` is not modified.
    """
    rng = rng or random.Random()
    remaining = remaining_words(used_words, categories)

    if remaining:
        category = rng.choice(list(remaining))
        word = rng.choice(remaining[category])
        return category, word, list(used_words) + [word]

    # Pool exhausted: start over from the full table
    category = rng.choice(list(categories))
    word = rng.choice(categories[category])
    return category, word, [word]
