"""Sample vocabulary for local development and demos.

Real words arrive already enriched by the content generator; these stand in
for that output.
"""

from lexis.db.database import Database
from lexis.db.models import WordRecord

SAMPLE_WORDS = [
    {
        "word": "ephemeral",
        "translation": "efímero",
        "categories": ["Nature"],
        "examples": ["The beauty of the cherry blossom is ephemeral."],
    },
    {
        "word": "ubiquitous",
        "translation": "omnipresente",
        "categories": ["Technology"],
        "examples": ["Smartphones have become ubiquitous."],
    },
    {
        "word": "itinerary",
        "translation": "itinerario",
        "categories": ["Travel"],
        "examples": ["Our itinerary includes three days in Lisbon."],
    },
    {
        "word": "stamina",
        "translation": "resistencia",
        "categories": ["Sports", "Health"],
        "examples": ["Marathon runners need a lot of stamina."],
    },
    {
        "word": "simmer",
        "translation": "hervir a fuego lento",
        "categories": ["Food"],
        "examples": ["Let the sauce simmer for twenty minutes."],
    },
    {
        "word": "revenue",
        "translation": "ingresos",
        "categories": ["Business"],
        "examples": ["The company's revenue doubled last year."],
    },
    {
        "word": "curriculum",
        "translation": "plan de estudios",
        "categories": ["Education"],
        "examples": ["Coding is now part of the school curriculum."],
    },
    {
        "word": "harmony",
        "translation": "armonía",
        "categories": ["Music", "Art"],
        "examples": ["The choir sang in perfect harmony."],
    },
]


def seed_words(db: Database, user_id: int) -> int:
    """Add the sample words for a user, skipping ones they already have.

    Returns:
        Number of words added.
    """
    existing = {word.word.lower() for word in db.get_words(user_id)}
    added = 0
    for sample in SAMPLE_WORDS:
        if sample["word"].lower() in existing:
            continue
        db.add_word(WordRecord(user_id=user_id, **sample))
        added += 1
    return added
