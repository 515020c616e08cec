"""
Practice text generation.

Sentences are built from per-difficulty templates whose ``[category]``
placeholders are filled from topic word pools, then formatted for the tier:
easy text is lowercase without punctuation, medium and hard text gets
sentence capitalization.
"""

import random
import re
from typing import Optional

TOPIC_WORDS = {
    "easy": {
        "animals": ["cat", "dog", "bird", "fish", "cow", "pig", "duck", "frog", "bee", "ant"],
        "actions": ["run", "jump", "walk", "sit", "eat", "sleep", "play", "look", "move", "stop"],
        "places": ["home", "park", "yard", "room", "bed", "car", "tree", "hill", "lake", "road"],
        "times": ["day", "night", "morning", "today", "now", "later", "soon", "then", "first", "last"],
        "objects": ["book", "ball", "cup", "box", "bag", "toy", "pen", "hat", "key", "map"],
        "people": ["man", "woman", "boy", "girl", "mom", "dad", "kid", "baby", "friend", "person"],
        "colors": ["red", "blue", "green", "black", "white", "brown", "pink", "gray", "gold", "dark"],
        "sizes": ["big", "small", "long", "short", "tall", "wide", "thin", "huge", "tiny", "full"],
        "qualities": ["good", "bad", "nice", "happy", "sad", "fast", "slow", "hot", "cold", "new"],
    },
    "medium": {
        "subjects": ["technology", "education", "business", "health", "travel", "culture", "music",
                     "sports", "food", "nature"],
        "actions": ["develop", "create", "manage", "organize", "research", "discover", "improve",
                    "connect", "support", "explore"],
        "qualities": ["important", "successful", "creative", "efficient", "popular", "modern",
                      "traditional", "innovative", "reliable", "flexible"],
        "places": ["office", "university", "hospital", "restaurant", "airport", "museum", "library",
                   "theater", "stadium", "market"],
        "people": ["students", "teachers", "doctors", "engineers", "artists", "musicians", "athletes",
                   "writers", "scientists", "professionals"],
        "concepts": ["knowledge", "experience", "opportunity", "challenge", "solution", "progress",
                     "success", "development", "communication", "information"],
        "tools": ["computer", "software", "internet", "database", "system", "network", "platform",
                  "application", "device", "equipment"],
        "times": ["the morning", "the evening", "weekdays", "the summer", "the winter", "holidays",
                  "lunch breaks", "the weekend", "busy seasons", "quiet hours"],
    },
    "hard": {
        "fields": ["neuroscience", "biotechnology", "astrophysics", "archaeology", "psychology",
                   "philosophy", "economics", "linguistics", "anthropology", "sociology"],
        "processes": ["implementation", "transformation", "optimization", "configuration",
                      "interpretation", "experimentation", "investigation", "collaboration",
                      "specialization", "systematization"],
        "qualities": ["comprehensive", "sophisticated", "revolutionary", "unprecedented",
                      "extraordinary", "fundamental", "theoretical", "experimental", "controversial",
                      "phenomenological"],
        "concepts": ["consciousness", "methodology", "infrastructure", "architecture", "administration",
                     "organization", "responsibility", "characteristic", "understanding",
                     "communication"],
        "outcomes": ["advancement", "achievement", "breakthrough", "discovery", "innovation",
                     "development", "establishment", "recognition", "transformation", "realization"],
        "institutions": ["university", "laboratory", "organization", "administration", "institution",
                         "corporation", "establishment", "foundation", "association", "confederation"],
        "actions": ["synthesize", "scrutinize", "substantiate", "conceptualize", "operationalize",
                    "extrapolate", "corroborate", "disseminate", "contextualize", "interrogate"],
        "tools": ["instrumentation", "simulations", "spectrometers", "algorithms", "frameworks",
                  "repositories", "methodologies", "computational models", "telescopes", "sensors"],
    },
}

TEMPLATES = {
    "easy": [
        "the [animals] [actions] in the [places] when it gets [times]",
        "[people] like to [actions] with their [objects] every [times]",
        "a [colors] [animals] [actions] near the [places] and looks [qualities]",
        "when [people] [actions] they feel [qualities] and [actions] more",
        "the [sizes] [objects] sits on the [places] all [times] long",
        "[people] can [actions] and [actions] when they have [objects]",
        "every [times] the [animals] [actions] around the [places] quickly",
        "most [people] [actions] their [objects] in the [places] at [times]",
    ],
    "medium": [
        "During [times], [people] typically [actions] their [concepts] through [tools].",
        "Modern [subjects] helps [people] [actions] more [qualities] solutions for daily challenges.",
        "Many [people] visit [places] to [actions] new [concepts] and gain valuable experience.",
        "Technology allows [people] to [actions] and [actions] their work more efficiently.",
        "Students can [actions] important [concepts] by using various [tools] and methods.",
        "Professional [people] often [actions] in [places] to discuss [qualities] projects.",
        "Research shows that [subjects] continues to [actions] and transform modern society.",
        "Organizations [actions] new [tools] to improve their [concepts] and reach better results.",
    ],
    "hard": [
        "Contemporary [fields] demonstrates [qualities] [concepts] that facilitate systematic [processes].",
        "Researchers [actions] [qualities] methodologies to investigate complex [concepts] within academic [institutions].",
        "Advanced [processes] requires comprehensive understanding of [qualities] theoretical frameworks.",
        "Modern [institutions] implement sophisticated [tools] to optimize their organizational [processes].",
        "Scientific [fields] continues to [actions] unprecedented [outcomes] through collaborative research initiatives.",
        "Theoretical [concepts] underlying [qualities] [processes] represents fundamental advances in human knowledge.",
        "Academic [institutions] facilitate [qualities] [processes] by providing comprehensive resources and expertise.",
        "Revolutionary [outcomes] in [fields] demonstrates the extraordinary potential of systematic [processes].",
    ],
}

WORDS_TO_CAPITALIZE = [
    "america", "american", "english", "internet", "technology", "students",
    "university", "college", "government", "research", "science", "education",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "january", "february", "march", "april", "may", "june", "july", "august",
    "september", "october", "november", "december",
]

# Words to generate for each timer option (minutes)
WORD_COUNTS = {1: 70, 2: 120, 5: 300}

PLACEHOLDER = re.compile(r"\[(\w+)\]")


def fill_template(template: str, difficulty: str, rng: random.Random) -> str:
    topic_words = TOPIC_WORDS[difficulty]

    def replace(match):
        words = topic_words.get(match.group(1))
        if not words:
            return match.group(0)
        return rng.choice(words)

    return PLACEHOLDER.sub(replace, template)


def apply_formatting(text: str, difficulty: str) -> str:
    if difficulty == "easy":
        return re.sub(r"[.,!?]", "", text.lower())

    formatted = text.lower()
    formatted = formatted[:1].upper() + formatted[1:]
    formatted = re.sub(r"\.\s+([a-z])", lambda m: ". " + m.group(1).upper(), formatted)
    for word in WORDS_TO_CAPITALIZE:
        formatted = re.sub(rf"\b{word}\b", word.capitalize(), formatted, flags=re.IGNORECASE)
    return formatted


def generate_text(difficulty: str, word_count: int, rng: Optional[random.Random] = None) -> str:
    """Generate exactly word_count words of practice text"""
    if difficulty not in TEMPLATES:
        raise ValueError(f"Unknown difficulty: {difficulty}")
    rng = rng or random.Random()
    sentences = []
    current = 0

    while current < word_count:
        sentence = apply_formatting(fill_template(rng.choice(TEMPLATES[difficulty]), difficulty, rng),
                                    difficulty)
        words = sentence.split()
        if current + len(words) <= word_count:
            sentences.append(" ".join(words))
            current += len(words)
        else:
            sentences.append(" ".join(words[:word_count - current]))
            current = word_count

    return " ".join(sentences)


def get_random_text(difficulty: str, timer: int, rng: Optional[random.Random] = None) -> str:
    if timer not in WORD_COUNTS:
        raise ValueError(f"Timer must be one of {sorted(WORD_COUNTS)} minutes")
    return generate_text(difficulty, WORD_COUNTS[timer], rng)
